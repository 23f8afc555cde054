# ed_core/encounters/constants.py

class EncounterStatus:
    """
    Status constants used by services.
    Keep strings aligned with Encounter.status choices.
    """
    EXPECTED = "EXPECTED"
    ADMITTED = "ADMITTED"
    TRIAGE = "TRIAGE"
    WAITING = "WAITING"
    COMPLETE = "COMPLETE"
    UNRESOLVED = "UNRESOLVED"
    CANCELLED = "CANCELLED"


TERMINAL_STATUSES = frozenset({
    EncounterStatus.COMPLETE,
    EncounterStatus.UNRESOLVED,
    EncounterStatus.CANCELLED,
})

ACTIVE_STATUSES = (
    EncounterStatus.EXPECTED,
    EncounterStatus.ADMITTED,
    EncounterStatus.TRIAGE,
    EncounterStatus.WAITING,
)

# Pipeline timestamps in the order they are reached
PIPELINE_TIMESTAMPS = (
    "expected_at",
    "arrived_at",
    "triaged_at",
    "waiting_at",
    "departed_at",
    "cancelled_at",
)


class EncounterAction:
    CONFIRM_ARRIVAL = "confirm-arrival"
    START_EXAM = "start-exam"
    MOVE_TO_WAITING = "move-to-waiting"
    DISCHARGE = "discharge"
    LEAVE_UNRESOLVED = "leave-unresolved"
    CANCEL = "cancel"


class EventType:
    ENCOUNTER_CREATED = "ENCOUNTER_CREATED"
    HOSPITAL_ASSIGNED = "HOSPITAL_ASSIGNED"
    STATUS_CHANGED = "STATUS_CHANGED"
    TRIAGE_CREATED = "TRIAGE_CREATED"
    MESSAGE_CREATED = "MESSAGE_CREATED"
    MESSAGE_READ = "MESSAGE_READ"
    ALERT_CREATED = "ALERT_CREATED"
    ALERT_ACKNOWLEDGED = "ALERT_ACKNOWLEDGED"
    ALERT_RESOLVED = "ALERT_RESOLVED"


# In-process channel each event type is published on by the event processor
EVENT_CHANNELS = {
    EventType.ENCOUNTER_CREATED: "encounter.updated",
    EventType.HOSPITAL_ASSIGNED: "encounter.updated",
    EventType.STATUS_CHANGED: "encounter.updated",
    EventType.TRIAGE_CREATED: "encounter.updated",
    EventType.MESSAGE_CREATED: "message.created",
    EventType.MESSAGE_READ: "message.read",
    EventType.ALERT_CREATED: "alert.created",
    EventType.ALERT_ACKNOWLEDGED: "alert.acknowledged",
    EventType.ALERT_RESOLVED: "alert.resolved",
}
