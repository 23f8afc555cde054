import pytest

from ed_core.alerts.models import Alert, AlertSeverity, AlertType
from ed_core.common.exceptions import InvalidState, NotFound, ValidationError
from ed_core.encounters.constants import EventType
from ed_core.encounters.models import EncounterEvent
from ed_core.messaging.models import Message, SenderType

pytestmark = pytest.mark.django_db


def test_post_message_appends_event(messaging_service, encounter, at):
    msg = messaging_service.post_message(
        encounter_id=encounter.id,
        sender_type=SenderType.STAFF,
        content="  Please stay in the waiting area.  ",
        actor="nurse-1",
        now=at(3),
    )

    assert msg.content == "Please stay in the waiting area."
    assert msg.hospital_id == encounter.hospital_id
    assert msg.created_at == at(3)
    ev = EncounterEvent.objects.get(encounter_id=encounter.id, type=EventType.MESSAGE_CREATED)
    assert ev.metadata["message_id"] == str(msg.id)
    assert ev.actor_id == "nurse-1"


def test_patient_worsening_raises_high_alert_once(messaging_service, encounter, at):
    for minute in (3, 4):
        messaging_service.post_message(
            encounter_id=encounter.id,
            sender_type=SenderType.PATIENT,
            content="My pain is getting worse",
            actor="patient-1",
            is_worsening=True,
            now=at(minute),
        )

    (alert,) = Alert.objects.filter(encounter_id=encounter.id)
    assert alert.type == AlertType.PATIENT_WORSENING
    assert alert.severity == AlertSeverity.HIGH
    assert Message.objects.filter(encounter_id=encounter.id).count() == 2


def test_staff_worsening_flag_does_not_alert(messaging_service, encounter, at):
    messaging_service.post_message(
        encounter_id=encounter.id,
        sender_type=SenderType.STAFF,
        content="Patient reports worsening",
        actor="nurse-1",
        is_worsening=True,
        now=at(3),
    )

    assert not Alert.objects.exists()


def test_worsening_without_hospital_skips_alert(messaging_service, encounter_service, patient_id, at):
    enc = encounter_service.create(patient_id=patient_id, actor="n", now=at(0))

    messaging_service.post_message(
        encounter_id=enc.id,
        sender_type=SenderType.PATIENT,
        content="Feeling worse",
        actor="patient-1",
        is_worsening=True,
        now=at(1),
    )

    assert Message.objects.filter(encounter_id=enc.id).exists()
    assert not Alert.objects.exists()


@pytest.mark.parametrize("content", ["", "   ", "x" * 2001])
def test_content_length_is_validated(messaging_service, encounter, at, content):
    with pytest.raises(ValidationError):
        messaging_service.post_message(
            encounter_id=encounter.id, sender_type=SenderType.STAFF, content=content, actor="n", now=at(1)
        )


def test_content_at_limit_is_accepted(messaging_service, encounter, at):
    msg = messaging_service.post_message(
        encounter_id=encounter.id, sender_type=SenderType.STAFF, content="x" * 2000, actor="n", now=at(1)
    )
    assert len(msg.content) == 2000


def test_patient_cannot_post_internal(messaging_service, encounter, at):
    with pytest.raises(ValidationError):
        messaging_service.post_message(
            encounter_id=encounter.id,
            sender_type=SenderType.PATIENT,
            content="hello",
            actor="patient-1",
            is_internal=True,
            now=at(1),
        )


def test_unknown_sender_type_is_rejected(messaging_service, encounter, at):
    with pytest.raises(ValidationError):
        messaging_service.post_message(
            encounter_id=encounter.id, sender_type="ROBOT", content="beep", actor="n", now=at(1)
        )


def test_terminal_encounter_rejects_messages(messaging_service, encounter_service, encounter, at):
    encounter_service.cancel(encounter_id=encounter.id, actor="n", now=at(1))

    with pytest.raises(InvalidState):
        messaging_service.post_message(
            encounter_id=encounter.id, sender_type=SenderType.STAFF, content="too late", actor="n", now=at(2)
        )


def test_mark_read_is_idempotent(messaging_service, encounter, at):
    msg = messaging_service.post_message(
        encounter_id=encounter.id, sender_type=SenderType.PATIENT, content="hi", actor="patient-1", now=at(1)
    )

    first = messaging_service.mark_read(message_id=msg.id, actor="nurse-1", now=at(2))
    second = messaging_service.mark_read(message_id=msg.id, actor="nurse-2", now=at(3))

    assert first.read_at == at(2)
    assert second.read_at == at(2)
    assert second.read_by_id == "nurse-1"
    assert EncounterEvent.objects.filter(encounter_id=encounter.id, type=EventType.MESSAGE_READ).count() == 1


def test_mark_read_checks_encounter(messaging_service, encounter_service, encounter, patient_id, at):
    msg = messaging_service.post_message(
        encounter_id=encounter.id, sender_type=SenderType.STAFF, content="hi", actor="n", now=at(1)
    )
    other = encounter_service.create(patient_id=patient_id, actor="n", now=at(1))

    with pytest.raises(NotFound):
        messaging_service.mark_read(message_id=msg.id, encounter_id=other.id, actor="n", now=at(2))


def test_patient_view_hides_internal_messages(messaging_service, encounter, at):
    messaging_service.post_message(
        encounter_id=encounter.id, sender_type=SenderType.PATIENT, content="question", actor="p", now=at(1)
    )
    messaging_service.post_message(
        encounter_id=encounter.id,
        sender_type=SenderType.STAFF,
        content="triage note",
        actor="n",
        is_internal=True,
        now=at(2),
    )

    staff = messaging_service.list_messages(encounter_id=encounter.id)
    patient = messaging_service.list_messages(encounter_id=encounter.id, include_internal=False)

    assert [m.content for m in staff] == ["question", "triage note"]
    assert [m.content for m in patient] == ["question"]
