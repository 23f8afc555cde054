# ed_core/encounters/models.py
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q
from django.utils import timezone

from ed_core.common.models import UUIDModel
from ed_core.encounters.constants import ACTIVE_STATUSES, PIPELINE_TIMESTAMPS


class EncounterStatus(models.TextChoices):
    EXPECTED = "EXPECTED", "Expected"
    ADMITTED = "ADMITTED", "Admitted"
    TRIAGE = "TRIAGE", "Triage"
    WAITING = "WAITING", "Waiting"
    COMPLETE = "COMPLETE", "Complete"
    UNRESOLVED = "UNRESOLVED", "Unresolved"
    CANCELLED = "CANCELLED", "Cancelled"


class Encounter(UUIDModel):
    """
    One emergency-department visit. Status only moves through the state machine;
    rows are never deleted (CANCELLED is the soft terminal).
    """
    # Unknown until the patient is routed to a hospital
    hospital_id = models.UUIDField(null=True, blank=True, db_index=True)
    patient_id = models.UUIDField(db_index=True)

    status = models.CharField(
        max_length=32,
        choices=EncounterStatus.choices,
        default=EncounterStatus.EXPECTED,
        db_index=True,
    )

    expected_at = models.DateTimeField(null=True, blank=True)
    arrived_at = models.DateTimeField(null=True, blank=True)
    triaged_at = models.DateTimeField(null=True, blank=True)
    waiting_at = models.DateTimeField(null=True, blank=True)
    departed_at = models.DateTimeField(null=True, blank=True)
    cancelled_at = models.DateTimeField(null=True, blank=True)

    chief_complaint = models.CharField(max_length=255, blank=True, default="")

    # Denormalized pointer to the latest triage assessment
    current_triage_assessment_id = models.UUIDField(null=True, blank=True)
    current_ctas_level = models.PositiveSmallIntegerField(null=True, blank=True)
    current_priority_score = models.FloatField(null=True, blank=True, db_index=True)

    # Optimistic concurrency token, bumped on every conditional save
    version = models.PositiveIntegerField(default=1)

    created_by_id = models.CharField(max_length=64, blank=True, default="")

    class Meta:
        db_table = "encounters_encounter"
        indexes = [
            models.Index(fields=["hospital_id", "status"]),
            models.Index(fields=["hospital_id", "created_at"]),
            models.Index(fields=["status", "id"]),
        ]

    def __str__(self) -> str:
        return f"Encounter({self.patient_id}, {self.status})"

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    def latest_pipeline_timestamp(self):
        stamps = [getattr(self, f) for f in PIPELINE_TIMESTAMPS if getattr(self, f) is not None]
        return max(stamps) if stamps else None


class EncounterEvent(models.Model):
    """
    Append-only history stream for an encounter.

    The row itself is immutable. Processing bookkeeping (claim lease, processed_at)
    is written only through conditional queryset updates in EventLog.
    """
    # Monotonic: (created_at, id) is the total order of the log
    id = models.BigAutoField(primary_key=True)

    encounter_id = models.UUIDField(db_index=True)
    hospital_id = models.UUIDField(null=True, blank=True, db_index=True)

    type = models.CharField(max_length=64, db_index=True)
    metadata = models.JSONField(default=dict, blank=True)
    actor_id = models.CharField(max_length=64, blank=True, default="")

    # Caller-supplied identity; re-appending the same key is a no-op
    event_key = models.CharField(max_length=128, null=True, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)

    # Processing lease
    processed_at = models.DateTimeField(null=True, blank=True, db_index=True)
    claim_token = models.UUIDField(null=True, blank=True, db_index=True)
    claimed_at = models.DateTimeField(null=True, blank=True)
    lease_expires_at = models.DateTimeField(null=True, blank=True)
    attempts = models.PositiveIntegerField(default=0)

    class Meta:
        db_table = "encounters_event"
        constraints = [
            models.UniqueConstraint(
                fields=["encounter_id", "event_key"],
                condition=Q(event_key__isnull=False),
                name="uq_encounterevent_key_per_encounter",
            )
        ]
        indexes = [
            models.Index(fields=["encounter_id", "created_at", "id"]),
            models.Index(fields=["processed_at", "lease_expires_at", "created_at", "id"]),
        ]

    def __str__(self):
        return f"{self.type} @ {self.created_at}"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("EncounterEvent is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("EncounterEvent is immutable and cannot be deleted.")
