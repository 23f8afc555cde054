from __future__ import annotations

import uuid

from django.db import models
from django.db.models import Q
from django.utils import timezone


class AlertSeverity(models.TextChoices):
    LOW = "LOW", "Low"
    MEDIUM = "MEDIUM", "Medium"
    HIGH = "HIGH", "High"


class AlertStatus(models.TextChoices):
    OPEN = "OPEN", "Open"
    ACKNOWLEDGED = "ACKNOWLEDGED", "Acknowledged"
    RESOLVED = "RESOLVED", "Resolved"


class AlertType:
    TRIAGE_REASSESSMENT_OVERDUE = "TRIAGE_REASSESSMENT_OVERDUE"
    PATIENT_WORSENING = "PATIENT_WORSENING"


class Alert(models.Model):
    """
    Time-threshold or staff-raised alert on an encounter.

    At most one open (unresolved) alert per (encounter, type); the partial unique
    constraint is what makes concurrent scans safe, not the pre-insert check.
    Keep links loose (UUID fields) to avoid cross-app FK coupling.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    encounter_id = models.UUIDField(db_index=True)
    hospital_id = models.UUIDField(db_index=True)

    type = models.CharField(max_length=64, db_index=True)
    severity = models.CharField(
        max_length=16,
        choices=AlertSeverity.choices,
        default=AlertSeverity.MEDIUM,
        db_index=True,
    )
    metadata = models.JSONField(default=dict, blank=True)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    created_by_id = models.CharField(max_length=64, blank=True, default="")

    acknowledged_at = models.DateTimeField(null=True, blank=True)
    acknowledged_by_id = models.CharField(max_length=64, null=True, blank=True)
    resolved_at = models.DateTimeField(null=True, blank=True, db_index=True)
    resolved_by_id = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        db_table = "alerts_alert"
        constraints = [
            models.UniqueConstraint(
                fields=["encounter_id", "type"],
                condition=Q(resolved_at__isnull=True),
                name="uq_open_alert_per_encounter_type",
            )
        ]
        indexes = [
            models.Index(fields=["hospital_id", "resolved_at", "severity"]),
            models.Index(fields=["encounter_id", "type"]),
        ]

    def __str__(self) -> str:
        return f"Alert({self.type}, {self.severity}, {self.status})"

    @property
    def status(self) -> str:
        if self.resolved_at is not None:
            return AlertStatus.RESOLVED
        if self.acknowledged_at is not None:
            return AlertStatus.ACKNOWLEDGED
        return AlertStatus.OPEN

    @property
    def is_open(self) -> bool:
        return self.resolved_at is None
