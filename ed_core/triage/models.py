# ed_core/triage/models.py
import uuid

from django.core.exceptions import ValidationError
from django.db import models

from ed_core.common.models import TimeStampedModel


class TriageAssessment(TimeStampedModel):
    """
    One triage exam. Immutable after creation; the encounter points at the latest.
    Keep links loose (UUID fields) to avoid cross-app FK coupling.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    encounter_id = models.UUIDField(db_index=True)
    hospital_id = models.UUIDField(null=True, blank=True, db_index=True)
    created_by_id = models.CharField(max_length=64, blank=True, default="")

    ctas_level = models.PositiveSmallIntegerField()
    priority_score = models.FloatField()
    note = models.TextField(blank=True, default="")
    vital_signs = models.JSONField(default=dict, blank=True)

    class Meta:
        db_table = "triage_assessment"
        indexes = [
            models.Index(fields=["encounter_id", "created_at"]),
        ]

    def __str__(self) -> str:
        return f"TriageAssessment({self.encounter_id}, CTAS {self.ctas_level})"

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("TriageAssessment is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)
