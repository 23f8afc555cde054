# ed_core/triage/selectors.py
from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from ed_core.triage.models import TriageAssessment


def assessments_qs(*, encounter_id: UUID) -> QuerySet[TriageAssessment]:
    return TriageAssessment.objects.filter(encounter_id=encounter_id).order_by("created_at", "id")
