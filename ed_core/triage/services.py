# ed_core/triage/services.py
from __future__ import annotations

import logging
import math
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from ed_core.common.exceptions import ValidationError
from ed_core.encounters.constants import EventType
from ed_core.encounters.event_log import EventLog
from ed_core.encounters.repository import DjangoEncounterRepository, EncounterRepository
from ed_core.triage.models import TriageAssessment

logger = logging.getLogger(__name__)

CTAS_LEVELS = range(1, 6)
NOTE_MAX_LENGTH = 2000

# CTAS 1 is most acute
PRIORITY_BY_CTAS = {1: 100, 2: 80, 3: 60, 4: 40, 5: 20}


def compute_priority_score(ctas_level: int) -> float:
    return float(PRIORITY_BY_CTAS[ctas_level])


def _validate(ctas_level, priority_score, note, vital_signs) -> None:
    errors = {}

    if isinstance(ctas_level, bool) or not isinstance(ctas_level, int) or ctas_level not in CTAS_LEVELS:
        errors["ctas_level"] = "must be an integer from 1 to 5"

    if priority_score is not None:
        if (
            isinstance(priority_score, bool)
            or not isinstance(priority_score, (int, float))
            or not math.isfinite(priority_score)
            or priority_score < 0
        ):
            errors["priority_score"] = "must be a non-negative number"

    if note is not None and len(note) > NOTE_MAX_LENGTH:
        errors["note"] = f"must be at most {NOTE_MAX_LENGTH} characters"

    if vital_signs is not None and not isinstance(vital_signs, dict):
        errors["vital_signs"] = "must be an object"

    if errors:
        raise ValidationError("Invalid triage assessment.", details=errors)


class TriageAssessmentLinker:
    """
    Records a triage assessment and advances the encounter's current-assessment
    pointer as one atomic unit. Readers never see a pointer to a missing or
    stale assessment.
    """

    def __init__(
        self,
        repository: Optional[EncounterRepository] = None,
        event_log: Optional[EventLog] = None,
    ):
        self.repository = repository or DjangoEncounterRepository()
        self.event_log = event_log or EventLog()

    def record_assessment(
        self,
        *,
        encounter_id: UUID,
        ctas_level: int,
        actor: str,
        priority_score: float | None = None,
        note: str = "",
        vital_signs: dict | None = None,
        hospital_id: Optional[UUID] = None,
        now=None,
    ) -> TriageAssessment:
        # Rejected before any write
        _validate(ctas_level, priority_score, note, vital_signs)

        now = now or timezone.now()
        if priority_score is None:
            priority_score = compute_priority_score(ctas_level)

        with transaction.atomic():
            assessment, enc = self.repository.record_assessment_and_advance_pointer(
                encounter_id,
                ctas_level=ctas_level,
                priority_score=float(priority_score),
                note=note or "",
                vital_signs=vital_signs or {},
                created_by_id=actor or "",
                now=now,
                hospital_id=hospital_id,
            )
            self.event_log.append(
                encounter_id=enc.id,
                hospital_id=enc.hospital_id,
                type=EventType.TRIAGE_CREATED,
                metadata={
                    "assessment_id": str(assessment.id),
                    "ctas_level": assessment.ctas_level,
                    "priority_score": assessment.priority_score,
                },
                now=now,
                actor_id=actor,
                event_key=f"TRIAGE_CREATED:{assessment.id}",
            )

        logger.info(f"Assessment {assessment.id} recorded for encounter {enc.id} (CTAS {ctas_level})")
        return assessment
