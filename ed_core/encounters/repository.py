# ed_core/encounters/repository.py
"""
Narrow load/save boundary for the Encounter aggregate.

The state machine, triage linker and alert engine depend on this interface only.
Writes are conditional on the loaded `version`; a stale save raises
ConcurrentModification and the caller reloads and re-validates.
"""
from __future__ import annotations

from typing import Any, Iterator, Optional
from uuid import UUID

from django.db import transaction
from django.db.models import F

from ed_core.common.exceptions import ConcurrentModification, InvalidState, NotFound, ValidationError
from ed_core.encounters.constants import ACTIVE_STATUSES, TERMINAL_STATUSES
from ed_core.encounters.models import Encounter
from ed_core.triage.models import TriageAssessment


class EncounterRepository:
    def get(self, encounter_id: UUID, *, hospital_id: Optional[UUID] = None) -> Encounter:
        raise NotImplementedError

    def create(self, **fields: Any) -> Encounter:
        raise NotImplementedError

    def save_changes(self, encounter: Encounter, changes: dict[str, Any], *, now) -> Encounter:
        raise NotImplementedError

    def record_assessment_and_advance_pointer(
        self,
        encounter_id: UUID,
        *,
        ctas_level: int,
        priority_score: float,
        note: str,
        vital_signs: dict,
        created_by_id: str,
        now,
        hospital_id: Optional[UUID] = None,
    ) -> tuple[TriageAssessment, Encounter]:
        raise NotImplementedError

    def iter_active_pages(self, *, page_size: int) -> Iterator[list[Encounter]]:
        raise NotImplementedError


class DjangoEncounterRepository(EncounterRepository):
    def get(self, encounter_id: UUID, *, hospital_id: Optional[UUID] = None) -> Encounter:
        qs = Encounter.objects.filter(id=encounter_id)
        if hospital_id is not None:
            qs = qs.filter(hospital_id=hospital_id)
        enc = qs.first()
        if enc is None:
            raise NotFound("Encounter not found.", details={"encounter_id": str(encounter_id)})
        return enc

    def create(self, **fields: Any) -> Encounter:
        return Encounter.objects.create(**fields)

    def save_changes(self, encounter: Encounter, changes: dict[str, Any], *, now) -> Encounter:
        updated = Encounter.objects.filter(id=encounter.id, version=encounter.version).update(
            **changes,
            version=F("version") + 1,
            updated_at=now,
        )
        if updated != 1:
            self._raise_conflict(encounter.id, encounter.version)

        for field, value in changes.items():
            setattr(encounter, field, value)
        encounter.version += 1
        encounter.updated_at = now
        return encounter

    @transaction.atomic
    def record_assessment_and_advance_pointer(
        self,
        encounter_id: UUID,
        *,
        ctas_level: int,
        priority_score: float,
        note: str,
        vital_signs: dict,
        created_by_id: str,
        now,
        hospital_id: Optional[UUID] = None,
    ) -> tuple[TriageAssessment, Encounter]:
        qs = Encounter.objects.select_for_update().filter(id=encounter_id)
        if hospital_id is not None:
            qs = qs.filter(hospital_id=hospital_id)
        enc = qs.first()
        if enc is None:
            raise NotFound("Encounter not found.", details={"encounter_id": str(encounter_id)})
        if enc.status in TERMINAL_STATUSES:
            raise InvalidState(
                f"cannot record assessment: encounter is in {enc.status}",
                details={"status": enc.status},
            )

        # The pointer only moves forward; checked under the row lock
        if enc.current_triage_assessment_id is not None:
            current_at = (
                TriageAssessment.objects.filter(id=enc.current_triage_assessment_id)
                .values_list("created_at", flat=True)
                .first()
            )
            if current_at is not None and now < current_at:
                raise ValidationError(
                    f"cannot record assessment: time {now.isoformat()} is before the current assessment "
                    f"({current_at.isoformat()})",
                    details={"now": now.isoformat(), "current_assessment_at": current_at.isoformat()},
                )

        assessment = TriageAssessment.objects.create(
            encounter_id=enc.id,
            hospital_id=enc.hospital_id,
            created_by_id=created_by_id,
            ctas_level=ctas_level,
            priority_score=priority_score,
            note=note,
            vital_signs=vital_signs,
            created_at=now,
        )

        # Raising here rolls the assessment insert back with the pointer
        enc = self.save_changes(
            enc,
            {
                "current_triage_assessment_id": assessment.id,
                "current_ctas_level": ctas_level,
                "current_priority_score": priority_score,
            },
            now=now,
        )
        return assessment, enc

    def iter_active_pages(self, *, page_size: int) -> Iterator[list[Encounter]]:
        """Keyset pages over non-terminal encounters, ordered by id."""
        last_id = None
        while True:
            qs = Encounter.objects.filter(status__in=ACTIVE_STATUSES).order_by("id")
            if last_id is not None:
                qs = qs.filter(id__gt=last_id)
            page = list(qs[:page_size])
            if not page:
                return
            yield page
            if len(page) < page_size:
                return
            last_id = page[-1].id

    @staticmethod
    def _raise_conflict(encounter_id: UUID, loaded_version: int) -> None:
        if not Encounter.objects.filter(id=encounter_id).exists():
            raise NotFound("Encounter not found.", details={"encounter_id": str(encounter_id)})
        raise ConcurrentModification(
            "Encounter changed since it was loaded; reload and retry.",
            details={"encounter_id": str(encounter_id), "version": loaded_version},
        )
