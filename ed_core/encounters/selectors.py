# ed_core/encounters/selectors.py
from __future__ import annotations

from uuid import UUID

from django.conf import settings
from django.db.models import F, QuerySet

from ed_core.common.exceptions import InvalidState
from ed_core.encounters.constants import EncounterStatus
from ed_core.encounters.models import Encounter, EncounterEvent


class EncounterSelectors:
    """
    Read-only queries for encounters.
    No .save(), no state mutation here.
    """

    @staticmethod
    def list_encounters(
        *,
        hospital_id: UUID,
        status: str | None = None,
        patient_id: UUID | None = None,
    ) -> QuerySet[Encounter]:
        qs = Encounter.objects.filter(hospital_id=hospital_id)

        if status:
            qs = qs.filter(status=status)

        if patient_id:
            qs = qs.filter(patient_id=patient_id)

        # Most urgent first; unassessed encounters sort after scored ones
        return qs.order_by(F("current_priority_score").desc(nulls_last=True), "created_at", "id")

    @staticmethod
    def queue_position(*, encounter: Encounter) -> dict:
        if encounter.status != EncounterStatus.WAITING:
            raise InvalidState(
                f"queue position is only defined for WAITING encounters (encounter is in {encounter.status})",
                details={"status": encounter.status},
            )

        queue = list(
            Encounter.objects.filter(hospital_id=encounter.hospital_id, status=EncounterStatus.WAITING)
            .order_by(F("current_priority_score").desc(nulls_last=True), "created_at", "id")
            .values_list("id", flat=True)
        )
        position = queue.index(encounter.id) + 1
        minutes_per_patient = getattr(settings, "QUEUE_MINUTES_PER_PATIENT", 15)

        return {
            "encounter_id": str(encounter.id),
            "position": position,
            "estimated_minutes": position * minutes_per_patient,
            "total_in_queue": len(queue),
        }

    @staticmethod
    def timeline(*, encounter_id: UUID) -> QuerySet[EncounterEvent]:
        return EncounterEvent.objects.filter(encounter_id=encounter_id).order_by("created_at", "id")
