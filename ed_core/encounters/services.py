# ed_core/encounters/services.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.utils import timezone

from ed_core.common.exceptions import ConcurrentModification, InvalidState, InvalidTransition, ValidationError
from ed_core.encounters.constants import EncounterAction, EncounterStatus, EventType
from ed_core.encounters.event_log import EventLog
from ed_core.encounters.models import Encounter
from ed_core.encounters.repository import DjangoEncounterRepository, EncounterRepository
from ed_core.encounters.state_machine import is_terminal, transition

logger = logging.getLogger(__name__)


class EncounterService:
    """
    Encounter lifecycle commands.

    Each command loads the encounter, asks the state machine for the next status,
    saves conditionally on the loaded version and appends a STATUS_CHANGED event,
    all in one transaction. Callers supply `now` for deterministic timestamps.
    """

    def __init__(
        self,
        repository: Optional[EncounterRepository] = None,
        event_log: Optional[EventLog] = None,
    ):
        self.repository = repository or DjangoEncounterRepository()
        self.event_log = event_log or EventLog()

    # ---------------------------------------------------------------------
    # Intake
    # ---------------------------------------------------------------------
    @transaction.atomic
    def create(
        self,
        *,
        patient_id: UUID,
        actor: str,
        hospital_id: Optional[UUID] = None,
        chief_complaint: str = "",
        now=None,
    ) -> Encounter:
        now = now or timezone.now()
        if not patient_id:
            raise ValidationError("patient_id is required.", details={"field": "patient_id"})

        enc = self.repository.create(
            patient_id=patient_id,
            hospital_id=hospital_id,
            status=EncounterStatus.EXPECTED,
            expected_at=now,
            chief_complaint=chief_complaint or "",
            created_by_id=actor or "",
            created_at=now,
        )

        self.event_log.append(
            encounter_id=enc.id,
            hospital_id=hospital_id,
            type=EventType.ENCOUNTER_CREATED,
            metadata={
                "patient_id": str(patient_id),
                "status": enc.status,
            },
            now=now,
            actor_id=actor,
            event_key=f"ENCOUNTER_CREATED:{enc.id}",
        )
        logger.info(f"Encounter {enc.id} created for patient {patient_id}")
        return enc

    @transaction.atomic
    def assign_hospital(
        self,
        *,
        encounter_id: UUID,
        hospital_id: UUID,
        actor: str,
        now=None,
    ) -> Encounter:
        now = now or timezone.now()
        enc = self.repository.get(encounter_id)

        if enc.hospital_id == hospital_id:
            return enc
        if enc.hospital_id is not None:
            raise ValidationError(
                "Encounter is already assigned to another hospital.",
                details={"hospital_id": str(enc.hospital_id)},
            )
        if is_terminal(enc.status):
            raise InvalidState(
                f"cannot assign hospital: encounter is in {enc.status}",
                details={"status": enc.status},
            )

        enc = self._save(enc, {"hospital_id": hospital_id}, now=now)
        self.event_log.append(
            encounter_id=enc.id,
            hospital_id=hospital_id,
            type=EventType.HOSPITAL_ASSIGNED,
            metadata={"hospital_id": str(hospital_id)},
            now=now,
            actor_id=actor,
            event_key=f"HOSPITAL_ASSIGNED:{enc.id}",
        )
        return enc

    # ---------------------------------------------------------------------
    # Lifecycle commands (1:1 with state machine actions)
    # ---------------------------------------------------------------------
    def confirm_arrival(self, *, encounter_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Encounter:
        return self._apply(EncounterAction.CONFIRM_ARRIVAL, encounter_id=encounter_id, actor=actor, hospital_id=hospital_id, now=now)

    def start_exam(self, *, encounter_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Encounter:
        return self._apply(EncounterAction.START_EXAM, encounter_id=encounter_id, actor=actor, hospital_id=hospital_id, now=now)

    def move_to_waiting(self, *, encounter_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Encounter:
        return self._apply(EncounterAction.MOVE_TO_WAITING, encounter_id=encounter_id, actor=actor, hospital_id=hospital_id, now=now)

    def discharge(self, *, encounter_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Encounter:
        return self._apply(EncounterAction.DISCHARGE, encounter_id=encounter_id, actor=actor, hospital_id=hospital_id, now=now)

    def mark_unresolved(self, *, encounter_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Encounter:
        return self._apply(EncounterAction.LEAVE_UNRESOLVED, encounter_id=encounter_id, actor=actor, hospital_id=hospital_id, now=now)

    def cancel(
        self,
        *,
        encounter_id: UUID,
        actor: str,
        reason: str = "",
        hospital_id: Optional[UUID] = None,
        now=None,
    ) -> Encounter:
        return self._apply(
            EncounterAction.CANCEL,
            encounter_id=encounter_id,
            actor=actor,
            hospital_id=hospital_id,
            now=now,
            reason=reason,
        )

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    @transaction.atomic
    def _apply(
        self,
        action: str,
        *,
        encounter_id: UUID,
        actor: str,
        hospital_id: Optional[UUID],
        now=None,
        reason: str = "",
    ) -> Encounter:
        now = now or timezone.now()
        enc = self.repository.get(encounter_id, hospital_id=hospital_id)

        try:
            step = transition(enc.status, action, now)
        except InvalidTransition:
            logger.warning(f"Rejected {action} on encounter {enc.id} in {enc.status}")
            raise

        # Pipeline timestamps never go backwards
        latest = enc.latest_pipeline_timestamp()
        if latest is not None and now < latest:
            raise ValidationError(
                f"cannot {action}: time {now.isoformat()} is before {latest.isoformat()}",
                details={"now": now.isoformat(), "latest": latest.isoformat()},
            )

        enc = self._save(enc, step.changes(), now=now)

        metadata = {"from": step.from_status, "to": step.to_status, "action": action}
        if reason:
            metadata["reason"] = reason
        self.event_log.append(
            encounter_id=enc.id,
            hospital_id=enc.hospital_id,
            type=EventType.STATUS_CHANGED,
            metadata=metadata,
            now=now,
            actor_id=actor,
            event_key=f"STATUS_CHANGED:{enc.id}:{enc.version}",
        )

        logger.info(f"Encounter {enc.id}: {step.from_status} -> {step.to_status} ({action})")
        return enc

    def _save(self, enc: Encounter, changes: dict, *, now) -> Encounter:
        try:
            return self.repository.save_changes(enc, changes, now=now)
        except ConcurrentModification:
            logger.warning(f"Save of encounter {enc.id} lost a race; caller must reload")
            raise
