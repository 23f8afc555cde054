# ed_core/messaging/services.py
from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.db import transaction
from django.db.models import QuerySet
from django.utils import timezone

from ed_core.alerts.models import AlertSeverity, AlertType
from ed_core.alerts.services import AlertService
from ed_core.common.exceptions import InvalidState, NotFound, ValidationError
from ed_core.encounters.constants import EventType
from ed_core.encounters.event_log import EventLog
from ed_core.encounters.repository import DjangoEncounterRepository, EncounterRepository
from ed_core.encounters.state_machine import is_terminal
from ed_core.messaging.models import Message, SenderType

logger = logging.getLogger(__name__)

CONTENT_MAX_LENGTH = 2000


class MessagingService:
    def __init__(
        self,
        repository: Optional[EncounterRepository] = None,
        event_log: Optional[EventLog] = None,
        alert_service: Optional[AlertService] = None,
    ):
        self.repository = repository or DjangoEncounterRepository()
        self.event_log = event_log or EventLog()
        self.alert_service = alert_service or AlertService(event_log=self.event_log)

    @transaction.atomic
    def post_message(
        self,
        *,
        encounter_id: UUID,
        sender_type: str,
        content: str,
        actor: str,
        is_internal: bool = False,
        is_worsening: bool = False,
        hospital_id: Optional[UUID] = None,
        now=None,
    ) -> Message:
        """
        Append a message. A worsening report from the patient raises a
        PATIENT_WORSENING alert (deduplicated like any other open alert).
        """
        if sender_type not in SenderType.values:
            raise ValidationError("Unknown sender type.", details={"sender_type": sender_type})
        content = (content or "").strip()
        if not content or len(content) > CONTENT_MAX_LENGTH:
            raise ValidationError(
                f"content must be 1 to {CONTENT_MAX_LENGTH} characters",
                details={"field": "content"},
            )
        if is_internal and sender_type == SenderType.PATIENT:
            raise ValidationError("Patients cannot post internal messages.", details={"field": "is_internal"})

        now = now or timezone.now()
        enc = self.repository.get(encounter_id, hospital_id=hospital_id)
        if is_terminal(enc.status):
            raise InvalidState(
                f"cannot post message: encounter is in {enc.status}",
                details={"status": enc.status},
            )

        msg = Message.objects.create(
            encounter_id=enc.id,
            hospital_id=enc.hospital_id,
            sender_type=sender_type,
            created_by_id=actor or "",
            content=content,
            is_internal=is_internal,
            is_worsening=is_worsening,
            created_at=now,
        )

        self.event_log.append(
            encounter_id=enc.id,
            hospital_id=enc.hospital_id,
            type=EventType.MESSAGE_CREATED,
            metadata={
                "message_id": str(msg.id),
                "sender_type": sender_type,
                "is_internal": is_internal,
                "is_worsening": is_worsening,
            },
            now=now,
            actor_id=actor,
            event_key=f"MESSAGE_CREATED:{msg.id}",
        )

        if is_worsening and sender_type == SenderType.PATIENT:
            if enc.hospital_id is None:
                logger.warning(f"Worsening report on encounter {enc.id} has no hospital; alert not raised")
            else:
                self.alert_service.raise_alert(
                    encounter_id=enc.id,
                    hospital_id=enc.hospital_id,
                    type=AlertType.PATIENT_WORSENING,
                    severity=AlertSeverity.HIGH,
                    metadata={"message_id": str(msg.id)},
                    actor=actor,
                    now=now,
                )

        return msg

    @transaction.atomic
    def mark_read(
        self,
        *,
        message_id: UUID,
        actor: str,
        encounter_id: Optional[UUID] = None,
        hospital_id: Optional[UUID] = None,
        now=None,
    ) -> Message:
        now = now or timezone.now()
        qs = Message.objects.filter(id=message_id)
        if encounter_id is not None:
            qs = qs.filter(encounter_id=encounter_id)
        if hospital_id is not None:
            qs = qs.filter(hospital_id=hospital_id)
        msg = qs.first()
        if msg is None:
            raise NotFound("Message not found.", details={"message_id": str(message_id)})

        updated = Message.objects.filter(id=msg.id, read_at__isnull=True).update(read_at=now, read_by_id=actor or "")
        if updated:
            msg.refresh_from_db()
            self.event_log.append(
                encounter_id=msg.encounter_id,
                hospital_id=msg.hospital_id,
                type=EventType.MESSAGE_READ,
                metadata={"message_id": str(msg.id)},
                now=now,
                actor_id=actor,
                event_key=f"MESSAGE_READ:{msg.id}",
            )
        return msg

    @staticmethod
    def list_messages(*, encounter_id: UUID, include_internal: bool = True) -> QuerySet[Message]:
        qs = Message.objects.filter(encounter_id=encounter_id)
        if not include_internal:
            qs = qs.filter(is_internal=False)
        return qs.order_by("created_at", "id")
