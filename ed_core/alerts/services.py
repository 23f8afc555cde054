from __future__ import annotations

import logging
from typing import Optional
from uuid import UUID

from django.db import IntegrityError, transaction
from django.utils import timezone

from ed_core.alerts.models import Alert, AlertSeverity
from ed_core.common.exceptions import NotFound, ValidationError
from ed_core.encounters.constants import EventType
from ed_core.encounters.event_log import EventLog

logger = logging.getLogger(__name__)


class AlertService:
    """
    Alert writes. Raising is deduplicated per (encounter, type) while an alert is
    open; acknowledge and resolve are idempotent and always need an actor.
    """

    def __init__(self, event_log: Optional[EventLog] = None):
        self.event_log = event_log or EventLog()

    @transaction.atomic
    def raise_alert(
        self,
        *,
        encounter_id: UUID,
        hospital_id: UUID,
        type: str,
        severity: str = AlertSeverity.MEDIUM,
        metadata: Optional[dict] = None,
        actor: str = "",
        now=None,
    ) -> tuple[Alert, bool]:
        """Returns (alert, created). An existing open alert of the same type wins."""
        if hospital_id is None:
            raise ValidationError("hospital_id is required to raise an alert.", details={"field": "hospital_id"})
        if severity not in AlertSeverity.values:
            raise ValidationError("Unknown alert severity.", details={"severity": severity})

        now = now or timezone.now()

        existing = self._open_alert(encounter_id, type)
        if existing is not None:
            return existing, False

        # Savepoint so a lost race doesn't poison the outer transaction
        try:
            with transaction.atomic():
                alert = Alert.objects.create(
                    encounter_id=encounter_id,
                    hospital_id=hospital_id,
                    type=type,
                    severity=severity,
                    metadata=metadata or {},
                    created_by_id=actor or "",
                    created_at=now,
                )
        except IntegrityError:
            existing = self._open_alert(encounter_id, type)
            if existing is None:
                raise
            logger.info(f"Open {type} alert on encounter {encounter_id} already raised concurrently")
            return existing, False

        self.event_log.append(
            encounter_id=encounter_id,
            hospital_id=hospital_id,
            type=EventType.ALERT_CREATED,
            metadata={"alert_id": str(alert.id), "type": type, "severity": severity},
            now=now,
            actor_id=actor,
            event_key=f"ALERT_CREATED:{alert.id}",
        )
        logger.info(f"Raised {severity} {type} alert {alert.id} on encounter {encounter_id}")
        return alert, True

    @transaction.atomic
    def acknowledge(self, *, alert_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Alert:
        self._require_actor(actor)
        now = now or timezone.now()
        alert = self._get(alert_id, hospital_id)

        # Already acknowledged, or resolved without acknowledgement: no-op
        updated = Alert.objects.filter(
            id=alert.id,
            acknowledged_at__isnull=True,
            resolved_at__isnull=True,
        ).update(acknowledged_at=now, acknowledged_by_id=actor)

        if updated:
            alert.refresh_from_db()
            self.event_log.append(
                encounter_id=alert.encounter_id,
                hospital_id=alert.hospital_id,
                type=EventType.ALERT_ACKNOWLEDGED,
                metadata={"alert_id": str(alert.id), "type": alert.type},
                now=now,
                actor_id=actor,
                event_key=f"ALERT_ACKNOWLEDGED:{alert.id}",
            )
        return alert

    @transaction.atomic
    def resolve(self, *, alert_id: UUID, actor: str, hospital_id: Optional[UUID] = None, now=None) -> Alert:
        self._require_actor(actor)
        now = now or timezone.now()
        alert = self._get(alert_id, hospital_id)

        updated = Alert.objects.filter(id=alert.id, resolved_at__isnull=True).update(
            resolved_at=now,
            resolved_by_id=actor,
        )

        if updated:
            alert.refresh_from_db()
            self.event_log.append(
                encounter_id=alert.encounter_id,
                hospital_id=alert.hospital_id,
                type=EventType.ALERT_RESOLVED,
                metadata={"alert_id": str(alert.id), "type": alert.type},
                now=now,
                actor_id=actor,
                event_key=f"ALERT_RESOLVED:{alert.id}",
            )
        return alert

    # ---------------------------------------------------------------------
    # Helpers
    # ---------------------------------------------------------------------
    @staticmethod
    def _open_alert(encounter_id: UUID, type: str) -> Alert | None:
        return Alert.objects.filter(encounter_id=encounter_id, type=type, resolved_at__isnull=True).first()

    @staticmethod
    def _get(alert_id: UUID, hospital_id: Optional[UUID]) -> Alert:
        qs = Alert.objects.filter(id=alert_id)
        if hospital_id is not None:
            qs = qs.filter(hospital_id=hospital_id)
        alert = qs.first()
        if alert is None:
            raise NotFound("Alert not found.", details={"alert_id": str(alert_id)})
        return alert

    @staticmethod
    def _require_actor(actor: str) -> None:
        if not actor:
            raise ValidationError("An actor is required.", details={"field": "actor"})
