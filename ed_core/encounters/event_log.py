# ed_core/encounters/event_log.py
"""
Append-only encounter event log with lease-based claims.

A claim is a lease, not a flag: a consumer that crashes after claiming leaves
the row with an expired `lease_expires_at`, and the next claim picks it up again.
Every claim is a compare-and-set on the lease value the claimer observed, so two
concurrent claimers can never both win the same row.
"""
from __future__ import annotations

import uuid
from datetime import timedelta
from typing import Any, Dict, Optional
from uuid import UUID

from django.db.models import F, Q

from ed_core.encounters.models import EncounterEvent


class EventLog:
    def append(
        self,
        *,
        encounter_id: UUID,
        type: str,
        now,
        hospital_id: Optional[UUID] = None,
        metadata: Optional[Dict[str, Any]] = None,
        actor_id: str = "",
        event_key: Optional[str] = None,
    ) -> EncounterEvent:
        """
        Append one event. With an `event_key` the append is idempotent:
        the existing event for (encounter, key) is returned unchanged.
        """
        fields = {
            "hospital_id": hospital_id,
            "type": type,
            "metadata": metadata or {},
            "actor_id": actor_id or "",
            "created_at": now,
        }
        if not event_key:
            return EncounterEvent.objects.create(encounter_id=encounter_id, **fields)

        event, _ = EncounterEvent.objects.get_or_create(
            encounter_id=encounter_id,
            event_key=event_key,
            defaults=fields,
        )
        return event

    def claim_unprocessed(self, *, batch_size: int, now, lease_seconds: int) -> list[EncounterEvent]:
        """
        Lease up to `batch_size` unprocessed events whose lease is absent or expired.
        Returned rows carry this call's claim_token.
        """
        if batch_size <= 0:
            return []

        token = uuid.uuid4()
        lease_expires_at = now + timedelta(seconds=lease_seconds)

        claimed_ids = [
            event_id
            for event_id, prev_lease in self._candidates(batch_size=batch_size, now=now)
            if self._try_claim(event_id, prev_lease, token=token, now=now, lease_expires_at=lease_expires_at)
        ]
        if not claimed_ids:
            return []

        return list(
            EncounterEvent.objects.filter(id__in=claimed_ids, claim_token=token).order_by("created_at", "id")
        )

    def mark_processed(self, event_id: int, now, *, claim_token: Optional[UUID] = None) -> bool:
        """
        Returns True on the first call; later calls are no-ops returning False.

        With `claim_token`, only the current lease holder can complete the event: a
        consumer whose lease expired and was reclaimed gets False and the new holder
        finishes it. Without a token any caller may complete it (at-least-once).
        """
        qs = EncounterEvent.objects.filter(id=event_id, processed_at__isnull=True)
        if claim_token is not None:
            qs = qs.filter(claim_token=claim_token)
        updated = qs.update(
            processed_at=now,
            lease_expires_at=None,
        )
        return updated == 1

    def _candidates(self, *, batch_size: int, now) -> list[tuple[int, Any]]:
        return list(
            EncounterEvent.objects.filter(processed_at__isnull=True)
            .filter(Q(lease_expires_at__isnull=True) | Q(lease_expires_at__lte=now))
            .order_by("created_at", "id")
            .values_list("id", "lease_expires_at")[:batch_size]
        )

    def _try_claim(self, event_id: int, prev_lease, *, token: UUID, now, lease_expires_at) -> bool:
        qs = EncounterEvent.objects.filter(id=event_id, processed_at__isnull=True)
        if prev_lease is None:
            qs = qs.filter(lease_expires_at__isnull=True)
        else:
            qs = qs.filter(lease_expires_at=prev_lease)

        updated = qs.update(
            claim_token=token,
            claimed_at=now,
            lease_expires_at=lease_expires_at,
            attempts=F("attempts") + 1,
        )
        return updated == 1
