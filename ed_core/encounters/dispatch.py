# ed_core/encounters/dispatch.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

from django.conf import settings
from django.utils import timezone

from ed_core.common.events import publish
from ed_core.encounters.constants import EVENT_CHANNELS
from ed_core.encounters.event_log import EventLog
from ed_core.encounters.models import EncounterEvent

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProcessResult:
    claimed: int = 0
    processed: int = 0
    failed: int = 0


def event_payload(event: EncounterEvent) -> Dict[str, Any]:
    # ID-based payload; subscribers load what they need
    return {
        "event_id": event.id,
        "encounter_id": str(event.encounter_id),
        "hospital_id": str(event.hospital_id) if event.hospital_id else None,
        "type": event.type,
        "metadata": event.metadata,
        "actor_id": event.actor_id,
        "created_at": event.created_at.isoformat(),
    }


class EventProcessor:
    """
    Claims a batch of unprocessed events, publishes each on its in-process channel,
    then marks it processed. Delivery is at-least-once: a failed handler leaves the
    event claimed until its lease expires, after which it is reclaimed.
    """

    def __init__(
        self,
        event_log: Optional[EventLog] = None,
        *,
        lease_seconds: Optional[int] = None,
        publisher: Callable[[str, Dict[str, Any]], int] = publish,
    ):
        self.event_log = event_log or EventLog()
        self.lease_seconds = lease_seconds or getattr(settings, "EVENT_LEASE_SECONDS", 60)
        self.publisher = publisher

    def run_once(self, *, batch_size: Optional[int] = None, now=None) -> ProcessResult:
        now = now or timezone.now()
        batch_size = batch_size or getattr(settings, "EVENT_CLAIM_BATCH_SIZE", 50)

        events = self.event_log.claim_unprocessed(
            batch_size=batch_size,
            now=now,
            lease_seconds=self.lease_seconds,
        )

        processed = failed = 0
        for event in events:
            channel = EVENT_CHANNELS.get(event.type)
            try:
                if channel:
                    self.publisher(channel, event_payload(event))
                else:
                    logger.warning(f"No channel for event type {event.type} (event {event.id})")
            except Exception:
                failed += 1
                logger.exception(f"Handler failed for event {event.id} ({event.type}); left for reclaim")
                continue

            if self.event_log.mark_processed(event.id, now, claim_token=event.claim_token):
                processed += 1

        if events:
            logger.info(f"Event batch: claimed={len(events)} processed={processed} failed={failed}")
        return ProcessResult(claimed=len(events), processed=processed, failed=failed)
