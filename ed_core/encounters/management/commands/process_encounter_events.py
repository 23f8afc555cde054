"""encounters.management.commands.process_encounter_events

Claims unprocessed encounter events and publishes them on their in-process channels.
A failed handler leaves its event leased; it is reclaimed once the lease expires.

Usage:
  python manage.py process_encounter_events --once
  python manage.py process_encounter_events --interval 5 --batch-size 50
"""
from __future__ import annotations

import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from ed_core.encounters.dispatch import EventProcessor

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Process the encounter event log (lease-based, at-least-once)"

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Process a single batch and exit")
        parser.add_argument("--batch-size", type=int, default=None, help="Max events claimed per batch")
        parser.add_argument("--interval", type=float, default=None, help="Seconds between polls")

    def handle(self, *args, **options):
        batch_size = options["batch_size"] or getattr(settings, "EVENT_CLAIM_BATCH_SIZE", 50)
        interval = options["interval"] or getattr(settings, "EVENT_POLL_INTERVAL_SECONDS", 5)
        processor = EventProcessor()

        if options["once"]:
            result = processor.run_once(batch_size=batch_size)
            self.stdout.write(
                self.style.SUCCESS(
                    f"Processed events: claimed={result.claimed} processed={result.processed} failed={result.failed}"
                )
            )
            return

        logger.info(f"Event processor started (batch_size={batch_size}, interval={interval}s)")
        try:
            while True:
                result = processor.run_once(batch_size=batch_size)
                # Drain backlog without sleeping while batches come back full
                if result.claimed < batch_size:
                    time.sleep(interval)
        except KeyboardInterrupt:
            self.stdout.write("Event processor stopped")
