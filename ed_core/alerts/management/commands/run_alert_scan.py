"""alerts.management.commands.run_alert_scan

Evaluates time-threshold alert rules against all active encounters.
Run one active scheduler instance; concurrent scans are safe but wasteful.

Usage:
  python manage.py run_alert_scan --once
  python manage.py run_alert_scan --interval 60 --page-size 200
"""
from __future__ import annotations

import logging
import time

from django.conf import settings
from django.core.management.base import BaseCommand

from ed_core.alerts.engine import AlertEngine

logger = logging.getLogger(__name__)


class Command(BaseCommand):
    help = "Scan active encounters and raise overdue alerts"

    def add_arguments(self, parser):
        parser.add_argument("--once", action="store_true", help="Run a single scan and exit")
        parser.add_argument("--interval", type=float, default=None, help="Seconds between scans")
        parser.add_argument("--page-size", type=int, default=None, help="Encounters loaded per page")

    def handle(self, *args, **options):
        interval = options["interval"] or getattr(settings, "ALERT_SCAN_INTERVAL_SECONDS", 60)
        page_size = options["page_size"] or getattr(settings, "ALERT_SCAN_PAGE_SIZE", 200)
        engine = AlertEngine()

        if options["once"]:
            result = engine.scan(page_size=page_size)
            self.stdout.write(
                self.style.SUCCESS(
                    f"Alert scan: examined={result.examined} created={result.created} "
                    f"skipped={result.skipped} failed={result.failed}"
                )
            )
            return

        logger.info(f"Alert scheduler started (interval={interval}s, page_size={page_size})")
        try:
            while True:
                started = time.monotonic()
                engine.scan(page_size=page_size)
                # Fixed cadence: sleep only what is left of the interval
                time.sleep(max(0.0, interval - (time.monotonic() - started)))
        except KeyboardInterrupt:
            self.stdout.write("Alert scheduler stopped")
