# ed_core/alerts/engine.py
"""
Periodic scanner that turns elapsed-time rule violations into alerts.

Decoupled from command handling: it reads encounters page by page, and each
encounter's evaluate-and-maybe-insert is its own short transaction. No lock is
held across a page; the open-alert unique constraint absorbs concurrent scans.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterable, Optional

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from ed_core.alerts.rules import AlertRule, default_rules
from ed_core.alerts.services import AlertService
from ed_core.encounters.models import Encounter
from ed_core.encounters.repository import DjangoEncounterRepository, EncounterRepository
from ed_core.encounters.state_machine import is_terminal

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ScanResult:
    examined: int = 0
    created: int = 0
    skipped: int = 0
    failed: int = 0


class AlertEngine:
    def __init__(
        self,
        repository: Optional[EncounterRepository] = None,
        alert_service: Optional[AlertService] = None,
        rules: Optional[Iterable[AlertRule]] = None,
    ):
        self.repository = repository or DjangoEncounterRepository()
        self.alert_service = alert_service or AlertService()
        self.rules = list(rules) if rules is not None else default_rules()

    def scan(self, *, now=None, page_size: Optional[int] = None) -> ScanResult:
        now = now or timezone.now()
        page_size = page_size or getattr(settings, "ALERT_SCAN_PAGE_SIZE", 200)

        examined = created = skipped = failed = 0
        for page in self.repository.iter_active_pages(page_size=page_size):
            for encounter in page:
                examined += 1

                try:
                    with transaction.atomic():
                        # Page rows may be stale by now; rules see the current row
                        current = self.repository.get(encounter.id)

                        # Alerts are hospital-scoped; unrouted encounters have no one to notify
                        if current.hospital_id is None or is_terminal(current.status):
                            skipped += 1
                            continue

                        created += self.evaluate(current, now=now)
                except Exception:
                    failed += 1
                    logger.exception(f"Rule evaluation failed for encounter {encounter.id}; continuing scan")

        logger.info(f"Alert scan: examined={examined} created={created} skipped={skipped} failed={failed}")
        return ScanResult(examined=examined, created=created, skipped=skipped, failed=failed)

    def evaluate(self, encounter: Encounter, *, now) -> int:
        """Raise alerts for every violated rule; returns how many were created."""
        created = 0
        for rule in self.rules:
            if not rule.applies_when(encounter):
                continue

            elapsed = rule.elapsed_minutes(encounter, now)
            if not rule.is_violated(elapsed):
                continue

            _, was_created = self.alert_service.raise_alert(
                encounter_id=encounter.id,
                hospital_id=encounter.hospital_id,
                type=rule.type,
                severity=rule.severity_for(elapsed),
                metadata={
                    "threshold_minutes": rule.threshold_minutes,
                    "elapsed_minutes": round(elapsed, 2),
                },
                now=now,
            )
            if was_created:
                created += 1
        return created
