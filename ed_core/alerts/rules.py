# ed_core/alerts/rules.py
"""
Time-threshold alert rules evaluated by the AlertEngine.

A rule applies to an encounter, measures elapsed minutes from one of its
timestamps and fires once elapsed is strictly greater than the threshold.
Severity is decided at creation and never revisited.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional

from django.conf import settings

from ed_core.alerts.models import AlertSeverity, AlertType
from ed_core.encounters.constants import EncounterStatus
from ed_core.encounters.models import Encounter


def escalating_severity(threshold_minutes: float) -> Callable[[float], str]:
    """MEDIUM past the threshold, HIGH from twice the threshold."""
    def _severity(elapsed_minutes: float) -> str:
        if elapsed_minutes >= 2 * threshold_minutes:
            return AlertSeverity.HIGH
        return AlertSeverity.MEDIUM
    return _severity


@dataclass(frozen=True)
class AlertRule:
    type: str
    threshold_minutes: float
    applies_when: Callable[[Encounter], bool]
    started_at: Callable[[Encounter], Optional[datetime]]
    severity_for: Optional[Callable[[float], str]] = None

    def __post_init__(self):
        if self.severity_for is None:
            object.__setattr__(self, "severity_for", escalating_severity(self.threshold_minutes))

    def elapsed_minutes(self, encounter: Encounter, now: datetime) -> Optional[float]:
        start = self.started_at(encounter)
        if start is None:
            return None
        return (now - start).total_seconds() / 60.0

    def is_violated(self, elapsed_minutes: Optional[float]) -> bool:
        return elapsed_minutes is not None and elapsed_minutes > self.threshold_minutes


def triage_reassessment_rule(threshold_minutes: Optional[float] = None) -> AlertRule:
    if threshold_minutes is None:
        threshold_minutes = getattr(settings, "TRIAGE_REASSESSMENT_MINUTES", 30)
    return AlertRule(
        type=AlertType.TRIAGE_REASSESSMENT_OVERDUE,
        threshold_minutes=threshold_minutes,
        applies_when=lambda enc: enc.status == EncounterStatus.TRIAGE,
        started_at=lambda enc: enc.triaged_at,
    )


def default_rules() -> list[AlertRule]:
    return [triage_reassessment_rule()]
