# ed_core/encounters/state_machine.py
"""
Encounter lifecycle decisions.

Pure: no ORM, no clock. Callers pass `now` so retries and tests are deterministic.

    EXPECTED -> ADMITTED -> TRIAGE -> WAITING -> COMPLETE
    ADMITTED / TRIAGE / WAITING -> UNRESOLVED
    any non-terminal -> CANCELLED
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime

from ed_core.common.exceptions import InvalidTransition
from ed_core.encounters.constants import EncounterAction as A
from ed_core.encounters.constants import EncounterStatus as S
from ed_core.encounters.constants import TERMINAL_STATUSES


@dataclass(frozen=True)
class TransitionRule:
    to: str
    allowed_from: frozenset[str]
    timestamp_field: str


@dataclass(frozen=True)
class Transition:
    from_status: str
    to_status: str
    action: str
    timestamp_field: str
    at: datetime

    def changes(self) -> dict:
        return {"status": self.to_status, self.timestamp_field: self.at}


TRANSITIONS: dict[str, TransitionRule] = {
    A.CONFIRM_ARRIVAL: TransitionRule(S.ADMITTED, frozenset({S.EXPECTED}), "arrived_at"),
    A.START_EXAM: TransitionRule(S.TRIAGE, frozenset({S.ADMITTED}), "triaged_at"),
    A.MOVE_TO_WAITING: TransitionRule(S.WAITING, frozenset({S.TRIAGE}), "waiting_at"),
    A.DISCHARGE: TransitionRule(S.COMPLETE, frozenset({S.WAITING}), "departed_at"),
    A.LEAVE_UNRESOLVED: TransitionRule(
        S.UNRESOLVED, frozenset({S.ADMITTED, S.TRIAGE, S.WAITING}), "departed_at"
    ),
    A.CANCEL: TransitionRule(
        S.CANCELLED, frozenset({S.EXPECTED, S.ADMITTED, S.TRIAGE, S.WAITING}), "cancelled_at"
    ),
}


def is_terminal(status: str) -> bool:
    return status in TERMINAL_STATUSES


def valid_actions(status: str) -> list[str]:
    return [action for action, rule in TRANSITIONS.items() if status in rule.allowed_from]


def transition(current_status: str, action: str, now: datetime) -> Transition:
    """
    Decide the next status for `action` from `current_status`.
    Raises InvalidTransition for unknown actions, terminal statuses and
    actions not allowed from the current status.
    """
    rule = TRANSITIONS.get(action)
    if rule is None or current_status not in rule.allowed_from:
        raise InvalidTransition(current_status, action)

    return Transition(
        from_status=current_status,
        to_status=rule.to,
        action=action,
        timestamp_field=rule.timestamp_field,
        at=now,
    )
