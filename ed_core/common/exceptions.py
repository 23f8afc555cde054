# ed_core/common/exceptions.py
"""
Domain error taxonomy.

The core raises only these; the HTTP adapter maps them onto the error envelope
(see ed_core.common.api.exceptions). Storage errors are never wrapped.
"""
from __future__ import annotations

from typing import Any


class DomainError(Exception):
    code = "domain_error"

    def __init__(self, message: str = "", *, details: Any = None):
        super().__init__(message or self.__class__.__name__)
        self.message = message or self.__class__.__name__
        self.details = details


class InvalidTransition(DomainError):
    """Action is not legal from the encounter's current status."""
    code = "invalid_transition"

    def __init__(self, from_status: str, action: str):
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"cannot {action}: encounter is in {from_status}",
            details={"from": from_status, "action": action},
        )


class InvalidState(DomainError):
    code = "invalid_state"


class ConcurrentModification(DomainError):
    """The row changed since it was loaded; reload and re-validate."""
    code = "concurrent_modification"


class ValidationError(DomainError):
    code = "validation_error"


class NotFound(DomainError):
    code = "not_found"
