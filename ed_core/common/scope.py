# ed_core/common/scope.py
from __future__ import annotations

from typing import Optional
from uuid import UUID

from rest_framework.exceptions import ValidationError

MISSING_SCOPE_MSG = "Missing scope header: X-Hospital-Id is required."
INVALID_SCOPE_MSG = "Invalid scope header: X-Hospital-Id must be a UUID."

# Preferred header name
HDR_HOSPITAL = "X-Hospital-Id"


def _parse_uuid(value: str) -> Optional[UUID]:
    try:
        return UUID(str(value))
    except (TypeError, ValueError):
        return None


def _get_header(request, name: str) -> Optional[str]:
    """
    request.headers is case-insensitive; fallback to META for the test client.
    """
    headers = getattr(request, "headers", None)
    if headers is not None:
        v = headers.get(name)
        if v:
            return v

    meta_key = "HTTP_" + name.upper().replace("-", "_")
    return request.META.get(meta_key)


def require_hospital(request) -> UUID:
    """
    Returns the hospital UUID for this request.

    - If missing -> ValidationError(MISSING_SCOPE_MSG)
    - If invalid -> ValidationError(INVALID_SCOPE_MSG)

    Does NOT check membership; that belongs to the auth layer.
    """
    cached = getattr(request, "hospital_id", None)
    if isinstance(cached, UUID):
        return cached

    raw = _get_header(request, HDR_HOSPITAL)
    if not raw:
        raise ValidationError({"detail": MISSING_SCOPE_MSG})

    hospital_id = _parse_uuid(raw)
    if hospital_id is None:
        raise ValidationError({"detail": INVALID_SCOPE_MSG})

    # Attach for downstream consistency
    request.hospital_id = hospital_id
    return hospital_id


def actor_for(request) -> str:
    """Opaque actor identity carried by the auth layer (staff user id)."""
    user = getattr(request, "user", None)
    pk = getattr(user, "pk", None)
    return "" if pk is None else str(pk)
