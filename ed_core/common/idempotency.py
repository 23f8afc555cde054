# ed_core/common/idempotency.py
from __future__ import annotations

from django.db import IntegrityError, transaction

from ed_core.common.models import IdempotencyRecord


def get_key(request):
    # In DRF test client: "HTTP_IDEMPOTENCY_KEY" becomes request.META["HTTP_IDEMPOTENCY_KEY"]
    return request.META.get("HTTP_IDEMPOTENCY_KEY")


def load_response(hospital_id, actor_id, method, path, key) -> IdempotencyRecord | None:
    if not key:
        return None

    return (
        IdempotencyRecord.objects.filter(
            hospital_id=hospital_id,
            actor_id=str(actor_id),
            method=method.upper(),
            path=path,
            idempotency_key=str(key),
        )
        .order_by("-created_at")
        .first()
    )


def save_response(hospital_id, actor_id, method, path, key, response_data, status_code: int = 200) -> None:
    if not key:
        return

    # Safe under concurrency: the unique constraint decides the winner
    try:
        with transaction.atomic():
            IdempotencyRecord.objects.create(
                hospital_id=hospital_id,
                actor_id=str(actor_id),
                method=method.upper(),
                path=path,
                idempotency_key=str(key),
                status_code=int(status_code),
                response_data=response_data,
            )
    except IntegrityError:
        # already saved by a concurrent request
        return
