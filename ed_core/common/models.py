# ed_core/common/models.py
from __future__ import annotations

import uuid

from django.db import models
from django.utils import timezone


class TimeStampedModel(models.Model):
    """
    Standard timestamps for all entities.
    created_at defaults to wall-clock time but may be supplied by callers that drive
    a fixed clock (services always pass their `now`).
    """
    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        abstract = True


class UUIDModel(TimeStampedModel):
    """
    UUID primary key plus timestamps. Subclasses declare their own hospital_id,
    since its nullability differs per aggregate.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    class Meta:
        abstract = True


# -------------------------------------------------------------------
# Durable idempotency for adapter-level commands
# -------------------------------------------------------------------

class IdempotencyRecord(TimeStampedModel):
    """
    Stores idempotent responses durably.

    Keyed by:
      (hospital_id, actor_id, method, path, idempotency_key)

    This makes POST commands safe to retry across workers and restarts.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    hospital_id = models.UUIDField(db_index=True)

    # request identity
    actor_id = models.CharField(max_length=64, db_index=True)
    method = models.CharField(max_length=16)
    path = models.CharField(max_length=255)
    idempotency_key = models.CharField(max_length=255)

    # stored response
    status_code = models.PositiveIntegerField(default=200)
    response_data = models.JSONField(default=dict)

    class Meta:
        db_table = "common_idempotency_record"
        constraints = [
            models.UniqueConstraint(
                fields=["hospital_id", "actor_id", "method", "path", "idempotency_key"],
                name="uq_idempo_scope_actor_method_path_key",
            )
        ]

    def __str__(self) -> str:
        return f"{self.method} {self.path} {self.idempotency_key}"
