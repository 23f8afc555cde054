from __future__ import annotations

from uuid import UUID

from django.db.models import QuerySet

from ed_core.alerts.models import Alert


def alerts_qs(*, hospital_id: UUID) -> QuerySet[Alert]:
    return Alert.objects.filter(hospital_id=hospital_id)
