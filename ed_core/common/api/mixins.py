# ed_core/common/api/mixins.py
from __future__ import annotations

from typing import Any, Callable

from drf_spectacular.utils import OpenApiParameter
from rest_framework.response import Response

from ed_core.common.idempotency import get_key, load_response, save_response
from ed_core.common.scope import HDR_HOSPITAL, actor_for

HOSPITAL_HEADER = OpenApiParameter(name=HDR_HOSPITAL, location=OpenApiParameter.HEADER, required=True, type=str)
IDEMPOTENCY_HEADER = OpenApiParameter(
    name="Idempotency-Key", location=OpenApiParameter.HEADER, required=False, type=str
)


class IdempotentCommandMixin:
    """
    Replays the stored response when a command is retried with the same
    Idempotency-Key (per hospital, actor, method and path).
    """

    def idempotent(self, request, hospital_id, run: Callable[[], Any], *, status_code: int) -> Response:
        key = get_key(request)
        actor = actor_for(request)

        if key:
            cached = load_response(hospital_id, actor, request.method, request.path, key)
            if cached is not None:
                return Response(cached.response_data, status=cached.status_code)

        out = run()

        if key:
            save_response(hospital_id, actor, request.method, request.path, key, out, status_code=status_code)
        return Response(out, status=status_code)
