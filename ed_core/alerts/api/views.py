from __future__ import annotations

from django_filters.rest_framework import DjangoFilterBackend
from drf_spectacular.utils import extend_schema
from rest_framework import mixins, status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ed_core.alerts.api.filters import AlertFilter
from ed_core.alerts.api.serializers import AlertRaiseSerializer, AlertSerializer
from ed_core.alerts.models import Alert
from ed_core.alerts.selectors import alerts_qs
from ed_core.alerts.services import AlertService
from ed_core.common.api.mixins import HOSPITAL_HEADER
from ed_core.common.api.pagination import DefaultPagination
from ed_core.common.exceptions import NotFound
from ed_core.common.scope import actor_for, require_hospital
from ed_core.encounters.repository import DjangoEncounterRepository


@extend_schema(parameters=[HOSPITAL_HEADER])
class AlertViewSet(mixins.ListModelMixin, mixins.RetrieveModelMixin, viewsets.GenericViewSet):
    serializer_class = AlertSerializer
    queryset = Alert.objects.none()
    filter_backends = [DjangoFilterBackend]
    filterset_class = AlertFilter
    pagination_class = DefaultPagination
    lookup_value_regex = r"[0-9a-fA-F-]{36}"

    def get_queryset(self):
        if getattr(self, "swagger_fake_view", False):
            return Alert.objects.none()
        hospital_id = require_hospital(self.request)
        return alerts_qs(hospital_id=hospital_id).order_by("-created_at", "id")

    def get_object(self):
        alert = self.get_queryset().filter(id=self.kwargs["pk"]).first()
        if alert is None:
            raise NotFound("Alert not found.", details={"alert_id": str(self.kwargs["pk"])})
        return alert

    @extend_schema(request=AlertRaiseSerializer, responses={201: AlertSerializer, 200: AlertSerializer})
    def create(self, request):
        hospital_id = require_hospital(request)
        ser = AlertRaiseSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        # Scope check: the encounter must belong to this hospital
        enc = DjangoEncounterRepository().get(data["encounter_id"], hospital_id=hospital_id)

        alert, created = AlertService().raise_alert(
            encounter_id=enc.id,
            hospital_id=hospital_id,
            type=data["type"],
            severity=data["severity"],
            metadata=data.get("metadata") or {},
            actor=actor_for(request),
        )
        return Response(
            AlertSerializer(alert).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    @extend_schema(request=None, responses={200: AlertSerializer})
    @action(methods=["POST"], detail=True, url_path="acknowledge")
    def acknowledge(self, request, pk=None):
        hospital_id = require_hospital(request)
        alert = AlertService().acknowledge(alert_id=pk, actor=actor_for(request), hospital_id=hospital_id)
        return Response(AlertSerializer(alert).data, status=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: AlertSerializer})
    @action(methods=["POST"], detail=True, url_path="resolve")
    def resolve(self, request, pk=None):
        hospital_id = require_hospital(request)
        alert = AlertService().resolve(alert_id=pk, actor=actor_for(request), hospital_id=hospital_id)
        return Response(AlertSerializer(alert).data, status=status.HTTP_200_OK)
