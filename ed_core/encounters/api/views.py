# ed_core/encounters/api/views.py
from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from ed_core.common.api.mixins import HOSPITAL_HEADER, IDEMPOTENCY_HEADER, IdempotentCommandMixin
from ed_core.common.api.pagination import paginate
from ed_core.common.scope import actor_for, require_hospital
from ed_core.encounters.models import Encounter
from ed_core.encounters.repository import DjangoEncounterRepository
from ed_core.encounters.selectors import EncounterSelectors
from ed_core.encounters.serializers import (
    CancelInputSerializer,
    EncounterCreateSerializer,
    EncounterEventSerializer,
    EncounterListQuerySerializer,
    EncounterSerializer,
    QueuePositionSerializer,
)
from ed_core.encounters.services import EncounterService
from ed_core.messaging.serializers import MessageCreateSerializer, MessageSerializer
from ed_core.messaging.services import MessagingService
from ed_core.triage.selectors import assessments_qs
from ed_core.triage.serializers import AssessmentInputSerializer, TriageAssessmentSerializer
from ed_core.triage.services import TriageAssessmentLinker

UUID_RE = r"[0-9a-fA-F-]{36}"


class EncounterViewSet(IdempotentCommandMixin, viewsets.ViewSet):
    """
    Thin API layer:
    - hospital scope from X-Hospital-Id
    - idempotency replay on commands
    - serializers for input shape only; domain rules live in the services
    """

    serializer_class = EncounterSerializer
    queryset = Encounter.objects.none()
    lookup_value_regex = UUID_RE

    def get_object(self, request, pk) -> Encounter:
        hospital_id = require_hospital(request)
        return DjangoEncounterRepository().get(pk, hospital_id=hospital_id)

    # ------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------
    @extend_schema(
        parameters=[
            HOSPITAL_HEADER,
            OpenApiParameter(name="status", location=OpenApiParameter.QUERY, required=False, type=str),
            OpenApiParameter(name="patient_id", location=OpenApiParameter.QUERY, required=False, type=str),
        ],
        responses={200: EncounterSerializer(many=True)},
    )
    def list(self, request):
        hospital_id = require_hospital(request)
        params = EncounterListQuerySerializer(data=request.query_params)
        params.is_valid(raise_exception=True)

        qs = EncounterSelectors.list_encounters(
            hospital_id=hospital_id,
            status=params.validated_data.get("status"),
            patient_id=params.validated_data.get("patient_id"),
        )
        return paginate(request, qs, EncounterSerializer)

    @extend_schema(parameters=[HOSPITAL_HEADER], responses={200: EncounterSerializer})
    def retrieve(self, request, pk=None):
        enc = self.get_object(request, pk)
        return Response(EncounterSerializer(enc).data, status=status.HTTP_200_OK)

    @extend_schema(parameters=[HOSPITAL_HEADER], responses={200: QueuePositionSerializer})
    @action(detail=True, methods=["get"], url_path="queue-position")
    def queue_position(self, request, pk=None):
        enc = self.get_object(request, pk)
        return Response(EncounterSelectors.queue_position(encounter=enc), status=status.HTTP_200_OK)

    @extend_schema(parameters=[HOSPITAL_HEADER], responses={200: EncounterEventSerializer(many=True)})
    @action(detail=True, methods=["get"], url_path="events")
    def events(self, request, pk=None):
        enc = self.get_object(request, pk)
        return paginate(request, EncounterSelectors.timeline(encounter_id=enc.id), EncounterEventSerializer)

    # ------------------------------------------------------------
    # Intake
    # ------------------------------------------------------------
    @extend_schema(
        request=EncounterCreateSerializer,
        responses={201: EncounterSerializer},
        parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER],
    )
    def create(self, request):
        hospital_id = require_hospital(request)
        ser = EncounterCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)

        def run():
            enc = EncounterService().create(
                patient_id=ser.validated_data["patient_id"],
                hospital_id=hospital_id,
                chief_complaint=ser.validated_data.get("chief_complaint", ""),
                actor=actor_for(request),
            )
            return EncounterSerializer(enc).data

        return self.idempotent(request, hospital_id, run, status_code=status.HTTP_201_CREATED)

    # ------------------------------------------------------------
    # Lifecycle commands
    # ------------------------------------------------------------
    def _command(self, request, pk, command: str, **extra):
        hospital_id = require_hospital(request)

        def run():
            service = EncounterService()
            enc = getattr(service, command)(
                encounter_id=pk,
                actor=actor_for(request),
                hospital_id=hospital_id,
                **extra,
            )
            return EncounterSerializer(enc).data

        return self.idempotent(request, hospital_id, run, status_code=status.HTTP_200_OK)

    @extend_schema(request=None, responses={200: EncounterSerializer}, parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER])
    @action(detail=True, methods=["post"], url_path="confirm-arrival")
    def confirm_arrival(self, request, pk=None):
        return self._command(request, pk, "confirm_arrival")

    @extend_schema(request=None, responses={200: EncounterSerializer}, parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER])
    @action(detail=True, methods=["post"], url_path="start-exam")
    def start_exam(self, request, pk=None):
        return self._command(request, pk, "start_exam")

    @extend_schema(request=None, responses={200: EncounterSerializer}, parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER])
    @action(detail=True, methods=["post"], url_path="move-to-waiting")
    def move_to_waiting(self, request, pk=None):
        return self._command(request, pk, "move_to_waiting")

    @extend_schema(request=None, responses={200: EncounterSerializer}, parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER])
    @action(detail=True, methods=["post"], url_path="discharge")
    def discharge(self, request, pk=None):
        return self._command(request, pk, "discharge")

    @extend_schema(request=None, responses={200: EncounterSerializer}, parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER])
    @action(detail=True, methods=["post"], url_path="mark-unresolved")
    def mark_unresolved(self, request, pk=None):
        return self._command(request, pk, "mark_unresolved")

    @extend_schema(
        request=CancelInputSerializer,
        responses={200: EncounterSerializer},
        parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER],
    )
    @action(detail=True, methods=["post"], url_path="cancel")
    def cancel(self, request, pk=None):
        ser = CancelInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        return self._command(request, pk, "cancel", reason=ser.validated_data.get("reason", ""))

    # ------------------------------------------------------------
    # Triage assessments
    # ------------------------------------------------------------
    @extend_schema(
        methods=["GET"],
        parameters=[HOSPITAL_HEADER],
        responses={200: TriageAssessmentSerializer(many=True)},
    )
    @extend_schema(
        methods=["POST"],
        request=AssessmentInputSerializer,
        responses={201: TriageAssessmentSerializer},
        parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER],
    )
    @action(detail=True, methods=["get", "post"], url_path="assessments")
    def assessments(self, request, pk=None):
        if request.method == "GET":
            enc = self.get_object(request, pk)
            return paginate(request, assessments_qs(encounter_id=enc.id), TriageAssessmentSerializer)

        hospital_id = require_hospital(request)
        ser = AssessmentInputSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        def run():
            assessment = TriageAssessmentLinker().record_assessment(
                encounter_id=pk,
                ctas_level=data["ctas_level"],
                priority_score=data.get("priority_score"),
                note=data.get("note", ""),
                vital_signs=dict(data.get("vital_signs") or {}),
                actor=actor_for(request),
                hospital_id=hospital_id,
            )
            return TriageAssessmentSerializer(assessment).data

        return self.idempotent(request, hospital_id, run, status_code=status.HTTP_201_CREATED)

    # ------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------
    @extend_schema(
        methods=["GET"],
        parameters=[
            HOSPITAL_HEADER,
            OpenApiParameter(name="view", location=OpenApiParameter.QUERY, required=False, type=str, enum=["staff", "patient"]),
        ],
        responses={200: MessageSerializer(many=True)},
    )
    @extend_schema(
        methods=["POST"],
        request=MessageCreateSerializer,
        responses={201: MessageSerializer},
        parameters=[HOSPITAL_HEADER, IDEMPOTENCY_HEADER],
    )
    @action(detail=True, methods=["get", "post"], url_path="messages")
    def messages(self, request, pk=None):
        if request.method == "GET":
            enc = self.get_object(request, pk)
            include_internal = request.query_params.get("view") != "patient"
            qs = MessagingService.list_messages(encounter_id=enc.id, include_internal=include_internal)
            return paginate(request, qs, MessageSerializer)

        hospital_id = require_hospital(request)
        ser = MessageCreateSerializer(data=request.data or {})
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        def run():
            msg = MessagingService().post_message(
                encounter_id=pk,
                sender_type=data["sender_type"],
                content=data["content"],
                is_internal=data["is_internal"],
                is_worsening=data["is_worsening"],
                actor=actor_for(request),
                hospital_id=hospital_id,
            )
            return MessageSerializer(msg).data

        return self.idempotent(request, hospital_id, run, status_code=status.HTTP_201_CREATED)

    @extend_schema(request=None, responses={200: MessageSerializer}, parameters=[HOSPITAL_HEADER])
    @action(detail=True, methods=["post"], url_path=rf"messages/(?P<message_id>{UUID_RE})/read")
    def read_message(self, request, pk=None, message_id=None):
        enc = self.get_object(request, pk)
        msg = MessagingService().mark_read(
            message_id=message_id,
            encounter_id=enc.id,
            actor=actor_for(request),
            hospital_id=enc.hospital_id,
        )
        return Response(MessageSerializer(msg).data, status=status.HTTP_200_OK)
