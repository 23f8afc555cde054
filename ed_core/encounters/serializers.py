# ed_core/encounters/serializers.py
from rest_framework import serializers

from ed_core.encounters.models import Encounter, EncounterEvent, EncounterStatus


class EncounterCreateSerializer(serializers.Serializer):
    patient_id = serializers.UUIDField()
    chief_complaint = serializers.CharField(max_length=255, required=False, allow_blank=True)


class EncounterListQuerySerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=EncounterStatus.choices, required=False)
    patient_id = serializers.UUIDField(required=False)


class CancelInputSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=500, required=False, allow_blank=True)


class EncounterSerializer(serializers.ModelSerializer):
    class Meta:
        model = Encounter
        fields = [
            "id",
            "hospital_id",
            "patient_id",
            "status",
            "expected_at",
            "arrived_at",
            "triaged_at",
            "waiting_at",
            "departed_at",
            "cancelled_at",
            "chief_complaint",
            "current_triage_assessment_id",
            "current_ctas_level",
            "current_priority_score",
            "version",
            "created_by_id",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class EncounterEventSerializer(serializers.ModelSerializer):
    class Meta:
        model = EncounterEvent
        fields = [
            "id",
            "encounter_id",
            "type",
            "metadata",
            "actor_id",
            "created_at",
            "processed_at",
        ]
        read_only_fields = fields


class QueuePositionSerializer(serializers.Serializer):
    encounter_id = serializers.UUIDField()
    position = serializers.IntegerField()
    estimated_minutes = serializers.IntegerField()
    total_in_queue = serializers.IntegerField()
