# ed_core/triage/serializers.py
from rest_framework import serializers

from ed_core.triage.models import TriageAssessment


class VitalSignsInputSerializer(serializers.Serializer):
    blood_pressure = serializers.CharField(required=False, max_length=16)
    heart_rate = serializers.IntegerField(required=False, min_value=0, max_value=300)
    temperature = serializers.FloatField(required=False, min_value=25, max_value=45)
    respiratory_rate = serializers.IntegerField(required=False, min_value=0, max_value=100)
    oxygen_saturation = serializers.IntegerField(required=False, min_value=0, max_value=100)


class AssessmentInputSerializer(serializers.Serializer):
    # Range checks live in the linker so every caller gets them
    ctas_level = serializers.IntegerField()
    priority_score = serializers.FloatField(required=False, allow_null=True)
    note = serializers.CharField(required=False, allow_blank=True)
    vital_signs = VitalSignsInputSerializer(required=False)


class TriageAssessmentSerializer(serializers.ModelSerializer):
    class Meta:
        model = TriageAssessment
        fields = [
            "id",
            "encounter_id",
            "hospital_id",
            "created_by_id",
            "ctas_level",
            "priority_score",
            "note",
            "vital_signs",
            "created_at",
        ]
        read_only_fields = fields
