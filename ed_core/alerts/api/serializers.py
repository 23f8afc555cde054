from rest_framework import serializers

from ed_core.alerts.models import Alert, AlertSeverity


class AlertSerializer(serializers.ModelSerializer):
    class Meta:
        model = Alert
        fields = [
            "id",
            "encounter_id",
            "hospital_id",
            "type",
            "severity",
            "status",
            "metadata",
            "created_at",
            "created_by_id",
            "acknowledged_at",
            "acknowledged_by_id",
            "resolved_at",
            "resolved_by_id",
        ]
        read_only_fields = fields


class AlertRaiseSerializer(serializers.Serializer):
    encounter_id = serializers.UUIDField()
    type = serializers.RegexField(r"^[A-Z][A-Z0-9_]*$", max_length=64)
    severity = serializers.ChoiceField(choices=AlertSeverity.choices, default=AlertSeverity.MEDIUM)
    metadata = serializers.DictField(required=False)
