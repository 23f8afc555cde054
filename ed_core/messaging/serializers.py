# ed_core/messaging/serializers.py
from rest_framework import serializers

from ed_core.messaging.models import Message, SenderType


class MessageCreateSerializer(serializers.Serializer):
    sender_type = serializers.ChoiceField(choices=SenderType.choices, default=SenderType.STAFF)
    content = serializers.CharField(max_length=2000)
    is_internal = serializers.BooleanField(default=False)
    is_worsening = serializers.BooleanField(default=False)


class MessageSerializer(serializers.ModelSerializer):
    class Meta:
        model = Message
        fields = [
            "id",
            "encounter_id",
            "sender_type",
            "created_by_id",
            "content",
            "is_internal",
            "is_worsening",
            "created_at",
            "read_at",
            "read_by_id",
        ]
        read_only_fields = fields
