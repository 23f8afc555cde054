# ed_core/messaging/models.py
import uuid

from django.db import models
from django.utils import timezone


class SenderType(models.TextChoices):
    PATIENT = "PATIENT", "Patient"
    STAFF = "STAFF", "Staff"
    SYSTEM = "SYSTEM", "System"


class Message(models.Model):
    """
    Patient/staff thread entry on an encounter. Append-only except for read receipts.
    """
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    encounter_id = models.UUIDField(db_index=True)
    hospital_id = models.UUIDField(null=True, blank=True, db_index=True)

    sender_type = models.CharField(max_length=16, choices=SenderType.choices)
    created_by_id = models.CharField(max_length=64, blank=True, default="")
    content = models.TextField()

    # Staff-only note, hidden from the patient view
    is_internal = models.BooleanField(default=False)
    is_worsening = models.BooleanField(default=False)

    created_at = models.DateTimeField(default=timezone.now, db_index=True)
    read_at = models.DateTimeField(null=True, blank=True)
    read_by_id = models.CharField(max_length=64, null=True, blank=True)

    class Meta:
        db_table = "messaging_message"
        indexes = [
            models.Index(fields=["encounter_id", "created_at", "id"]),
        ]

    def __str__(self) -> str:
        return f"Message({self.sender_type}, {self.encounter_id})"
