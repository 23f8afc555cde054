# ed_core/conftest.py
import uuid
from datetime import datetime, timedelta, timezone

import pytest
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient

from ed_core.alerts.engine import AlertEngine
from ed_core.alerts.services import AlertService
from ed_core.common import events
from ed_core.encounters.event_log import EventLog
from ed_core.encounters.services import EncounterService
from ed_core.messaging.services import MessagingService
from ed_core.triage.services import TriageAssessmentLinker


@pytest.fixture
def hospital_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000101")


@pytest.fixture
def other_hospital_id():
    return uuid.UUID("00000000-0000-0000-0000-000000000202")


@pytest.fixture
def patient_id():
    return uuid.UUID("00000000-0000-0000-0000-00000000a001")


@pytest.fixture
def t0():
    """Fixed clock origin; pass t0 + offsets as `now`."""
    return datetime(2026, 1, 15, 8, 0, tzinfo=timezone.utc)


@pytest.fixture
def at(t0):
    def _at(minutes: float):
        return t0 + timedelta(minutes=minutes)
    return _at


@pytest.fixture
def event_log():
    return EventLog()


@pytest.fixture
def encounter_service():
    return EncounterService()


@pytest.fixture
def linker():
    return TriageAssessmentLinker()


@pytest.fixture
def alert_service():
    return AlertService()


@pytest.fixture
def alert_engine():
    return AlertEngine()


@pytest.fixture
def messaging_service():
    return MessagingService()


@pytest.fixture
def encounter(db, encounter_service, hospital_id, patient_id, t0):
    return encounter_service.create(
        patient_id=patient_id,
        hospital_id=hospital_id,
        chief_complaint="Chest pain",
        actor="nurse-1",
        now=t0,
    )


@pytest.fixture
def triaged_encounter(encounter_service, encounter, at):
    """EXPECTED at t0, ADMITTED at t0+5m, TRIAGE at t0+10m."""
    encounter_service.confirm_arrival(encounter_id=encounter.id, actor="nurse-1", now=at(5))
    return encounter_service.start_exam(encounter_id=encounter.id, actor="nurse-1", now=at(10))


@pytest.fixture
def user(db):
    User = get_user_model()
    return User.objects.create_user(username="nurse", password="testpass", is_active=True)


@pytest.fixture
def api_client(user):
    c = APIClient()
    c.force_authenticate(user=user)
    return c


@pytest.fixture
def subscriber():
    """
    Registers an in-process handler for the test and removes it afterwards.
    Usage: received = subscriber("encounter.updated")
    """
    registered = []

    def _subscribe(channel, handler=None):
        received = []
        fn = handler or received.append
        events.subscribe(channel)(fn)
        registered.append((channel, fn))
        return received

    yield _subscribe

    for channel, fn in registered:
        events.unsubscribe(channel, fn)
