import math
import uuid

import pytest

from ed_core.common.exceptions import ConcurrentModification, InvalidState, NotFound, ValidationError
from ed_core.encounters.constants import EventType
from ed_core.encounters.models import Encounter, EncounterEvent
from ed_core.encounters.repository import DjangoEncounterRepository
from ed_core.triage.models import TriageAssessment
from ed_core.triage.services import TriageAssessmentLinker, compute_priority_score

pytestmark = pytest.mark.django_db


def test_record_assessment_advances_pointer(linker, triaged_encounter, at):
    assessment = linker.record_assessment(
        encounter_id=triaged_encounter.id,
        ctas_level=3,
        priority_score=64.5,
        note="Abdominal pain, stable",
        vital_signs={"heart_rate": 96, "blood_pressure": "128/84"},
        actor="nurse-7",
        now=at(12),
    )

    enc = Encounter.objects.get(id=triaged_encounter.id)
    assert enc.current_triage_assessment_id == assessment.id
    assert enc.current_ctas_level == 3
    assert enc.current_priority_score == 64.5

    assert assessment.hospital_id == enc.hospital_id
    assert assessment.created_by_id == "nurse-7"
    assert assessment.created_at == at(12)

    event = EncounterEvent.objects.filter(encounter_id=enc.id).order_by("-id").first()
    assert event.type == EventType.TRIAGE_CREATED
    assert event.metadata["assessment_id"] == str(assessment.id)


def test_latest_assessment_is_current(linker, triaged_encounter, at):
    linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=4, actor="n", now=at(12))
    latest = linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=2, actor="n", now=at(40))

    enc = Encounter.objects.get(id=triaged_encounter.id)
    assert enc.current_triage_assessment_id == latest.id
    assert enc.current_ctas_level == 2
    assert TriageAssessment.objects.filter(encounter_id=enc.id).count() == 2


def test_older_assessment_cannot_move_pointer_back(linker, triaged_encounter, at):
    current = linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=2, actor="n", now=at(20))

    with pytest.raises(ValidationError):
        linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=5, actor="n", now=at(15))

    enc = Encounter.objects.get(id=triaged_encounter.id)
    assert enc.current_triage_assessment_id == current.id
    assert enc.current_ctas_level == 2
    assert TriageAssessment.objects.filter(encounter_id=enc.id).count() == 1


def test_assessment_at_same_instant_advances_pointer(linker, triaged_encounter, at):
    linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=3, actor="n", now=at(20))
    second = linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=1, actor="n", now=at(20))

    enc = Encounter.objects.get(id=triaged_encounter.id)
    assert enc.current_triage_assessment_id == second.id


@pytest.mark.parametrize("ctas, expected",[(1, 100.0), (2, 80.0), (3, 60.0), (4, 40.0), (5, 20.0)])
def test_priority_score_derived_from_ctas_when_omitted(linker, encounter, at, ctas, expected):
    assert compute_priority_score(ctas) == expected

    assessment = linker.record_assessment(encounter_id=encounter.id, ctas_level=ctas, actor="n", now=at(1))
    assert assessment.priority_score == expected


def test_zero_priority_score_is_accepted(linker, encounter, at):
    assessment = linker.record_assessment(encounter_id=encounter.id, ctas_level=5, priority_score=0, actor="n", now=at(1))
    assert assessment.priority_score == 0.0


@pytest.mark.parametrize(
    "fields",
    [
        {"ctas_level": 0},
        {"ctas_level": 6},
        {"ctas_level": True},
        {"ctas_level": "3"},
        {"ctas_level": 3, "priority_score": -1},
        {"ctas_level": 3, "priority_score": math.nan},
        {"ctas_level": 3, "priority_score": math.inf},
        {"ctas_level": 3, "note": "x" * 2001},
        {"ctas_level": 3, "vital_signs": ["hr", 90]},
    ],
)
def test_invalid_fields_are_rejected_before_any_write(linker, triaged_encounter, at, fields):
    before = Encounter.objects.filter(id=triaged_encounter.id).values().get()

    with pytest.raises(ValidationError):
        linker.record_assessment(encounter_id=triaged_encounter.id, actor="n", now=at(12), **fields)

    assert TriageAssessment.objects.count() == 0
    assert Encounter.objects.filter(id=triaged_encounter.id).values().get() == before


def test_terminal_encounter_is_invalid_state(linker, encounter_service, encounter, at):
    encounter_service.cancel(encounter_id=encounter.id, actor="n", now=at(1))

    with pytest.raises(InvalidState):
        linker.record_assessment(encounter_id=encounter.id, ctas_level=3, actor="n", now=at(2))

    assert TriageAssessment.objects.count() == 0


def test_unknown_encounter_is_not_found(linker, db, at):
    with pytest.raises(NotFound):
        linker.record_assessment(encounter_id=uuid.uuid4(), ctas_level=3, actor="n", now=at(2))


def test_pointer_failure_rolls_back_assessment(triaged_encounter, at):
    class ConflictingRepository(DjangoEncounterRepository):
        def save_changes(self, encounter, changes, *, now):
            raise ConcurrentModification("lost race")

    linker = TriageAssessmentLinker(repository=ConflictingRepository())

    with pytest.raises(ConcurrentModification):
        linker.record_assessment(encounter_id=triaged_encounter.id, ctas_level=1, actor="n", now=at(12))

    enc = Encounter.objects.get(id=triaged_encounter.id)
    assert TriageAssessment.objects.filter(encounter_id=enc.id).count() == 0
    assert enc.current_triage_assessment_id is None
    assert enc.current_ctas_level is None
    assert not EncounterEvent.objects.filter(encounter_id=enc.id, type=EventType.TRIAGE_CREATED).exists()


def test_assessments_are_immutable(linker, encounter, at):
    from django.core.exceptions import ValidationError as DjangoValidationError

    assessment = linker.record_assessment(encounter_id=encounter.id, ctas_level=3, actor="n", now=at(1))
    assessment.ctas_level = 1
    with pytest.raises(DjangoValidationError):
        assessment.save()
