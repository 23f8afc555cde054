import pytest

from ed_core.common.exceptions import InvalidState
from ed_core.encounters.constants import EncounterStatus
from ed_core.encounters.selectors import EncounterSelectors

pytestmark = pytest.mark.django_db


def _waiting(encounter_service, linker, patient_id, hospital_id, at, *, created, ctas):
    enc = encounter_service.create(patient_id=patient_id, hospital_id=hospital_id, actor="n", now=at(created))
    encounter_service.confirm_arrival(encounter_id=enc.id, actor="n", now=at(created + 1))
    encounter_service.start_exam(encounter_id=enc.id, actor="n", now=at(created + 2))
    linker.record_assessment(encounter_id=enc.id, ctas_level=ctas, actor="n", now=at(created + 3))
    return encounter_service.move_to_waiting(encounter_id=enc.id, actor="n", now=at(created + 4))


def test_list_orders_by_priority_then_arrival(encounter_service, linker, patient_id, hospital_id, at):
    low = _waiting(encounter_service, linker, patient_id, hospital_id, at, created=0, ctas=4)
    high = _waiting(encounter_service, linker, patient_id, hospital_id, at, created=10, ctas=2)
    low_later = _waiting(encounter_service, linker, patient_id, hospital_id, at, created=20, ctas=4)
    unassessed = encounter_service.create(patient_id=patient_id, hospital_id=hospital_id, actor="n", now=at(30))

    ids = list(EncounterSelectors.list_encounters(hospital_id=hospital_id).values_list("id", flat=True))

    assert ids == [high.id, low.id, low_later.id, unassessed.id]


def test_list_filters_by_status_and_hospital(encounter, other_hospital_id, hospital_id):
    assert EncounterSelectors.list_encounters(hospital_id=hospital_id, status=EncounterStatus.EXPECTED).count() == 1
    assert EncounterSelectors.list_encounters(hospital_id=hospital_id, status=EncounterStatus.TRIAGE).count() == 0
    assert EncounterSelectors.list_encounters(hospital_id=other_hospital_id).count() == 0


def test_queue_position(encounter_service, linker, patient_id, hospital_id, at):
    low = _waiting(encounter_service, linker, patient_id, hospital_id, at, created=0, ctas=5)
    high = _waiting(encounter_service, linker, patient_id, hospital_id, at, created=10, ctas=1)

    assert EncounterSelectors.queue_position(encounter=high) == {
        "encounter_id": str(high.id),
        "position": 1,
        "estimated_minutes": 15,
        "total_in_queue": 2,
    }
    pos = EncounterSelectors.queue_position(encounter=low)
    assert pos["position"] == 2
    assert pos["estimated_minutes"] == 30


def test_queue_position_requires_waiting(encounter):
    with pytest.raises(InvalidState):
        EncounterSelectors.queue_position(encounter=encounter)


def test_timeline_is_ordered(triaged_encounter):
    types = [e.type for e in EncounterSelectors.timeline(encounter_id=triaged_encounter.id)]
    assert types == ["ENCOUNTER_CREATED", "STATUS_CHANGED", "STATUS_CHANGED"]
