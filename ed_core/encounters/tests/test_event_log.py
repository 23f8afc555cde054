import uuid
from datetime import timedelta

import pytest
from django.core.exceptions import ValidationError as DjangoValidationError

from ed_core.encounters.models import EncounterEvent

pytestmark = pytest.mark.django_db

LEASE = 60


@pytest.fixture
def enc_id():
    return uuid.uuid4()


def _append(event_log, enc_id, now, n=1, **kwargs):
    return [
        event_log.append(encounter_id=enc_id, type="STATUS_CHANGED", metadata={"i": i}, now=now, **kwargs)
        for i in range(n)
    ]


def test_append_orders_by_created_at_then_id(event_log, enc_id, t0):
    first, second = _append(event_log, enc_id, t0, n=2)

    assert second.id > first.id
    ordered = list(EncounterEvent.objects.filter(encounter_id=enc_id).order_by("created_at", "id"))
    assert [e.id for e in ordered] == [first.id, second.id]


def test_append_with_event_key_is_idempotent(event_log, enc_id, t0, at):
    a = event_log.append(encounter_id=enc_id, type="MESSAGE_CREATED", now=t0, event_key="MESSAGE_CREATED:1")
    b = event_log.append(
        encounter_id=enc_id, type="MESSAGE_CREATED", now=at(1), metadata={"x": 1}, event_key="MESSAGE_CREATED:1"
    )

    assert a.id == b.id
    assert EncounterEvent.objects.filter(encounter_id=enc_id).count() == 1


def test_events_are_immutable(event_log, enc_id, t0):
    (event,) = _append(event_log, enc_id, t0)

    event.metadata = {"tampered": True}
    with pytest.raises(DjangoValidationError):
        event.save()
    with pytest.raises(DjangoValidationError):
        event.delete()


def test_claim_is_batch_bounded_and_ordered(event_log, enc_id, t0, at):
    _append(event_log, enc_id, t0, n=5)

    claimed = event_log.claim_unprocessed(batch_size=3, now=at(1), lease_seconds=LEASE)

    assert len(claimed) == 3
    assert [e.metadata["i"] for e in claimed] == [0, 1, 2]
    assert len({e.claim_token for e in claimed}) == 1
    assert all(e.lease_expires_at == at(1) + timedelta(seconds=LEASE) for e in claimed)
    assert all(e.attempts == 1 for e in claimed)


def test_second_claim_within_lease_gets_nothing_already_claimed(event_log, enc_id, t0, at):
    _append(event_log, enc_id, t0, n=2)

    first = event_log.claim_unprocessed(batch_size=10, now=at(1), lease_seconds=LEASE)
    second = event_log.claim_unprocessed(batch_size=10, now=at(1.5), lease_seconds=LEASE)

    assert len(first) == 2
    assert second == []


def test_expired_lease_is_reclaimed(event_log, enc_id, t0, at):
    _append(event_log, enc_id, t0)

    (first,) = event_log.claim_unprocessed(batch_size=10, now=at(1), lease_seconds=LEASE)
    # Consumer crashed; lease ran out
    (again,) = event_log.claim_unprocessed(batch_size=10, now=at(3), lease_seconds=LEASE)

    assert again.id == first.id
    assert again.claim_token != first.claim_token
    assert again.attempts == 2


def test_racing_claim_on_stale_lease_loses(event_log, enc_id, t0, at):
    _append(event_log, enc_id, t0)

    # Both consumers observed the same unclaimed candidate
    candidates = event_log._candidates(batch_size=10, now=at(1))
    (event_id, prev_lease), = candidates

    won_a = event_log._try_claim(
        event_id, prev_lease, token=uuid.uuid4(), now=at(1), lease_expires_at=at(2)
    )
    won_b = event_log._try_claim(
        event_id, prev_lease, token=uuid.uuid4(), now=at(1), lease_expires_at=at(2)
    )

    assert (won_a, won_b) == (True, False)


def test_racing_reclaim_of_expired_lease_has_one_winner(event_log, enc_id, t0, at):
    _append(event_log, enc_id, t0)
    event_log.claim_unprocessed(batch_size=10, now=at(1), lease_seconds=LEASE)

    (event_id, prev_lease), = event_log._candidates(batch_size=10, now=at(5))
    assert prev_lease is not None

    won_a = event_log._try_claim(event_id, prev_lease, token=uuid.uuid4(), now=at(5), lease_expires_at=at(6))
    won_b = event_log._try_claim(event_id, prev_lease, token=uuid.uuid4(), now=at(5), lease_expires_at=at(6))

    assert (won_a, won_b) == (True, False)


def test_mark_processed_is_idempotent(event_log, enc_id, t0, at):
    (event,) = _append(event_log, enc_id, t0)
    event_log.claim_unprocessed(batch_size=1, now=at(1), lease_seconds=LEASE)

    assert event_log.mark_processed(event.id, at(2)) is True
    assert event_log.mark_processed(event.id, at(3)) is False

    stored = EncounterEvent.objects.get(id=event.id)
    assert stored.processed_at == at(2)
    assert stored.lease_expires_at is None


def test_processed_events_are_never_reclaimed(event_log, enc_id, t0, at):
    (event,) = _append(event_log, enc_id, t0)
    event_log.claim_unprocessed(batch_size=1, now=at(1), lease_seconds=LEASE)
    event_log.mark_processed(event.id, at(1))

    assert event_log.claim_unprocessed(batch_size=10, now=at(60), lease_seconds=LEASE) == []


def test_zero_batch_claims_nothing(event_log, enc_id, t0):
    _append(event_log, enc_id, t0)
    assert event_log.claim_unprocessed(batch_size=0, now=t0, lease_seconds=LEASE) == []


def test_stale_lease_holder_cannot_complete_reclaimed_event(event_log, enc_id, t0, at):
    _append(event_log, enc_id, t0)
    (stale,) = event_log.claim_unprocessed(batch_size=1, now=at(1), lease_seconds=LEASE)
    (fresh,) = event_log.claim_unprocessed(batch_size=1, now=at(3), lease_seconds=LEASE)

    assert event_log.mark_processed(stale.id, at(4), claim_token=stale.claim_token) is False
    assert EncounterEvent.objects.get(id=stale.id).processed_at is None

    assert event_log.mark_processed(fresh.id, at(4), claim_token=fresh.claim_token) is True
    assert EncounterEvent.objects.get(id=fresh.id).processed_at == at(4)
