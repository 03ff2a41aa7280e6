import pytest

from core.db import Event
from core.errors import NotFoundError, ValidationError
from core.services import inventory


def _ticket_count(db, event_id):
    with db.transaction() as session:
        return session.get(Event, event_id).ticket_count


def test_reserve_decrements(db, seed):
    event = seed.event(tickets=5)
    with db.transaction() as session:
        assert inventory.reserve_or_decrement(session, event.id, 2) == 3
    assert _ticket_count(db, event.id) == 3


def test_reserve_exact_remaining(db, seed):
    event = seed.event(tickets=2)
    with db.transaction() as session:
        assert inventory.reserve_or_decrement(session, event.id, 2) == 0
    assert _ticket_count(db, event.id) == 0


def test_reserve_insufficient_is_not_an_error(db, seed):
    event = seed.event(tickets=1)
    with db.transaction() as session:
        assert inventory.reserve_or_decrement(session, event.id, 2) is None
    assert _ticket_count(db, event.id) == 1


def test_second_reservation_for_last_ticket_fails(db, seed):
    event = seed.event(tickets=1)
    with db.transaction() as session:
        assert inventory.reserve_or_decrement(session, event.id, 1) == 0
    with db.transaction() as session:
        assert inventory.reserve_or_decrement(session, event.id, 1) is None
    assert _ticket_count(db, event.id) == 0


def test_reserve_unknown_event(db):
    with pytest.raises(NotFoundError):
        with db.transaction() as session:
            inventory.reserve_or_decrement(session, "missing", 1)


@pytest.mark.parametrize("quantity", [0, -1, True, 1.5])
def test_reserve_rejects_bad_quantity(db, seed, quantity):
    event = seed.event(tickets=5)
    with pytest.raises(ValidationError):
        with db.transaction() as session:
            inventory.reserve_or_decrement(session, event.id, quantity)


def test_restore_returns_tickets(db, seed):
    event = seed.event(tickets=5)
    with db.transaction() as session:
        inventory.reserve_or_decrement(session, event.id, 3)
    with db.transaction() as session:
        assert inventory.restore(session, event.id, 3) == 5
    assert _ticket_count(db, event.id) == 5


def test_restore_never_exceeds_initial_inventory(db, seed):
    event = seed.event(tickets=4)
    with db.transaction() as session:
        inventory.reserve_or_decrement(session, event.id, 1)
    with db.transaction() as session:
        assert inventory.restore(session, event.id, 2) == 3
    assert _ticket_count(db, event.id) == 3


def test_restore_unknown_event(db):
    with pytest.raises(NotFoundError):
        with db.transaction() as session:
            inventory.restore(session, "missing", 1)


def test_rolled_back_reservation_leaves_count(db, seed):
    event = seed.event(tickets=3)
    with pytest.raises(RuntimeError):
        with db.transaction() as session:
            inventory.reserve_or_decrement(session, event.id, 2)
            raise RuntimeError("payment insert failed")
    assert _ticket_count(db, event.id) == 3
