"""Atomic adjustment of event ticket inventory."""

import logging

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from core.db.schemas.base import utcnow
from core.db.schemas.event import Event
from core.errors import NotFoundError, ValidationError

logger = logging.getLogger(__name__)


def _check_quantity(quantity: int) -> None:
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise ValidationError(f"Ticket quantity must be a positive integer, got {quantity!r}")


def _ensure_event_exists(session: Session, event_id: str) -> None:
    if session.scalar(select(Event.id).where(Event.id == event_id)) is None:
        raise NotFoundError(f"Event {event_id} not found")


def reserve_or_decrement(session: Session, event_id: str, quantity: int) -> int | None:
    """Take ``quantity`` tickets from an event in one conditional UPDATE.

    Returns the remaining ticket count, or None when fewer than ``quantity``
    tickets are left. The check and the write happen in the same statement,
    so concurrent callers can never drive the count below zero.
    """
    _check_quantity(quantity)
    stmt = (
        update(Event)
        .where(Event.id == event_id, Event.ticket_count >= quantity)
        .values(ticket_count=Event.ticket_count - quantity, updated_at=utcnow())
        .returning(Event.ticket_count)
    )
    remaining = session.execute(stmt).scalar_one_or_none()
    if remaining is None:
        _ensure_event_exists(session, event_id)
        logger.info("Insufficient inventory for event %s (requested %d)", event_id, quantity)
        return None

    logger.info("Reserved %d ticket(s) for event %s, %d left", quantity, event_id, remaining)
    return remaining


def restore(session: Session, event_id: str, quantity: int) -> int:
    """Return ``quantity`` tickets to an event, capped at its initial inventory."""
    _check_quantity(quantity)
    stmt = (
        update(Event)
        .where(Event.id == event_id, Event.ticket_count + quantity <= Event.initial_ticket_count)
        .values(ticket_count=Event.ticket_count + quantity, updated_at=utcnow())
        .returning(Event.ticket_count)
    )
    remaining = session.execute(stmt).scalar_one_or_none()
    if remaining is None:
        _ensure_event_exists(session, event_id)
        # Only reachable if a restore is applied twice; keep the count at its ceiling
        logger.error("Restore of %d ticket(s) would exceed inventory of event %s", quantity, event_id)
        return session.scalar(select(Event.ticket_count).where(Event.id == event_id))

    logger.info("Restored %d ticket(s) to event %s, %d left", quantity, event_id, remaining)
    return remaining
