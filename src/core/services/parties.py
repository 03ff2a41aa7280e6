"""Resolve the authenticated principal to its traveler or guide profile."""

from sqlalchemy import select
from sqlalchemy.orm import Session

from core.db.schemas.party import Guide, Traveler
from core.errors import NotFoundError
from core.models.principal import Principal


def get_traveler(session: Session, principal: Principal, lock: bool = False) -> Traveler:
    stmt = select(Traveler).where(Traveler.user_id == principal.user_id)
    if lock:
        stmt = stmt.with_for_update()
    traveler = session.scalars(stmt).one_or_none()
    if traveler is None:
        raise NotFoundError(f"Traveler profile not found for user {principal.user_id}")
    return traveler


def get_guide(session: Session, principal: Principal, lock: bool = False) -> Guide:
    stmt = select(Guide).where(Guide.user_id == principal.user_id)
    if lock:
        stmt = stmt.with_for_update()
    guide = session.scalars(stmt).one_or_none()
    if guide is None:
        raise NotFoundError(f"Guide profile not found for user {principal.user_id}")
    return guide
