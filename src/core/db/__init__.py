"""
Database ORM models and clients for Trip Desk.

Importing this package registers all models on Base.metadata,
which Alembic needs for autogenerate.
"""

from core.db.database import Database
from core.db.schemas.base import Base
from core.db.schemas.event import Event, EventTicket
from core.db.schemas.party import Guide, Traveler
from core.db.schemas.payment import Payment
from core.db.schemas.trip import Trip
from core.db.schemas.verification import TripVerification

__all__ = ["Base", "Database", "Event", "EventTicket", "Guide", "Payment", "Traveler", "Trip", "TripVerification"]
