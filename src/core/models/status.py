"""Status enums shared by the ORM schemas, services and API models."""

from enum import Enum


class TripStatus(str, Enum):
    PLANNING = "PLANNING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    ACCEPTED = "ACCEPTED"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class PaymentStatus(str, Enum):
    PENDING = "PENDING"
    PAID = "PAID"
    CANCELLED = "CANCELLED"
    RELEASED = "RELEASED"


class Role(str, Enum):
    TRAVELER = "TRAVELER"
    GUIDE = "GUIDE"
    ADMIN = "ADMIN"


def sql_in(enum_cls: type[Enum]) -> str:
    """Render an enum's values as a SQL IN list for check constraints."""
    return "(" + ", ".join(f"'{member.value}'" for member in enum_cls) + ")"
