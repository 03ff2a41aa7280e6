"""SQLAlchemy ORM models for the travelers and guides tables."""

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from core.db.schemas.base import Base, new_id


class Traveler(Base):
    __tablename__ = "travelers"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    trip_in_progress: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Guide(Base):
    __tablename__ = "guides"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=new_id)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    phone: Mapped[str | None] = mapped_column(String(32))
    trip_in_progress: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
