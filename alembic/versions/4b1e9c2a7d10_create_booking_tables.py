"""create_booking_tables

Revision ID: 4b1e9c2a7d10
Revises: 
Create Date: 2026-10-19 09:12:44.318207

"""
from typing import Sequence, Union

from alembic import op


# revision identifiers, used by Alembic.
revision: str = '4b1e9c2a7d10'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.execute("""
        CREATE TABLE travelers (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(255) NOT NULL UNIQUE,
            trip_in_progress BOOLEAN NOT NULL DEFAULT FALSE
        )
    """)

    op.execute("""
        CREATE TABLE guides (
            id VARCHAR(36) PRIMARY KEY,
            user_id VARCHAR(255) NOT NULL UNIQUE,
            phone VARCHAR(32),
            trip_in_progress BOOLEAN NOT NULL DEFAULT FALSE
        )
    """)

    op.execute("""
        CREATE TABLE trips (
            id VARCHAR(36) PRIMARY KEY,
            traveler_id VARCHAR(36) NOT NULL REFERENCES travelers (id) ON DELETE CASCADE,
            guide_id VARCHAR(36) REFERENCES guides (id) ON DELETE SET NULL,
            from_date TIMESTAMPTZ NOT NULL,
            to_date TIMESTAMPTZ NOT NULL,
            number_of_people INTEGER NOT NULL,
            country VARCHAR(100) NOT NULL DEFAULT '',
            total_distance DOUBLE PRECISION,
            needs_guide BOOLEAN NOT NULL DEFAULT FALSE,
            daily_itinerary JSONB,
            status VARCHAR(20) NOT NULL DEFAULT 'PLANNING',
            booking_status VARCHAR(20) NOT NULL DEFAULT 'PENDING',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT chk_trips_status
                CHECK (status IN ('PLANNING', 'CONFIRMED', 'IN_PROGRESS', 'COMPLETED', 'CANCELLED')),
            CONSTRAINT chk_trips_booking_status
                CHECK (booking_status IN ('PENDING', 'ACCEPTED', 'CONFIRMED', 'COMPLETED', 'CANCELLED')),
            CONSTRAINT chk_trips_number_of_people CHECK (number_of_people > 0)
        )
    """)
    op.execute("CREATE INDEX idx_trips_traveler_id ON trips (traveler_id)")
    op.execute("CREATE INDEX idx_trips_guide_id ON trips (guide_id)")
    # At most one trip in progress per traveler
    op.execute("""
        CREATE UNIQUE INDEX uq_trips_traveler_in_progress
        ON trips (traveler_id)
        WHERE status = 'IN_PROGRESS'
    """)

    op.execute("""
        CREATE TABLE events (
            id VARCHAR(36) PRIMARY KEY,
            title VARCHAR(255) NOT NULL,
            date TIMESTAMPTZ NOT NULL,
            price VARCHAR(64) NOT NULL,
            ticket_count INTEGER NOT NULL DEFAULT 0,
            initial_ticket_count INTEGER NOT NULL DEFAULT 0,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT chk_events_ticket_count CHECK (ticket_count >= 0),
            CONSTRAINT chk_events_ticket_count_ceiling CHECK (ticket_count <= initial_ticket_count)
        )
    """)

    op.execute("""
        CREATE TABLE payments (
            id VARCHAR(36) PRIMARY KEY,
            trip_id VARCHAR(36) REFERENCES trips (id) ON DELETE CASCADE,
            event_id VARCHAR(36) REFERENCES events (id) ON DELETE CASCADE,
            traveler_id VARCHAR(36) NOT NULL REFERENCES travelers (id) ON DELETE CASCADE,
            ticket_quantity INTEGER,
            amount NUMERIC(12, 2) NOT NULL,
            currency VARCHAR(3) NOT NULL DEFAULT 'lkr',
            status VARCHAR(20) NOT NULL DEFAULT 'PENDING',
            gateway_session_id VARCHAR(255) UNIQUE,
            paid_at TIMESTAMPTZ,
            released_at TIMESTAMPTZ,
            cancelled_at TIMESTAMPTZ,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT chk_payments_status CHECK (status IN ('PENDING', 'PAID', 'CANCELLED', 'RELEASED')),
            CONSTRAINT chk_payments_single_target CHECK ((trip_id IS NULL) <> (event_id IS NULL)),
            CONSTRAINT chk_payments_amount CHECK (amount >= 0),
            CONSTRAINT chk_payments_event_quantity CHECK (event_id IS NULL OR ticket_quantity > 0)
        )
    """)
    op.execute("CREATE INDEX idx_payments_trip_id ON payments (trip_id)")
    op.execute("CREATE INDEX idx_payments_event_id ON payments (event_id)")
    op.execute("CREATE INDEX idx_payments_traveler_id ON payments (traveler_id)")

    op.execute("""
        CREATE TABLE event_tickets (
            id VARCHAR(36) PRIMARY KEY,
            event_id VARCHAR(36) NOT NULL REFERENCES events (id) ON DELETE CASCADE,
            traveler_id VARCHAR(36) NOT NULL REFERENCES travelers (id) ON DELETE CASCADE,
            payment_id VARCHAR(36) NOT NULL UNIQUE REFERENCES payments (id) ON DELETE CASCADE,
            quantity INTEGER NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CONSTRAINT chk_event_tickets_quantity CHECK (quantity > 0)
        )
    """)
    op.execute("CREATE INDEX idx_event_tickets_event_id ON event_tickets (event_id)")
    op.execute("CREATE INDEX idx_event_tickets_traveler_id ON event_tickets (traveler_id)")

    op.execute("""
        CREATE TABLE trip_verifications (
            trip_id VARCHAR(36) PRIMARY KEY REFERENCES trips (id) ON DELETE CASCADE,
            otp VARCHAR(12) NOT NULL,
            traveler_geohash VARCHAR(12) NOT NULL,
            guide_geohash VARCHAR(12),
            verified BOOLEAN NOT NULL DEFAULT FALSE,
            verified_at TIMESTAMPTZ,
            expires_at TIMESTAMPTZ NOT NULL,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
        )
    """)


def downgrade() -> None:
    """Downgrade schema."""
    op.execute("DROP TABLE IF EXISTS trip_verifications")
    op.execute("DROP TABLE IF EXISTS event_tickets")
    op.execute("DROP TABLE IF EXISTS payments")
    op.execute("DROP TABLE IF EXISTS events")
    op.execute("DROP INDEX IF EXISTS uq_trips_traveler_in_progress")
    op.execute("DROP TABLE IF EXISTS trips")
    op.execute("DROP TABLE IF EXISTS guides")
    op.execute("DROP TABLE IF EXISTS travelers")
