"""Shared test fixtures for Trip Desk."""

import json
import os
import sys
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from pathlib import Path

import pytest
from dotenv import load_dotenv

# Load .env file for test configuration
load_dotenv()

# Unset AWS_PROFILE for local testing
if "AWS_PROFILE" in os.environ:
    del os.environ["AWS_PROFILE"]

# Add src directory to Python path for imports
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from core.config import Config  # noqa: E402
from core.db import Base, Database, Event, Guide, Payment, Traveler, Trip  # noqa: E402
from core.errors import GatewayUnavailableError, InvalidSignatureError  # noqa: E402
from core.gateway.interface import (  # noqa: E402
    CheckoutSession,
    CheckoutSessionStatus,
    PaymentGateway,
    RefundResult,
    parse_gateway_event,
)
from core.models import Principal, Role  # noqa: E402

VALID_SIGNATURE = "t=1,v1=valid"


class FakeGateway(PaymentGateway):
    """In-memory PaymentGateway that records every call."""

    def __init__(self):
        self.sessions: dict[str, dict] = {}
        self.paid_sessions: set[str] = set()
        self.refunds: list[str] = []
        self.fail_checkout = False
        self.fail_refunds = False
        self._counter = 0

    def create_checkout_session(self, line_item, success_url, cancel_url, metadata):
        if self.fail_checkout:
            raise GatewayUnavailableError("Checkout session creation failed: connection reset")
        self._counter += 1
        session_id = f"cs_test_{self._counter}"
        self.sessions[session_id] = {
            "line_item": line_item,
            "success_url": success_url,
            "cancel_url": cancel_url,
            "metadata": dict(metadata),
        }
        return CheckoutSession(id=session_id, url=f"https://checkout.stripe.test/{session_id}")

    def construct_event(self, raw_body, signature_header):
        if signature_header != VALID_SIGNATURE:
            raise InvalidSignatureError("Webhook signature verification failed")
        event = json.loads(raw_body)
        return parse_gateway_event(event["id"], event["type"], event["data"]["object"])

    def retrieve_checkout_session(self, session_id):
        metadata = self.sessions.get(session_id, {}).get("metadata", {})
        return CheckoutSessionStatus(
            id=session_id,
            paid=session_id in self.paid_sessions,
            payment_intent=f"pi_{session_id}" if session_id in self.paid_sessions else None,
            metadata=metadata,
        )

    def refund(self, session_id, reason="requested_by_customer"):
        self.refunds.append(session_id)
        if self.fail_refunds:
            return RefundResult(ok=False, error="card_declined")
        return RefundResult(ok=True, refund_id=f"re_{session_id}")

    @property
    def checkout_count(self) -> int:
        return len(self.sessions)


def webhook_body(event_type: str, session_id: str, metadata: dict | None = None, event_id: str = "evt_1") -> str:
    obj: dict = {"id": session_id, "object": "checkout.session"}
    if metadata is not None:
        obj["metadata"] = metadata
    return json.dumps({"id": event_id, "type": event_type, "data": {"object": obj}})


class Seed:
    """Row factories that commit immediately, each in its own transaction."""

    def __init__(self, db: Database):
        self.db = db

    def _add(self, row):
        with self.db.transaction() as session:
            session.add(row)
        return row

    def traveler(self, user_id: str = "user_traveler") -> Traveler:
        return self._add(Traveler(user_id=user_id))

    def guide(self, user_id: str = "user_guide", phone: str | None = "+94771234567") -> Guide:
        return self._add(Guide(user_id=user_id, phone=phone))

    def event(
        self,
        price: str = "LKR 1,500",
        tickets: int = 10,
        date: datetime | None = None,
        title: str = "Kandy Esala Perahera",
    ) -> Event:
        return self._add(
            Event(
                title=title,
                date=date or datetime.now(timezone.utc) + timedelta(days=14),
                price=price,
                ticket_count=tickets,
                initial_ticket_count=tickets,
            )
        )

    def trip(
        self,
        traveler: Traveler,
        status: str = "PLANNING",
        booking_status: str = "PENDING",
        guide: Guide | None = None,
        needs_guide: bool = False,
        number_of_people: int = 2,
        total_distance: float | None = 120.0,
    ) -> Trip:
        now = datetime.now(timezone.utc)
        return self._add(
            Trip(
                traveler_id=traveler.id,
                guide_id=guide.id if guide else None,
                from_date=now + timedelta(days=1),
                to_date=now + timedelta(days=4),
                number_of_people=number_of_people,
                country="Sri Lanka",
                total_distance=total_distance,
                needs_guide=needs_guide,
                daily_itinerary=[{"day": 1, "activities": [{"name": "Temple of the Tooth"}]}],
                status=status,
                booking_status=booking_status,
            )
        )

    def trip_payment(self, trip: Trip, status: str = "PAID", session_id: str | None = "cs_seed_trip") -> Payment:
        return self._add(
            Payment(
                trip_id=trip.id,
                traveler_id=trip.traveler_id,
                amount=Decimal("6200.00"),
                status=status,
                gateway_session_id=session_id,
                paid_at=datetime.now(timezone.utc) if status == "PAID" else None,
            )
        )


@pytest.fixture
def config():
    return Config(
        aws_region="us-east-1",
        aurora_host="localhost",
        aurora_port=5432,
        aurora_database="tripdesk",
        aurora_user="tripdesk",
        aurora_password="localdev",
        stripe_secret_key="sk_test_mock",
        stripe_webhook_secret="whsec_mock",
        app_url="https://tripdesk.test",
        environment="test",
    )


@pytest.fixture
def db():
    """In-memory SQLite database with the full schema."""
    database = Database.from_url("sqlite:///:memory:")
    Base.metadata.create_all(database.engine)
    yield database
    database.disconnect()


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def seed(db):
    return Seed(db)


@pytest.fixture
def traveler_principal():
    return Principal(user_id="user_traveler", role=Role.TRAVELER)


@pytest.fixture
def guide_principal():
    return Principal(user_id="user_guide", role=Role.GUIDE)


# PostgreSQL fixtures
@pytest.fixture
def pg_connection():
    """Provide a PostgreSQL connection for integration tests."""
    import psycopg
    from core.config import get_config

    config = get_config()
    conn_str = (
        f"host={config.aurora_host} port={config.aurora_port} "
        f"dbname={config.aurora_database} user={config.aurora_user} "
        f"password={config.aurora_password}"
    )

    conn = psycopg.connect(conn_str)
    yield conn

    # Rollback any uncommitted changes
    conn.rollback()
    conn.close()


@pytest.fixture
def pg_database():
    """Database bound to local PostgreSQL with a fresh schema; tables emptied afterwards."""
    from core.config import get_config

    database = Database(get_config())
    database.connect()
    Base.metadata.create_all(database.engine)
    yield database

    with database.engine.begin() as conn:
        for table in reversed(Base.metadata.sorted_tables):
            conn.execute(table.delete())
    database.disconnect()
