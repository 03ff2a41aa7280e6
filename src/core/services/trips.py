"""
Trip state machine.

Trip.status:
    PLANNING -> CONFIRMED -> IN_PROGRESS -> COMPLETED
    PLANNING | CONFIRMED -> CANCELLED

Trip.booking_status moves forward only:
    PENDING -> ACCEPTED -> CONFIRMED -> COMPLETED, or to CANCELLED.

Every transition runs inside ``Database.transaction()`` with the trip row
(and, where flags change, the traveler row) locked.
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.config import Config, get_config
from core.db.database import Database
from core.db.schemas.party import Guide, Traveler
from core.db.schemas.payment import Payment
from core.db.schemas.trip import Trip
from core.db.schemas.verification import TripVerification
from core.errors import (
    AuthorizationError,
    ConcurrentTripConflictError,
    ErrorCode,
    InvalidStateError,
    NotFoundError,
    PaymentRequiredError,
    VerificationError,
)
from core.gateway.interface import LineItem, PaymentGateway
from core.models.booking import (
    CancellationResult,
    CheckoutMetadata,
    Location,
    PurchaseResult,
    StartTripResult,
)
from core.models.principal import Principal
from core.models.status import BookingStatus, PaymentStatus, TripStatus
from core.services import payments
from core.services.parties import get_guide, get_traveler
from core.services.verification import TripStartVerifier

logger = logging.getLogger(__name__)

_BOOKING_ORDER = {
    BookingStatus.PENDING: 0,
    BookingStatus.ACCEPTED: 1,
    BookingStatus.CONFIRMED: 2,
    BookingStatus.COMPLETED: 3,
}

CANCELLABLE_STATUSES = frozenset({TripStatus.PLANNING.value, TripStatus.CONFIRMED.value})


def _set_booking_status(trip: Trip, target: BookingStatus) -> None:
    current = BookingStatus(trip.booking_status)
    if current == BookingStatus.CANCELLED:
        raise InvalidStateError(f"Trip {trip.id} booking is cancelled")
    if target != BookingStatus.CANCELLED and _BOOKING_ORDER[target] < _BOOKING_ORDER[current]:
        raise InvalidStateError(f"Trip {trip.id} booking cannot move from {current.value} to {target.value}")
    trip.booking_status = target.value


def _require_status(trip: Trip, *allowed: TripStatus) -> None:
    if trip.status not in {s.value for s in allowed}:
        expected = " or ".join(s.value for s in allowed)
        raise InvalidStateError(f"Trip {trip.id} is {trip.status}, expected {expected}")


def _load_trip(session: Session, trip_id: str) -> Trip:
    trip = session.scalars(select(Trip).where(Trip.id == trip_id).with_for_update()).one_or_none()
    if trip is None:
        raise NotFoundError(f"Trip {trip_id} not found")
    return trip


def _owned_trip(session: Session, traveler: Traveler, trip_id: str) -> Trip:
    trip = _load_trip(session, trip_id)
    if trip.traveler_id != traveler.id:
        raise AuthorizationError(f"Trip {trip_id} does not belong to traveler {traveler.id}")
    return trip


class TripLifecycle:
    def __init__(
        self,
        db: Database,
        gateway: PaymentGateway | None = None,
        verifier: TripStartVerifier | None = None,
        config: Config | None = None,
    ):
        self.db = db
        self.gateway = gateway
        self.config = config or get_config()
        self.verifier = verifier or TripStartVerifier.from_config(self.config)

    def _require_gateway(self) -> PaymentGateway:
        if self.gateway is None:
            raise RuntimeError("TripLifecycle was built without a payment gateway")
        return self.gateway

    # --- Planning ---

    def assign_guide(self, principal: Principal, trip_id: str) -> Trip:
        """Guide accepts a trip that asked for one."""
        with self.db.transaction() as session:
            # Trip before guide, the same order start_trip and complete_trip lock in
            trip = _load_trip(session, trip_id)
            guide = get_guide(session, principal, lock=True)
            _require_status(trip, TripStatus.PLANNING)
            if not trip.needs_guide:
                raise InvalidStateError(f"Trip {trip_id} does not need a guide")
            if trip.guide_id is not None:
                raise InvalidStateError(f"Trip {trip_id} already has a guide")
            if guide.trip_in_progress:
                active = session.scalar(
                    select(Trip.id).where(Trip.guide_id == guide.id, Trip.status == TripStatus.IN_PROGRESS.value)
                )
                raise ConcurrentTripConflictError(f"Guide {guide.id} has a trip in progress", active)

            trip.guide_id = guide.id
            _set_booking_status(trip, BookingStatus.ACCEPTED)
            logger.info("Guide %s accepted trip %s", guide.id, trip_id)
            return trip

    def confirm_trip(self, principal: Principal, trip_id: str) -> Trip:
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            trip = _owned_trip(session, traveler, trip_id)
            _require_status(trip, TripStatus.PLANNING)
            if trip.needs_guide and trip.guide_id is None:
                raise InvalidStateError(f"Trip {trip_id} needs a guide before it can be confirmed")

            trip.status = TripStatus.CONFIRMED.value
            _set_booking_status(trip, BookingStatus.ACCEPTED)
            logger.info("Trip %s confirmed", trip_id)
            return trip

    def initiate_trip_payment(self, principal: Principal, trip_id: str) -> PurchaseResult:
        """Open a checkout session for a confirmed trip.

        An earlier PENDING payment is superseded rather than reused, so each
        checkout session maps to exactly one payment row.
        """
        gateway = self._require_gateway()
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            trip = _owned_trip(session, traveler, trip_id)
            _require_status(trip, TripStatus.CONFIRMED)
            if payments.find_trip_payment(session, trip_id, PaymentStatus.PAID) is not None:
                raise InvalidStateError(f"Trip {trip_id} is already paid")

            amount = payments.calculate_trip_amount(trip.total_distance, trip.number_of_people, trip.needs_guide)
            payments.ensure_chargeable(amount, self.config.stripe_minimum_charge)

            stale = payments.find_trip_payment(session, trip_id, PaymentStatus.PENDING)
            if stale is not None:
                payments.mark_cancelled(session, stale.id)

            payment = payments.create_payment(
                session,
                payments.PaymentTarget(trip_id=trip_id),
                traveler_id=traveler.id,
                amount=amount,
                currency=self.config.stripe_currency,
            )
            line_item = LineItem(
                name=f"Trip to {trip.country}" if trip.country else "Trip",
                description=(
                    f"{trip.number_of_people} people, {round(trip.total_distance or 0)}km"
                    + (", with guide" if trip.needs_guide else "")
                ),
                unit_amount=payments.to_minor_units(amount),
                currency=self.config.stripe_currency,
            )
            metadata = CheckoutMetadata(
                payment_id=payment.id,
                traveler_id=traveler.id,
                requester_id=principal.user_id,
                trip_id=trip_id,
            )
            payment_id = payment.id

        # No locks held across the gateway round-trip; a failed call leaves a
        # PENDING payment that the next attempt supersedes.
        checkout = gateway.create_checkout_session(
            line_item,
            success_url=(
                f"{self.config.app_url}/traveler/payment/success"
                f"?session_id={{CHECKOUT_SESSION_ID}}&trip_id={trip_id}"
            ),
            cancel_url=f"{self.config.app_url}/traveler/payment/cancel?trip_id={trip_id}",
            metadata=metadata.to_gateway(),
        )
        with self.db.transaction() as session:
            payments.attach_gateway_session(session, payment_id, checkout.id)

        return PurchaseResult(
            payment_id=payment_id,
            status=PaymentStatus.PENDING,
            amount=amount,
            session_id=checkout.id,
            session_url=checkout.url,
        )

    # --- Running ---

    def start_trip(self, principal: Principal, trip_id: str, location: Location) -> StartTripResult:
        """Begin a confirmed, paid trip and issue the guide's verification code.

        Failures, in the order they are checked: the trip is missing or not the
        caller's, the trip is not CONFIRMED, there is no PAID payment, another
        trip of the traveler is already IN_PROGRESS.
        """
        with self.db.transaction() as session:
            # Traveler row lock serialises concurrent starts by the same traveler
            traveler = get_traveler(session, principal, lock=True)
            trip = _owned_trip(session, traveler, trip_id)
            _require_status(trip, TripStatus.CONFIRMED)
            if payments.find_trip_payment(session, trip_id, PaymentStatus.PAID) is None:
                raise PaymentRequiredError(f"Trip {trip_id} has no completed payment")

            active = session.scalar(
                select(Trip.id).where(
                    Trip.traveler_id == traveler.id,
                    Trip.status == TripStatus.IN_PROGRESS.value,
                    Trip.id != trip_id,
                )
            )
            if active is not None:
                raise ConcurrentTripConflictError(f"Traveler {traveler.id} already has trip {active} in progress", active)

            trip.status = TripStatus.IN_PROGRESS.value
            _set_booking_status(trip, BookingStatus.ACCEPTED)
            try:
                session.flush()
            except IntegrityError as e:
                raise ConcurrentTripConflictError(f"Traveler {traveler.id} already has a trip in progress") from e

            ticket = self.verifier.issue(session, trip, location)

            traveler.trip_in_progress = True
            guide_phone = None
            if trip.guide_id is not None:
                guide = session.get(Guide, trip.guide_id, with_for_update=True)
                if guide is not None:
                    guide.trip_in_progress = True
                    guide_phone = guide.phone

            logger.info("Trip %s started by traveler %s", trip_id, traveler.id)
            return StartTripResult(
                trip_id=trip_id,
                otp=ticket.otp,
                expires_at=ticket.expires_at,
                guide_phone=guide_phone,
            )

    def reissue_start_code(self, principal: Principal, trip_id: str, location: Location) -> StartTripResult:
        """Replace the start code of a running, not yet verified trip, e.g. after it expired."""
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            trip = _owned_trip(session, traveler, trip_id)
            _require_status(trip, TripStatus.IN_PROGRESS)

            verification = session.get(TripVerification, trip_id, with_for_update=True)
            if verification is not None and verification.verified:
                raise VerificationError(f"Trip {trip_id} already verified", code=ErrorCode.ALREADY_VERIFIED)

            ticket = self.verifier.issue(session, trip, location)
            guide = session.get(Guide, trip.guide_id) if trip.guide_id is not None else None
            logger.info("Start code for trip %s reissued", trip_id)
            return StartTripResult(
                trip_id=trip_id,
                otp=ticket.otp,
                expires_at=ticket.expires_at,
                guide_phone=guide.phone if guide is not None else None,
            )

    def verify_trip_start(self, principal: Principal, trip_id: str, otp: str, location: Location) -> Trip:
        """Guide confirms meeting the traveler with the code and their own location."""
        with self.db.transaction() as session:
            guide = get_guide(session, principal)
            trip = _load_trip(session, trip_id)
            if trip.guide_id != guide.id:
                raise AuthorizationError(f"Trip {trip_id} is not assigned to guide {guide.id}")
            _require_status(trip, TripStatus.IN_PROGRESS)

            self.verifier.confirm(session, trip, otp, location)
            _set_booking_status(trip, BookingStatus.CONFIRMED)
            return trip

    def complete_trip(self, principal: Principal, trip_id: str) -> Trip:
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal, lock=True)
            trip = _owned_trip(session, traveler, trip_id)
            _require_status(trip, TripStatus.IN_PROGRESS)

            trip.status = TripStatus.COMPLETED.value
            _set_booking_status(trip, BookingStatus.COMPLETED)
            traveler.trip_in_progress = False
            if trip.guide_id is not None:
                guide = session.get(Guide, trip.guide_id, with_for_update=True)
                if guide is not None:
                    guide.trip_in_progress = False

            payment = payments.find_trip_payment(session, trip_id, PaymentStatus.PAID)
            if payment is not None:
                payments.mark_released(session, payment)
            else:
                logger.warning("Completed trip %s has no PAID payment to release", trip_id)

            logger.info("Trip %s completed", trip_id)
            return trip

    def cancel_trip(self, principal: Principal, trip_id: str) -> CancellationResult:
        """Cancel a trip that has not started; a captured payment is refunded after commit."""
        refund_session_id = None
        with self.db.transaction() as session:
            traveler = get_traveler(session, principal)
            trip = _owned_trip(session, traveler, trip_id)
            if trip.status not in CANCELLABLE_STATUSES:
                raise InvalidStateError(f"Trip {trip_id} is {trip.status} and can no longer be cancelled")

            trip.status = TripStatus.CANCELLED.value
            _set_booking_status(trip, BookingStatus.CANCELLED)

            open_payments = session.scalars(
                select(Payment)
                .where(
                    Payment.trip_id == trip_id,
                    Payment.status.in_([PaymentStatus.PENDING.value, PaymentStatus.PAID.value]),
                )
                .with_for_update()
            ).all()
            paid_id = None
            for payment in open_payments:
                was_paid = payment.status == PaymentStatus.PAID
                payments.mark_cancelled(session, payment.id, allow_paid=was_paid)
                if was_paid:
                    paid_id = payment.id
                    refund_session_id = payment.gateway_session_id
            logger.info("Trip %s cancelled", trip_id)

        if paid_id is None:
            return CancellationResult()
        if refund_session_id is None:
            logger.error("Paid payment %s has no checkout session to refund", paid_id)
            return CancellationResult(payment_id=paid_id, refunded=False)

        refund = self._require_gateway().refund(refund_session_id)
        if not refund.ok:
            logger.error("Refund for payment %s failed: %s", paid_id, refund.error)
        return CancellationResult(payment_id=paid_id, refunded=refund.ok)
