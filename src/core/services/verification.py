"""One-time code and coarse location fingerprint binding traveler and guide at trip start."""

import logging
import secrets
from collections.abc import Callable
from datetime import datetime, timedelta

import pygeohash
from sqlalchemy.orm import Session

from core.config import Config
from core.db.schemas.base import ensure_utc, utcnow
from core.db.schemas.trip import Trip
from core.db.schemas.verification import TripVerification
from core.errors import ErrorCode, NotFoundError, VerificationError
from core.models.booking import Location, VerificationTicket

logger = logging.getLogger(__name__)


def generate_otp(length: int) -> str:
    """Uniform random numeric code of exactly ``length`` digits (no leading zero)."""
    low = 10 ** (length - 1)
    return str(low + secrets.randbelow(9 * low))


def location_fingerprint(location: Location, precision: int) -> str:
    return pygeohash.encode(location.latitude, location.longitude, precision=precision)


class TripStartVerifier:
    """Issues and checks the OTP + geohash pair for a single trip.

    Expiry is a predicate evaluated when the guide confirms; nothing sweeps
    expired rows. Both fingerprints are stored at ``precision`` characters and
    compared on their first ``match_precision`` characters.
    """

    def __init__(
        self,
        ttl_minutes: int = 30,
        otp_length: int = 4,
        precision: int = 5,
        match_precision: int = 3,
        clock: Callable[[], datetime] = utcnow,
    ):
        if not 0 < match_precision <= precision:
            raise ValueError("match_precision must be between 1 and precision")
        self.ttl = timedelta(minutes=ttl_minutes)
        self.otp_length = otp_length
        self.precision = precision
        self.match_precision = match_precision
        self._clock = clock

    @classmethod
    def from_config(cls, config: Config, clock: Callable[[], datetime] = utcnow) -> "TripStartVerifier":
        return cls(
            ttl_minutes=config.otp_ttl_minutes,
            otp_length=config.otp_length,
            precision=config.geohash_precision,
            match_precision=config.geohash_match_precision,
            clock=clock,
        )

    def issue(self, session: Session, trip: Trip, location: Location) -> VerificationTicket:
        """Mint a fresh code for ``trip``, replacing any earlier one."""
        otp = generate_otp(self.otp_length)
        expires_at = self._clock() + self.ttl
        traveler_geohash = location_fingerprint(location, self.precision)

        verification = session.get(TripVerification, trip.id)
        if verification is None:
            verification = TripVerification(trip_id=trip.id)
            session.add(verification)
        verification.otp = otp
        verification.traveler_geohash = traveler_geohash
        verification.guide_geohash = None
        verification.verified = False
        verification.verified_at = None
        verification.expires_at = expires_at
        session.flush()

        logger.info("Issued start verification for trip %s, expires %s", trip.id, expires_at.isoformat())
        return VerificationTicket(otp=otp, expires_at=expires_at)

    def confirm(self, session: Session, trip: Trip, code: str, location: Location) -> TripVerification:
        """Check the guide's code and location against the issued verification.

        Checks run in a fixed order: expired, already verified, wrong code,
        location mismatch. An expired code fails even when it is correct.
        """
        verification = session.get(TripVerification, trip.id, with_for_update=True)
        if verification is None:
            raise NotFoundError(f"No start verification issued for trip {trip.id}")

        now = self._clock()
        if now > ensure_utc(verification.expires_at):
            raise VerificationError(f"Verification for trip {trip.id} expired", code=ErrorCode.OTP_EXPIRED)
        if verification.verified:
            raise VerificationError(f"Trip {trip.id} already verified", code=ErrorCode.ALREADY_VERIFIED)
        if not secrets.compare_digest(verification.otp.encode(), code.encode()):
            raise VerificationError(f"Wrong code for trip {trip.id}", code=ErrorCode.OTP_INVALID)

        guide_geohash = location_fingerprint(location, self.precision)
        prefix = self.match_precision
        if guide_geohash[:prefix] != verification.traveler_geohash[:prefix]:
            logger.info(
                "Location mismatch for trip %s: traveler %s, guide %s",
                trip.id,
                verification.traveler_geohash,
                guide_geohash,
            )
            raise VerificationError(f"Guide is not near traveler for trip {trip.id}", code=ErrorCode.LOCATION_MISMATCH)

        verification.verified = True
        verification.guide_geohash = guide_geohash
        verification.verified_at = now
        session.flush()
        logger.info("Trip %s start verified", trip.id)
        return verification
