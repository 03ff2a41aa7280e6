"""
Business services for Trip Desk.

This package contains:
- inventory.py: atomic event ticket inventory adjustments
- payments.py: payment records, idempotent transitions, amount computation
- parties.py: principal to traveler/guide profile resolution
- tickets.py: event ticket purchase and cancellation
- trips.py: trip state machine
- verification.py: OTP and geohash trip-start verification
- reconciler.py: payment gateway webhook and checkout polling reconciliation
- migration.py: Alembic migrations run from a Lambda
"""

__all__: list[str] = []
