"""Lazy-initialized clients, reused across warm Lambda invocations."""

from functools import lru_cache

from core.config import get_config
from core.db.database import Database
from core.gateway.interface import PaymentGateway, get_payment_gateway


@lru_cache(maxsize=1)
def get_database() -> Database:
    db = Database(get_config())
    db.connect()
    return db


@lru_cache(maxsize=1)
def get_gateway() -> PaymentGateway:
    return get_payment_gateway()
