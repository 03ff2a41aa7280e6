from decimal import Decimal
from os import environ

import boto3
from pydantic import BaseModel, ConfigDict

_cached_secrets: dict[str, str] = {}


def _resolve_secret(env_var: str, arn_var: str) -> str:
    """Fetch a secret from the environment or Secrets Manager at runtime, with caching."""
    if env_var in _cached_secrets:
        return _cached_secrets[env_var]

    # Local dev: use env var directly
    direct = environ.get(env_var, "")
    if direct:
        _cached_secrets[env_var] = direct
        return direct

    # Deployed: fetch from Secrets Manager by ARN
    arn = environ.get(arn_var, "")
    if not arn:
        return ""

    client = boto3.client("secretsmanager")
    _cached_secrets[env_var] = client.get_secret_value(SecretId=arn)["SecretString"]
    return _cached_secrets[env_var]


class Config(BaseModel):
    model_config = ConfigDict(frozen=True)

    aws_region: str
    aurora_host: str
    aurora_port: int
    aurora_database: str
    aurora_user: str
    aurora_password: str
    aurora_secret_arn: str | None = None
    database_url: str | None = None
    stripe_secret_key: str = ""
    stripe_webhook_secret: str = ""
    stripe_currency: str = "lkr"
    stripe_minimum_charge: Decimal = Decimal("0.50")
    app_url: str = "http://localhost:3000"
    clerk_secret_key: str = ""
    otp_ttl_minutes: int = 30
    otp_length: int = 4
    geohash_precision: int = 5
    geohash_match_precision: int = 3
    environment: str


_cached_config: Config | None = None


def _reset_config() -> None:
    """Reset cached config — for testing only."""
    global _cached_config
    _cached_config = None
    _cached_secrets.clear()


def get_config() -> Config:
    global _cached_config
    if _cached_config is not None:
        return _cached_config

    _cached_config = Config(
        aws_region=environ.get("AWS_REGION", "us-east-1"),
        aurora_host=environ.get("AURORA_HOST", "localhost"),
        aurora_port=int(environ.get("AURORA_PORT", "5432")),
        aurora_database=environ.get("AURORA_DATABASE", "tripdesk"),
        aurora_user=environ.get("AURORA_USER", "tripdesk"),
        aurora_password=environ.get("AURORA_PASSWORD", "localdev"),
        aurora_secret_arn=environ.get("AURORA_SECRET_ARN"),
        database_url=environ.get("DATABASE_URL"),
        stripe_secret_key=_resolve_secret("STRIPE_SECRET_KEY", "STRIPE_SECRET_ARN"),
        stripe_webhook_secret=_resolve_secret("STRIPE_WEBHOOK_SECRET", "STRIPE_WEBHOOK_SECRET_ARN"),
        stripe_currency=environ.get("STRIPE_CURRENCY", "lkr"),
        stripe_minimum_charge=Decimal(environ.get("STRIPE_MINIMUM_CHARGE", "0.50")),
        app_url=environ.get("APP_URL", "http://localhost:3000").rstrip("/"),
        clerk_secret_key=_resolve_secret("CLERK_SECRET_KEY", "CLERK_SECRET_ARN"),
        otp_ttl_minutes=int(environ.get("OTP_TTL_MINUTES", "30")),
        otp_length=int(environ.get("OTP_LENGTH", "4")),
        geohash_precision=int(environ.get("GEOHASH_PRECISION", "5")),
        geohash_match_precision=int(environ.get("GEOHASH_MATCH_PRECISION", "3")),
        environment=environ.get("ENVIRONMENT", "local"),
    )
    return _cached_config
