"""MigrateFunction handler: upgrades the database schema to the latest revision."""

from typing import Any

from core.services.migration import run_migrations


def handler(event: dict[str, Any], context: object) -> dict[str, Any]:
    revision = (event or {}).get("revision", "head")
    result = run_migrations(revision=revision)
    return {"statusCode": 200, "body": result}
