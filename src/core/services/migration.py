"""Run Alembic migrations programmatically, invoked via the MigrateFunction Lambda."""

import io
import logging
import os
from pathlib import Path

from alembic.config import Config

from alembic import command

logger = logging.getLogger(__name__)

# Lambda bundles alembic.ini and alembic/ at the task root
DEFAULT_ROOT = "/var/task"


def _alembic_config(root: str) -> Config:
    cfg = Config(str(Path(root) / "alembic.ini"))
    cfg.set_main_option("script_location", str(Path(root) / "alembic"))
    return cfg


def run_migrations(revision: str = "head", root: str | None = None) -> dict[str, str]:
    """Upgrade the database to ``revision``.

    Connection details come from ``core.config`` inside alembic/env.py, so a
    deployed function only needs AURORA_SECRET_ARN (or DATABASE_URL) set.
    """
    cfg = _alembic_config(root or os.environ.get("MIGRATIONS_ROOT", DEFAULT_ROOT))

    stderr_buf = io.StringIO()
    stream_handler = logging.StreamHandler(stderr_buf)
    alembic_logger = logging.getLogger("alembic")
    alembic_logger.addHandler(stream_handler)

    try:
        command.upgrade(cfg, revision)
        output = stderr_buf.getvalue()
        logger.info("Migration to %s complete: %s", revision, output)
        return {"status": "success", "revision": revision, "output": output}
    except Exception as e:
        logger.error("Migration to %s failed: %s", revision, e)
        raise
    finally:
        alembic_logger.removeHandler(stream_handler)
