#!/usr/bin/env python3
"""Create the booking tables in a local PostgreSQL database.

Builds the schema straight from the ORM models, for local development and the
integration tests. Deployed databases are migrated with Alembic instead.

Usage:
    python scripts/create_local_tables.py            # create missing tables
    python scripts/create_local_tables.py --reset    # drop and recreate
"""

import sys
from pathlib import Path

from sqlalchemy.exc import OperationalError

# Add src to path for config import
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from core.config import get_config
from core.db import Base, Database


def main():
    """Create all booking tables."""
    config = get_config()
    reset = "--reset" in sys.argv[1:]

    db = Database(config)
    try:
        db.connect()
        print(f"Creating tables on {db.engine.url.render_as_string(hide_password=True)}...")
        print()

        if reset:
            Base.metadata.drop_all(db.engine)
            print("✓ Dropped existing tables")

        Base.metadata.create_all(db.engine)
        for table in Base.metadata.sorted_tables:
            print(f"✓ {table.name}")
    except OperationalError as e:
        print(f"✗ Could not reach the database: {e.orig}")
        sys.exit(1)
    finally:
        db.disconnect()

    print()
    print("✅ All tables ready")


if __name__ == "__main__":
    main()
