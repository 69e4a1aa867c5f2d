#!/usr/bin/env python3
"""
Create (or check) the message queue table on the database in settings.

Usage:
    python scripts/migrate_db.py            # create missing tables and indexes
    python scripts/migrate_db.py --check    # report only, change nothing

MESSAGE_QUEUE_CONFIG selects a settings file other than config/settings.yaml.
"""
import argparse
import asyncio
import os
import sys

# Ensure app root is on path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))


def _table_names(sync_conn) -> set[str]:
    from sqlalchemy import inspect
    return set(inspect(sync_conn).get_table_names())


async def run_migration(check_only: bool = False) -> int:
    """Return 0 when every model table exists afterwards, 1 otherwise."""
    from config.logging_setup import configure_logging
    from config.settings import load_settings
    configure_logging(load_settings())

    from database.models import Base
    from database.session import close_db, get_engine, init_db

    engine = get_engine()
    wanted = set(Base.metadata.tables)

    try:
        if not check_only:
            await init_db(engine)

        async with engine.connect() as conn:
            existing = await conn.run_sync(_table_names)

        print(f"Database: {engine.dialect.name} ({engine.url.render_as_string(hide_password=True)})")
        print(f"Tables defined: {', '.join(sorted(wanted))}")
        print(f"Tables existing: {', '.join(sorted(existing)) or '(none)'}")

        missing = wanted - existing
        if missing:
            print(f"Tables MISSING: {', '.join(sorted(missing))}")
            print("Run without --check to create them.")
            return 1
        print("All tables exist." if check_only else "Migration complete.")
        return 0
    finally:
        await close_db()


def main():
    parser = argparse.ArgumentParser(description="Message queue database migration")
    parser.add_argument("--check", action="store_true", help="Check status only")
    args = parser.parse_args()

    sys.exit(asyncio.run(run_migration(check_only=args.check)))


if __name__ == "__main__":
    main()
