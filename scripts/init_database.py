#!/usr/bin/env python3
"""
Initialize the Campus Library database.

This script:
1. Creates all database tables
2. Optionally loads demo data
3. Verifies the expected tables exist

Usage:
    python scripts/init_database.py [--drop-existing] [--sample-data]
"""

import argparse
import logging
import sys

from sqlalchemy import inspect

from campus_circulation.database import get_db_manager
from campus_circulation.database.seed import ADMIN_EMAIL, ADMIN_PASSWORD, seed_database

logging.basicConfig(
    level=logging.INFO, format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)
logger = logging.getLogger(__name__)

EXPECTED_TABLES = {"users", "books", "transactions"}


def main():
    """Main entry point for database initialization."""
    parser = argparse.ArgumentParser(description="Initialize the Campus Library database")
    parser.add_argument(
        "--drop-existing",
        action="store_true",
        help="Drop existing tables before creating new ones",
    )
    parser.add_argument(
        "--sample-data",
        action="store_true",
        help="Load demo users, books and loans after creating tables",
    )
    parser.add_argument(
        "--database-url",
        help="Override default database URL",
    )

    args = parser.parse_args()

    db_manager = get_db_manager(args.database_url)

    if not db_manager.verify_connection():
        logger.error("Failed to connect to database")
        sys.exit(1)

    try:
        db_manager.init_database(drop_existing=args.drop_existing)

        tables = set(inspect(db_manager.engine).get_table_names())
        logger.info("Tables: %s", ", ".join(sorted(tables)))

        missing_tables = EXPECTED_TABLES - tables
        if missing_tables:
            logger.error("Missing expected tables: %s", missing_tables)
            sys.exit(1)

        if args.sample_data:
            with db_manager.session_scope() as session:
                summary = seed_database(session)
            logger.info(
                "Loaded %d staff, %d books and %d loans. Admin login: %s / %s",
                summary["staff"],
                summary["books"],
                summary["loans"],
                ADMIN_EMAIL,
                ADMIN_PASSWORD,
            )

        logger.info("Database initialization complete")

    except Exception:
        logger.exception("Database initialization failed")
        sys.exit(1)
    finally:
        db_manager.close()


if __name__ == "__main__":
    main()
