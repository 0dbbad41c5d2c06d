# src/confessio/scripts/migrate.py
"""Apply Alembic migrations for the confession store."""
from __future__ import annotations

import argparse
import logging
from pathlib import Path

from alembic import command
from alembic.config import Config

from confessio.core.settings import settings

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parents[3] / "migrations"


def build_config() -> Config:
    cfg = Config(str(MIGRATIONS_DIR / "alembic.ini"))
    cfg.set_main_option("script_location", str(MIGRATIONS_DIR))
    cfg.set_main_option("sqlalchemy.url", settings.effective_database_url)
    return cfg


def run_upgrade(revision: str = "head") -> None:
    logger.info("Upgrading confession store to %s", revision)
    command.upgrade(build_config(), revision)


def run_create_all() -> None:
    """Create tables straight from the ORM metadata, skipping Alembic."""
    from confessio.db.session import create_tables

    create_tables()
    logger.info("Created tables for %s", settings.effective_database_url)


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(description="Prepare the confession store")
    parser.add_argument("--revision", default="head", help="Alembic revision to upgrade to")
    parser.add_argument(
        "--create-all",
        action="store_true",
        help="Create tables from the models instead of running migrations (development only)",
    )
    args = parser.parse_args(argv)

    logging.basicConfig(level=settings.log_level.upper())
    if args.create_all:
        run_create_all()
    else:
        run_upgrade(args.revision)


if __name__ == "__main__":
    main()
