"""
Schema management for the ``users`` and ``accounts`` tables.

    python -m carte.db.create_tables           # create missing tables
    python -m carte.db.create_tables --drop    # drop, then recreate
"""
from __future__ import annotations

import argparse
from typing import Optional, Sequence

from sqlalchemy.exc import SQLAlchemyError

from carte.core.log import logger, setup_logging
from . import models  # noqa: F401  # registers the tables on Base.metadata
from .session import Base, get_engine


def create_all() -> list[str]:
    """Create any missing tables; returns the names of the managed tables."""
    Base.metadata.create_all(bind=get_engine())
    return sorted(Base.metadata.tables)


def drop_all() -> None:
    Base.metadata.drop_all(bind=get_engine())


def main(argv: Optional[Sequence[str]] = None) -> None:
    ap = argparse.ArgumentParser(description="Create the account schema")
    ap.add_argument("--drop", action="store_true", help="Drop existing tables before creating them")
    args = ap.parse_args(argv)

    setup_logging()
    try:
        if args.drop:
            drop_all()
            logger.warning("Dropped account tables")
        tables = create_all()
    except SQLAlchemyError as exc:
        raise SystemExit(f"Schema setup failed: {exc}") from exc
    logger.info("Account schema ready: {}", ", ".join(tables))


if __name__ == "__main__":
    main()
