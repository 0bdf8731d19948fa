"""
SQLAlchemy engine and per-operation sessions for the account stores.

One engine per process, built lazily from ``DATABASE_URL``. Stores open a
short session per call through :func:`get_session` and never share it.
"""
from __future__ import annotations

from contextlib import contextmanager
from functools import lru_cache
from typing import Any, Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool

from carte.core.config import get_settings

Base = declarative_base()


def _engine_options(url: str) -> dict[str, Any]:
    parsed = make_url(url)
    if parsed.get_backend_name() != "sqlite":
        return {"pool_pre_ping": True, "pool_timeout": 10}
    options: dict[str, Any] = {"connect_args": {"check_same_thread": False}}
    if parsed.database in (None, "", ":memory:"):
        # a private in-memory database only lives as long as its one connection
        options["poolclass"] = StaticPool
    return options


@lru_cache
def get_engine() -> Engine:
    url = (get_settings().database_url or "").strip()
    if not url:
        raise RuntimeError("DATABASE_URL is empty; the account stores need a database.")
    return create_engine(url, future=True, **_engine_options(url))


@lru_cache
def _get_sessionmaker() -> sessionmaker:
    # Stores hand detached rows back to the service, so attributes must stay loaded.
    return sessionmaker(bind=get_engine(), autoflush=False, expire_on_commit=False, future=True)


def reset_engine() -> None:
    """Dispose the cached engine so the next session picks up current settings."""
    if get_engine.cache_info().currsize:
        get_engine().dispose()
    _get_sessionmaker.cache_clear()
    get_engine.cache_clear()


@contextmanager
def get_session() -> Iterator[Session]:
    session: Session = _get_sessionmaker()()
    try:
        yield session
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
