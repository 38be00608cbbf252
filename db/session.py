"""
db/session.py

Engine and session factory shared by the API, the RQ worker and the
record-writer threads.
"""

from __future__ import annotations

import os
from functools import lru_cache

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from db.config import resolve_database_url


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None:
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _env_flag(name: str) -> bool:
    return os.getenv(name, "").strip().lower() in {"1", "true", "yes", "on"}


def _default_pool_size() -> int:
    # One connection per record-writer thread plus the tracker session.
    return max(1, _env_int("CSV_INGEST_WRITE_CONCURRENCY", 8)) + 1


def create_db_engine(database_url: str | None = None) -> Engine:
    url = database_url or resolve_database_url()
    if not url.startswith("postgresql"):
        raise RuntimeError("Only PostgreSQL URLs are supported.")

    return create_engine(
        url,
        echo=_env_flag("SQL_ECHO"),
        pool_pre_ping=True,
        pool_recycle=_env_int("DB_POOL_RECYCLE", 1800),
        pool_size=_env_int("DB_POOL_SIZE", _default_pool_size()),
        max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
    )


@lru_cache(maxsize=1)
def get_engine() -> Engine:
    """Process-wide engine, created on first use (after an RQ fork)."""
    return create_db_engine()


def build_session_factory(engine: Engine) -> sessionmaker[Session]:
    # Trackers and records are read after commit, so instances must not expire.
    return sessionmaker(
        bind=engine,
        class_=Session,
        autoflush=False,
        expire_on_commit=False,
    )


@lru_cache(maxsize=1)
def _default_session_factory() -> sessionmaker[Session]:
    return build_session_factory(get_engine())


def SessionLocal() -> Session:
    """Lazy session factory. Drop-in replacement for a sessionmaker() call."""
    return _default_session_factory()()

