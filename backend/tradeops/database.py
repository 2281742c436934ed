"""Engine, session factory and declarative base.

Postgres (psycopg3) in deployed environments, SQLite for local work and the
test suite. Pool sizing and timeouts come from ``DB_*`` environment variables
so the same image runs behind a session pooler or a transaction pooler.
"""

import os
from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine, text
from sqlalchemy.orm import Session, declarative_base, sessionmaker
from sqlalchemy.pool import NullPool

from tradeops.config import settings

db_url = str(settings.database_url)
is_postgres = db_url.startswith("postgresql")
is_sqlite = db_url.startswith("sqlite")


def _env_int(key: str, default: int) -> int:
    raw = os.getenv(key)
    if raw is None or not raw.strip():
        return default
    return int(raw)


def _env_flag(key: str) -> bool:
    return os.getenv(key, "").strip().lower() in {"1", "true", "yes", "y", "on"}


def engine_options(url: str) -> dict:
    """Keyword arguments for ``create_engine`` given a database URL."""
    options: dict = {"future": True}

    if url.startswith("sqlite"):
        # Sync routes run in the threadpool.
        options["connect_args"] = {"check_same_thread": False}
        return options

    if not url.startswith("postgresql"):
        return options

    options["pool_pre_ping"] = True
    options["connect_args"] = {"connect_timeout": _env_int("DB_CONNECT_TIMEOUT_SECONDS", 10)}
    if _env_flag("DB_USE_NULL_POOL"):
        # Transaction poolers do not tolerate client-side pooling.
        options["poolclass"] = NullPool
    else:
        options.update(
            pool_size=_env_int("DB_POOL_SIZE", 5),
            max_overflow=_env_int("DB_MAX_OVERFLOW", 10),
            pool_timeout=_env_int("DB_POOL_TIMEOUT_SECONDS", 30),
            pool_recycle=_env_int("DB_POOL_RECYCLE_SECONDS", 1800),
        )
    return options


engine = create_engine(db_url, **engine_options(db_url))
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine, future=True)
Base = declarative_base()


def _apply_statement_timeout(db: Session) -> None:
    if not is_postgres:
        return
    timeout_ms = _env_int("DB_STATEMENT_TIMEOUT_MS", 5000)
    if timeout_ms > 0:
        db.execute(text(f"SET statement_timeout = {timeout_ms}"))


def get_db() -> Iterator[Session]:
    db = SessionLocal()
    try:
        _apply_statement_timeout(db)
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Iterator[Session]:
    """Standalone session for startup hooks and scripts; rolls back on error."""
    db = SessionLocal()
    try:
        yield db
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
