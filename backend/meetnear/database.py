"""
Database connection and session management.
Handles SQLAlchemy setup, connection pooling, and session lifecycle.
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import Any, Dict, Generator

from sqlalchemy import create_engine, text
from sqlalchemy.engine import make_url
from sqlalchemy.orm import sessionmaker, Session

from .config import settings
from .errors import DomainError

logger = logging.getLogger(__name__)


def _engine_options(dsn: str) -> Dict[str, Any]:
    """
    Pool options per backend.
    - Postgres: bounded QueuePool, pre-ping to heal stale connections
    - SQLite (dev/tests): connections are shared across the request threadpool
    """
    if dsn.startswith("sqlite"):
        return {"connect_args": {"check_same_thread": False}}
    return {
        "pool_size": 20,
        "max_overflow": 30,
        "pool_pre_ping": True,
        "pool_recycle": 3600,
    }


# ---- Engine ----
engine = create_engine(
    settings.DATABASE_URL,
    future=True,
    echo=settings.SQL_ECHO,
    **_engine_options(settings.DATABASE_URL),
)

# ---- Session factory ----
# expire_on_commit=False keeps attributes accessible after the request commits
SessionLocal = sessionmaker(
    bind=engine,
    autocommit=False,
    autoflush=False,
    expire_on_commit=False,
    future=True,
)

from .models import Base  # noqa: E402


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI dependency that yields a DB session.
    - On normal exit: commits.
    - On exception: rollbacks.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except DomainError:
        # rule violations are raised before any write; the app handler logs them
        db.rollback()
        raise
    except Exception as e:
        logger.error(f"Database session error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


@contextmanager
def get_db_context() -> Generator[Session, None, None]:
    """
    Context manager for manual session management (scripts, tasks).
    Mirrors get_db() semantics.
    """
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception as e:
        logger.error(f"Database context error: {e}")
        db.rollback()
        raise
    finally:
        db.close()


def create_all() -> None:
    """Create every table directly from the models (tests, local SQLite)."""
    Base.metadata.create_all(bind=engine)


def drop_all() -> None:
    Base.metadata.drop_all(bind=engine)


def redacted_dsn(dsn: str) -> str:
    """
    Redact password in a DATABASE_URL for safe logging.
    """
    try:
        url = make_url(dsn)
        if url.password is None:
            return str(url)
        return url.set(password="***").render_as_string(hide_password=False)
    except Exception:
        return "<unparsable DSN>"


def log_where_am_i() -> None:
    """
    Open a short-lived connection and log which backend we actually hit.
    Safe to call in app startup.
    """
    ds = redacted_dsn(settings.DATABASE_URL)
    with SessionLocal() as db:
        try:
            db.execute(text("SELECT 1"))
            logger.warning(f"DB connected -> dsn={ds} | dialect={engine.dialect.name}")
        except Exception as e:
            logger.error(f"DB introspection failed for dsn={ds}: {e}")
