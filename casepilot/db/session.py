"""
Database Session Management
===========================

One engine per DATABASE_URL, rebuilt when the variable changes so a test can
point the app at its own SQLite file. Request handlers get a session through
`get_db()`; scripts and startup hooks use `session_scope()`.
"""

import logging
import os
from contextlib import contextmanager
from typing import Generator, Optional

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker
from sqlalchemy.pool import QueuePool

from .models import Base

logger = logging.getLogger(__name__)

DEFAULT_DATABASE_URL = "sqlite:///./casepilot.db"

_engine: Optional[Engine] = None
_engine_url: Optional[str] = None

# Unbound until get_engine() runs
SessionLocal = sessionmaker(autoflush=False, expire_on_commit=False)


def database_url() -> str:
    return os.environ.get("DATABASE_URL", DEFAULT_DATABASE_URL)


def _sqlite_pragmas(dbapi_connection, connection_record):
    # SQLite ships with foreign keys off
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def _build_engine(url: str) -> Engine:
    echo = os.environ.get("SQL_ECHO", "false").lower() == "true"
    if url.startswith("sqlite"):
        engine = create_engine(url, connect_args={"check_same_thread": False}, echo=echo)
        event.listen(engine, "connect", _sqlite_pragmas)
        return engine

    return create_engine(
        url,
        poolclass=QueuePool,
        pool_size=int(os.environ.get("DB_POOL_SIZE", "5")),
        max_overflow=10,
        pool_pre_ping=True,
        connect_args={"connect_timeout": int(os.environ.get("DB_CONNECT_TIMEOUT", "5"))},
        echo=echo,
    )


def get_engine() -> Engine:
    """Engine for the current DATABASE_URL; SessionLocal is rebound on change."""
    global _engine, _engine_url
    url = database_url()
    if _engine is None or _engine_url != url:
        if _engine is not None:
            _engine.dispose()
        _engine = _build_engine(url)
        _engine_url = url
        SessionLocal.configure(bind=_engine)
        logger.info(f"Database engine ready ({_engine.url.get_backend_name()})")
    return _engine


def reset_engine() -> None:
    """Dispose the engine and unbind SessionLocal (tests)."""
    global _engine, _engine_url
    if _engine is not None:
        _engine.dispose()
    _engine = None
    _engine_url = None
    SessionLocal.configure(bind=None)


def init_db() -> None:
    Base.metadata.create_all(bind=get_engine())


def drop_db() -> None:
    """Drop every table. Development only."""
    Base.metadata.drop_all(bind=get_engine())


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, services commit."""
    get_engine()
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    """
    Session that commits on success and rolls back on error.

    Usage:
        with session_scope() as db:
            db.query(Lawyer).count()
    """
    get_engine()
    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()
