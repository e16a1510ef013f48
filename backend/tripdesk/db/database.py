"""
Database connection and session management.
Pooled engine for PostgreSQL, single shared connection for SQLite.
"""

from sqlalchemy import create_engine, event
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import QueuePool, StaticPool
from typing import Generator
import json
import logging
import os

from tripdesk.core.config import settings
from tripdesk.db.models import Base

logger = logging.getLogger(__name__)

_is_sqlite = settings.database_url.startswith("sqlite")


def _json_dumps(value) -> str:
    # Keep non-ASCII destinations readable so text matching works on them
    return json.dumps(value, ensure_ascii=False)


def _enable_sqlite_pragmas(dbapi_conn, connection_record):
    cursor = dbapi_conn.cursor()
    cursor.execute("PRAGMA journal_mode=WAL")
    cursor.execute("PRAGMA synchronous=NORMAL")
    cursor.execute("PRAGMA foreign_keys=ON")
    cursor.close()


def build_engine(database_url: str):
    """Create an engine configured for the given backend."""
    if database_url.startswith("sqlite"):
        # Resolve relative path to the backend directory
        db_path = database_url.replace("sqlite:///", "")
        if db_path.startswith("./"):
            db_path = os.path.join(os.path.dirname(os.path.dirname(os.path.dirname(__file__))), db_path[2:])
            database_url = f"sqlite:///{db_path}"

        sqlite_engine = create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            json_serializer=_json_dumps,
            echo=False,
        )
        event.listen(sqlite_engine, "connect", _enable_sqlite_pragmas)
        return sqlite_engine

    pg_engine = create_engine(
        database_url,
        poolclass=QueuePool,
        pool_size=settings.database_pool_size,
        max_overflow=settings.database_max_overflow,
        pool_recycle=settings.database_pool_recycle,
        pool_pre_ping=settings.database_pool_pre_ping,
        pool_timeout=30,
        json_serializer=_json_dumps,
        echo=False,
        connect_args={
            "connect_timeout": 10,
            "options": "-c statement_timeout=30000",
            "application_name": "tripdesk",
        },
    )
    return pg_engine


engine = build_engine(settings.database_url)

SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """FastAPI dependency: one session per request, always closed."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def init_db() -> None:
    """Initialize database tables at startup."""
    logger.info(f"Initializing database schema ({'sqlite' if _is_sqlite else 'postgresql'})...")
    Base.metadata.create_all(bind=engine)
    logger.info("Database schema initialized")
