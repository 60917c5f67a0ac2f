"""Database connection and session management for floating-tasks.

SQLite by default (a single local file next to the app). Any SQLAlchemy URL can be
supplied through `DATABASE_URL`.
"""

import os

from dotenv import load_dotenv
from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import declarative_base, sessionmaker

load_dotenv()

# Database URL - SQLite by default
DATABASE_URL = os.getenv("DATABASE_URL", "sqlite:///./floatingtasks.db")


def _is_sqlite_url(database_url: str) -> bool:
    return "sqlite" in (database_url or "")


def get_engine_kwargs(database_url: str) -> dict:
    """Return deterministic create_engine kwargs for a DB URL.

    This is separated to allow deterministic unit testing without connecting.
    """
    engine_kwargs: dict = {
        "echo": os.getenv("DEBUG", "False").lower() == "true",
        "pool_pre_ping": True,
    }

    if _is_sqlite_url(database_url):
        # The callback server and the poller share one process.
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        return engine_kwargs

    engine_kwargs["pool_size"] = int(os.getenv("DB_POOL_SIZE", "5"))
    engine_kwargs["max_overflow"] = int(os.getenv("DB_MAX_OVERFLOW", "5"))
    engine_kwargs["pool_timeout"] = int(os.getenv("DB_POOL_TIMEOUT_SEC", "30"))
    return engine_kwargs


def build_engine(database_url: str) -> Engine:
    return create_engine(database_url, **get_engine_kwargs(database_url))


# Create engine (module-level singleton)
engine = build_engine(DATABASE_URL)


@event.listens_for(Engine, "connect")
def set_sqlite_pragmas(dbapi_conn, connection_record):
    """Enable WAL on SQLite connections so reads are not blocked by the periodic saves."""
    if _is_sqlite_url(DATABASE_URL):
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()


# Create session factory
SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

# Base class for declarative models
Base = declarative_base()


def init_db(bind: Engine = None) -> None:
    """Create the schema if it does not exist."""
    # Import models so they register on Base.metadata.
    from floatingtasks.database import models  # noqa: F401

    Base.metadata.create_all(bind=bind or engine)
