"""
Database setup with SQLAlchemy ORM
"""
from sqlalchemy import create_engine, event
from sqlalchemy.orm import declarative_base, sessionmaker
from sqlalchemy.pool import StaticPool
from contextlib import contextmanager
from typing import Optional
import logging

from .config import settings
from .exceptions import StorageUnavailableError

logger = logging.getLogger(__name__)

# Base class for models
Base = declarative_base()

engine = None
SessionLocal: Optional[sessionmaker] = None


def _engine_kwargs(url: str) -> dict:
    if url.startswith("sqlite"):
        kwargs = {"connect_args": {"check_same_thread": False}}
        if ":memory:" in url or url in ("sqlite://", "sqlite:///"):
            kwargs["poolclass"] = StaticPool
        return kwargs
    return {
        "pool_pre_ping": True,
        "pool_size": 5,
        "max_overflow": 10,
    }


def configure_engine(url: Optional[str] = None, echo: Optional[bool] = None):
    """(Re)create the engine and session factory for the given URL"""
    global engine, SessionLocal

    url = settings.STORAGE_URL if url is None else url
    echo = settings.STORAGE_ECHO if echo is None else echo

    if not url:
        engine = None
        SessionLocal = None
        logger.warning("STORAGE_URL is empty - key-value store not configured")
        return None

    engine = create_engine(url, echo=echo, **_engine_kwargs(url))
    SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

    if url.startswith("sqlite"):
        @event.listens_for(engine, "connect")
        def set_sqlite_pragma(dbapi_conn, connection_record):
            cursor = dbapi_conn.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.close()

    return engine


@contextmanager
def get_db_context():
    """
    Context manager for database sessions.
    Usage: with get_db_context() as db: ...
    """
    if SessionLocal is None:
        raise StorageUnavailableError("Key-value store is not configured")

    db = SessionLocal()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def init_db():
    """Initialize database - create all tables"""
    if engine is None:
        logger.warning("Skipping database init: storage not configured")
        return False

    try:
        from .models.kv_entry import KVEntry  # noqa: F401
        Base.metadata.create_all(bind=engine)
        logger.info("Database initialized successfully")
        return True
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


configure_engine()
