"""SQLite database setup and connection."""
import logging
from pathlib import Path
from typing import Optional

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from wantarr.errors import CacheError

logger = logging.getLogger(__name__)

# Global engine and session factory
engine: Optional[Engine] = None
SessionLocal: Optional[sessionmaker] = None

MEMORY = ":memory:"


def init_db(db_path: str = "wantarr.db") -> sessionmaker:
    """Initialize database connection and create tables.

    ``":memory:"`` gives a private in-memory database shared by every session
    of this process.
    """
    global engine, SessionLocal

    if db_path == MEMORY:
        url = "sqlite://"
    else:
        path = Path(db_path)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise CacheError(f"Cannot create database directory {path.parent}: {e}") from e
        url = f"sqlite:///{path}"
    logger.info(f"Initializing database at: {db_path}")

    try:
        engine = create_engine(
            url,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
            echo=False,
        )

        SessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

        # Create tables
        from wantarr.db.models import Base
        Base.metadata.create_all(bind=engine)
        logger.debug("Database initialized successfully")
    except SQLAlchemyError as e:
        logger.error(f"Failed to initialize database at {db_path}: {str(e)}")
        raise CacheError(f"Failed opening database file {db_path}: {e}") from e
    return SessionLocal


def get_db_sync() -> Session:
    """Get database session (synchronous)."""
    if SessionLocal is None:
        raise CacheError("Database not initialized. Call init_db() first.")
    return SessionLocal()


def close_db() -> None:
    """Dispose of the engine opened by init_db()."""
    global engine, SessionLocal
    if engine is not None:
        engine.dispose()
    engine = None
    SessionLocal = None
