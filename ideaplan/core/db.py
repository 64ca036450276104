from pathlib import Path
import logging

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.engine.url import make_url
from sqlalchemy.orm import DeclarativeBase
from sqlalchemy.pool import StaticPool

logger = logging.getLogger(__name__)


class Base(DeclarativeBase):
    pass


def create_db_engine(database_url: str) -> Engine:
    """
    Create the SQLAlchemy engine, ensuring SQLite file paths are ready beforehand.

    On a clean checkout the `./data/` directory may not exist yet, which would
    cause an OperationalError on first connect. We create the directory when we
    detect a SQLite file URL. In-memory SQLite gets a static pool so every
    session sees the same database.
    """
    try:
        url = make_url(database_url)
        if url.get_backend_name() == "sqlite":
            database = url.database
            if not database or database == ":memory:":
                return create_engine(
                    database_url,
                    connect_args={"check_same_thread": False},
                    poolclass=StaticPool,
                )
            db_path = Path(database).expanduser()
            db_path.parent.mkdir(parents=True, exist_ok=True)
            # Allow usage across threads when FastAPI runs sync handlers in a pool
            return create_engine(
                database_url,
                pool_pre_ping=True,
                connect_args={"check_same_thread": False},
            )

        return create_engine(database_url, pool_pre_ping=True)
    except Exception as e:
        logger.error(f"Failed to create database engine: {e}", exc_info=True)
        raise


def init_schema(engine: Engine) -> None:
    """Create all tables. Safe to call more than once."""
    # Import models so they're registered with Base
    from ideaplan.database import models  # noqa: F401

    Base.metadata.create_all(bind=engine)
