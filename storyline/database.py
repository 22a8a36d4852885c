"""STORYLINE — Local Store Engine."""

from sqlalchemy.engine import Engine
from sqlmodel import SQLModel, create_engine
from sqlalchemy import text

from storyline.core.logging import get_logger

# Registers the table on SQLModel.metadata
from storyline.models.store_models import KeyValueBlob  # noqa: F401

logger = get_logger("database")


def create_store_engine(db_url: str) -> Engine:
    """Build an engine for the local key/value store."""
    engine_kwargs: dict = {"echo": False}

    if db_url.startswith("sqlite"):
        # Store calls run in worker threads
        engine_kwargs["connect_args"] = {"check_same_thread": False}
        logger.info(f"📦 Store backend: SQLite ({db_url})")
    else:
        engine_kwargs["pool_pre_ping"] = True
        logger.info("🐘 Store backend: external database")

    return create_engine(db_url, **engine_kwargs)


def check_connection(engine: Engine) -> bool:
    """Test the store connection with SELECT 1."""
    try:
        with engine.connect() as conn:
            conn.execute(text("SELECT 1"))
            conn.commit()
        return True
    except Exception as e:
        logger.error(f"❌ Store connection test: FAILED: {e}")
        return False


def init_db(engine: Engine) -> None:
    """Create the store tables."""
    SQLModel.metadata.create_all(engine)
    logger.debug("Store tables ready")
