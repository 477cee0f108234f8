"""
Database engine construction.

The engine is created explicitly and handed to the stores that need it;
nothing in the package holds a process-wide connection.
"""

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine

from migrator.core.config import Settings
from migrator.log.logging import logger


def create_db_engine(url: str, echo: bool = False) -> Engine:
    """
    Create a SQLAlchemy engine for the ledger and migration scripts.

    Args:
        url: SQLAlchemy database URL.
        echo: Log every statement SQLAlchemy emits.

    Returns:
        A new Engine instance.
    """
    engine = create_engine(url, echo=echo, pool_pre_ping=True)
    logger.debug(
        "Database engine created",
        event_type="database_engine_created",
        dialect=engine.dialect.name,
    )
    return engine


def engine_from_settings(settings: Settings) -> Engine:
    """Create the database engine described by the settings."""
    return create_db_engine(settings.database_url, echo=settings.database_echo)
