"""
Database connection, session management and store construction.

The configured backend decides whether the student collection lives in a
SQLite key-value table or in process memory.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from .config import StoreConfig, get_settings
from .logging import get_logger
from .models import Base
from .store import InMemoryStudentStore, SqlStudentStore, StudentStore

logger = get_logger(__name__)


def create_database_engine(config: StoreConfig | None = None) -> Engine:
    """
    Create SQLAlchemy engine with proper configuration.

    ``:memory:`` databases share one connection so every session sees the
    same tables.

    Example:
        >>> engine = create_database_engine(StoreConfig(sqlite_path=":memory:"))
    """
    if config is None:
        config = get_settings().store

    connection_url = config.get_connection_url()
    engine_options: dict[str, Any] = config.get_engine_options()
    engine_options["connect_args"] = {"check_same_thread": False}
    if config.sqlite_path == ":memory:":
        engine_options["poolclass"] = StaticPool

    logger.info("Creating database engine for %s", connection_url)

    try:
        engine = create_engine(connection_url, **engine_options)
        logger.info("Database engine created successfully")
        return engine
    except Exception as e:
        logger.error("Failed to create database engine: %s", e)
        raise


def create_session_factory(engine: Engine | None = None) -> sessionmaker:
    """
    Create SQLAlchemy session factory.

    Example:
        >>> SessionLocal = create_session_factory(engine)
        >>> with SessionLocal() as session:
        ...     pass
    """
    if engine is None:
        engine = create_database_engine()

    return sessionmaker(
        bind=engine, autoflush=False, autocommit=False, expire_on_commit=False, future=True
    )


def initialise_database(engine: Engine) -> None:
    """Create the key-value table if it does not exist yet."""
    Base.metadata.create_all(engine)
    logger.info("Database schema ready")


def build_store(config: StoreConfig | None = None) -> StudentStore:
    """
    Build the student store for the configured backend.

    Example:
        >>> store = build_store(StoreConfig(backend="memory"))
        >>> store.load()
        []
    """
    if config is None:
        config = get_settings().store

    if config.backend == "memory":
        logger.info("Using in-memory student store")
        return InMemoryStudentStore()

    engine = create_database_engine(config)
    initialise_database(engine)
    return SqlStudentStore(create_session_factory(engine), storage_key=config.storage_key)
