"""Database connection and session management."""

import logging
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import create_engine, event, text
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from weekly_picks.config import load_settings

# Load settings
settings = load_settings()
logger = logging.getLogger(__name__)

# Create database engine (lazy initialization)
engine = None
SessionLocal = None


def normalize_database_url(database_url: str) -> str:
    """Standardize PostgreSQL URLs on the psycopg3 driver."""
    if "postgresql+psycopg2://" in database_url:
        return database_url.replace("postgresql+psycopg2://", "postgresql+psycopg://")
    if "postgresql+pg8000://" in database_url:
        return database_url.replace("postgresql+pg8000://", "postgresql+psycopg://")
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+psycopg://")
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+psycopg://")
    return database_url


def enable_sqlite_savepoints(sqlite_engine: Engine) -> None:
    """Let pysqlite honour BEGIN/SAVEPOINT as emitted by SQLAlchemy.

    The driver otherwise opens transactions on its own schedule, which breaks
    ``Session.begin_nested()``. Foreign keys are switched on for the same
    connections so ON DELETE rules behave like PostgreSQL.
    """

    @event.listens_for(sqlite_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    @event.listens_for(sqlite_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")


def build_engine(database_url: str) -> Engine:
    """Create an engine for ``database_url`` with driver-specific settings."""
    database_url = normalize_database_url(database_url)

    if database_url.startswith("sqlite"):
        sqlite_engine = create_engine(
            database_url,
            echo=settings.get("LOG_LEVEL") == "DEBUG",
            connect_args={"check_same_thread": False},
        )
        enable_sqlite_savepoints(sqlite_engine)
        return sqlite_engine

    return create_engine(
        database_url,
        echo=settings.get("LOG_LEVEL") == "DEBUG",
        pool_pre_ping=True,
        pool_recycle=1800,  # 30 minutes
        pool_timeout=20,
        pool_size=10,
        max_overflow=20,
        connect_args={
            "application_name": "weekly_picks",
            "connect_timeout": 10,
            "options": "-c timezone=UTC"
        },
        isolation_level="READ_COMMITTED"
    )


def init_database():
    """Initialize database connection."""
    global engine, SessionLocal

    if engine is None:
        database_url = settings.get("DATABASE_URL")
        if not database_url:
            raise RuntimeError("DATABASE_URL not found in environment or config")

        logger.info(f"Using database driver: {make_url(normalize_database_url(database_url)).drivername}")

        try:
            engine = build_engine(database_url)

            # Test the connection immediately
            with engine.connect() as test_conn:
                test_conn.execute(text("SELECT 1"))
                logger.info("Database connection test successful")

        except Exception as engine_error:
            logger.error(f"Database engine creation failed: {engine_error}")
            engine = None
            raise RuntimeError(f"Cannot create database engine: {engine_error}") from engine_error

        SessionLocal = sessionmaker(
            bind=engine,
            autoflush=False,
            expire_on_commit=False,
        )

        logger.info("Database engine and session factory created successfully")

    return engine, SessionLocal

# Base class for all models
Base = declarative_base()


def get_db() -> Generator[Session, None, None]:
    """Dependency for getting database session."""
    _, session_factory = init_database()
    db = session_factory()
    try:
        yield db
    finally:
        db.close()


@contextmanager
def get_db_session() -> Generator[Session, None, None]:
    """Context manager for database session."""
    _, session_factory = init_database()
    db = session_factory()
    try:
        yield db
        db.commit()
    except Exception:
        db.rollback()
        raise
    finally:
        db.close()


def get_engine():
    """Get the database engine."""
    engine, _ = init_database()
    return engine
