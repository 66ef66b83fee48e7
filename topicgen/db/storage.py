import logging
from functools import lru_cache
from typing import Generator

from sqlalchemy import create_engine, event
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session, declarative_base

from topicgen.config import get_settings

logger = logging.getLogger(__name__)

# Base class for SQLAlchemy models
Base = declarative_base()


def create_db_engine(database_url: str, **kwargs) -> Engine:
    """
    Create a SQLAlchemy engine.

    For SQLite, pysqlite's implicit transaction handling is replaced with
    explicit BEGIN so that schema changes run inside the same transaction
    as data changes and roll back together.
    """
    logger.debug(f"Creating database engine for URL: {database_url}")
    is_sqlite = database_url.startswith("sqlite")
    if is_sqlite:
        # check_same_thread=False is required for SQLite to work with FastAPI
        kwargs.setdefault("connect_args", {"check_same_thread": False})

    engine = create_engine(database_url, echo=False, **kwargs)

    if is_sqlite:

        @event.listens_for(engine, "connect")
        def _disable_pysqlite_transactions(dbapi_connection, connection_record):
            dbapi_connection.isolation_level = None

        @event.listens_for(engine, "begin")
        def _begin_transaction(conn):
            conn.exec_driver_sql("BEGIN")

    return engine


def create_session_factory(engine: Engine) -> sessionmaker:
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


def init_db(engine: Engine) -> int:
    """
    Initialize the database by applying pending schema migrations.

    Returns:
        Schema version after migration
    """
    from topicgen.db.migrations import run_migrations

    try:
        version = run_migrations(engine)
        logger.info(f"Database initialized (schema version {version})")
        return version
    except Exception as e:
        logger.error(f"Failed to initialize database: {e}")
        raise


@lru_cache
def get_session_factory() -> sessionmaker:
    """Process-wide session factory built from settings, migrated on first use."""
    settings = get_settings()
    engine = create_db_engine(settings.database_url)
    init_db(engine)
    return create_session_factory(engine)


def get_db() -> Generator[Session, None, None]:
    """
    Dependency to get database session.
    Yields a session and ensures it's closed after use.
    """
    db = get_session_factory()()
    try:
        yield db
    finally:
        db.close()
