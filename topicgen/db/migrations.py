"""
Versioned Schema Migrations

Each step runs at most once, gated by the single row in `schema_version`.
All pending steps execute in one transaction; any failure rolls the whole
batch back and surfaces as MigrationError. Steps that reshape legacy
databases check the live schema with the SQLAlchemy inspector instead of
relying on driver error messages.
"""

import logging
from datetime import datetime, timezone
from typing import Callable, List, Tuple

from sqlalchemy import inspect, text
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import SQLAlchemyError

from topicgen.db import models  # noqa: F401  (registers tables on Base.metadata)
from topicgen.db.storage import Base
from topicgen.utils.helpers import to_iso_utc

logger = logging.getLogger(__name__)


class MigrationError(Exception):
    """Raised when pending migrations fail and have been rolled back."""

    pass


def _table_names(conn: Connection) -> List[str]:
    return inspect(conn).get_table_names()


def _column_names(conn: Connection, table: str) -> List[str]:
    return [column["name"] for column in inspect(conn).get_columns(table)]


def _create_base_schema(conn: Connection) -> None:
    """v1: create any missing tables. Existing tables are left as they are."""
    Base.metadata.create_all(bind=conn)


def _merge_groups_into_users(conn: Connection) -> None:
    """v2: bring pre-classification databases up to the users/mentions shape."""
    message_columns = _column_names(conn, "messages")
    if "thread_id" in message_columns and "thread_ts" not in message_columns:
        conn.execute(text("ALTER TABLE messages RENAME COLUMN thread_id TO thread_ts"))
        logger.info("Renamed messages.thread_id to thread_ts")
    if "mention_type" not in message_columns:
        conn.execute(text("ALTER TABLE messages ADD COLUMN mention_type TEXT"))
        logger.info("Added mention_type column to messages table")

    if "user_type" not in _column_names(conn, "users"):
        conn.execute(
            text(
                "ALTER TABLE users ADD COLUMN user_type TEXT NOT NULL DEFAULT 'user' "
                "CHECK (user_type IN ('user', 'group'))"
            )
        )
        logger.info("Added user_type column to users table")

    if "mention_type" not in _column_names(conn, "mentions"):
        conn.execute(
            text(
                "ALTER TABLE mentions ADD COLUMN mention_type TEXT NOT NULL DEFAULT 'user' "
                "CHECK (mention_type IN ('user', 'group'))"
            )
        )
        logger.info("Added mention_type column to mentions table")

    if "groups" not in _table_names(conn):
        logger.debug("No groups table, nothing to merge")
        return

    groups = conn.execute(text("SELECT group_id, group_name, handle FROM groups")).all()
    for group in groups:
        conn.execute(
            text(
                "INSERT OR REPLACE INTO users (user_id, user_name, nickname, user_type) "
                "VALUES (:user_id, :user_name, :nickname, 'group')"
            ),
            {
                "user_id": group.group_id,
                "user_name": group.group_name,
                "nickname": group.handle or group.group_name,
            },
        )
        conn.execute(
            text("UPDATE mentions SET mention_type = 'group' WHERE user_id = :user_id"),
            {"user_id": group.group_id},
        )
    conn.execute(text("DROP TABLE groups"))
    logger.info(f"Merged {len(groups)} groups into users table")


def _move_documents_to_topics(conn: Connection) -> None:
    """v3: copy legacy documents and their relations into topics."""
    tables = _table_names(conn)
    if "documents" not in tables:
        logger.debug("No documents table, nothing to move")
        return

    documents = conn.execute(
        text("SELECT id, name, created_at, updated_at FROM documents")
    ).all()
    for doc in documents:
        title = doc.name[:-3] if doc.name.endswith(".md") else doc.name
        conn.execute(
            text(
                "INSERT OR IGNORE INTO topics (id, title, file_name, created_at, updated_at) "
                "VALUES (:id, :title, :file_name, :created_at, :updated_at)"
            ),
            {
                "id": doc.id,
                "title": title.replace("-", " "),
                "file_name": doc.name,
                "created_at": doc.created_at,
                "updated_at": doc.updated_at,
            },
        )
    logger.info(f"Moved {len(documents)} documents to topics table")

    if "message_document_relations" in tables:
        result = conn.execute(
            text(
                "INSERT OR IGNORE INTO message_topic_relations (message_id, topic_id) "
                "SELECT message_id, document_id FROM message_document_relations"
            )
        )
        logger.info(f"Moved {result.rowcount} message-document relations")
        conn.execute(text("DROP TABLE message_document_relations"))

    conn.execute(text("DROP TABLE documents"))


MIGRATIONS: List[Tuple[int, str, Callable[[Connection], None]]] = [
    (1, "base schema", _create_base_schema),
    (2, "merge groups into users", _merge_groups_into_users),
    (3, "move documents to topics", _move_documents_to_topics),
]

LATEST_VERSION = MIGRATIONS[-1][0]


def get_schema_version(conn: Connection) -> int:
    """Current schema version, 0 for a database that was never migrated."""
    if "schema_version" not in _table_names(conn):
        return 0
    version = conn.execute(text("SELECT MAX(version) FROM schema_version")).scalar()
    return version or 0


def _set_schema_version(conn: Connection, version: int) -> None:
    conn.execute(text("DELETE FROM schema_version"))
    conn.execute(
        text("INSERT INTO schema_version (version, applied_at) VALUES (:version, :applied_at)"),
        {"version": version, "applied_at": to_iso_utc(datetime.now(timezone.utc))},
    )


def run_migrations(engine: Engine) -> int:
    """
    Apply all pending migrations in a single transaction.

    Returns:
        The schema version after migration

    Raises:
        MigrationError: If any step fails (nothing is applied)
    """
    try:
        with engine.begin() as conn:
            current = get_schema_version(conn)
            if current >= LATEST_VERSION:
                logger.debug(f"Schema is up to date (version {current})")
                return current

            for version, description, step in MIGRATIONS:
                if version <= current:
                    continue
                logger.info(f"Applying migration {version}: {description}")
                step(conn)

            _set_schema_version(conn, LATEST_VERSION)
    except SQLAlchemyError as e:
        logger.error(f"Migration failed, rolled back: {e}")
        raise MigrationError(f"Database migration failed: {e}") from e

    logger.info(f"Database migrated from version {current} to {LATEST_VERSION}")
    return LATEST_VERSION
