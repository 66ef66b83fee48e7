"""
Tests for versioned schema migrations.
"""

import pytest
from sqlalchemy import inspect, text
from sqlalchemy.pool import StaticPool

from topicgen.db.migrations import LATEST_VERSION, MigrationError, get_schema_version, run_migrations
from topicgen.db.storage import create_db_engine

LEGACY_SCHEMA = [
    """CREATE TABLE messages (
        id INTEGER PRIMARY KEY AUTOINCREMENT,
        channel_id TEXT NOT NULL,
        channel_name TEXT,
        user_id TEXT NOT NULL,
        user_name TEXT,
        text TEXT,
        ts TEXT NOT NULL,
        thread_id TEXT,
        permalink TEXT,
        created_at TEXT NOT NULL,
        UNIQUE (channel_id, ts)
    )""",
    "CREATE TABLE users (user_id TEXT PRIMARY KEY, user_name TEXT NOT NULL, nickname TEXT)",
    """CREATE TABLE mentions (
        channel_id TEXT, message_ts TEXT, user_id TEXT,
        PRIMARY KEY (channel_id, message_ts, user_id)
    )""",
    "CREATE TABLE groups (group_id TEXT PRIMARY KEY, group_name TEXT NOT NULL, handle TEXT)",
    "CREATE TABLE documents (id INTEGER PRIMARY KEY, name TEXT UNIQUE, created_at TEXT, updated_at TEXT)",
    "CREATE TABLE message_document_relations (message_id INTEGER, document_id INTEGER)",
]

LEGACY_ROWS = [
    "INSERT INTO messages (channel_id, user_id, text, ts, thread_id, created_at) VALUES "
    "('C1', 'U1', 'hi <!subteam^S1|@ops>', '100.000001', NULL, '2024-05-01T10:00:00.000Z')",
    "INSERT INTO messages (channel_id, user_id, text, ts, thread_id, created_at) VALUES "
    "('C1', 'U2', 'reply', '100.000002', '100.000001', '2024-05-01T10:01:00.000Z')",
    "INSERT INTO users VALUES ('U1', 'Alice', 'alice')",
    "INSERT INTO mentions VALUES ('C1', '100.000001', 'S1')",
    "INSERT INTO groups VALUES ('S1', 'Operations', 'ops')",
    "INSERT INTO documents VALUES (7, 'deploy-process.md', '2024-05-02T00:00:00.000Z', '2024-05-03T00:00:00.000Z')",
    "INSERT INTO message_document_relations VALUES (1, 7)",
    "INSERT INTO message_document_relations VALUES (2, 7)",
]


@pytest.fixture
def raw_engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    yield engine
    engine.dispose()


def _load(engine, statements):
    with engine.begin() as conn:
        for statement in statements:
            conn.execute(text(statement))


def _tables(engine):
    return set(inspect(engine).get_table_names())


def _columns(engine, table):
    return {column["name"] for column in inspect(engine).get_columns(table)}


class TestFreshDatabase:
    def test_creates_schema_and_records_version(self, raw_engine):
        version = run_migrations(raw_engine)

        assert version == LATEST_VERSION
        assert {
            "messages",
            "users",
            "mentions",
            "topics",
            "message_topic_relations",
            "schema_version",
        } <= _tables(raw_engine)
        with raw_engine.connect() as conn:
            assert get_schema_version(conn) == LATEST_VERSION

    def test_running_twice_is_a_no_op(self, raw_engine):
        run_migrations(raw_engine)

        assert run_migrations(raw_engine) == LATEST_VERSION
        with raw_engine.connect() as conn:
            rows = conn.execute(text("SELECT COUNT(*) FROM schema_version")).scalar()
        assert rows == 1

    def test_unmigrated_database_reports_version_zero(self, raw_engine):
        with raw_engine.connect() as conn:
            assert get_schema_version(conn) == 0


class TestLegacyDatabase:
    def test_upgrades_legacy_schema(self, raw_engine):
        _load(raw_engine, LEGACY_SCHEMA + LEGACY_ROWS)

        run_migrations(raw_engine)

        assert "groups" not in _tables(raw_engine)
        assert "documents" not in _tables(raw_engine)
        assert "message_document_relations" not in _tables(raw_engine)
        assert {"thread_ts", "mention_type"} <= _columns(raw_engine, "messages")
        assert "thread_id" not in _columns(raw_engine, "messages")

        with raw_engine.connect() as conn:
            reply = conn.execute(text("SELECT thread_ts FROM messages WHERE ts = '100.000002'")).scalar()
            group = conn.execute(
                text("SELECT user_name, nickname, user_type FROM users WHERE user_id = 'S1'")
            ).one()
            user_type = conn.execute(text("SELECT user_type FROM users WHERE user_id = 'U1'")).scalar()
            mention_type = conn.execute(
                text("SELECT mention_type FROM mentions WHERE user_id = 'S1'")
            ).scalar()
            topic = conn.execute(text("SELECT id, title, file_name FROM topics")).one()
            relations = conn.execute(
                text("SELECT message_id FROM message_topic_relations WHERE topic_id = 7 ORDER BY message_id")
            ).scalars().all()

        assert reply == "100.000001"
        assert tuple(group) == ("Operations", "ops", "group")
        assert user_type == "user"
        assert mention_type == "group"
        assert tuple(topic) == (7, "deploy process", "deploy-process.md")
        assert relations == [1, 2]

    def test_failed_migration_rolls_back_everything(self, raw_engine):
        """A failing step leaves the database exactly as it was."""
        statements = list(LEGACY_SCHEMA)
        # A groups table without the columns the merge step reads
        statements[3] = "CREATE TABLE groups (id TEXT PRIMARY KEY)"
        _load(raw_engine, statements + ["INSERT INTO groups VALUES ('S1')"])
        tables_before = _tables(raw_engine)

        with pytest.raises(MigrationError):
            run_migrations(raw_engine)

        assert _tables(raw_engine) == tables_before
        assert "thread_id" in _columns(raw_engine, "messages")
        assert "mention_type" not in _columns(raw_engine, "messages")
        assert "user_type" not in _columns(raw_engine, "users")
        with raw_engine.connect() as conn:
            assert get_schema_version(conn) == 0
