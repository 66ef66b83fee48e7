"""
Shared fixtures: a migrated in-memory database per test and message builders.
"""

from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy.pool import StaticPool

from topicgen.db import repository
from topicgen.db.models import Message
from topicgen.db.storage import create_db_engine, create_session_factory, init_db
from topicgen.models.message import SlackMessage

BASE_TIME = datetime(2025, 1, 10, 12, 0, tzinfo=timezone.utc)


def _at(minutes: float) -> datetime:
    return BASE_TIME + timedelta(minutes=minutes)


def _ts_at(minutes: float) -> str:
    return f"{_at(minutes).timestamp():.6f}"


@pytest.fixture
def at():
    """BASE_TIME shifted by some minutes."""
    return _at


@pytest.fixture
def ts_at():
    """Slack ts of a message posted some minutes after BASE_TIME."""
    return _ts_at


@pytest.fixture
def engine():
    engine = create_db_engine("sqlite://", poolclass=StaticPool)
    init_db(engine)
    yield engine
    engine.dispose()


@pytest.fixture
def db(engine):
    session = create_session_factory(engine)()
    try:
        yield session
    finally:
        session.close()


@pytest.fixture
def make_message():
    """
    Build an unsaved SlackMessage posted `minutes` after BASE_TIME.

    `reply_to` is the minute offset of the thread parent.
    """

    def _make(
        minutes: float,
        text: str = "hello",
        channel_id: str = "C1",
        user_id: str = "U100",
        user_name: str = "alice",
        reply_to: float = None,
        **extra,
    ) -> SlackMessage:
        return SlackMessage(
            channel_id=channel_id,
            channel_name=extra.pop("channel_name", "general"),
            user_id=user_id,
            user_name=user_name,
            text=text,
            ts=_ts_at(minutes),
            thread_ts=_ts_at(reply_to) if reply_to is not None else None,
            created_at=_at(minutes),
            **extra,
        )

    return _make


@pytest.fixture
def store(db):
    """Persist messages and return them as stored (with ids), in input order."""

    def _store(*messages: SlackMessage):
        repository.save_messages(db, messages)
        rows = {(row.channel_id, row.ts): row for row in db.query(Message).all()}
        return [SlackMessage.model_validate(rows[m.key]) for m in messages]

    return _store


@pytest.fixture
def directory(db):
    """Known users and one user group."""
    repository.save_users(
        db,
        [
            {"user_id": "U100", "user_name": "Alice Smith", "nickname": "alice"},
            {"user_id": "U200", "user_name": "Bob Jones", "nickname": "bob"},
            {"user_id": "U300", "user_name": "Carol", "nickname": ""},
            {
                "user_id": "S900",
                "user_name": "Backend Team",
                "nickname": "backend",
                "user_type": "group",
            },
        ],
    )
    return db
