"""
Tests for SlackCrawler with a mocked WebClient.

Sleeps are recorded instead of awaited.
"""

from unittest.mock import AsyncMock, MagicMock

import pytest
from slack_sdk.errors import SlackApiError

from topicgen.config import Settings
from topicgen.db import repository
from topicgen.db.models import Mention, Message, User
from topicgen.integrations.slack import SlackCrawler

PARENT_TS = "1736510400.000100"
REPLY_TS = "1736510460.000200"
MENTION_TS = "1736510520.000300"
GROUP_TS = "1736510580.000400"


def _history_pages():
    first = {
        "messages": [
            {
                "ts": PARENT_TS,
                "thread_ts": PARENT_TS,
                "user": "U200",
                "text": "deploy is failing",
                "reply_count": 1,
            },
            {"ts": "1736510470.000000", "user": "U200", "text": ""},
        ],
        "response_metadata": {"next_cursor": "page-2"},
    }
    second = {
        "messages": [
            {"ts": MENTION_TS, "user": "U300", "text": "<@U100> please review"},
            {"ts": GROUP_TS, "user": "U300", "text": "<!subteam^S900|@backend> heads up"},
        ],
        "response_metadata": {"next_cursor": ""},
    }
    return [first, second]


def _users_info(user):
    profiles = {
        "U100": {"real_name": "Alice Smith", "profile": {"display_name": "alice"}},
        "U200": {"real_name": "Bob Jones", "profile": {"display_name": "bob"}},
        "U300": {"real_name": "Carol", "profile": {"display_name": ""}},
    }
    if user not in profiles:
        raise SlackApiError("user_not_found", {"ok": False, "error": "user_not_found"})
    return {"user": profiles[user]}


@pytest.fixture
def slack_client():
    client = MagicMock()
    client.auth_test.return_value = {"user_id": "U100", "user": "alice"}
    client.usergroups_list.return_value = {
        "usergroups": [
            {"id": "S900", "name": "Backend Team", "handle": "backend", "users": ["U100", "U200"]},
            {"id": "S800", "name": "Design", "handle": "design", "users": ["U300"]},
        ]
    }
    client.conversations_info.return_value = {"channel": {"name": "general"}}
    client.conversations_history.side_effect = _history_pages()
    client.conversations_replies.return_value = {
        "messages": [
            {"ts": PARENT_TS, "thread_ts": PARENT_TS, "user": "U200", "text": "deploy is failing"},
            {"ts": REPLY_TS, "thread_ts": PARENT_TS, "user": "U300", "text": "looking into it"},
        ]
    }
    client.users_info.side_effect = _users_info
    return client


@pytest.fixture
def settings():
    return Settings(
        slack_user_token="xoxp-test",
        slack_channels="C1",
        slack_workspace_domain="acme",
        crawl_batch_delay=0.5,
        crawl_thread_delay=0.3,
        crawl_user_delay=0.1,
    )


@pytest.fixture
def sleep():
    return AsyncMock()


@pytest.fixture
def crawler(slack_client, settings, sleep):
    return SlackCrawler(client=slack_client, settings=settings, sleep=sleep)


def _stored(db):
    return {row.ts: row for row in db.query(Message).all()}


@pytest.mark.asyncio
async def test_crawl_persists_messages_and_threads(crawler, db):
    summary = await crawler.crawl(db)

    rows = _stored(db)
    assert set(rows) == {PARENT_TS, REPLY_TS, MENTION_TS, GROUP_TS}
    assert summary.messages_saved == 4
    assert summary.messages_per_channel == {"C1": 4}

    assert rows[PARENT_TS].thread_ts is None
    assert rows[REPLY_TS].thread_ts == PARENT_TS
    assert rows[PARENT_TS].channel_name == "general"
    assert rows[PARENT_TS].created_at == "2025-01-10T12:00:00.000100Z"
    assert rows[PARENT_TS].permalink == "https://acme.slack.com/archives/C1/p1736510400000100"
    assert rows[REPLY_TS].permalink.endswith(f"?thread_ts={PARENT_TS}&cid=C1")


@pytest.mark.asyncio
async def test_crawl_classifies_and_records_mentions(crawler, db):
    await crawler.crawl(db)

    rows = _stored(db)
    assert rows[MENTION_TS].mention_type == "user"
    assert rows[GROUP_TS].mention_type == "group"
    assert rows[PARENT_TS].mention_type is None

    mentions = {(m.message_ts, m.user_id): m.mention_type for m in db.query(Mention).all()}
    assert mentions == {(MENTION_TS, "U100"): "user", (GROUP_TS, "S900"): "group"}


@pytest.mark.asyncio
async def test_crawl_saves_users_groups_and_names(crawler, db):
    summary = await crawler.crawl(db)

    users = {u.user_id: (u.user_name, u.nickname, u.user_type) for u in db.query(User).all()}
    assert users["U100"] == ("Alice Smith", "alice", "user")
    assert users["U300"] == ("Carol", "", "user")
    assert users["S900"] == ("Backend Team", "backend", "group")
    assert summary.users_saved == 3
    assert summary.groups_saved == 2

    rows = _stored(db)
    assert rows[PARENT_TS].user_name == "bob"
    assert rows[MENTION_TS].user_name == "Carol"
    assert repository.get_group_display_name(db, "S900") == "backend"


@pytest.mark.asyncio
async def test_crawl_paginates_and_throttles(crawler, slack_client, sleep, db, at):
    await crawler.crawl(db, start=at(0), end=at(60))

    first_call, second_call = slack_client.conversations_history.call_args_list
    assert first_call.kwargs["limit"] == 200
    assert first_call.kwargs["oldest"] == "1736510400.000000"
    assert first_call.kwargs["latest"] == "1736514000.000000"
    assert "cursor" not in first_call.kwargs
    assert second_call.kwargs["cursor"] == "page-2"
    slack_client.conversations_replies.assert_called_once_with(channel="C1", ts=PARENT_TS)

    delays = [call.args[0] for call in sleep.await_args_list]
    assert delays.count(0.3) == 1
    assert delays.count(0.5) == 2
    assert delays.count(0.1) == 3


@pytest.mark.asyncio
async def test_recrawl_keeps_ids(crawler, slack_client, db):
    await crawler.crawl(db)
    ids_before = {ts: row.id for ts, row in _stored(db).items()}

    slack_client.conversations_history.side_effect = _history_pages()
    await crawler.crawl(db)

    assert {ts: row.id for ts, row in _stored(db).items()} == ids_before


@pytest.mark.asyncio
async def test_thread_errors_are_skipped(crawler, slack_client, db):
    slack_client.conversations_replies.side_effect = SlackApiError(
        "ratelimited", {"ok": False, "error": "ratelimited"}
    )

    summary = await crawler.crawl(db)

    assert summary.messages_saved == 3
    assert REPLY_TS not in _stored(db)


@pytest.mark.asyncio
async def test_missing_usergroups_scope_is_tolerated(crawler, slack_client, db):
    slack_client.usergroups_list.side_effect = SlackApiError(
        "missing_scope", {"ok": False, "error": "missing_scope"}
    )

    summary = await crawler.crawl(db)

    assert summary.groups_saved == 0
    assert _stored(db)[GROUP_TS].mention_type is None


@pytest.mark.asyncio
async def test_auth_failure_raises(crawler, slack_client, db):
    slack_client.auth_test.side_effect = SlackApiError("invalid_auth", {"ok": False, "error": "invalid_auth"})

    with pytest.raises(SlackApiError):
        await crawler.crawl(db)
    slack_client.conversations_history.assert_not_called()


@pytest.mark.asyncio
async def test_no_channels_configured(slack_client, sleep, db):
    crawler = SlackCrawler(client=slack_client, settings=Settings(slack_channels=""), sleep=sleep)

    with pytest.raises(ValueError, match="No channels to crawl"):
        await crawler.crawl(db)


@pytest.mark.asyncio
async def test_empty_channel(crawler, slack_client, db):
    slack_client.conversations_history.side_effect = [{"messages": [], "response_metadata": {}}]

    summary = await crawler.crawl(db)

    assert summary.messages_saved == 0
    slack_client.users_info.assert_not_called()
