"""
Slack Crawler

Responsibilities:
- auth.test: identify the crawling user
- usergroups.list: user groups (all of them, and the ones the user is in)
- conversations.history: paginated channel messages (limit 200, cursor)
- conversations.replies: thread replies for messages with reply_count > 0
- users.info: sender display names
- Persist messages, mentions, users and groups

Requests are issued one at a time with fixed delays between batches,
after each thread fetch and after each user lookup.
"""

import asyncio
import logging
from datetime import datetime
from typing import Any, Awaitable, Callable, Dict, Iterable, List, Optional, Tuple

from slack_sdk import WebClient
from slack_sdk.errors import SlackApiError
from sqlalchemy.orm import Session

from topicgen.config import Settings, get_settings
from topicgen.db import repository
from topicgen.integrations.slack.models import ChannelCrawl, CrawlSummary
from topicgen.integrations.slack.utils import (
    build_permalink,
    classify_mention,
    datetime_to_slack_ts,
    extract_group_mentions,
    extract_user_mentions,
    slack_ts_to_datetime,
)
from topicgen.models.message import SlackMessage

logger = logging.getLogger(__name__)

HISTORY_PAGE_SIZE = 200


class SlackCrawler:
    """Crawls configured Slack channels into the message store."""

    def __init__(
        self,
        client: Optional[WebClient] = None,
        settings: Optional[Settings] = None,
        sleep: Optional[Callable[[float], Awaitable[None]]] = None,
    ):
        self.settings = settings or get_settings()
        self.client = client or WebClient(token=self.settings.slack_user_token)
        self._sleep = sleep or asyncio.sleep

    async def _call(self, method: str, **kwargs) -> Dict[str, Any]:
        """Run a blocking WebClient method in a worker thread."""
        return await asyncio.to_thread(getattr(self.client, method), **kwargs)

    async def authenticate(self) -> Tuple[str, str]:
        """
        Identify the crawling user.

        Returns:
            (user_id, user name)
        """
        try:
            response = await self._call("auth_test")
        except SlackApiError as e:
            logger.error(f"Slack API error calling auth.test: {e.response['error']}")
            raise
        logger.info(f"Authenticated as {response.get('user')} ({response['user_id']})")
        return response["user_id"], response.get("user", "")

    async def fetch_user_groups(self) -> List[Dict[str, Any]]:
        """All user groups with members; empty when the token lacks access."""
        try:
            response = await self._call("usergroups_list", include_users=True)
        except SlackApiError as e:
            logger.warning(f"Could not list user groups: {e.response['error']}")
            return []
        groups = response.get("usergroups", []) or []
        logger.info(f"Found {len(groups)} user groups")
        return groups

    async def fetch_channel_name(self, channel_id: str) -> str:
        response = await self._call("conversations_info", channel=channel_id)
        return (response.get("channel") or {}).get("name", "")

    def _convert_message(
        self,
        raw: Dict[str, Any],
        channel_id: str,
        channel_name: str,
        my_id: str,
        my_group_ids: List[str],
    ) -> Tuple[SlackMessage, List[Dict[str, str]]]:
        """Map a raw Slack message to a SlackMessage plus its mention rows."""
        text = raw.get("text", "")
        ts = raw["ts"]

        # Slack sets thread_ts == ts on a thread's parent; only replies keep it
        thread_ts = raw.get("thread_ts")
        if thread_ts == ts:
            thread_ts = None

        mentions = [
            {"channel_id": channel_id, "message_ts": ts, "user_id": user_id, "mention_type": "user"}
            for user_id in extract_user_mentions(text)
        ]
        mentions += [
            {"channel_id": channel_id, "message_ts": ts, "user_id": group_id, "mention_type": "group"}
            for group_id in extract_group_mentions(text)
        ]

        message = SlackMessage(
            channel_id=channel_id,
            channel_name=channel_name,
            user_id=raw.get("user", ""),
            text=text,
            ts=ts,
            thread_ts=thread_ts,
            permalink=build_permalink(
                self.settings.slack_workspace_domain, channel_id, ts, thread_ts
            ),
            created_at=slack_ts_to_datetime(ts),
            mention_type=classify_mention(text, my_id, my_group_ids),
        )
        return message, mentions

    async def fetch_thread_replies(
        self,
        channel_id: str,
        channel_name: str,
        parent_ts: str,
        my_id: str,
        my_group_ids: List[str],
    ) -> Tuple[List[SlackMessage], List[Dict[str, str]]]:
        """Replies of one thread, excluding the parent. Errors are logged and skipped."""
        messages: List[SlackMessage] = []
        mentions: List[Dict[str, str]] = []
        try:
            response = await self._call("conversations_replies", channel=channel_id, ts=parent_ts)
        except SlackApiError as e:
            logger.error(f"Slack API error fetching thread {parent_ts}: {e.response['error']}")
            return messages, mentions

        for raw in response.get("messages", []) or []:
            if raw.get("ts") == parent_ts or not raw.get("text"):
                continue
            if not raw.get("thread_ts"):
                raw = {**raw, "thread_ts": parent_ts}
            message, message_mentions = self._convert_message(
                raw, channel_id, channel_name, my_id, my_group_ids
            )
            messages.append(message)
            mentions.extend(message_mentions)

        logger.debug(f"Fetched {len(messages)} replies for thread {parent_ts}")
        return messages, mentions

    async def fetch_channel_messages(
        self,
        channel_id: str,
        my_id: str,
        my_group_ids: List[str],
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
    ) -> ChannelCrawl:
        """
        Fetch all messages of a channel, including thread replies.

        Args:
            channel_id: Slack channel ID
            my_id: Crawling user's ID (for mention classification)
            my_group_ids: IDs of groups the crawling user belongs to
            start: Oldest message time (optional)
            end: Latest message time (optional)
        """
        channel_name = await self.fetch_channel_name(channel_id)
        crawl = ChannelCrawl(channel_id=channel_id, channel_name=channel_name)
        logger.info(f"Fetching messages from channel {channel_name or channel_id}")

        params: Dict[str, Any] = {"channel": channel_id, "limit": HISTORY_PAGE_SIZE}
        if start:
            params["oldest"] = datetime_to_slack_ts(start)
        if end:
            params["latest"] = datetime_to_slack_ts(end)

        cursor: Optional[str] = None
        while True:
            if cursor:
                params["cursor"] = cursor
            try:
                response = await self._call("conversations_history", **params)
            except SlackApiError as e:
                logger.error(f"Slack API error fetching history of {channel_id}: {e.response['error']}")
                raise

            for raw in response.get("messages", []) or []:
                if not raw.get("text"):
                    continue
                message, mentions = self._convert_message(
                    raw, channel_id, channel_name, my_id, my_group_ids
                )
                crawl.messages.append(message)
                crawl.mentions.extend(mentions)

                if raw.get("reply_count", 0) > 0:
                    logger.debug(f"Fetching {raw['reply_count']} replies for message {raw['ts']}")
                    replies, reply_mentions = await self.fetch_thread_replies(
                        channel_id, channel_name, raw["ts"], my_id, my_group_ids
                    )
                    crawl.messages.extend(replies)
                    crawl.mentions.extend(reply_mentions)
                    await self._sleep(self.settings.crawl_thread_delay)

            logger.info(f"Processed batch, {len(crawl.messages)} messages so far")

            cursor = (response.get("response_metadata") or {}).get("next_cursor")
            await self._sleep(self.settings.crawl_batch_delay)
            if not cursor:
                break

        return crawl

    async def fetch_users(self, user_ids: Iterable[str]) -> List[Dict[str, str]]:
        """User rows for the given IDs; lookups that fail are logged and skipped."""
        users: List[Dict[str, str]] = []
        for user_id in sorted(set(user_ids)):
            try:
                response = await self._call("users_info", user=user_id)
                user = response.get("user") or {}
                users.append(
                    {
                        "user_id": user_id,
                        "user_name": user.get("real_name") or user.get("name") or "",
                        "nickname": (user.get("profile") or {}).get("display_name", ""),
                        "user_type": "user",
                    }
                )
            except SlackApiError as e:
                logger.warning(f"Could not fetch user info for {user_id}: {e.response['error']}")
            await self._sleep(self.settings.crawl_user_delay)
        return users

    async def crawl(
        self,
        db: Session,
        start: Optional[datetime] = None,
        end: Optional[datetime] = None,
        channel_ids: Optional[List[str]] = None,
    ) -> CrawlSummary:
        """
        Crawl channels and persist everything found.

        Args:
            db: Database session
            start: Oldest message time (optional, all history when omitted)
            end: Latest message time (optional)
            channel_ids: Channels to crawl (defaults to configured channels)

        Raises:
            ValueError: If no channels are configured
            SlackApiError: If authentication or history fetching fails
        """
        channel_ids = channel_ids or self.settings.channel_ids
        if not channel_ids:
            raise ValueError("No channels to crawl. Set SLACK_CHANNELS in your .env file")

        my_id, _ = await self.authenticate()

        groups = await self.fetch_user_groups()
        my_group_ids = [g["id"] for g in groups if my_id in (g.get("users") or [])]
        logger.info(f"Crawling user belongs to {len(my_group_ids)} user groups")

        summary = CrawlSummary(channels=list(channel_ids))
        messages: List[SlackMessage] = []
        mentions: List[Dict[str, str]] = []
        user_ids = set()

        for channel_id in channel_ids:
            channel = await self.fetch_channel_messages(channel_id, my_id, my_group_ids, start, end)
            messages.extend(channel.messages)
            mentions.extend(channel.mentions)
            user_ids.update(channel.participant_ids)
            summary.messages_per_channel[channel_id] = len(channel.messages)
            logger.info(
                f"Channel {channel_id}: {len(channel.messages)} messages, "
                f"{len(channel.mentions)} mentions"
            )

        if not messages:
            logger.info("No messages found in specified channels")
            return summary

        users = await self.fetch_users(user_ids)
        group_rows = [
            {
                "user_id": g["id"],
                "user_name": g.get("name") or "",
                "nickname": g.get("handle") or g.get("name") or "",
                "user_type": "group",
            }
            for g in groups
        ]

        # Sender names come from the users table; raw payloads only carry IDs
        names = {u["user_id"]: u["nickname"] or u["user_name"] for u in users}
        messages = [
            m.model_copy(update={"user_name": names.get(m.user_id) or m.user_name})
            for m in messages
        ]

        summary.messages_saved = repository.save_messages(db, messages)
        summary.users_saved = repository.save_users(db, users)
        summary.groups_saved = repository.save_users(db, group_rows)
        summary.mentions_saved = repository.save_mentions(db, mentions)
        repository.backfill_user_names(db)

        logger.info(
            f"Crawl finished: {summary.messages_saved} messages, {summary.users_saved} users, "
            f"{summary.groups_saved} groups, {summary.mentions_saved} mentions"
        )
        return summary
