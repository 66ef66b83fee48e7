"""
Slack Payload Helpers

Timestamp conversion, mention extraction and permalink construction for
raw Slack API payloads.
"""

import re
from datetime import datetime, timezone
from typing import Iterable, List, Optional

from topicgen.utils.validation import ensure_utc

USER_MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)>")
GROUP_MENTION_PATTERN = re.compile(r"<!subteam\^([A-Z0-9]+)")


def slack_ts_to_datetime(ts: str) -> datetime:
    """
    Convert a Slack ts ("1700000000.123456") to an aware UTC datetime.

    Raises:
        ValueError: If ts is not numeric
    """
    seconds, _, fraction = ts.partition(".")
    micros = int((fraction + "000000")[:6]) if fraction else 0
    return datetime.fromtimestamp(int(seconds), tz=timezone.utc).replace(microsecond=micros)


def datetime_to_slack_ts(value: datetime) -> str:
    """Convert a datetime to the ts form accepted by oldest/latest parameters."""
    return f"{ensure_utc(value).timestamp():.6f}"


def _unique(items: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(items))


def extract_user_mentions(text: str) -> List[str]:
    """User IDs mentioned as <@U123>, in order of first appearance."""
    return _unique(USER_MENTION_PATTERN.findall(text or ""))


def extract_group_mentions(text: str) -> List[str]:
    """User group IDs mentioned as <!subteam^S123...>, in order of first appearance."""
    return _unique(GROUP_MENTION_PATTERN.findall(text or ""))


def classify_mention(text: str, my_id: str, my_group_ids: Iterable[str]) -> Optional[str]:
    """
    "user" if the crawling user is mentioned directly, "group" if one of their
    user groups is, otherwise None.
    """
    text = text or ""
    if my_id and f"<@{my_id}>" in text:
        return "user"
    for group_id in my_group_ids:
        if f"<!subteam^{group_id}" in text:
            return "group"
    return None


def build_permalink(
    workspace_domain: str, channel_id: str, ts: str, thread_ts: Optional[str] = None
) -> Optional[str]:
    """
    Build a message permalink without an API call.

    Example:
        ("myworkspace", "C123ABC456", "1234567890.123456")
        -> https://myworkspace.slack.com/archives/C123ABC456/p1234567890123456

    Returns None when no workspace domain is configured.
    """
    if not workspace_domain:
        return None
    url = f"https://{workspace_domain}.slack.com/archives/{channel_id}/p{ts.replace('.', '')}"
    if thread_ts:
        url += f"?thread_ts={thread_ts}&cid={channel_id}"
    return url
