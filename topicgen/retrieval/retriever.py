"""
Message Retriever

Applies a MessageFilter against the store and optionally widens the result
with other members of the matched threads, then hands the rows to grouping.
"""

import logging
from typing import Dict, List, Sequence, Tuple

from sqlalchemy.orm import Session

from topicgen.db.message_queries import query_messages, thread_members
from topicgen.models.message import GroupedMessages, MessageFilter, SlackMessage
from topicgen.retrieval.grouping import group_messages_by_threads
from topicgen.utils.validation import ensure_utc

logger = logging.getLogger(__name__)


def expand_with_thread_members(
    db: Session, messages: Sequence[SlackMessage], message_filter: MessageFilter
) -> List[SlackMessage]:
    """
    Add the other members of every thread touched by `messages`.

    Only members whose created_at lies inside the filter's window are added;
    a thread's history outside the window is never pulled in.

    Returns:
        The original messages plus new in-window members, chronological
    """
    start = ensure_utc(message_filter.start_date)
    end = ensure_utc(message_filter.end_date)

    collected: Dict[Tuple[str, str], SlackMessage] = {m.key: m for m in messages}

    # Candidate thread keys: each reply's parent, and each message as a potential parent
    thread_keys: Dict[Tuple[str, str], None] = {}
    for message in messages:
        if message.thread_ts:
            thread_keys[(message.channel_id, message.thread_ts)] = None
        thread_keys[(message.channel_id, message.ts)] = None

    added = 0
    for channel_id, parent_ts in thread_keys:
        for member in thread_members(db, parent_ts, channel_id=channel_id):
            if member.key in collected:
                continue
            if start <= member.created_at <= end:
                collected[member.key] = member
                added += 1

    logger.debug(f"Thread expansion added {added} in-window messages")
    return sorted(collected.values(), key=lambda m: (m.created_at, m.ts))


def get_filtered_messages(db: Session, message_filter: MessageFilter) -> List[SlackMessage]:
    """
    Messages matching the filter, chronological.

    Sender and mention filters combine with AND when both are given.

    Raises:
        InvalidRangeError: If the filter's date range is invalid
    """
    messages = query_messages(
        db,
        message_filter.start_date,
        message_filter.end_date,
        sender_refs=message_filter.sender_refs,
        mention_refs=message_filter.mention_targets,
    )
    logger.info(f"Retrieved {len(messages)} messages matching filter")

    if message_filter.include_threads:
        messages = expand_with_thread_members(db, messages, message_filter)
        logger.info(f"{len(messages)} messages after including thread members")

    return messages


def get_filtered_messages_grouped(db: Session, message_filter: MessageFilter) -> GroupedMessages:
    """Messages matching the filter, grouped into threads and standalone messages."""
    return group_messages_by_threads(get_filtered_messages(db, message_filter))
