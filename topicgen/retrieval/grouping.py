"""
Thread Grouping

Rebuilds conversation structure from a flat, filtered set of messages:
threads (parent plus chronological replies) and standalone messages.

- A reply whose parent is in the set joins that parent's thread.
- Replies whose parent is missing (outside the window, or deleted) form an
  orphaned thread: the earliest reply is promoted to a synthetic parent.
- A parent with no replies in the set is standalone, never a zero-reply thread.

Grouping is pure: no I/O and no validation of the filter that produced
the input.
"""

import logging
from typing import Dict, Iterable, List, Tuple

from topicgen.models.message import GroupedMessages, MessageThread, SlackMessage

logger = logging.getLogger(__name__)

ThreadKey = Tuple[str, str]  # (channel_id, parent ts)


def _chronological(message: SlackMessage):
    return (message.created_at, message.ts)


def deduplicate_messages(messages: Iterable[SlackMessage]) -> List[SlackMessage]:
    """Drop repeated (channel_id, ts) entries, keeping the first occurrence."""
    unique: Dict[ThreadKey, SlackMessage] = {}
    for message in messages:
        unique.setdefault(message.key, message)
    return list(unique.values())


def group_messages_by_threads(messages: Iterable[SlackMessage]) -> GroupedMessages:
    """
    Group messages into threads and standalone messages.

    Args:
        messages: Messages selected by a filter (duplicates allowed)

    Returns:
        GroupedMessages in which every distinct input message appears once
    """
    ordered = sorted(deduplicate_messages(messages), key=_chronological)

    # Top-level messages in chronological order; those claimed by a thread
    # below are removed, the rest are standalone.
    roots: Dict[ThreadKey, SlackMessage] = {}
    replies_by_thread: Dict[ThreadKey, List[SlackMessage]] = {}

    for message in ordered:
        if message.thread_ts is not None:
            thread_key = (message.channel_id, message.thread_ts)
            replies_by_thread.setdefault(thread_key, []).append(message)
        else:
            roots[message.key] = message

    threads: List[MessageThread] = []
    for (channel_id, parent_ts), replies in replies_by_thread.items():
        parent = roots.pop((channel_id, parent_ts), None)
        if parent is not None:
            threads.append(
                MessageThread(parent_message=parent, replies=replies, thread_id=parent_ts)
            )
            continue

        first, *rest = replies
        threads.append(
            MessageThread(
                parent_message=first.model_copy(update={"thread_ts": None}),
                replies=rest,
                thread_id=parent_ts,
                parent_is_synthetic=True,
            )
        )

    standalone = list(roots.values())
    total = sum(thread.message_count for thread in threads) + len(standalone)
    assert total == len(ordered), f"grouped {total} of {len(ordered)} messages"

    logger.debug(
        f"Grouped {total} messages into {len(threads)} threads "
        f"and {len(standalone)} standalone messages"
    )
    return GroupedMessages(
        threads=threads, standalone_messages=standalone, total_message_count=total
    )
