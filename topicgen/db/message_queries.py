"""
Message Store Queries

Range, sender, mention and thread-member lookups over persisted messages.
Every range query validates its bounds before touching storage and returns
SlackMessage values in ascending `created_at` order.
"""

import logging
from datetime import datetime
from typing import List, Optional, Sequence, Union

from sqlalchemy import and_, or_
from sqlalchemy.orm import Query, Session

from topicgen.db.models import Mention, Message, User
from topicgen.models.message import SlackMessage
from topicgen.retrieval.identity import mention_condition, resolve_identity, sender_condition
from topicgen.utils.helpers import to_iso_utc
from topicgen.utils.validation import validate_date_range

logger = logging.getLogger(__name__)

DateBound = Union[datetime, str]


def _to_messages(rows) -> List[SlackMessage]:
    return [SlackMessage.model_validate(row) for row in rows]


def _chronological(query: Query) -> Query:
    return query.order_by(Message.created_at.asc(), Message.id.asc())


def _range_query(db: Session, start: DateBound, end: DateBound) -> Query:
    start_dt, end_dt = validate_date_range(start, end)
    return db.query(Message).filter(
        Message.created_at >= to_iso_utc(start_dt),
        Message.created_at <= to_iso_utc(end_dt),
    )


def _filter_by_senders(query: Query, sender_refs: Sequence[str]) -> Query:
    conditions = [sender_condition(resolve_identity(ref)) for ref in sender_refs]
    return query.filter(or_(*conditions))


def _filter_by_mentions(query: Query, mention_refs: Sequence[str]) -> Query:
    conditions = [mention_condition(resolve_identity(ref)) for ref in mention_refs]
    return (
        query.outerjoin(
            Mention,
            and_(Mention.channel_id == Message.channel_id, Mention.message_ts == Message.ts),
        )
        .outerjoin(User, User.user_id == Mention.user_id)
        .filter(or_(*conditions))
        .distinct()
    )


def messages_in_range(db: Session, start: DateBound, end: DateBound) -> List[SlackMessage]:
    """
    All messages with created_at in [start, end].

    Raises:
        InvalidRangeError: If a bound is invalid or start > end
    """
    rows = _chronological(_range_query(db, start, end)).all()
    logger.debug(f"Found {len(rows)} messages between {start} and {end}")
    return _to_messages(rows)


def messages_by_sender(
    db: Session, start: DateBound, end: DateBound, sender_refs: Optional[Sequence[str]]
) -> List[SlackMessage]:
    """Messages in range authored by any of the referenced identities."""
    query = _range_query(db, start, end)
    if sender_refs:
        query = _filter_by_senders(query, sender_refs)
    rows = _chronological(query).all()
    logger.debug(f"Found {len(rows)} messages from senders {list(sender_refs or [])}")
    return _to_messages(rows)


def messages_by_mention_target(
    db: Session, start: DateBound, end: DateBound, mention_refs: Optional[Sequence[str]]
) -> List[SlackMessage]:
    """Messages in range mentioning any of the referenced identities."""
    query = _range_query(db, start, end)
    if mention_refs:
        query = _filter_by_mentions(query, mention_refs)
    rows = _chronological(query).all()
    logger.debug(f"Found {len(rows)} messages mentioning {list(mention_refs or [])}")
    return _to_messages(rows)


def query_messages(
    db: Session,
    start: DateBound,
    end: DateBound,
    sender_refs: Optional[Sequence[str]] = None,
    mention_refs: Optional[Sequence[str]] = None,
) -> List[SlackMessage]:
    """
    Messages in range matching both the sender and the mention filter.

    Either filter may be omitted; with neither this is messages_in_range.
    """
    query = _range_query(db, start, end)
    if sender_refs:
        query = _filter_by_senders(query, sender_refs)
    if mention_refs:
        query = _filter_by_mentions(query, mention_refs)
    return _to_messages(_chronological(query).all())


def thread_members(
    db: Session, parent_ts: str, channel_id: Optional[str] = None
) -> List[SlackMessage]:
    """
    A thread's parent (if stored) and all of its replies, regardless of date.

    Args:
        db: Database session
        parent_ts: ts of the thread's parent message
        channel_id: Restrict to one channel (ts values are only unique per channel)
    """
    query = db.query(Message).filter(
        or_(
            Message.thread_ts == parent_ts,
            and_(Message.ts == parent_ts, Message.thread_ts.is_(None)),
        )
    )
    if channel_id is not None:
        query = query.filter(Message.channel_id == channel_id)
    return _to_messages(_chronological(query).all())
