"""
Repository Functions

Writes and point lookups for messages, users, mentions and topics.
All functions take the session as their first argument and commit their
own writes.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Sequence, Tuple

from sqlalchemy import and_, func, or_, select
from sqlalchemy.dialects.sqlite import insert
from sqlalchemy.orm import Session

from topicgen.db.models import Mention, Message, MessageTopicRelation, Topic, User
from topicgen.models.message import SlackMessage
from topicgen.utils.helpers import to_iso_utc

logger = logging.getLogger(__name__)


def _now() -> str:
    return to_iso_utc(datetime.now(timezone.utc))


# =============================================================================
# Messages
# =============================================================================


def save_messages(db: Session, messages: Iterable[SlackMessage]) -> int:
    """
    Insert messages, updating existing rows with the same (channel_id, ts).

    Surrogate ids of existing rows are preserved, so topic relations stay valid.

    Returns:
        Number of messages written
    """
    count = 0
    for message in messages:
        values = message.model_dump(exclude={"id"})
        values["created_at"] = to_iso_utc(message.created_at)
        stmt = insert(Message).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Message.channel_id, Message.ts],
            set_={
                key: stmt.excluded[key]
                for key in values
                if key not in ("channel_id", "ts")
            },
        )
        db.execute(stmt)
        count += 1
    db.commit()
    logger.info(f"Saved {count} messages to database")
    return count


def get_messages_by_ids(db: Session, message_ids: Sequence[int]) -> List[SlackMessage]:
    if not message_ids:
        return []
    rows = (
        db.query(Message)
        .filter(Message.id.in_(list(message_ids)))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    return [SlackMessage.model_validate(row) for row in rows]


def get_messages_with_threads_by_ids(db: Session, message_ids: Sequence[int]) -> List[SlackMessage]:
    """
    Messages with the given ids plus every member of the threads they belong to.

    Unlike thread expansion during retrieval this is not bounded by a date window.
    """
    initial = get_messages_by_ids(db, message_ids)
    if not initial:
        return []

    conditions = []
    for message in initial:
        parent_ts = message.thread_ts or message.ts
        conditions.append(
            and_(
                Message.channel_id == message.channel_id,
                or_(Message.thread_ts == parent_ts, Message.ts == parent_ts),
            )
        )

    rows = (
        db.query(Message)
        .filter(or_(*conditions))
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    collected = {m.key: m for m in initial}
    for row in rows:
        message = SlackMessage.model_validate(row)
        collected.setdefault(message.key, message)
    return sorted(collected.values(), key=lambda m: (m.created_at, m.ts))


def backfill_user_names(db: Session) -> int:
    """Fill in missing message sender names from the users table."""
    display_name = (
        select(func.coalesce(func.nullif(User.nickname, ""), User.user_name))
        .where(User.user_id == Message.user_id)
        .scalar_subquery()
    )
    updated = (
        db.query(Message)
        .filter(or_(Message.user_name.is_(None), Message.user_name == ""))
        .filter(Message.user_id.in_(select(User.user_id)))
        .update({Message.user_name: display_name}, synchronize_session=False)
    )
    db.commit()
    logger.info(f"Backfilled sender names on {updated} messages")
    return updated


# =============================================================================
# Users, groups and mentions
# =============================================================================


def save_users(db: Session, users: Iterable[Dict[str, Any]]) -> int:
    """
    Upsert users or groups.

    Each entry has user_id, user_name, nickname and optionally user_type
    ("user" by default).
    """
    count = 0
    for user in users:
        values = {
            "user_id": user["user_id"],
            "user_name": user["user_name"],
            "nickname": user.get("nickname"),
            "user_type": user.get("user_type") or "user",
        }
        stmt = insert(User).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[User.user_id],
            set_={
                "user_name": stmt.excluded.user_name,
                "nickname": stmt.excluded.nickname,
                "user_type": stmt.excluded.user_type,
            },
        )
        db.execute(stmt)
        count += 1
    db.commit()
    logger.info(f"Saved {count} users to database")
    return count


def save_mentions(db: Session, mentions: Iterable[Dict[str, Any]]) -> int:
    count = 0
    for mention in mentions:
        values = {
            "channel_id": mention["channel_id"],
            "message_ts": mention["message_ts"],
            "user_id": mention["user_id"],
            "mention_type": mention.get("mention_type") or "user",
        }
        stmt = insert(Mention).values(**values)
        stmt = stmt.on_conflict_do_update(
            index_elements=[Mention.channel_id, Mention.message_ts, Mention.user_id],
            set_={"mention_type": stmt.excluded.mention_type},
        )
        db.execute(stmt)
        count += 1
    db.commit()
    logger.info(f"Saved {count} mentions to database")
    return count


def _display_name(db: Session, user_id: str, user_type: str) -> Optional[str]:
    user = (
        db.query(User)
        .filter(User.user_id == user_id, User.user_type == user_type)
        .first()
    )
    if user is None:
        return None
    return user.nickname or user.user_name


def get_user_display_name(db: Session, user_id: str) -> Optional[str]:
    """Nickname (or user name) of a user, None if unknown."""
    return _display_name(db, user_id, "user")


def get_group_display_name(db: Session, group_id: str) -> Optional[str]:
    """Handle (or name) of a user group, None if unknown."""
    return _display_name(db, group_id, "group")


# =============================================================================
# Topics
# =============================================================================


def calculate_topic_date_range(messages: Sequence[SlackMessage]) -> Optional[Tuple[str, str]]:
    """(earliest, latest) created_at of the messages, None when empty."""
    if not messages:
        return None
    ordered = sorted(message.created_at for message in messages)
    return to_iso_utc(ordered[0]), to_iso_utc(ordered[-1])


def get_topic_by_id(db: Session, topic_id: int) -> Optional[Topic]:
    return db.query(Topic).filter(Topic.id == topic_id).first()


def get_topic_by_file_name(db: Session, file_name: str) -> Optional[Topic]:
    return db.query(Topic).filter(Topic.file_name == file_name).first()


def get_topics(db: Session, limit: Optional[int] = None) -> List[Topic]:
    """All topics, most recently updated first."""
    query = db.query(Topic).order_by(Topic.updated_at.desc(), Topic.id.desc())
    if limit:
        query = query.limit(limit)
    return query.all()


def search_topics(db: Session, query_text: str) -> List[Topic]:
    """Topics whose title or description contains the query (case-insensitive)."""
    pattern = f"%{query_text}%"
    return (
        db.query(Topic)
        .filter(or_(Topic.title.ilike(pattern), Topic.description.ilike(pattern)))
        .order_by(Topic.updated_at.desc(), Topic.id.desc())
        .all()
    )


def save_topic(
    db: Session,
    title: str,
    description: Optional[str] = None,
    file_name: Optional[str] = None,
    message_ids: Optional[Sequence[int]] = None,
) -> int:
    """
    Insert a topic, or update the one that already owns `file_name`.

    start_date / end_date span the related messages together with every
    member of their threads.

    Returns:
        The topic id
    """
    start_date = end_date = None
    if message_ids:
        date_range = calculate_topic_date_range(get_messages_with_threads_by_ids(db, message_ids))
        if date_range:
            start_date, end_date = date_range

    now = _now()
    topic = get_topic_by_file_name(db, file_name) if file_name else None
    if topic is not None:
        logger.info(f"Updating topic: {title} ({file_name})")
        topic.title = title
        topic.description = description
        topic.start_date = start_date
        topic.end_date = end_date
        topic.updated_at = now
    else:
        logger.info(f"Saving topic: {title}")
        topic = Topic(
            title=title,
            description=description,
            file_name=file_name,
            start_date=start_date,
            end_date=end_date,
            created_at=now,
            updated_at=now,
        )
        db.add(topic)

    db.commit()
    return topic.id


def save_message_topic_relations(db: Session, topic_id: int, message_ids: Iterable[int]) -> int:
    count = 0
    for message_id in message_ids:
        stmt = (
            insert(MessageTopicRelation)
            .values(message_id=message_id, topic_id=topic_id)
            .on_conflict_do_nothing()
        )
        db.execute(stmt)
        count += 1
    db.commit()
    logger.info(f"Saved {count} message-topic relations to database")
    return count


def get_messages_for_topic(db: Session, topic_id: int) -> List[SlackMessage]:
    """Messages related to a topic, chronological."""
    rows = (
        db.query(Message)
        .join(MessageTopicRelation, MessageTopicRelation.message_id == Message.id)
        .filter(MessageTopicRelation.topic_id == topic_id)
        .order_by(Message.created_at.asc(), Message.id.asc())
        .all()
    )
    return [SlackMessage.model_validate(row) for row in rows]


def clear_topics(db: Session) -> None:
    """Delete all topics and their message relations."""
    try:
        db.query(MessageTopicRelation).delete()
        db.query(Topic).delete()
        db.commit()
        logger.info("Cleared all topics and related relations from database")
    except Exception as e:
        db.rollback()
        logger.error(f"Error clearing topics: {e}")
        raise
