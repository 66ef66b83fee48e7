"""
SQLAlchemy ORM models for database tables.

Timestamps are stored as ISO-8601 UTC strings in one fixed-width format
(see `topicgen.utils.to_iso_utc`) so string order equals time order.
For in-memory Pydantic views, see topicgen.models.
"""

from sqlalchemy import CheckConstraint, Column, ForeignKey, Integer, String, Text, UniqueConstraint

from topicgen.db.storage import Base


class Message(Base):
    """
    A crawled Slack message.

    Table: messages
    Natural key: (channel_id, ts)
    """

    __tablename__ = "messages"
    __table_args__ = (UniqueConstraint("channel_id", "ts", name="uq_messages_channel_ts"),)

    id = Column(Integer, primary_key=True, autoincrement=True)
    channel_id = Column(String, nullable=False, index=True)
    channel_name = Column(String)
    user_id = Column(String, nullable=False, index=True)
    user_name = Column(String)
    text = Column(Text)
    ts = Column(String, nullable=False)
    thread_ts = Column(String, index=True)  # Parent ts, set only on replies
    permalink = Column(String)
    created_at = Column(String, nullable=False, index=True)
    mention_type = Column(String)  # "user", "group" or NULL


class User(Base):
    """Users and user groups share one table, told apart by user_type."""

    __tablename__ = "users"
    __table_args__ = (CheckConstraint("user_type IN ('user', 'group')", name="ck_users_user_type"),)

    user_id = Column(String, primary_key=True)
    user_name = Column(String, nullable=False)
    nickname = Column(String)  # Display name for users, @handle for groups
    user_type = Column(String, nullable=False, default="user", server_default="user")


class Mention(Base):
    __tablename__ = "mentions"
    __table_args__ = (
        CheckConstraint("mention_type IN ('user', 'group')", name="ck_mentions_mention_type"),
    )

    channel_id = Column(String, primary_key=True)
    message_ts = Column(String, primary_key=True)
    user_id = Column(String, primary_key=True)
    mention_type = Column(String, nullable=False, default="user", server_default="user")


class Topic(Base):
    __tablename__ = "topics"

    id = Column(Integer, primary_key=True, autoincrement=True)
    title = Column(String, nullable=False)
    description = Column(Text)
    file_name = Column(String, unique=True)
    start_date = Column(String)
    end_date = Column(String)
    created_at = Column(String, nullable=False)
    updated_at = Column(String, nullable=False)


class MessageTopicRelation(Base):
    __tablename__ = "message_topic_relations"

    message_id = Column(Integer, ForeignKey("messages.id"), primary_key=True)
    topic_id = Column(Integer, ForeignKey("topics.id"), primary_key=True)


class SchemaVersion(Base):
    __tablename__ = "schema_version"

    version = Column(Integer, primary_key=True)
    applied_at = Column(String, nullable=False)
