"""
Message Models

In-memory views over persisted Slack messages and the thread structure
reconstructed from them.
"""

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, computed_field, field_validator

from topicgen.utils.validation import ensure_utc


class SlackMessage(BaseModel):
    """
    A persisted chat message.

    `(channel_id, ts)` identifies a message. `ts` is Slack's opaque
    timestamp token; ordering uses `created_at`. A message with `thread_ts`
    set is a reply to the message whose `ts` equals it in the same channel.
    """

    model_config = ConfigDict(from_attributes=True, frozen=True)

    id: Optional[int] = None  # Surrogate key, None until persisted
    channel_id: str
    channel_name: Optional[str] = None
    user_id: str
    user_name: Optional[str] = None
    text: str = ""
    ts: str
    thread_ts: Optional[str] = None
    permalink: Optional[str] = None
    created_at: datetime
    mention_type: Optional[Literal["user", "group"]] = None

    @field_validator("text", mode="before")
    @classmethod
    def _empty_text(cls, value):
        return "" if value is None else value

    @field_validator("mention_type", mode="before")
    @classmethod
    def _blank_mention_type(cls, value):
        return value or None

    @field_validator("created_at")
    @classmethod
    def _normalize_created_at(cls, value: datetime) -> datetime:
        return ensure_utc(value)

    @property
    def is_reply(self) -> bool:
        return self.thread_ts is not None

    @property
    def key(self) -> tuple:
        """Natural identity: (channel_id, ts)."""
        return (self.channel_id, self.ts)


class MessageThread(BaseModel):
    """A reconstructed conversation: parent message plus chronological replies."""

    parent_message: SlackMessage
    replies: List[SlackMessage] = Field(default_factory=list)
    thread_id: str  # The parent's ts (real or, for orphans, the missing parent's)
    parent_is_synthetic: bool = False  # Parent is a promoted orphan reply

    @computed_field
    @property
    def message_count(self) -> int:
        return 1 + len(self.replies)


class GroupedMessages(BaseModel):
    """Thread grouping result: every input message appears exactly once."""

    threads: List[MessageThread] = Field(default_factory=list)
    standalone_messages: List[SlackMessage] = Field(default_factory=list)
    total_message_count: int = 0

    def all_messages(self) -> List[SlackMessage]:
        """Flatten threads (parent then replies) followed by standalone messages."""
        messages: List[SlackMessage] = []
        for thread in self.threads:
            messages.append(thread.parent_message)
            messages.extend(thread.replies)
        messages.extend(self.standalone_messages)
        return messages


class MessageFilter(BaseModel):
    """Query parameters for message retrieval. Both dates are inclusive."""

    start_date: datetime
    end_date: datetime
    sender_refs: Optional[List[str]] = None  # Messages authored by any of these
    mention_targets: Optional[List[str]] = None  # Messages mentioning any of these
    include_threads: bool = False
