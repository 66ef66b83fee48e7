"""
Slack Crawl Models
"""

from pydantic import BaseModel, Field
from typing import Dict, List

from topicgen.models.message import SlackMessage


class ChannelCrawl(BaseModel):
    """Messages and mention rows collected from one channel."""

    channel_id: str
    channel_name: str | None = None
    messages: list[SlackMessage] = Field(default_factory=list)
    mentions: list[dict] = Field(default_factory=list)

    @property
    def participant_ids(self) -> set:
        """Senders plus mentioned users."""
        ids = {msg.user_id for msg in self.messages if msg.user_id}
        ids.update(m["user_id"] for m in self.mentions if m.get("mention_type") == "user")
        return ids


class CrawlSummary(BaseModel):
    """Totals for one crawl run."""

    channels: List[str] = Field(default_factory=list)
    messages_saved: int = 0
    mentions_saved: int = 0
    users_saved: int = 0
    groups_saved: int = 0
    messages_per_channel: Dict[str, int] = Field(default_factory=dict)
