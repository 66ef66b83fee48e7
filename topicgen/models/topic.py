"""
Topic Models

Structured output of the topic identification step.
"""

from pydantic import BaseModel, Field
from typing import List, Optional


class Topic(BaseModel):
    """A topic identified from a batch of messages."""

    id: Optional[int] = Field(
        None, description="ID of an existing topic to update, omitted for a new topic"
    )
    title: str = Field(..., description="A clear, concise title for the topic")
    description: str = Field(
        ..., description="A brief description of what was discussed in this topic"
    )
    message_ids: List[int] = Field(
        default_factory=list, description="Message IDs that relate to this topic"
    )


class TopicsResult(BaseModel):
    """Complete topic identification result."""

    topics: List[Topic] = Field(
        default_factory=list, description="Topics identified from the messages"
    )


class DocumentResult(BaseModel):
    """Outcome of writing one topic document."""

    topic_id: int
    filename: str
    is_update: bool


class GenerationSummary(BaseModel):
    """Summary of a document generation run."""

    message_count: int = 0
    topic_count: int = 0
    documents: List[DocumentResult] = Field(default_factory=list)

    @property
    def created(self) -> int:
        return sum(1 for doc in self.documents if not doc.is_update)

    @property
    def updated(self) -> int:
        return sum(1 for doc in self.documents if doc.is_update)
