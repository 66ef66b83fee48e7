"""
API Response Models

Pydantic models for consistent API response structures.
"""

from pydantic import BaseModel, ConfigDict, Field
from typing import List, Optional

from topicgen.models.message import SlackMessage


class DocumentSummary(BaseModel):
    """Topic document listing entry."""

    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="Topic ID")
    title: str = Field(..., description="Topic title")
    description: Optional[str] = Field(None, description="Topic description")
    file_name: Optional[str] = Field(None, description="Markdown file name")
    start_date: Optional[str] = Field(None, description="Earliest related message time")
    end_date: Optional[str] = Field(None, description="Latest related message time")
    created_at: str = Field(..., description="Creation time (ISO-8601)")
    updated_at: str = Field(..., description="Last update time (ISO-8601)")


class DocumentDetail(DocumentSummary):
    """Topic document with its markdown content."""

    content: str = Field("", description="Document markdown (description if unreadable)")


class DocumentListResponse(BaseModel):
    documents: List[DocumentSummary] = Field(default_factory=list)


class DocumentSearchResponse(BaseModel):
    query: str
    documents: List[DocumentSummary] = Field(default_factory=list)


class DocumentResponse(BaseModel):
    document: DocumentDetail


class DocumentMessagesResponse(BaseModel):
    """Messages related to a topic document, chronological."""

    document_id: int
    messages: List[SlackMessage] = Field(default_factory=list)
    total: int = 0
