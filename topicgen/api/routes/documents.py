"""
Document API Routes

Read-only access to generated topic documents:
- GET /api/documents                 - list documents
- GET /api/documents/search?q=       - search titles and descriptions
- GET /api/documents/{id}            - one document with its markdown
- GET /api/documents/{id}/messages   - messages the document was built from
"""

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from topicgen.config import get_settings
from topicgen.db import repository
from topicgen.db.storage import get_db
from topicgen.models.api_responses import (
    DocumentDetail,
    DocumentListResponse,
    DocumentMessagesResponse,
    DocumentResponse,
    DocumentSearchResponse,
    DocumentSummary,
)
from topicgen.services.document_service import DocumentReadError, DocumentService

logger = logging.getLogger(__name__)
router = APIRouter()


def get_document_service() -> DocumentService:
    return DocumentService(get_settings().documents_path)


def _parse_document_id(document_id: str) -> int:
    try:
        return int(document_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid document ID")


def _get_topic_or_404(db: Session, document_id: str):
    topic = repository.get_topic_by_id(db, _parse_document_id(document_id))
    if topic is None:
        raise HTTPException(status_code=404, detail="Document not found")
    return topic


@router.get("", response_model=DocumentListResponse)
async def list_documents(db: Session = Depends(get_db)):
    """List all topic documents, most recently updated first."""
    topics = repository.get_topics(db)
    return DocumentListResponse(
        documents=[DocumentSummary.model_validate(topic) for topic in topics]
    )


@router.get("/search", response_model=DocumentSearchResponse)
async def search_documents(
    q: str = Query("", description="Text to look for in titles and descriptions"),
    db: Session = Depends(get_db),
):
    """Search documents by title or description. An empty query lists everything."""
    query = q.strip()
    topics = repository.search_topics(db, query) if query else repository.get_topics(db)
    logger.debug(f"Search '{query}' matched {len(topics)} documents")
    return DocumentSearchResponse(
        query=query, documents=[DocumentSummary.model_validate(topic) for topic in topics]
    )


@router.get("/{document_id}", response_model=DocumentResponse)
async def get_document(
    document_id: str,
    db: Session = Depends(get_db),
    documents: DocumentService = Depends(get_document_service),
):
    """
    Get one document with its markdown body.

    Falls back to the topic description when the file cannot be read.
    """
    topic = _get_topic_or_404(db, document_id)

    content = topic.description or ""
    if topic.file_name:
        try:
            content = documents.read_document_body(topic.file_name)
        except DocumentReadError as e:
            logger.warning(f"{e}; returning description instead")

    summary = DocumentSummary.model_validate(topic)
    return DocumentResponse(document=DocumentDetail(**summary.model_dump(), content=content))


@router.get("/{document_id}/messages", response_model=DocumentMessagesResponse)
async def get_document_messages(document_id: str, db: Session = Depends(get_db)):
    """Messages related to a document, chronological."""
    topic = _get_topic_or_404(db, document_id)
    messages = repository.get_messages_for_topic(db, topic.id)
    return DocumentMessagesResponse(document_id=topic.id, messages=messages, total=len(messages))
