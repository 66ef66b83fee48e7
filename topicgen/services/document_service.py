"""
Document Service

Writes topic documents as markdown files with YAML frontmatter and keeps
the topics table and message-topic relations in step with them.
"""

import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.orm import Session

from topicgen.db import repository
from topicgen.models.topic import DocumentResult, Topic
from topicgen.utils.helpers import build_frontmatter, create_safe_filename, split_frontmatter, to_iso_utc

logger = logging.getLogger(__name__)


class DocumentReadError(Exception):
    """Raised when an existing document file cannot be read."""

    pass


class DocumentService:
    """Manages markdown documents under a single output directory."""

    def __init__(self, documents_path: Union[str, Path]):
        self.documents_path = Path(documents_path)

    def ensure_documents_directory(self) -> None:
        if not self.documents_path.exists():
            logger.info(f"Creating documents directory: {self.documents_path}")
        self.documents_path.mkdir(parents=True, exist_ok=True)

    def document_path(self, filename: str) -> Path:
        return self.documents_path / filename

    def read_document(self, filename: str) -> str:
        """
        Read a document file as stored (frontmatter included).

        Raises:
            DocumentReadError: If the file is missing or unreadable
        """
        path = self.document_path(filename)
        try:
            return path.read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"Failed to read document {filename}: {e}")
            raise DocumentReadError(f"Could not read document: {filename}") from e

    def read_document_body(self, filename: str) -> str:
        """Read a document without its frontmatter block."""
        _, body = split_frontmatter(self.read_document(filename))
        return body

    def _existing_filename(self, db: Session, topic: Topic) -> Optional[str]:
        if topic.id is None:
            return None
        stored = repository.get_topic_by_id(db, topic.id)
        if stored is None or not stored.file_name:
            logger.warning(f"Topic id {topic.id} not found, creating a new document instead")
            return None
        return stored.file_name

    def create_or_update_document(self, db: Session, topic: Topic, content: str) -> DocumentResult:
        """
        Persist the topic and write its document.

        A topic whose id refers to a stored topic rewrites that topic's file;
        otherwise a new file is named after the title.

        Args:
            db: Database session
            topic: Topic with its related message ids
            content: Markdown body from the LLM

        Returns:
            DocumentResult with the topic id and file name
        """
        self.ensure_documents_directory()

        existing_filename = self._existing_filename(db, topic)
        is_update = existing_filename is not None
        filename = existing_filename or create_safe_filename(topic.title)
        logger.info(f"{'Updating existing' if is_update else 'Creating new'} document: {filename}")

        topic_id = repository.save_topic(
            db, topic.title, topic.description, filename, topic.message_ids
        )
        repository.save_message_topic_relations(db, topic_id, topic.message_ids)
        stored = repository.get_topic_by_id(db, topic_id)

        metadata = {
            "title": topic.title,
            "description": topic.description,
            "topic_id": topic_id,
            "start_date": stored.start_date,
            "end_date": stored.end_date,
            "last_updated": to_iso_utc(datetime.now(timezone.utc)),
        }
        self.document_path(filename).write_text(
            build_frontmatter(metadata, content), encoding="utf-8"
        )

        logger.info(
            f"Document {'updated' if is_update else 'created'}: {filename} "
            f"(topic {topic_id}, {len(topic.message_ids)} messages)"
        )
        return DocumentResult(topic_id=topic_id, filename=filename, is_update=is_update)
