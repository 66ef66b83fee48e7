"""
Topic Orchestrator Service

Runs one document generation pass:
1. Retrieve and group messages for the date range and identity filters
2. Render them as markdown and let the LLM identify topics
3. Write (or update) one document per topic
"""

import logging
from datetime import datetime
from typing import Optional, Sequence, Union

from sqlalchemy.orm import Session

from topicgen.ai_core.topic_generator import TopicGenerator
from topicgen.config import get_settings
from topicgen.db import repository
from topicgen.models.message import MessageFilter
from topicgen.models.topic import GenerationSummary, Topic
from topicgen.rendering.markdown_formatter import grouped_messages_to_markdown
from topicgen.rendering.message_parser import MessageParser
from topicgen.retrieval.retriever import get_filtered_messages_grouped
from topicgen.services.document_service import DocumentReadError, DocumentService
from topicgen.utils.validation import validate_date_range, validate_identity_reference

logger = logging.getLogger(__name__)


class TopicOrchestrator:
    """
    Orchestrates message retrieval, topic identification and document writing.
    """

    def __init__(
        self,
        db: Session,
        generator: Optional[TopicGenerator] = None,
        document_service: Optional[DocumentService] = None,
    ):
        self.db = db
        self.generator = generator or TopicGenerator()
        self.document_service = document_service or DocumentService(get_settings().documents_path)

    def _read_existing_content(self, topic: Topic) -> Optional[str]:
        if topic.id is None:
            return None
        stored = repository.get_topic_by_id(self.db, topic.id)
        if stored is None or not stored.file_name:
            return None
        try:
            return self.document_service.read_document_body(stored.file_name)
        except DocumentReadError as e:
            logger.warning(f"{e}; regenerating topic {topic.id} from scratch")
            return None

    async def generate_documents(
        self,
        start_date: Union[datetime, str],
        end_date: Union[datetime, str],
        sender_refs: Optional[Sequence[str]] = None,
        mention_targets: Optional[Sequence[str]] = None,
    ) -> GenerationSummary:
        """
        Generate or update topic documents from messages in [start_date, end_date].

        Args:
            start_date: Inclusive start of the window
            end_date: Inclusive end of the window
            sender_refs: Only messages authored by these identities
            mention_targets: Only messages mentioning these identities

        Returns:
            GenerationSummary of written documents

        Raises:
            MalformedIdentityReferenceError: A filter reference is malformed
            InvalidRangeError: The date range is invalid
            RetryError / TopicGenerationError: The LLM step failed
        """
        try:
            senders = [validate_identity_reference(ref) for ref in sender_refs or []]
            mentions = [validate_identity_reference(ref) for ref in mention_targets or []]
            start, end = validate_date_range(start_date, end_date)

            logger.info(
                f"Generating documents for {start.isoformat()} to {end.isoformat()} "
                f"(senders={senders or 'any'}, mentions={mentions or 'any'})"
            )

            message_filter = MessageFilter(
                start_date=start,
                end_date=end,
                sender_refs=senders or None,
                mention_targets=mentions or None,
                include_threads=True,
            )
            grouped = get_filtered_messages_grouped(self.db, message_filter)
            summary = GenerationSummary(message_count=grouped.total_message_count)

            if grouped.total_message_count == 0:
                logger.warning("No messages found for the given filter")
                return summary

            logger.info(
                f"Found {grouped.total_message_count} messages in {len(grouped.threads)} threads "
                f"and {len(grouped.standalone_messages)} standalone messages"
            )

            parser = MessageParser(self.db)
            messages_markdown = grouped_messages_to_markdown(grouped, parser)

            topics_result = await self.generator.generate_topics(
                messages_markdown, repository.get_topics(self.db)
            )
            summary.topic_count = len(topics_result.topics)

            messages_by_id = {m.id: m for m in grouped.all_messages() if m.id is not None}

            for topic in topics_result.topics:
                related = [messages_by_id[i] for i in topic.message_ids if i in messages_by_id]
                if not related:
                    logger.warning(f"No related messages found for topic: {topic.title}")
                    continue

                # Keep only ids that were actually part of this run
                topic = topic.model_copy(update={"message_ids": [m.id for m in related]})
                existing_content = self._read_existing_content(topic)

                content = await self.generator.generate_document_content(
                    topic, related, parser, existing_content
                )
                result = self.document_service.create_or_update_document(self.db, topic, content)
                summary.documents.append(result)

            logger.info(
                f"Document generation finished: {summary.created} created, {summary.updated} updated"
            )
            return summary

        except Exception as e:
            logger.error(f"Document generation failed: {e}")
            raise
