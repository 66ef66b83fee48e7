"""
Topic Generator

Identifies topics in rendered messages and writes document bodies for them.

Topic identification takes two LLM calls: a free-form analysis, then a
formatting step that turns the analysis into JSON and links topics to
existing ones by id.
"""

import logging
import re
from typing import Iterable, Optional, Sequence

from pydantic import ValidationError

from topicgen.ai_core.llm import LLMClient
from topicgen.ai_core.prompts import (
    create_new_document_prompt,
    create_topic_analysis_prompt,
    create_topic_formatting_prompt,
    create_update_document_prompt,
    format_existing_topics,
)
from topicgen.models.message import SlackMessage
from topicgen.models.topic import Topic, TopicsResult
from topicgen.rendering.markdown_formatter import TextParser, format_messages_for_document

logger = logging.getLogger(__name__)

_JSON_OBJECT = re.compile(r"\{[\s\S]*\}")
_MARKDOWN_FENCE = re.compile(r"^```(?:markdown|md)?\s*\n(.*?)\n```\s*$", re.DOTALL)


class TopicGenerationError(Exception):
    """Raised when the topic response is not valid topic JSON."""

    pass


def parse_topics_response(content: str) -> TopicsResult:
    """
    Extract and validate the topics JSON object from an LLM response.

    Raises:
        TopicGenerationError: If no valid topics object is found
    """
    match = _JSON_OBJECT.search(content)
    json_text = match.group(0) if match else content
    try:
        return TopicsResult.model_validate_json(json_text)
    except ValidationError as e:
        logger.error(f"Failed to parse AI response as topics JSON: {content[:500]}")
        raise TopicGenerationError(f"Failed to parse AI response: {e}") from e


def strip_markdown_fence(content: str) -> str:
    """Remove a ```markdown fence wrapped around the whole response."""
    match = _MARKDOWN_FENCE.match(content.strip())
    return match.group(1) if match else content


class TopicGenerator:
    """Drives the LLM for topic identification and document writing."""

    def __init__(self, client: Optional[LLMClient] = None):
        self.client = client or LLMClient()

    async def generate_topics(self, messages_markdown: str, existing_topics: Iterable = ()) -> TopicsResult:
        """
        Identify topics in the rendered messages.

        Args:
            messages_markdown: Output of grouped_messages_to_markdown
            existing_topics: Stored topics (id, title, description) to match against

        Returns:
            Validated TopicsResult

        Raises:
            RetryError: If an LLM call keeps failing
            TopicGenerationError: If the JSON step returns unusable output
        """
        logger.info("Starting topic generation (two-step approach)")

        logger.debug("Step 1: requesting topic analysis")
        analysis = await self.client.generate_content(
            create_topic_analysis_prompt(messages_markdown)
        )

        logger.debug("Step 2: requesting JSON formatting and topic matching")
        content = await self.client.generate_content(
            create_topic_formatting_prompt(
                analysis, messages_markdown, format_existing_topics(existing_topics)
            )
        )

        result = parse_topics_response(content)
        logger.info(f"Generated {len(result.topics)} topics")
        return result

    async def generate_document_content(
        self,
        topic: Topic,
        related_messages: Sequence[SlackMessage],
        parse: Optional[TextParser] = None,
        existing_content: Optional[str] = None,
    ) -> str:
        """
        Write a new document body, or update `existing_content` when given.
        """
        is_update = existing_content is not None
        logger.info(
            f"Generating document content for topic: {topic.title} "
            f"({len(related_messages)} messages, update={is_update})"
        )

        messages_text = format_messages_for_document(related_messages, parse)
        if is_update:
            prompt = create_update_document_prompt(
                topic.title, topic.description, messages_text, existing_content
            )
        else:
            prompt = create_new_document_prompt(topic.title, topic.description, messages_text)

        content = await self.client.generate_content(prompt)
        return strip_markdown_fence(content)
