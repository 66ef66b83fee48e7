"""Prompts package."""

from topicgen.ai_core.prompts.topics import (
    create_topic_analysis_prompt,
    create_topic_formatting_prompt,
    format_existing_topics,
)
from topicgen.ai_core.prompts.documents import (
    create_new_document_prompt,
    create_update_document_prompt,
)

__all__ = [
    "create_topic_analysis_prompt",
    "create_topic_formatting_prompt",
    "format_existing_topics",
    "create_new_document_prompt",
    "create_update_document_prompt",
]
