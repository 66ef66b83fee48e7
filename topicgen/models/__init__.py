# Shared data models
from topicgen.models.message import (
    SlackMessage,
    MessageThread,
    GroupedMessages,
    MessageFilter,
)
from topicgen.models.topic import Topic, TopicsResult, DocumentResult, GenerationSummary

__all__ = [
    "SlackMessage",
    "MessageThread",
    "GroupedMessages",
    "MessageFilter",
    "Topic",
    "TopicsResult",
    "DocumentResult",
    "GenerationSummary",
]
