"""
Prompts for topic identification.

Two steps: a free-form analysis of the messages, then formatting that
analysis as JSON while matching against topics already in the database.
"""

from textwrap import dedent
from typing import Iterable

TOPIC_ANALYSIS_PROMPT = dedent(
    """
    Analyze the following Slack messages and think about how to identify distinct topics.

    First, carefully read through all the messages and think about:
    1. What are the main subjects being discussed?
    2. How can we group related messages together?
    3. Which messages belong to which topics based on their content?

    Messages that are part of the same thread usually belong to the same topic.

    For each topic you identify, explain your reasoning for grouping those messages together.
    Include the message IDs (extract from "Message ID: X" lines) that belong to each topic.

    Messages to analyze:
    {messages_markdown}

    Please provide your analysis and reasoning first, then list the topics you've identified.
    """
).strip()

TOPIC_FORMATTING_PROMPT = dedent(
    """
    Based on your previous analysis, now format the identified topics into a JSON structure.
    At the same time, check if any of your topics are similar to existing topics in the database.

    Your previous analysis:
    {analysis}

    Here are the existing topics in the database:
    {existing_topics}

    Now create a JSON object with this exact structure:
    {{
      "topics": [
        {{
          "title": "API Performance Optimization",
          "description": "Discussion about database query optimization and caching strategies",
          "message_ids": [123, 124, 127],
          "id": 5
        }},
        {{
          "title": "New Feature Requirements",
          "description": "Requests for user dashboard improvements and notification system additions",
          "message_ids": [125, 126, 128]
        }}
      ]
    }}

    Requirements:
    - Each topic must have at least one message_id
    - Use clear, concise titles
    - Provide meaningful descriptions
    - Only include message IDs that actually exist in the original messages
    - If a topic is similar to an existing topic in the database (similar title, description, or subject matter), add the existing topic's "id" field
    - Only add the "id" field if you found the topics are discussing similar subject matter
    - Return ONLY the JSON object, no additional text

    Original messages for reference:
    {messages_markdown}
    """
).strip()

NO_EXISTING_TOPICS = "No existing topics found."


def format_existing_topics(topics: Iterable) -> str:
    """
    List existing topics for the matching step.

    Args:
        topics: Objects with id, title and description attributes

    Returns:
        One line per topic, or a placeholder when there are none
    """
    lines = [
        f'ID: {topic.id}, Title: "{topic.title}", Description: "{topic.description or "No description"}"'
        for topic in topics
    ]
    return "\n".join(lines) if lines else NO_EXISTING_TOPICS


def create_topic_analysis_prompt(messages_markdown: str) -> str:
    return TOPIC_ANALYSIS_PROMPT.format(messages_markdown=messages_markdown)


def create_topic_formatting_prompt(analysis: str, messages_markdown: str, existing_topics: str) -> str:
    return TOPIC_FORMATTING_PROMPT.format(
        analysis=analysis,
        existing_topics=existing_topics,
        messages_markdown=messages_markdown,
    )
