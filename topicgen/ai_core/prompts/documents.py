"""
Prompts for document content generation.
"""

from textwrap import dedent

NEW_DOCUMENT_PROMPT = dedent(
    """
    Create a comprehensive document based on the following Slack messages discussion.

    Topic: {title}
    Description: {description}

    Related messages:
    {messages_text}

    Please create a well-structured markdown document that:
    1. Summarizes the key points discussed
    2. Organizes information logically
    3. Includes relevant details and decisions made
    4. Uses proper markdown formatting
    5. Starts with a clear title using # {title}

    Make it professional and easy to understand for someone who wasn't part of the original conversation.
    Return only the markdown document, without YAML frontmatter.
    """
).strip()

UPDATE_DOCUMENT_PROMPT = dedent(
    """
    Update the following document with new information from recent Slack messages.
    Add the new context while maintaining the existing structure and avoiding duplication.

    Existing document:
    {existing_content}

    New messages to incorporate:
    {messages_text}

    Topic: {title}
    Description: {description}

    Please update the document to include the new information while maintaining a coherent structure.
    Return only the full updated markdown document, without YAML frontmatter.
    """
).strip()


def create_new_document_prompt(title: str, description: str, messages_text: str) -> str:
    return NEW_DOCUMENT_PROMPT.format(
        title=title, description=description, messages_text=messages_text
    )


def create_update_document_prompt(
    title: str, description: str, messages_text: str, existing_content: str
) -> str:
    return UPDATE_DOCUMENT_PROMPT.format(
        title=title,
        description=description,
        messages_text=messages_text,
        existing_content=existing_content,
    )
