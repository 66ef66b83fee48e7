"""
Markdown Formatter

Renders messages as markdown for LLM prompts and the message viewer.
Every message carries its database id so topic assignments can refer to it.
"""

from typing import Callable, List, Optional, Sequence

from topicgen.models.message import GroupedMessages, MessageThread, SlackMessage

TextParser = Callable[[str], str]


def _identity(text: str) -> str:
    return text


def _format_time(message: SlackMessage) -> str:
    return message.created_at.strftime("%Y-%m-%d %H:%M:%S UTC")


def _format_message(message: SlackMessage, parse: TextParser, in_thread: bool = False) -> str:
    lines: List[str] = []
    if in_thread:
        lines.append(f"- **Message ID:** {message.id}")
    else:
        lines.append(f"#### Message ID: {message.id}")
    lines.append(f"- **Channel:** {message.channel_name or message.channel_id}")
    lines.append(f"- **User:** {message.user_name or message.user_id}")
    lines.append(f"- **Time:** {_format_time(message)}")
    if not in_thread and message.thread_ts:
        lines.append(f"- **Thread ID:** {message.thread_ts}")
    lines.append(f"- **Content:** {parse(message.text)}")

    markdown = "\n".join(lines) + "\n\n"
    if not in_thread:
        markdown += "---\n\n"
    return markdown


def _format_thread(thread: MessageThread, parse: TextParser) -> str:
    markdown = f"### Thread (message id: {thread.parent_message.id})\n\n"
    if thread.parent_is_synthetic:
        markdown += "**🧵 Thread (original starter not in results):**\n"
    else:
        markdown += "**🧵 Thread Starter:**\n"
    markdown += _format_message(thread.parent_message, parse, in_thread=True)

    if thread.replies:
        markdown += "**💬 Replies:**\n\n"
        for reply in thread.replies:
            markdown += "**Reply:**\n"
            markdown += _format_message(reply, parse, in_thread=True)

    markdown += "---\n\n"
    return markdown


def grouped_messages_to_markdown(
    grouped: GroupedMessages, parse: Optional[TextParser] = None
) -> str:
    """
    Render grouped messages: conversation threads first, then standalone messages.

    Args:
        grouped: Grouping result
        parse: Message text normalizer (e.g. a MessageParser); identity by default
    """
    parse = parse or _identity
    markdown = "# Slack Messages (Grouped by Threads)\n\n"

    if grouped.threads:
        markdown += "## Conversation Threads\n\n"
        for thread in grouped.threads:
            markdown += _format_thread(thread, parse)

    if grouped.standalone_messages:
        markdown += "## Standalone Messages\n\n"
        for message in grouped.standalone_messages:
            markdown += _format_message(message, parse)

    return markdown


def messages_to_markdown(messages: Sequence[SlackMessage], parse: Optional[TextParser] = None) -> str:
    """Render a flat, chronological message list."""
    parse = parse or _identity
    markdown = "# Slack Messages\n\n"
    for message in messages:
        markdown += f"## Message ID: {message.id}\n"
        markdown += f"**Channel:** {message.channel_name or message.channel_id}\n"
        markdown += f"**User:** {message.user_name or message.user_id}\n"
        markdown += f"**Time:** {_format_time(message)}\n"
        if message.thread_ts:
            markdown += f"**Thread:** {message.thread_ts}\n"
        markdown += f"**Content:** {parse(message.text)}\n\n"
        markdown += "---\n\n"
    return markdown


def format_messages_for_document(
    messages: Sequence[SlackMessage], parse: Optional[TextParser] = None
) -> str:
    """One line per message: [time] user in channel: text"""
    parse = parse or _identity
    return "\n".join(
        f"[{_format_time(m)}] {m.user_name or m.user_id} in {m.channel_name or m.channel_id}: "
        f"{parse(m.text)}"
        for m in messages
    )
