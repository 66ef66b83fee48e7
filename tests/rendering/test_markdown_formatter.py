"""
Tests for markdown rendering of messages.
"""

from topicgen.models.message import GroupedMessages
from topicgen.rendering.markdown_formatter import (
    format_messages_for_document,
    grouped_messages_to_markdown,
    messages_to_markdown,
)
from topicgen.retrieval.grouping import group_messages_by_threads


class TestGroupedMarkdown:
    def test_threads_before_standalone(self, make_message):
        grouped = group_messages_by_threads(
            [
                make_message(0, "parent", id=1),
                make_message(1, "reply", reply_to=0, id=2),
                make_message(2, "lonely", id=3),
            ]
        )

        markdown = grouped_messages_to_markdown(grouped)

        assert markdown.startswith("# Slack Messages (Grouped by Threads)")
        assert markdown.index("## Conversation Threads") < markdown.index("## Standalone Messages")
        assert "### Thread (message id: 1)" in markdown
        assert "**🧵 Thread Starter:**" in markdown
        assert "**💬 Replies:**" in markdown
        assert "- **Message ID:** 2" in markdown
        assert "#### Message ID: 3" in markdown
        assert "- **Time:** 2025-01-10 12:02:00 UTC" in markdown

    def test_synthetic_parent_is_labelled(self, make_message):
        grouped = group_messages_by_threads([make_message(5, "orphan", reply_to=0, id=9)])

        markdown = grouped_messages_to_markdown(grouped)

        assert "original starter not in results" in markdown
        assert "Thread Starter" not in markdown

    def test_parser_applied_to_content(self, make_message):
        grouped = group_messages_by_threads([make_message(0, "hi <@U1>", id=1)])

        markdown = grouped_messages_to_markdown(grouped, lambda text: text.replace("<@U1>", "@bob"))

        assert "- **Content:** hi @bob" in markdown

    def test_empty(self):
        markdown = grouped_messages_to_markdown(GroupedMessages())

        assert "Conversation Threads" not in markdown
        assert "Standalone Messages" not in markdown


class TestFlatFormats:
    def test_messages_to_markdown(self, make_message):
        markdown = messages_to_markdown(
            [make_message(0, "first", id=1), make_message(1, "second", reply_to=0, id=2)]
        )

        assert "## Message ID: 1" in markdown
        assert "## Message ID: 2" in markdown
        assert markdown.count("**Thread:**") == 1

    def test_format_for_document(self, make_message):
        text = format_messages_for_document(
            [
                make_message(0, "hello", user_name="alice"),
                make_message(1, "hi", user_name="", user_id="U200", channel_name=""),
            ]
        )

        assert text.splitlines() == [
            "[2025-01-10 12:00:00 UTC] alice in general: hello",
            "[2025-01-10 12:01:00 UTC] U200 in C1: hi",
        ]
