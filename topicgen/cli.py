"""
TopicGen command line.

Commands:
    topicgen generate START END [SENDER ...] [--mention REF ...]
    topicgen messages START END [-t] [-m] [MENTION ...]
    topicgen crawl [START END]
    topicgen migrate
    topicgen clear-topics
    topicgen serve [--host HOST] [--port PORT]

Dates are YYYY-MM-DD (UTC). END covers the whole day.
"""

import argparse
import asyncio
import logging
import sys
from datetime import datetime
from typing import Dict, List, Optional, Sequence, Tuple

from topicgen.config import configure_logging, get_settings
from topicgen.db import repository
from topicgen.db.storage import get_session_factory
from topicgen.models.message import MessageFilter, SlackMessage
from topicgen.rendering.markdown_formatter import grouped_messages_to_markdown
from topicgen.rendering.message_parser import MessageParser
from topicgen.retrieval.retriever import get_filtered_messages, get_filtered_messages_grouped
from topicgen.utils.validation import (
    parse_date_string,
    validate_date_range,
    validate_identity_reference,
)

logger = logging.getLogger(__name__)

IDENTITY_FORMATS_HELP = """
identity formats:
  @username        Username with @ prefix
  username         Username without @ prefix
  <@U123456>       Slack user ID format
  U123456          Raw Slack user ID
  @groupname       Group handle with @ prefix
"""


def _parse_range(start: str, end: str) -> Tuple[datetime, datetime]:
    start_dt = parse_date_string(start, "start date")
    end_dt = parse_date_string(end, "end date", end_of_day=True)
    return validate_date_range(start_dt, end_dt)


def _format_message_line(message: SlackMessage) -> str:
    user = message.user_name or message.user_id or "Unknown"
    channel = message.channel_name or message.channel_id or "Unknown"
    thread = f" [Thread: {message.thread_ts}]" if message.thread_ts else ""
    timestamp = message.created_at.strftime("%Y-%m-%d %H:%M:%S")
    return f"[{timestamp}] {user} in #{channel}{thread}:\n{message.text}\n"


def generate_command(args: argparse.Namespace) -> int:
    from topicgen.services.topic_orchestrator import TopicOrchestrator

    start, end = _parse_range(args.start, args.end)
    senders = [validate_identity_reference(ref) for ref in args.senders]
    mentions = [validate_identity_reference(ref) for ref in args.mention]

    with get_session_factory()() as db:
        summary = asyncio.run(
            TopicOrchestrator(db).generate_documents(start, end, senders, mentions)
        )

    print(f"Processed {summary.message_count} messages into {summary.topic_count} topics")
    for document in summary.documents:
        action = "updated" if document.is_update else "created"
        print(f"  {action}: {document.filename} (topic {document.topic_id})")
    return 0


def messages_command(args: argparse.Namespace) -> int:
    start, end = _parse_range(args.start, args.end)
    mentions = [validate_identity_reference(ref) for ref in args.mentions]
    message_filter = MessageFilter(
        start_date=start,
        end_date=end,
        mention_targets=mentions or None,
        include_threads=args.include_threads,
    )

    with get_session_factory()() as db:
        if args.markdown:
            grouped = get_filtered_messages_grouped(db, message_filter)
            if grouped.total_message_count == 0:
                print("No messages found matching the criteria.")
                return 0
            print(grouped_messages_to_markdown(grouped, MessageParser(db)))
            return 0

        print("Retrieving filtered messages...")
        print(f"Date range: {args.start} to {args.end}")
        if mentions:
            print(f"User mentions: {', '.join(mentions)}")
        if args.include_threads:
            print("Including thread messages")
        print("---")

        messages = get_filtered_messages(db, message_filter)
        if not messages:
            print("No messages found matching the criteria.")
            return 0

        print(f"Found {len(messages)} messages:\n")
        for message in messages:
            print(_format_message_line(message))
            print("---")
        print(f"\nTotal: {len(messages)} messages")
    return 0


def crawl_command(args: argparse.Namespace) -> int:
    from topicgen.integrations.slack import SlackCrawler

    start = end = None
    if args.start:
        start, end = _parse_range(args.start, args.end)

    with get_session_factory()() as db:
        summary = asyncio.run(SlackCrawler().crawl(db, start, end))

    for channel_id, count in summary.messages_per_channel.items():
        print(f"  {channel_id}: {count} messages")
    print(
        f"Saved {summary.messages_saved} messages, {summary.mentions_saved} mentions, "
        f"{summary.users_saved} users and {summary.groups_saved} groups"
    )
    return 0


def migrate_command(args: argparse.Namespace) -> int:
    # Building the session factory applies pending migrations
    get_session_factory()
    print("Database schema is up to date")
    return 0


def clear_topics_command(args: argparse.Namespace) -> int:
    with get_session_factory()() as db:
        repository.clear_topics(db)
    print("Cleared all topics and message-topic relations")
    return 0


def serve_command(args: argparse.Namespace) -> int:
    import uvicorn

    settings = get_settings()
    uvicorn.run(
        "topicgen.main:app",
        host=args.host,
        port=args.port,
        log_level="debug" if settings.debug else "info",
    )
    return 0


def build_parsers() -> Tuple[argparse.ArgumentParser, Dict[str, argparse.ArgumentParser]]:
    """Top-level parser plus the parser of each subcommand, by name."""
    parser = argparse.ArgumentParser(
        prog="topicgen",
        description="Crawl Slack channels and organize discussions into topic documents",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    generate = subparsers.add_parser(
        "generate",
        help="Generate or update topic documents",
        epilog=IDENTITY_FORMATS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    generate.add_argument("start", help="Start date (YYYY-MM-DD)")
    generate.add_argument("end", help="End date (YYYY-MM-DD, inclusive)")
    generate.add_argument("senders", nargs="*", help="Only messages from these users")
    generate.add_argument(
        "--mention",
        action="append",
        default=[],
        help="Only messages mentioning this user or group (repeatable)",
    )
    generate.set_defaults(handler=generate_command)

    messages = subparsers.add_parser(
        "messages",
        help="Show messages matching a filter",
        epilog=IDENTITY_FORMATS_HELP,
        formatter_class=argparse.RawDescriptionHelpFormatter,
    )
    messages.add_argument("start", help="Start date (YYYY-MM-DD)")
    messages.add_argument("end", help="End date (YYYY-MM-DD, inclusive)")
    messages.add_argument("mentions", nargs="*", help="Only messages mentioning these users or groups")
    messages.add_argument(
        "-t", "--include-threads", action="store_true", help="Include thread messages"
    )
    messages.add_argument(
        "-m", "--markdown", action="store_true", help="Output markdown grouped by threads"
    )
    messages.set_defaults(handler=messages_command)

    crawl = subparsers.add_parser("crawl", help="Crawl configured Slack channels")
    crawl.add_argument("start", nargs="?", help="Oldest date (YYYY-MM-DD)")
    crawl.add_argument("end", nargs="?", help="Latest date (YYYY-MM-DD, inclusive)")
    crawl.set_defaults(handler=crawl_command)

    migrate = subparsers.add_parser("migrate", help="Apply pending database migrations")
    migrate.set_defaults(handler=migrate_command)

    clear = subparsers.add_parser("clear-topics", help="Delete all topics and relations")
    clear.set_defaults(handler=clear_topics_command)

    serve = subparsers.add_parser("serve", help="Run the read-only document API")
    serve.add_argument("--host", default="127.0.0.1", help="Bind address")
    serve.add_argument("--port", type=int, default=8000, help="Port")
    serve.set_defaults(handler=serve_command)

    return parser, subparsers.choices


def parse_args(argv: Optional[Sequence[str]] = None) -> argparse.Namespace:
    """
    Parse the command line.

    Subcommands are parsed with parse_intermixed_args so identities may
    follow flags (`messages START END -t -m @alice`). Anything that is not
    a known subcommand goes through the top-level parser for usage and help.
    """
    parser, command_parsers = build_parsers()
    arguments: List[str] = list(sys.argv[1:] if argv is None else argv)

    if not arguments or arguments[0] not in command_parsers:
        return parser.parse_args(arguments)

    command, rest = arguments[0], arguments[1:]
    command_parser = command_parsers[command]
    args = command_parser.parse_intermixed_args(rest)
    args.command = command

    if command == "crawl" and bool(args.start) != bool(args.end):
        command_parser.error("crawl takes both START and END, or neither")
    return args


def main(argv: Optional[Sequence[str]] = None) -> int:
    args = parse_args(argv)

    configure_logging(get_settings())

    try:
        return args.handler(args)
    except Exception as e:
        logger.debug("Command failed", exc_info=True)
        print(f"Error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    raise SystemExit(main())
