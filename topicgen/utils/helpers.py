"""
Shared Utility Functions

Common helper functions used across multiple modules.
"""

import re
import time
import yaml
import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from topicgen.utils.validation import ensure_utc

logger = logging.getLogger(__name__)

_FRONTMATTER_PATTERN = re.compile(r"^---\s*\n(.*?)\n---\s*\n?(.*)$", re.DOTALL)
_UNSAFE_FILENAME_CHARS = re.compile(r'[\s\\/:"*?<>|]+')


def to_iso_utc(value: datetime) -> str:
    """
    Serialize a datetime as the fixed-width UTC string used for storage.

    All stored `created_at` values share this format so that string
    comparison in SQL matches chronological order.
    """
    return ensure_utc(value).strftime("%Y-%m-%dT%H:%M:%S.%fZ")


def create_safe_filename(title: str, max_length: int = 50) -> str:
    """
    Create a markdown filename from a topic title.

    Whitespace and path/shell-unsafe characters collapse to hyphens; the
    stem is capped at max_length characters. Titles that reduce to nothing
    get a timestamp-based name.

    Args:
        title: Topic title
        max_length: Maximum stem length

    Returns:
        Filename with .md extension
    """
    filename = _UNSAFE_FILENAME_CHARS.sub("-", title.strip()).strip("-")
    filename = filename[:max_length].rstrip("-")

    if not filename:
        filename = f"document-{int(time.time() * 1000)}"

    return f"{filename}.md"


def build_frontmatter(metadata: Dict[str, Any], body: str) -> str:
    """
    Prepend a YAML frontmatter block to a markdown body.

    None values are dropped; the body is kept verbatim.
    """
    data = {key: value for key, value in metadata.items() if value is not None}
    frontmatter = yaml.safe_dump(
        data, sort_keys=False, allow_unicode=True, default_flow_style=False
    ).strip()
    return f"---\n{frontmatter}\n---\n\n{body.lstrip()}"


def split_frontmatter(content: str) -> Tuple[Optional[Dict[str, Any]], str]:
    """
    Split markdown content into (frontmatter, body).

    Returns (None, content) when there is no frontmatter or it is not
    valid YAML mapping.
    """
    if not content.startswith("---"):
        return None, content

    match = _FRONTMATTER_PATTERN.match(content)
    if not match:
        return None, content

    try:
        data = yaml.safe_load(match.group(1))
    except yaml.YAMLError as e:
        logger.warning(f"Ignoring invalid YAML frontmatter: {e}")
        return None, content

    if not isinstance(data, dict):
        return None, content

    return data, match.group(2).lstrip("\n")
