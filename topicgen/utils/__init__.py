"""
Utility package exports
"""

from topicgen.utils.helpers import build_frontmatter, create_safe_filename, split_frontmatter, to_iso_utc
from topicgen.utils.retry import RetryError, RetryOptions, with_retry
from topicgen.utils.validation import (
    InvalidDateFormatError,
    InvalidRangeError,
    MalformedIdentityReferenceError,
    ensure_utc,
    parse_date_string,
    validate_date_range,
    validate_identity_reference,
)

__all__ = [
    "build_frontmatter",
    "create_safe_filename",
    "split_frontmatter",
    "to_iso_utc",
    "RetryError",
    "RetryOptions",
    "with_retry",
    "InvalidDateFormatError",
    "InvalidRangeError",
    "MalformedIdentityReferenceError",
    "ensure_utc",
    "parse_date_string",
    "validate_date_range",
    "validate_identity_reference",
]
