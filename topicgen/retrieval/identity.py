"""
Identity Reference Resolution

Turns free-form sender / mention references into SQL predicates.

Accepted shapes, tried in order:
1. Bracket ID:  <@U123ABC>  -> ID match, plus the bracket literal in text
2. Bare ID:     U123ABC     -> ID match, plus the bracket literal in text
3. Name:        @alice / alice -> user_name / nickname match, plus "@alice" in text

Anything else degrades to a plain substring match; resolution never raises.
"""

import re
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple

from sqlalchemy import false, or_, select
from sqlalchemy.orm import aliased
from sqlalchemy.sql.elements import ColumnElement

from topicgen.db.models import Mention, Message, User

_BRACKET_ID = re.compile(r"^<@([A-Z0-9]+)>$")
_BARE_ID = re.compile(r"^[UWS][A-Z0-9]+$")
_NAME = re.compile(r"^@?([\w.-]+)$")


@dataclass(frozen=True)
class IdentityReference:
    """A resolved identity reference."""

    raw: str
    user_id: Optional[str] = None  # For relational lookup (mentions.user_id / messages.user_id)
    name: Optional[str] = None  # Display name without the "@" prefix
    literals: Tuple[str, ...] = field(default_factory=tuple)  # Substrings to look for in text

    @property
    def is_group(self) -> bool:
        return bool(self.user_id and self.user_id.startswith("S"))


def resolve_identity(reference: Optional[str]) -> IdentityReference:
    """
    Resolve a reference into an IdentityReference.

    Args:
        reference: Raw reference as typed by the user

    Returns:
        The resolved reference (literal-only when the shape is not recognized)
    """
    raw = (reference or "").strip()

    match = _BRACKET_ID.match(raw)
    if match:
        return IdentityReference(raw=raw, user_id=match.group(1), literals=(raw,))

    if _BARE_ID.match(raw):
        identity = IdentityReference(raw=raw, user_id=raw, literals=(f"<@{raw}>",))
        if identity.is_group:
            # Group mentions are rendered as <!subteam^S123|@handle>
            identity = replace(identity, literals=identity.literals + (f"<!subteam^{raw}",))
        return identity

    match = _NAME.match(raw)
    if match:
        name = match.group(1)
        return IdentityReference(raw=raw, name=name, literals=(f"@{name}",))

    return IdentityReference(raw=raw, literals=(raw,) if raw else ())


def mention_condition(identity: IdentityReference) -> ColumnElement:
    """
    Predicate matching messages that mention the identity.

    Expects the query to outer-join `mentions` on (channel_id, ts) and
    `users` on mentions.user_id.
    """
    conditions = [Message.text.contains(literal, autoescape=True) for literal in identity.literals]
    if identity.user_id:
        conditions.append(Mention.user_id == identity.user_id)
    if identity.name:
        conditions.append(User.user_name == identity.name)
        conditions.append(User.nickname == identity.name)
    return or_(*conditions) if conditions else false()


def sender_condition(identity: IdentityReference) -> ColumnElement:
    """Predicate matching messages authored by the identity."""
    if identity.user_id:
        return Message.user_id == identity.user_id

    if identity.name:
        # Aliased so it never correlates with a users join in the outer query
        sender = aliased(User)
        known_ids = select(sender.user_id).where(
            or_(sender.user_name == identity.name, sender.nickname == identity.name)
        )
        return or_(Message.user_name == identity.name, Message.user_id.in_(known_ids))

    if identity.raw:
        return Message.user_name.contains(identity.raw, autoescape=True)
    return false()
