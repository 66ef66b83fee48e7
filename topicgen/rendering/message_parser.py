"""
Message Text Parser

Replaces Slack mention markup with readable names:
- <@U09CRTF2ELU>                 -> @nickname (or @Dummy when unknown)
- <!subteam^S123456|@backend>    -> @group name (or the inline handle)
- <!subteam^S123456>             -> @group name (or @UnknownGroup)
"""

import re
from typing import Dict, Optional

from sqlalchemy.orm import Session

from topicgen.db.repository import get_group_display_name, get_user_display_name

USER_MENTION_PATTERN = re.compile(r"<@([A-Z0-9]+)>")
GROUP_MENTION_PATTERN = re.compile(r"<!subteam\^([A-Z0-9]+)(?:\|@?([^>]+))?>")

UNKNOWN_USER = "Dummy"
UNKNOWN_GROUP = "UnknownGroup"


class MessageParser:
    """Resolves mention markup against the users table, caching lookups."""

    def __init__(self, db: Session):
        self.db = db
        self._users: Dict[str, Optional[str]] = {}
        self._groups: Dict[str, Optional[str]] = {}

    def _user_name(self, user_id: str) -> Optional[str]:
        if user_id not in self._users:
            self._users[user_id] = get_user_display_name(self.db, user_id)
        return self._users[user_id]

    def _group_name(self, group_id: str) -> Optional[str]:
        if group_id not in self._groups:
            self._groups[group_id] = get_group_display_name(self.db, group_id)
        return self._groups[group_id]

    def parse(self, raw: str) -> str:
        def replace_user(match: re.Match) -> str:
            return f"@{self._user_name(match.group(1)) or UNKNOWN_USER}"

        def replace_group(match: re.Match) -> str:
            name = self._group_name(match.group(1)) or match.group(2) or UNKNOWN_GROUP
            return f"@{name}"

        parsed = USER_MENTION_PATTERN.sub(replace_user, raw or "")
        return GROUP_MENTION_PATTERN.sub(replace_group, parsed)

    __call__ = parse


def parse_message(raw: str, db: Session) -> str:
    """Parse a single message without a shared lookup cache."""
    return MessageParser(db).parse(raw)
