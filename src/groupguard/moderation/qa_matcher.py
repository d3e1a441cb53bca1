"""
Keyword Q&A replies.

Entries are tried in list order and the first match wins. ``exact`` and
``contains`` compare against the message with CQ markup stripped; ``regex``
searches the stripped text with the keyword compiled as a pattern. Patterns
that fail to compile never match and are only compiled once.
"""

from __future__ import annotations

import re
from typing import Dict, Iterable, Optional

from groupguard.configuration.config_store import ConfigStore
from groupguard.configuration.group_settings import QAEntry, QAMode
from groupguard.util.cq_utils import strip_cq_codes
from groupguard.util.logger import get_logger

logger = get_logger("qa_matcher")


class PatternCache:
    """Compiled regex per keyword; ``None`` marks a malformed pattern."""

    def __init__(self) -> None:
        self._patterns: Dict[str, Optional[re.Pattern[str]]] = {}

    def compile(self, keyword: str) -> Optional[re.Pattern[str]]:
        if keyword not in self._patterns:
            try:
                self._patterns[keyword] = re.compile(keyword)
            except re.error as exc:
                logger.warning("[QA MATCHER] Ignoring malformed pattern %r: %s", keyword, exc)
                self._patterns[keyword] = None
        return self._patterns[keyword]

    def __len__(self) -> int:
        return len(self._patterns)


def render_reply(template: str, user_id: str, group_id: str) -> str:
    return template.replace("{user}", user_id).replace("{group}", group_id)


class QAMatcher:
    """Finds the reply for a message from the group's effective Q&A list."""

    def __init__(self, store: ConfigStore, patterns: Optional[PatternCache] = None) -> None:
        self.store = store
        self.patterns = patterns or PatternCache()

    def entry_matches(self, entry: QAEntry, text: str) -> bool:
        if entry.mode is QAMode.EXACT:
            return text == entry.keyword
        if entry.mode is QAMode.CONTAINS:
            return entry.keyword in text
        pattern = self.patterns.compile(entry.keyword)
        return pattern is not None and pattern.search(text) is not None

    def first_match(self, entries: Iterable[QAEntry], text: str) -> Optional[QAEntry]:
        return next((entry for entry in entries if self.entry_matches(entry, text)), None)

    def match(self, group_id: str, user_id: str, raw_text: str) -> Optional[str]:
        """Rendered reply for the message, or None when no entry matches."""
        entries = self.store.scoped_qa_list(group_id)
        if not entries:
            return None
        entry = self.first_match(entries, strip_cq_codes(raw_text))
        if entry is None:
            return None
        logger.debug("[QA MATCHER] Group %s user %s matched [%s]%s", group_id, user_id, entry.mode, entry.keyword)
        return render_reply(entry.reply, user_id, group_id)
