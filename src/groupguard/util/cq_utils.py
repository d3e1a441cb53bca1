"""
Helpers for QQ inline markup (CQ codes) in raw message text.

Raw messages embed non-text content as ``[CQ:type,key=value,...]``. Commands
and Q&A matching work on the text with this markup removed; target extraction
reads the ``at`` codes before they are stripped.
"""

import re
from typing import Optional

CQ_CODE_PATTERN = re.compile(r"\[CQ:[^\]]+\]")
AT_PATTERN = re.compile(r"\[CQ:at,qq=(\d+)\]")
QQ_NUMBER_PATTERN = re.compile(r"(\d{5,12})")


def strip_cq_codes(raw: str) -> str:
    """Remove every CQ code and trim surrounding whitespace."""
    return CQ_CODE_PATTERN.sub("", raw or "").strip()


def extract_at(raw: str) -> Optional[str]:
    """Return the QQ number of the first @-mention in ``raw``."""
    match = AT_PATTERN.search(raw or "")
    return match.group(1) if match else None


def extract_qq(text: str) -> Optional[str]:
    """Return the first 5-12 digit run in ``text``."""
    match = QQ_NUMBER_PATTERN.search(text or "")
    return match.group(1) if match else None


def get_target(raw: str, text_after_command: str) -> Optional[str]:
    """Command target: the first @-mention, else a bare QQ number after the verb."""
    return extract_at(raw) or extract_qq(text_after_command)
