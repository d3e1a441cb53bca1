"""
Message-type filter: delete messages carrying blocked content.

Checks run in a fixed priority order and only the first match is reported,
even when a message carries several blocked types.
"""

from __future__ import annotations

import re
from typing import Callable, List, Optional, Sequence, Tuple

from groupguard.configuration.config_store import ConfigStore
from groupguard.configuration.group_settings import MsgFilter
from groupguard.services.action_api import ActionAPI
from groupguard.util.logger import get_logger

logger = get_logger("message_type_filter")

URL_PATTERN = re.compile(r"https?://", re.IGNORECASE)
CONTACT_CARD_APPS = ('"app":"com.tencent.contact.lua"', '"app":"com.tencent.qq.checkin"')

Check = Callable[[Sequence[str], str], bool]

# (MsgFilter flag, predicate over (segment types, raw text), reported reason)
TYPE_CHECKS: List[Tuple[str, Check, str]] = [
    ("block_video", lambda types, raw: "video" in types, "视频"),
    ("block_image", lambda types, raw: "image" in types, "图片"),
    ("block_record", lambda types, raw: "record" in types, "语音"),
    ("block_forward", lambda types, raw: "forward" in types, "合并转发"),
    ("block_light_app", lambda types, raw: "[CQ:json," in raw, "小程序卡片"),
    ("block_contact", lambda types, raw: any(app in raw for app in CONTACT_CARD_APPS), "名片分享"),
    ("block_url", lambda types, raw: bool(URL_PATTERN.search(raw)), "链接"),
]


def detect_blocked_type(msg_filter: MsgFilter, segment_types: Sequence[str], raw: str) -> Optional[str]:
    """Reason of the first enabled check the message fails, or None."""
    for flag, check, reason in TYPE_CHECKS:
        if getattr(msg_filter, flag) and check(segment_types, raw):
            return reason
    return None


class MessageTypeFilter:
    """Pipeline rule deleting messages whose content type the group blocks."""

    def __init__(self, store: ConfigStore, api: ActionAPI) -> None:
        self.store = store
        self.api = api

    async def apply(
        self,
        group_id: str,
        user_id: str,
        message_id: str,
        raw: str,
        segment_types: Sequence[str],
    ) -> Optional[str]:
        msg_filter = self.store.effective_settings(group_id).msg_filter
        if msg_filter is None:
            return None

        reason = detect_blocked_type(msg_filter, segment_types, raw)
        if reason is None:
            return None

        await self.api.delete_message(message_id)
        logger.info("[TYPE FILTER] Group %s user %s sent %s, message deleted", group_id, user_id, reason)
        return reason
