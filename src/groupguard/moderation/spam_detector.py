"""
Sliding-window spam detection.

:class:`SpamWindowDetector` keeps one ascending timestamp sequence per
(group, user). Each observation appends ``now``, drops timestamps that fell out
of the window, and triggers once the survivors reach the threshold; triggering
clears the sequence so the next window starts empty.

:class:`SpamGuard` is the pipeline rule built on it: it resolves the group's
spam settings and mutes the sender when the detector triggers.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Tuple

from groupguard.configuration.config_store import ConfigStore
from groupguard.configuration.group_settings import (
    DEFAULT_SPAM_BAN_MINUTES,
    DEFAULT_SPAM_THRESHOLD,
    DEFAULT_SPAM_WINDOW_SECONDS,
)
from groupguard.datatypes.action_datatypes import ActionData, ActionType
from groupguard.services.action_api import ActionAPI
from groupguard.util.logger import get_logger

logger = get_logger("spam_detector")


class SpamWindowDetector:
    """Per-(group, user) sliding-window rate counter."""

    def __init__(self) -> None:
        self._windows: Dict[Tuple[str, str], Deque[int]] = {}

    def observe(
        self,
        group_id: str,
        user_id: str,
        now_ms: int,
        window_ms: int = DEFAULT_SPAM_WINDOW_SECONDS * 1000,
        threshold: int = DEFAULT_SPAM_THRESHOLD,
    ) -> bool:
        """Record one message at ``now_ms`` and report whether the rate limit tripped."""
        key = (group_id, user_id)
        timestamps = self._windows.setdefault(key, deque())

        # Back-dated observations are clamped so the sequence stays ascending.
        if timestamps and now_ms < timestamps[-1]:
            now_ms = timestamps[-1]
        timestamps.append(now_ms)

        while timestamps and now_ms - timestamps[0] >= window_ms:
            timestamps.popleft()

        if len(timestamps) >= threshold:
            del self._windows[key]
            return True
        return False

    def window(self, group_id: str, user_id: str) -> List[int]:
        """Snapshot of the timestamps currently counted for (group, user)."""
        return list(self._windows.get((group_id, user_id), ()))

    def clear(self) -> None:
        self._windows.clear()


class SpamGuard:
    """Pipeline rule: mute members whose message rate exceeds the group's limit."""

    def __init__(self, store: ConfigStore, api: ActionAPI, detector: SpamWindowDetector | None = None) -> None:
        self.store = store
        self.api = api
        self.detector = detector or SpamWindowDetector()

    async def check(self, group_id: str, user_id: str, now_ms: int) -> ActionData | None:
        settings = self.store.effective_settings(group_id)
        if not settings.spam_detect:
            return None

        window_seconds = settings.spam_window or DEFAULT_SPAM_WINDOW_SECONDS
        threshold = settings.spam_threshold or DEFAULT_SPAM_THRESHOLD
        if not self.detector.observe(group_id, user_id, now_ms, window_seconds * 1000, threshold):
            return None

        ban_minutes = settings.spam_ban_minutes or DEFAULT_SPAM_BAN_MINUTES
        await self.api.mute(group_id, user_id, ban_minutes * 60)
        await self.api.send_group_text(group_id, f"⚠️ {user_id} 刷屏检测触发，已禁言 {ban_minutes} 分钟")
        logger.info(
            "[SPAM GUARD] Group %s user %s sent %d messages within %ds, muted %d min",
            group_id, user_id, threshold, window_seconds, ban_minutes,
        )
        return ActionData(group_id, user_id, ActionType.MUTE, reason="spam", mute_minutes=ban_minutes)
