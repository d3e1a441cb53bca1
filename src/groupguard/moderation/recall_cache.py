"""
Recall cache and anti-recall reporting.

Messages from groups with anti-recall enabled (per group or globally) are kept
for a bounded time so that, when the sender withdraws one, its content can be
posted back to the group and/or reported to the owners.

Key Features:
- Lazy eviction: each insert sweeps entries older than the TTL; no timer task.
- Consumption removes the entry; stale entries are never returned even if the
  sweep has not reached them yet.
"""

from __future__ import annotations

from collections import OrderedDict
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from groupguard.configuration.config_store import ConfigStore
from groupguard.datatypes.event_datatypes import GroupRecallEvent
from groupguard.services.action_api import ActionAPI
from groupguard.util.logger import get_logger

logger = get_logger("recall_cache")

DEFAULT_RECALL_TTL_MS = 600_000
REPORT_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(slots=True)
class CachedMessage:
    """A message kept for anti-recall."""

    user_id: str
    group_id: str
    raw: str
    time_ms: int


class RecallCache:
    """
    TTL-bounded store of recent messages keyed by message id.

    Attributes:
        ttl_ms (int): Lifetime of an entry in milliseconds.
    """

    def __init__(self, store: ConfigStore, ttl_ms: int = DEFAULT_RECALL_TTL_MS) -> None:
        self.store = store
        self.ttl_ms = ttl_ms
        self._entries: "OrderedDict[str, CachedMessage]" = OrderedDict()

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, message_id: object) -> bool:
        return message_id in self._entries

    def record(self, message_id: str, user_id: str, group_id: str, raw: str, now_ms: int) -> bool:
        """Cache a message if anti-recall covers its group. Returns True when stored."""
        if not self.store.anti_recall_enabled(group_id):
            return False

        self._entries[message_id] = CachedMessage(user_id=user_id, group_id=group_id, raw=raw, time_ms=now_ms)
        self._entries.move_to_end(message_id)
        self.sweep(now_ms)
        return True

    def sweep(self, now_ms: int) -> int:
        """Evict every entry aged ``ttl_ms`` or more. Returns the number evicted."""
        expired = [key for key, entry in self._entries.items() if now_ms - entry.time_ms >= self.ttl_ms]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug("[RECALL CACHE] Evicted %d expired message(s)", len(expired))
        return len(expired)

    def consume(self, message_id: str, now_ms: int) -> Optional[CachedMessage]:
        """Remove and return the entry for ``message_id`` if present and still fresh."""
        entry = self._entries.pop(message_id, None)
        if entry is None or now_ms - entry.time_ms >= self.ttl_ms:
            return None
        return entry

    def discard(self, message_id: str) -> bool:
        """Drop ``message_id`` without reporting it. Returns True when it was cached."""
        return self._entries.pop(message_id, None) is not None

    def clear(self) -> None:
        self._entries.clear()


class AntiRecall:
    """Reposts withdrawn messages to the group and reports them to owners.

    Only recalls made by the sender count; removals by an admin or the bot are
    ignored.
    """

    def __init__(self, store: ConfigStore, api: ActionAPI, cache: RecallCache) -> None:
        self.store = store
        self.api = api
        self.cache = cache

    async def on_recall(self, event: GroupRecallEvent, now_ms: int) -> bool:
        """Handle a recall notice. Returns True when something was reported."""
        config = self.store.read()
        group_mode = event.group_id in config.anti_recall_groups
        global_mode = config.global_anti_recall
        if not group_mode and not global_mode:
            return False

        if event.operator_id and event.operator_id != event.user_id:
            self.cache.discard(event.message_id)
            logger.debug("[ANTI RECALL] Message %s in group %s was removed by %s, not its sender",
                         event.message_id, event.group_id, event.operator_id)
            return False

        cached = self.cache.consume(event.message_id, now_ms)
        if cached is None:
            return False

        if group_mode:
            await self.api.send_group_text(
                event.group_id, f"🔔 防撤回 - 用户 {event.user_id} 撤回了消息：\n{cached.raw}"
            )

        if global_mode:
            time_str = datetime.fromtimestamp(now_ms / 1000).strftime(REPORT_TIME_FORMAT)
            report = (
                f"🔔 防撤回通知\n群号：{event.group_id}\nQQ号：{event.user_id}\n"
                f"时间：{time_str}\n撤回内容：{cached.raw}"
            )
            for owner_id in self.store.owner_ids():
                await self.api.send_private_message(owner_id, report)

        logger.info("[ANTI RECALL] Reported recall of message %s by %s in group %s",
                    event.message_id, event.user_id, event.group_id)
        return True
