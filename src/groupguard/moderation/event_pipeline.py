"""
Event pipeline: the single entry point for every inbound host event.

For a group message the rules run in a fixed order and the first rule that
acts consumes the message:

1. blacklist (global or group): delete and kick
2. admin commands (handled by the command router, bypassing the rules below;
   a command the sender may not run is answered and then falls through)
3. keyword filter
4. message-type filter
5. spam detection
6. targeted auto-recall
7. keyword Q&A reply

Owners and whitelisted members skip rules 3-5. Emoji auto-react runs only for
messages no rule consumed. Card-lock reconciliation runs for every message,
consumed or not, since it concerns the sender's card rather than the content.
"""

from __future__ import annotations

import time
from typing import Callable, Optional, Union

from groupguard.command.admin_commands import CommandRouter
from groupguard.configuration.config_store import ConfigStore
from groupguard.datatypes.event_datatypes import (
    GroupMessageEvent,
    GroupRecallEvent,
    MemberCardChangeEvent,
    MemberIncreaseEvent,
)
from groupguard.moderation.card_lock import CardLockEnforcer
from groupguard.moderation.engagement import DEFAULT_EMOJI_ID, EmojiReactor, WelcomeGreeter
from groupguard.moderation.keyword_filter import DEFAULT_KICK_DELAY_SECONDS, KeywordFilterEngine
from groupguard.moderation.message_type_filter import MessageTypeFilter
from groupguard.moderation.qa_matcher import QAMatcher
from groupguard.moderation.recall_cache import DEFAULT_RECALL_TTL_MS, AntiRecall, RecallCache
from groupguard.moderation.spam_detector import SpamGuard
from groupguard.scheduler.deferred_action_scheduler import DeferredActionScheduler
from groupguard.services.action_api import ActionAPI
from groupguard.util.logger import get_logger

logger = get_logger("event_pipeline")

HostEvent = Union[GroupMessageEvent, GroupRecallEvent, MemberIncreaseEvent, MemberCardChangeEvent]

# Rules that delete the message; its cached copy must not be reposted on recall.
DELETING_RULES = frozenset({"blacklist", "keyword_filter", "type_filter", "targeted_recall"})


def current_millis() -> int:
    return int(time.time() * 1000)


class EventPipeline:
    """
    Owns the rule engines and their ephemeral caches, and routes events to them.

    Args:
        store: Configuration store consulted by every rule.
        api: Host action API.
        scheduler: Runs deferred actions (the keyword-filter kick).
        commands: Optional command router; tried right after the blacklist.
        clock: Millisecond clock; must be non-decreasing.
    """

    def __init__(
        self,
        store: ConfigStore,
        api: ActionAPI,
        scheduler: Optional[DeferredActionScheduler] = None,
        commands: Optional[CommandRouter] = None,
        clock: Optional[Callable[[], int]] = None,
        *,
        recall_ttl_ms: int = DEFAULT_RECALL_TTL_MS,
        kick_delay_seconds: float = DEFAULT_KICK_DELAY_SECONDS,
        emoji_id: str = DEFAULT_EMOJI_ID,
    ) -> None:
        self.store = store
        self.api = api
        self.scheduler = scheduler or DeferredActionScheduler()
        self.commands = commands
        self.clock = clock or current_millis

        self.spam_guard = SpamGuard(store, api)
        self.recall_cache = RecallCache(store, recall_ttl_ms)
        self.anti_recall = AntiRecall(store, api, self.recall_cache)
        self.keyword_filter = KeywordFilterEngine(store, api, self.scheduler, kick_delay_seconds)
        self.type_filter = MessageTypeFilter(store, api)
        self.qa_matcher = QAMatcher(store)
        self.card_lock = CardLockEnforcer(store, api)
        self.emoji_reactor = EmojiReactor(store, api, emoji_id)
        self.greeter = WelcomeGreeter(store, api)

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def dispatch(self, event: HostEvent) -> bool:
        """Route any event to its handler; log and swallow failures.

        A failing action API call only loses the current event; the caller
        keeps feeding the next ones.
        """
        try:
            if isinstance(event, GroupMessageEvent):
                return await self.handle_message(event)
            if isinstance(event, GroupRecallEvent):
                return await self.handle_recall(event)
            if isinstance(event, MemberIncreaseEvent):
                return await self.handle_member_increase(event)
            if isinstance(event, MemberCardChangeEvent):
                return await self.handle_card_change(event)
            logger.debug("[EVENT PIPELINE] Ignoring unsupported event %r", event)
            return False
        except Exception:
            logger.exception("[EVENT PIPELINE] Failed to handle %s", type(event).__name__)
            return False

    async def handle_message(self, event: GroupMessageEvent) -> bool:
        """Run the rule chain for one group message. Returns True if a rule consumed it."""
        now_ms = self.clock()
        self.recall_cache.record(event.message_id, event.user_id, event.group_id, event.raw_message, now_ms)

        consumed_by = await self.run_rules(event, now_ms)
        if consumed_by in DELETING_RULES:
            self.recall_cache.discard(event.message_id)
        if consumed_by:
            logger.debug("[EVENT PIPELINE] Message %s in group %s consumed by %s",
                         event.message_id, event.group_id, consumed_by)
        else:
            await self.emoji_reactor.react(event.group_id, event.user_id, event.message_id, event.self_id)

        await self.card_lock.reconcile(event.group_id, event.user_id, event.sender_card)
        return consumed_by is not None

    async def handle_recall(self, event: GroupRecallEvent) -> bool:
        return await self.anti_recall.on_recall(event, self.clock())

    async def handle_member_increase(self, event: MemberIncreaseEvent) -> bool:
        return await self.greeter.greet(event.group_id, event.user_id)

    async def handle_card_change(self, event: MemberCardChangeEvent) -> bool:
        if event.card_new is None:
            return await self.card_lock.reconcile_from_host(event.group_id, event.user_id)
        return await self.card_lock.reconcile(event.group_id, event.user_id, event.card_new)

    async def shutdown(self) -> None:
        await self.scheduler.shutdown()

    # ------------------------------------------------------------------
    # Rule chain
    # ------------------------------------------------------------------

    async def run_rules(self, event: GroupMessageEvent, now_ms: int) -> Optional[str]:
        """Run the ordered rules and return the name of the one that acted, if any."""
        group_id, user_id, message_id = event.group_id, event.user_id, event.message_id

        if event.self_id and user_id == event.self_id:
            return None

        if await self.check_blacklist(group_id, user_id, message_id):
            return "blacklist"

        if self.commands is not None and await self.commands.handle(event):
            return "command"

        exempt = self.store.is_owner(user_id) or self.store.is_whitelisted(user_id)
        if not exempt:
            if await self.keyword_filter.apply(group_id, user_id, message_id, event.raw_message):
                return "keyword_filter"
            if await self.type_filter.apply(group_id, user_id, message_id, event.raw_message, event.segment_types):
                return "type_filter"
            if await self.spam_guard.check(group_id, user_id, now_ms):
                return "spam"

        if await self.check_targeted(group_id, user_id, message_id):
            return "targeted_recall"

        reply = self.qa_matcher.match(group_id, user_id, event.raw_message)
        if reply is not None:
            await self.api.send_group_text(group_id, reply)
            return "qa"

        return None

    async def check_blacklist(self, group_id: str, user_id: str, message_id: str) -> bool:
        global_black = self.store.is_blacklisted(user_id)
        group_black = user_id in (self.store.effective_settings(group_id).group_blacklist or [])
        if not global_black and not group_black:
            return False

        await self.api.delete_message(message_id)
        await self.api.kick(group_id, user_id)
        logger.info(
            "[EVENT PIPELINE] Blacklisted user %s spoke in group %s, deleted and kicked (%s blacklist)",
            user_id, group_id, "global" if global_black else "group",
        )
        return True

    async def check_targeted(self, group_id: str, user_id: str, message_id: str) -> bool:
        if user_id not in (self.store.effective_settings(group_id).target_users or []):
            return False
        await self.api.delete_message(message_id)
        logger.debug("[EVENT PIPELINE] Targeted recall of message %s from %s in group %s",
                     message_id, user_id, group_id)
        return True
