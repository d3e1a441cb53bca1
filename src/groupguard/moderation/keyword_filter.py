"""
Keyword filter with a cumulative punishment ladder.

When the resolved group settings carry a keyword list (set on the group or
inherited from the global settings), that list and the resolved punishment
settings apply. Otherwise the shared ``filterKeywords`` list applies with the
global punishment settings. The first keyword (in list order) found as a
substring of the raw message triggers the ladder:

    level >= 1  delete the message
    level >= 2  + mute for ``filter_ban_minutes``
    level >= 3  + kick, deferred by about a second and not awaited
    level >= 4  + add the sender to the global blacklist
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from groupguard.configuration.config_store import ConfigStore
from groupguard.configuration.group_settings import (
    DEFAULT_FILTER_BAN_MINUTES,
    DEFAULT_FILTER_PUNISH_LEVEL,
    PluginConfig,
)
from groupguard.datatypes.action_datatypes import ActionData, ActionType
from groupguard.scheduler.deferred_action_scheduler import DeferredActionScheduler, ScheduledAction
from groupguard.services.action_api import ActionAPI
from groupguard.util.logger import get_logger

logger = get_logger("keyword_filter")

MIN_PUNISH_LEVEL = 1
MAX_PUNISH_LEVEL = 4
DEFAULT_KICK_DELAY_SECONDS = 1.0


@dataclass(slots=True)
class FilterPolicy:
    """Keyword list and punishment settings in force for one group."""

    keywords: List[str]
    level: int
    ban_minutes: int
    group_scoped: bool


@dataclass(slots=True)
class FilterOutcome:
    """What the filter did for one message."""

    keyword: str
    level: int
    actions: List[ActionData] = field(default_factory=list)
    scheduled: Optional[ScheduledAction] = None

    @property
    def action_types(self) -> List[ActionType]:
        return [action.action for action in self.actions]


def find_keyword(raw: str, keywords: Sequence[str]) -> Optional[str]:
    """First keyword contained in ``raw``, in list order."""
    return next((keyword for keyword in keywords if keyword and keyword in raw), None)


def clamp_level(level: Optional[int]) -> int:
    if not level:
        return DEFAULT_FILTER_PUNISH_LEVEL
    return max(MIN_PUNISH_LEVEL, min(MAX_PUNISH_LEVEL, int(level)))


class KeywordFilterEngine:
    """Scans messages for filter keywords and applies the punishment ladder."""

    def __init__(
        self,
        store: ConfigStore,
        api: ActionAPI,
        scheduler: DeferredActionScheduler,
        kick_delay_seconds: float = DEFAULT_KICK_DELAY_SECONDS,
    ) -> None:
        self.store = store
        self.api = api
        self.scheduler = scheduler
        self.kick_delay_seconds = kick_delay_seconds

    def resolve_policy(self, group_id: str) -> FilterPolicy:
        settings = self.store.effective_settings(group_id)
        config = self.store.read()

        if settings.filter_keywords:
            return FilterPolicy(
                keywords=list(settings.filter_keywords),
                level=clamp_level(settings.filter_punish_level),
                ban_minutes=settings.filter_ban_minutes or DEFAULT_FILTER_BAN_MINUTES,
                group_scoped=True,
            )

        global_settings = config.global_settings
        return FilterPolicy(
            keywords=list(config.filter_keywords),
            level=clamp_level(global_settings.filter_punish_level),
            ban_minutes=global_settings.filter_ban_minutes or DEFAULT_FILTER_BAN_MINUTES,
            group_scoped=False,
        )

    async def apply(self, group_id: str, user_id: str, message_id: str, raw: str) -> Optional[FilterOutcome]:
        """Run the filter on one message. Returns None when no keyword matched."""
        policy = self.resolve_policy(group_id)
        if not policy.keywords:
            return None
        keyword = find_keyword(raw, policy.keywords)
        if keyword is None:
            return None

        logger.info(
            "[KEYWORD FILTER] Group %s user %s hit keyword %r, punish level %d",
            group_id, user_id, keyword, policy.level,
        )
        outcome = FilterOutcome(keyword=keyword, level=policy.level)
        reason = f"keyword:{keyword}"

        await self.api.delete_message(message_id)
        outcome.actions.append(ActionData(group_id, user_id, ActionType.DELETE, reason=reason, message_id=message_id))

        if policy.level >= 2:
            await self.api.mute(group_id, user_id, policy.ban_minutes * 60)
            await self.api.send_group_text(group_id, f"⚠️ {user_id} 触发违禁词，已禁言 {policy.ban_minutes} 分钟")
            outcome.actions.append(
                ActionData(group_id, user_id, ActionType.MUTE, reason=reason, mute_minutes=policy.ban_minutes)
            )

        if policy.level >= 3:
            outcome.scheduled = self.scheduler.schedule(
                f"kick {user_id} from {group_id}",
                self.kick_delay_seconds,
                lambda: self.api.kick(group_id, user_id),
            )
            await self.api.send_group_text(group_id, f"⚠️ {user_id} 触发违禁词，已踢出")
            outcome.actions.append(ActionData(group_id, user_id, ActionType.KICK, reason=reason, deferred=True))

        if policy.level >= 4:
            def add_to_blacklist(config: PluginConfig) -> None:
                if user_id not in config.blacklist:
                    config.blacklist.append(user_id)

            self.store.mutate(add_to_blacklist)
            outcome.actions.append(ActionData(group_id, user_id, ActionType.BLACKLIST, reason=reason))

        return outcome
