"""
Card lock: keep a member's group card pinned to a locked value.

Locks live in the config as ``"group:user" -> card``. An empty string is a real
lock (the card must stay empty); no key means no lock. Reconciliation runs on
card-change notices and, passively, against the card carried by every message.
"""

from __future__ import annotations

from typing import Optional

from groupguard.configuration.config_store import ConfigStore
from groupguard.configuration.group_settings import card_lock_key
from groupguard.services.action_api import ActionAPI
from groupguard.util.logger import get_logger

logger = get_logger("card_lock")


class CardLockEnforcer:
    """Restores locked cards when the observed card differs."""

    def __init__(self, store: ConfigStore, api: ActionAPI) -> None:
        self.store = store
        self.api = api

    def locked_card(self, group_id: str, user_id: str) -> Optional[str]:
        return self.store.read().card_locks.get(card_lock_key(group_id, user_id))

    async def reconcile(self, group_id: str, user_id: str, observed_card: Optional[str]) -> bool:
        """Restore the lock if ``observed_card`` differs. Returns True when a fix was issued."""
        locked = self.locked_card(group_id, user_id)
        if locked is None:
            return False

        current = observed_card or ""
        if current == locked:
            return False

        logger.info(
            "[CARD LOCK] %s in group %s has card %r, restoring locked %r",
            user_id, group_id, current, locked,
        )
        await self.api.set_card(group_id, user_id, locked)
        return True

    async def reconcile_from_host(self, group_id: str, user_id: str) -> bool:
        """Reconcile against a fresh member lookup (notice without the new card)."""
        if self.locked_card(group_id, user_id) is None:
            return False
        info = await self.api.get_member_info(group_id, user_id, no_cache=True)
        return await self.reconcile(group_id, user_id, info.card)
