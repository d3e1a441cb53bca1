"""
Non-enforcing group features: emoji auto-react and welcome messages.
"""

from __future__ import annotations

from groupguard.configuration.config_store import ConfigStore
from groupguard.services.action_api import ActionAPI, at_segment, text_segment
from groupguard.util.logger import get_logger

logger = get_logger("engagement")

SELF_TARGET = "self"
DEFAULT_EMOJI_ID = "76"


class EmojiReactor:
    """Reacts to messages from configured members (or everyone, globally)."""

    def __init__(self, store: ConfigStore, api: ActionAPI, emoji_id: str = DEFAULT_EMOJI_ID) -> None:
        self.store = store
        self.api = api
        self.emoji_id = emoji_id

    def should_react(self, group_id: str, user_id: str, self_id: str) -> bool:
        config = self.store.read()
        if config.global_emoji_react:
            return True
        targets = config.emoji_react_groups.get(group_id) or []
        return user_id in targets or (SELF_TARGET in targets and bool(self_id) and user_id == self_id)

    async def react(self, group_id: str, user_id: str, message_id: str, self_id: str) -> bool:
        if not self.should_react(group_id, user_id, self_id):
            return False
        await self.api.react_to_message(message_id, self.emoji_id)
        return True


class WelcomeGreeter:
    """Greets new members with the group's (or global) welcome template."""

    def __init__(self, store: ConfigStore, api: ActionAPI) -> None:
        self.store = store
        self.api = api

    async def greet(self, group_id: str, user_id: str) -> bool:
        template = self.store.effective_settings(group_id).welcome_message
        if not template:
            template = self.store.read().global_settings.welcome_message
        if not template:
            return False
        text = template.replace("{user}", user_id).replace("{group}", group_id)
        await self.api.send_group_message(group_id, [at_segment(user_id), text_segment(f" {text}")])
        logger.debug("[WELCOME] Greeted %s in group %s", user_id, group_id)
        return True
