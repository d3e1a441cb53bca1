"""Tests for emoji auto-react and welcome messages."""

import pytest

from conftest import make_api
from groupguard.configuration.group_settings import GroupSettings
from groupguard.moderation.engagement import EmojiReactor, WelcomeGreeter
from groupguard.services.action_api import at_segment, text_segment


class TestEmojiReactor:
    def test_targets_and_self(self, store):
        store.read().emoji_react_groups["g"] = ["123456", "self"]
        reactor = EmojiReactor(store, make_api())

        assert reactor.should_react("g", "123456", "999")
        assert reactor.should_react("g", "999", "999")
        assert not reactor.should_react("g", "555", "999")
        assert not reactor.should_react("other", "123456", "999")

    def test_global_reacts_to_everyone(self, store):
        store.read().global_emoji_react = True
        assert EmojiReactor(store, make_api()).should_react("g", "555", "")

    @pytest.mark.asyncio
    async def test_react_uses_configured_emoji(self, store):
        store.read().global_emoji_react = True
        api = make_api()

        assert await EmojiReactor(store, api, emoji_id="124").react("g", "u", "m", "") is True
        api.react_to_message.assert_awaited_once_with("m", "124")


class TestWelcomeGreeter:
    @pytest.mark.asyncio
    async def test_no_template_sends_nothing(self, store):
        api = make_api()
        assert await WelcomeGreeter(store, api).greet("g", "u") is False
        api.send_group_message.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_group_template_with_placeholders(self, store):
        store.read().groups["g"] = GroupSettings(welcome_message="欢迎 {user} 加入 {group}")
        api = make_api()

        assert await WelcomeGreeter(store, api).greet("g", "u") is True
        api.send_group_message.assert_awaited_once_with("g", [at_segment("u"), text_segment(" 欢迎 u 加入 g")])

    @pytest.mark.asyncio
    async def test_empty_group_template_falls_back_to_global(self, store):
        store.read().global_settings.welcome_message = "welcome"
        store.read().groups["g"] = GroupSettings(welcome_message="")
        api = make_api()

        assert await WelcomeGreeter(store, api).greet("g", "u") is True
        api.send_group_message.assert_awaited_once_with("g", [at_segment("u"), text_segment(" welcome")])
