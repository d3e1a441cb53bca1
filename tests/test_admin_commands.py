"""Tests for the admin command router."""

import asyncio

import pytest

from conftest import make_api
from groupguard.command.admin_commands import COMMAND_SPECS, CommandRouter, find_command, parse_mute_minutes
from groupguard.configuration.config_store import ConfigStore
from groupguard.configuration.group_settings import GroupSettings, QAEntry, QAMode
from groupguard.datatypes.command_datatypes import PermissionTier
from groupguard.datatypes.event_datatypes import GroupMessageEvent
from groupguard.services.action_api import MemberInfo, MemberRole

OWNER = "10001"
ADMIN = "20001"
MEMBER = "30001"


@pytest.fixture
def owner_store() -> ConfigStore:
    return ConfigStore(default_owner_ids=[OWNER])


def make_router(store, role=MemberRole.MEMBER):
    api = make_api(role=role)
    return CommandRouter(store, api, menu_nickname="bot"), api


async def run(router, raw, user_id=OWNER, group_id="g1"):
    event = GroupMessageEvent(group_id=group_id, user_id=user_id, message_id="m1", raw_message=raw, self_id="99999")
    return await router.handle(event)


def last_reply(api):
    return api.send_group_text.await_args.args[1]


class TestParsing:
    def test_find_command_respects_excludes_and_order(self):
        assert find_command("禁言 123456").handler == "mute"
        assert find_command("禁言列表") is None
        assert find_command("针对列表").handler == "list_targets"
        assert find_command("取消针对 123456").handler == "remove_target"
        assert find_command("群拉黑 123456").handler == "add_group_blacklist"
        assert find_command("白名单列表").handler == "list_whitelist"
        assert find_command("全体禁言").handler == "whole_mute_on"
        assert find_command("添加问答") is None
        assert find_command("你好") is None

    def test_list_and_help_commands_are_open_to_members(self):
        open_handlers = {spec.handler for spec in COMMAND_SPECS if spec.tier is PermissionTier.MEMBER}
        assert "help" in open_handlers
        assert all(h == "help" or h.startswith("list_") for h in open_handlers)

    @pytest.mark.parametrize(
        "rest, minutes",
        [("123456 30", 30), ("123456", 10), ("30", 30), ("", 10), ("123456 abc 5", 5)],
    )
    def test_parse_mute_minutes(self, rest, minutes):
        assert parse_mute_minutes(rest) == minutes


@pytest.mark.asyncio
async def test_non_command_is_not_handled(owner_store):
    router, api = make_router(owner_store)
    assert await run(router, "hello") is False
    api.send_group_text.assert_not_awaited()


class TestPermissions:
    @pytest.mark.asyncio
    async def test_member_cannot_kick(self, owner_store):
        router, api = make_router(owner_store)

        assert await run(router, "踢出 123456", user_id=MEMBER) is False
        api.kick.assert_not_awaited()
        assert last_reply(api) == "需要管理员权限"

    @pytest.mark.asyncio
    async def test_group_admin_can_kick(self, owner_store):
        router, api = make_router(owner_store, role=MemberRole.ADMIN)

        await run(router, "踢出[CQ:at,qq=123456]", user_id=ADMIN)

        api.kick.assert_awaited_once_with("g1", "123456")
        assert last_reply(api) == "已踢出 123456"

    @pytest.mark.asyncio
    async def test_group_owner_role_counts_as_admin(self, owner_store):
        router, api = make_router(owner_store, role=MemberRole.OWNER)
        await run(router, "全体禁言", user_id=ADMIN)
        api.set_whole_group_mute.assert_awaited_once_with("g1", True)

    @pytest.mark.asyncio
    async def test_owner_passes_admin_check_without_lookup(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "全体解禁")
        api.lookup_member_role.assert_not_awaited()
        assert last_reply(api) == "已关闭全体禁言"

    @pytest.mark.asyncio
    async def test_group_admin_cannot_edit_global_blacklist(self, owner_store):
        router, api = make_router(owner_store, role=MemberRole.ADMIN)

        await run(router, "拉黑 123456", user_id=ADMIN)

        assert last_reply(api) == "需要主人权限"
        assert owner_store.read().blacklist == []

    @pytest.mark.asyncio
    async def test_title_commands_report_owner_requirement(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "授予头衔 123456 大佬", user_id=MEMBER)
        assert last_reply(api) == "需要群主权限"


class TestMemberManagement:
    @pytest.mark.asyncio
    async def test_kick_without_target_shows_usage(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "踢出")
        api.kick.assert_not_awaited()
        assert last_reply(api) == "请指定目标：踢出@某人 或 踢出QQ号"

    @pytest.mark.asyncio
    async def test_mute_with_minutes(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "禁言[CQ:at,qq=123456] 30")
        api.mute.assert_awaited_once_with("g1", "123456", 1800)
        assert last_reply(api) == "已禁言 123456，时长 30 分钟"

    @pytest.mark.asyncio
    async def test_mute_defaults_to_ten_minutes(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "禁言 123456")
        api.mute.assert_awaited_once_with("g1", "123456", 600)

    @pytest.mark.asyncio
    async def test_unmute(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "解禁 123456")
        api.unmute.assert_awaited_once_with("g1", "123456")
        assert last_reply(api) == "已解禁 123456"

    @pytest.mark.asyncio
    async def test_grant_and_clear_title(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "授予头衔 123456 大佬")
        api.set_special_title.assert_awaited_with("g1", "123456", "大佬")
        assert last_reply(api) == "已为 123456 设置头衔：大佬"

        await run(router, "清除头衔 123456")
        api.set_special_title.assert_awaited_with("g1", "123456", "")
        assert last_reply(api) == "已清除 123456 的头衔"

    @pytest.mark.asyncio
    async def test_grant_empty_title(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "授予头衔[CQ:at,qq=123456]")
        assert last_reply(api) == "已为 123456 设置头衔：(空)"


class TestCardLocks:
    @pytest.mark.asyncio
    async def test_lock_uses_current_card(self, owner_store):
        router, api = make_router(owner_store)
        api.get_member_info.return_value = MemberInfo(user_id="123456", card="Alice", nickname="alice")

        await run(router, "锁定名片 123456")

        assert owner_store.read().card_locks == {"g1:123456": "Alice"}
        assert last_reply(api) == "已锁定 123456 的名片为：Alice"

    @pytest.mark.asyncio
    async def test_lock_falls_back_to_nickname_then_empty(self, owner_store):
        router, api = make_router(owner_store)
        api.get_member_info.return_value = MemberInfo(user_id="123456", nickname="alice")
        await run(router, "锁定名片 123456")
        assert owner_store.read().card_locks["g1:123456"] == "alice"

        api.get_member_info.return_value = MemberInfo(user_id="234567")
        await run(router, "锁定名片 234567")
        assert owner_store.read().card_locks["g1:234567"] == ""
        assert last_reply(api) == "已锁定 234567 的名片为：(空)"

    @pytest.mark.asyncio
    async def test_unlock_and_list(self, owner_store):
        owner_store.read().card_locks = {"g1:123456": "Alice", "g2:234567": "Bob"}
        router, api = make_router(owner_store)

        await run(router, "名片锁定列表", user_id=MEMBER)
        assert last_reply(api) == "名片锁定列表：\n123456 → Alice"

        await run(router, "解锁名片 123456")
        assert owner_store.read().card_locks == {"g2:234567": "Bob"}

        await run(router, "名片锁定列表", user_id=MEMBER)
        assert last_reply(api) == "当前群没有锁定的名片"


class TestToggles:
    @pytest.mark.asyncio
    async def test_anti_recall_toggle_and_list(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "开启防撤回")
        await run(router, "开启防撤回")
        assert owner_store.read().anti_recall_groups == ["g1"]
        assert last_reply(api) == "已开启防撤回"

        await run(router, "防撤回列表", user_id=MEMBER)
        assert last_reply(api) == "防撤回已开启的群：\ng1"

        await run(router, "关闭防撤回")
        assert owner_store.read().anti_recall_groups == []
        await run(router, "防撤回列表", user_id=MEMBER)
        assert last_reply(api) == "没有开启防撤回的群"

    @pytest.mark.asyncio
    async def test_emoji_react_targets(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "开启回应表情")
        assert owner_store.read().emoji_react_groups == {"g1": []}
        assert last_reply(api) == "已开启回应表情"

        await run(router, "开启回应表情 self")
        await run(router, "开启回应表情[CQ:at,qq=123456]")
        assert owner_store.read().emoji_react_groups == {"g1": ["self", "123456"]}

        await run(router, "关闭回应表情")
        assert owner_store.read().emoji_react_groups == {}
        assert last_reply(api) == "已关闭回应表情"


class TestTargets:
    @pytest.mark.asyncio
    async def test_targets_go_to_global_list_without_override(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "针对 123456")

        assert owner_store.read().global_settings.target_users == ["123456"]
        assert last_reply(api) == "已针对 123456，其消息将被自动撤回"

    @pytest.mark.asyncio
    async def test_targets_go_to_group_list_with_custom_override(self, owner_store):
        owner_store.read().groups["g1"] = GroupSettings()
        router, api = make_router(owner_store)

        await run(router, "针对 123456")
        await run(router, "针对 234567")
        await run(router, "针对列表", user_id=MEMBER)

        assert owner_store.read().groups["g1"].target_users == ["123456", "234567"]
        assert owner_store.read().global_settings.target_users is None
        assert last_reply(api) == "当前群针对列表：\n123456\n234567"

        await run(router, "取消针对 123456")
        assert owner_store.read().groups["g1"].target_users == ["234567"]

        await run(router, "清除针对")
        assert owner_store.read().groups["g1"].target_users == []
        await run(router, "针对列表", user_id=MEMBER)
        assert last_reply(api) == "当前群没有针对的用户"

    @pytest.mark.asyncio
    async def test_target_usage(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "针对")
        assert last_reply(api) == "请指定目标：针对@某人 或 针对+QQ号"


class TestBlackWhiteLists:
    @pytest.mark.asyncio
    async def test_global_blacklist(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "拉黑 123456")
        assert owner_store.is_blacklisted("123456")
        assert last_reply(api) == "已将 123456 加入全局黑名单"

        await run(router, "黑名单列表", user_id=MEMBER)
        assert last_reply(api) == "全局黑名单：\n123456"

        await run(router, "取消拉黑 123456")
        assert not owner_store.is_blacklisted("123456")
        await run(router, "黑名单列表", user_id=MEMBER)
        assert last_reply(api) == "黑名单为空"

    @pytest.mark.asyncio
    async def test_group_blacklist_creates_custom_override(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "群拉黑 123456")

        settings = owner_store.read().groups["g1"]
        assert settings.use_global is False
        assert settings.group_blacklist == ["123456"]
        assert last_reply(api) == "已将 123456 加入本群黑名单"

        await run(router, "群黑名单列表", user_id=MEMBER)
        assert last_reply(api) == "本群黑名单：\n123456"

        await run(router, "群取消拉黑 123456")
        assert settings.group_blacklist == []
        await run(router, "群黑名单列表", user_id=MEMBER)
        assert last_reply(api) == "本群黑名单为空"

    @pytest.mark.asyncio
    async def test_whitelist(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "白名单 123456")
        assert owner_store.is_whitelisted("123456")
        assert last_reply(api) == "已将 123456 加入白名单"

        await run(router, "白名单列表", user_id=MEMBER)
        assert last_reply(api) == "全局白名单：\n123456"

        await run(router, "取消白名单 123456")
        assert last_reply(api) == "已将 123456 移出白名单"
        await run(router, "白名单列表", user_id=MEMBER)
        assert last_reply(api) == "白名单为空"


class TestFilterKeywords:
    @pytest.mark.asyncio
    async def test_add_list_remove(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "添加违禁词 广告")
        await run(router, "添加违禁词 代刷")
        assert last_reply(api) == "已添加违禁词：代刷"

        await run(router, "违禁词列表", user_id=MEMBER)
        assert last_reply(api) == "违禁词列表：\n广告、代刷"

        await run(router, "删除违禁词 广告")
        assert owner_store.read().filter_keywords == ["代刷"]
        assert last_reply(api) == "已删除违禁词：广告"

    @pytest.mark.asyncio
    async def test_add_without_word(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "添加违禁词")
        assert last_reply(api) == "请指定违禁词：添加违禁词 词语"
        assert owner_store.read().filter_keywords == []


class TestQA:
    @pytest.mark.asyncio
    async def test_add_modes_to_global_list(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "添加问答 你好|欢迎")
        assert last_reply(api) == "已添加精确问答：你好 → 欢迎"
        await run(router, "添加模糊问答 价格|请私聊")
        await run(router, "添加正则问答 ^签到$|已签到")

        assert owner_store.read().qa_list == [
            QAEntry("你好", "欢迎", QAMode.EXACT),
            QAEntry("价格", "请私聊", QAMode.CONTAINS),
            QAEntry("^签到$", "已签到", QAMode.REGEX),
        ]

        await run(router, "问答列表", user_id=MEMBER)
        assert last_reply(api) == (
            "全局问答列表：\n1. [精确] 你好 → 欢迎\n2. [模糊] 价格 → 请私聊\n3. [正则] ^签到$ → 已签到"
        )

    @pytest.mark.asyncio
    async def test_custom_group_gets_its_own_list(self, owner_store):
        owner_store.read().groups["g1"] = GroupSettings()
        router, api = make_router(owner_store)

        await run(router, "问答列表", user_id=MEMBER)
        assert last_reply(api) == "本群问答列表为空"

        await run(router, "添加问答 hi|hello")
        assert owner_store.read().groups["g1"].qa_list == [QAEntry("hi", "hello")]
        assert owner_store.read().qa_list == []

    @pytest.mark.asyncio
    async def test_add_rejects_bad_format(self, owner_store):
        router, api = make_router(owner_store)

        await run(router, "添加问答 没有分隔符")
        assert last_reply(api) == "格式：添加问答 关键词|回复内容"

        await run(router, "添加问答 |reply")
        assert last_reply(api) == "格式：添加问答 关键词|回复内容"

        await run(router, "添加问答 kw|  ")
        assert last_reply(api) == "关键词和回复不能为空"
        assert owner_store.read().qa_list == []

    @pytest.mark.asyncio
    async def test_remove(self, owner_store):
        owner_store.read().qa_list = [QAEntry("hi", "a"), QAEntry("hi", "b", QAMode.CONTAINS), QAEntry("yo", "c")]
        router, api = make_router(owner_store)

        await run(router, "删除问答 nope")
        assert last_reply(api) == "未找到问答：nope"

        await run(router, "删除问答 hi")
        assert last_reply(api) == "已删除问答：hi"
        assert owner_store.read().qa_list == [QAEntry("yo", "c")]

    @pytest.mark.asyncio
    async def test_member_cannot_add(self, owner_store):
        router, api = make_router(owner_store)
        await run(router, "添加问答 hi|hello", user_id=MEMBER)
        assert last_reply(api) == "需要管理员权限"


class TestHelp:
    @pytest.mark.asyncio
    async def test_help_sends_forwarded_menu(self, owner_store):
        router, api = make_router(owner_store)

        assert await run(router, "群管帮助", user_id=MEMBER) is True

        api.send_forwarded_nodes.assert_awaited_once()
        group_id, nodes = api.send_forwarded_nodes.await_args.args
        assert group_id == "g1"
        assert nodes and all(node["data"]["nickname"] == "bot" for node in nodes)
        assert all(node["data"]["user_id"] == "99999" for node in nodes)
        api.send_group_text.assert_not_awaited()


@pytest.mark.asyncio
async def test_concurrent_edits_to_one_group_are_not_lost(owner_store):
    owner_store.read().groups["g1"] = GroupSettings()
    router, api = make_router(owner_store)

    await asyncio.gather(*(run(router, f"针对 {100000 + i}") for i in range(5)))

    assert sorted(owner_store.read().groups["g1"].target_users) == [str(100000 + i) for i in range(5)]


@pytest.mark.asyncio
async def test_persists_after_command(tmp_path):
    store = ConfigStore(tmp_path / "groupguard.json", default_owner_ids=[OWNER])
    router, _ = make_router(store)

    await run(router, "拉黑 123456")

    reloaded = ConfigStore(tmp_path / "groupguard.json")
    assert reloaded.load() is True
    assert reloaded.is_blacklisted("123456")
