"""
Admin command router.

Commands are plain group messages. The router strips CQ markup, finds the
first :class:`CommandSpec` whose verb matches, checks the caller's tier, and
runs the handler. Handlers return the reply text or raise a
:class:`~groupguard.errors.CommandError` whose reply is sent instead; in both
cases the message counts as handled and the moderation rules do not run.
A caller without the required tier gets the denial reply, but the message is
not handled and still goes through the moderation rules.

Tiers:
- OWNER: ids listed in ``ownerQQs``; passes every check.
- ADMIN: group admins and the group owner, looked up through the action API.
- MEMBER: everyone.
"""

from __future__ import annotations

import re
from typing import List, Optional

from groupguard.configuration.config_store import ConfigStore, SettingsScope
from groupguard.configuration.group_settings import (
    QA_MODE_LABELS,
    PluginConfig,
    QAEntry,
    QAMode,
    card_lock_key,
)
from groupguard.command import menus
from groupguard.datatypes.command_datatypes import CommandContext, CommandSpec, PermissionTier
from groupguard.datatypes.event_datatypes import GroupMessageEvent
from groupguard.errors import CommandError, MissingTarget, PermissionDenied
from groupguard.moderation.engagement import SELF_TARGET
from groupguard.services.action_api import ActionAPI, MemberRole, forward_node
from groupguard.util.cq_utils import QQ_NUMBER_PATTERN, get_target, strip_cq_codes
from groupguard.util.logger import get_logger

logger = get_logger("admin_commands")

ADMIN = PermissionTier.ADMIN
OWNER = PermissionTier.OWNER
OWNER_DENIED = "需要主人权限"
DEFAULT_MUTE_MINUTES = 10

# Order matters where one verb is a prefix of another text.
COMMAND_SPECS: List[CommandSpec] = [
    CommandSpec("群管帮助", "help", exact=True),
    CommandSpec("群管菜单", "help", exact=True),
    CommandSpec("踢出", "kick", ADMIN),
    CommandSpec("禁言", "mute", ADMIN, excludes=("禁言列表",)),
    CommandSpec("解禁", "unmute", ADMIN),
    CommandSpec("全体禁言", "whole_mute_on", ADMIN, exact=True),
    CommandSpec("全体解禁", "whole_mute_off", ADMIN, exact=True),
    CommandSpec("授予头衔", "grant_title", ADMIN, denied_reply="需要群主权限"),
    CommandSpec("清除头衔", "clear_title", ADMIN, denied_reply="需要群主权限"),
    CommandSpec("锁定名片", "lock_card", ADMIN, mutates=True),
    CommandSpec("解锁名片", "unlock_card", ADMIN, mutates=True),
    CommandSpec("名片锁定列表", "list_card_locks", exact=True),
    CommandSpec("开启防撤回", "anti_recall_on", ADMIN, exact=True, mutates=True),
    CommandSpec("关闭防撤回", "anti_recall_off", ADMIN, exact=True, mutates=True),
    CommandSpec("防撤回列表", "list_anti_recall", exact=True),
    CommandSpec("开启回应表情", "emoji_react_on", ADMIN, mutates=True),
    CommandSpec("关闭回应表情", "emoji_react_off", ADMIN, exact=True, mutates=True),
    CommandSpec("针对列表", "list_targets", exact=True),
    CommandSpec("针对", "add_target", ADMIN, mutates=True),
    CommandSpec("取消针对", "remove_target", ADMIN, mutates=True),
    CommandSpec("清除针对", "clear_targets", ADMIN, exact=True, mutates=True),
    CommandSpec("黑名单列表", "list_blacklist", exact=True),
    CommandSpec("拉黑", "add_blacklist", OWNER, mutates=True, denied_reply=OWNER_DENIED),
    CommandSpec("取消拉黑", "remove_blacklist", OWNER, mutates=True, denied_reply=OWNER_DENIED),
    CommandSpec("群黑名单列表", "list_group_blacklist", exact=True),
    CommandSpec("群拉黑", "add_group_blacklist", ADMIN, mutates=True),
    CommandSpec("群取消拉黑", "remove_group_blacklist", ADMIN, mutates=True),
    CommandSpec("白名单列表", "list_whitelist", exact=True),
    CommandSpec("白名单", "add_whitelist", OWNER, mutates=True, denied_reply=OWNER_DENIED),
    CommandSpec("取消白名单", "remove_whitelist", OWNER, mutates=True, denied_reply=OWNER_DENIED),
    CommandSpec("违禁词列表", "list_keywords", exact=True),
    CommandSpec("添加违禁词", "add_keyword", OWNER, mutates=True, denied_reply=OWNER_DENIED),
    CommandSpec("删除违禁词", "remove_keyword", OWNER, mutates=True, denied_reply=OWNER_DENIED),
    CommandSpec("问答列表", "list_qa", exact=True),
    CommandSpec("添加问答 ", "add_qa", ADMIN, mutates=True),
    CommandSpec("添加模糊问答 ", "add_qa", ADMIN, mutates=True),
    CommandSpec("添加正则问答 ", "add_qa", ADMIN, mutates=True),
    CommandSpec("删除问答 ", "remove_qa", ADMIN, mutates=True),
]

QA_ADD_MODES = {
    "添加问答 ": QAMode.EXACT,
    "添加模糊问答 ": QAMode.CONTAINS,
    "添加正则问答 ": QAMode.REGEX,
}


def find_command(text: str) -> Optional[CommandSpec]:
    return next((spec for spec in COMMAND_SPECS if spec.matches(text)), None)


def parse_mute_minutes(rest: str) -> int:
    """Minutes after the target: first number left once the QQ number is removed."""
    match = re.search(r"(\d+)", re.sub(r"\d{5,}", "", rest, count=1))
    return int(match.group(1)) if match else DEFAULT_MUTE_MINUTES


def _add_unique(values: List[str], value: str) -> bool:
    if value in values:
        return False
    values.append(value)
    return True


def _format_list(values: List[str], title: str, empty: str, sep: str = "\n") -> str:
    return f"{title}\n{sep.join(values)}" if values else empty


class CommandRouter:
    """Parses, authorizes and executes admin commands.

    Args:
        store: Configuration store the commands edit.
        api: Host action API.
        menu_nickname: Display name on the help-menu nodes.
    """

    def __init__(self, store: ConfigStore, api: ActionAPI, menu_nickname: str = "🛡️ 群管插件") -> None:
        self.store = store
        self.api = api
        self.menu_nickname = menu_nickname

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    async def handle(self, event: GroupMessageEvent) -> bool:
        """Run the command in ``event`` if it is one.

        Returns True when handled; False for non-commands and for commands the
        sender may not run.
        """
        text = strip_cq_codes(event.raw_message)
        spec = find_command(text)
        if spec is None:
            return False

        ctx = CommandContext(event=event, text=text, rest=text[len(spec.verb):].strip())
        handler = getattr(self, f"cmd_{spec.handler}")
        try:
            await self.require_tier(spec, ctx.group_id, ctx.user_id)
            if spec.mutates:
                async with self.store.locked(ctx.group_id):
                    reply = await handler(ctx, spec)
            else:
                reply = await handler(ctx, spec)
            logger.info("[COMMANDS] %s ran %s in group %s", ctx.user_id, spec.verb.strip(), ctx.group_id)
        except PermissionDenied as exc:
            logger.debug("[COMMANDS] %s from %s in group %s denied", spec.verb.strip(), ctx.user_id, ctx.group_id)
            await self.api.send_group_text(ctx.group_id, exc.reply)
            return False
        except CommandError as exc:
            logger.debug("[COMMANDS] %s from %s in group %s rejected: %s",
                         spec.verb.strip(), ctx.user_id, ctx.group_id, exc.reply)
            reply = exc.reply

        if reply:
            await self.api.send_group_text(ctx.group_id, reply)
        return True

    async def resolve_tier(self, group_id: str, user_id: str) -> PermissionTier:
        if self.store.is_owner(user_id):
            return PermissionTier.OWNER
        role = await self.api.lookup_member_role(group_id, user_id)
        if role in (MemberRole.ADMIN, MemberRole.OWNER):
            return PermissionTier.ADMIN
        return PermissionTier.MEMBER

    async def require_tier(self, spec: CommandSpec, group_id: str, user_id: str) -> None:
        if spec.tier is PermissionTier.MEMBER:
            return
        if spec.tier is PermissionTier.OWNER:
            if not self.store.is_owner(user_id):
                raise PermissionDenied(spec.denied_reply)
            return
        if await self.resolve_tier(group_id, user_id) < spec.tier:
            raise PermissionDenied(spec.denied_reply)

    @staticmethod
    def require_target(ctx: CommandContext, usage: str = "请指定目标") -> str:
        target = get_target(ctx.raw, ctx.rest)
        if not target:
            raise MissingTarget(usage)
        return target

    # ------------------------------------------------------------------
    # Help
    # ------------------------------------------------------------------

    async def cmd_help(self, ctx: CommandContext, spec: CommandSpec) -> str:
        nodes = [forward_node(self.menu_nickname, ctx.event.self_id, section) for section in menus.HELP_SECTIONS]
        await self.api.send_forwarded_nodes(ctx.group_id, nodes)
        return ""

    # ------------------------------------------------------------------
    # Member management
    # ------------------------------------------------------------------

    async def cmd_kick(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：踢出@某人 或 踢出QQ号")
        await self.api.kick(ctx.group_id, target)
        return f"已踢出 {target}"

    async def cmd_mute(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：禁言@某人 分钟 或 禁言QQ号 分钟")
        minutes = parse_mute_minutes(ctx.rest)
        await self.api.mute(ctx.group_id, target, minutes * 60)
        return f"已禁言 {target}，时长 {minutes} 分钟"

    async def cmd_unmute(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：解禁@某人 或 解禁QQ号")
        await self.api.unmute(ctx.group_id, target)
        return f"已解禁 {target}"

    async def cmd_whole_mute_on(self, ctx: CommandContext, spec: CommandSpec) -> str:
        await self.api.set_whole_group_mute(ctx.group_id, True)
        return "已开启全体禁言"

    async def cmd_whole_mute_off(self, ctx: CommandContext, spec: CommandSpec) -> str:
        await self.api.set_whole_group_mute(ctx.group_id, False)
        return "已关闭全体禁言"

    async def cmd_grant_title(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：授予头衔@某人 内容")
        title = QQ_NUMBER_PATTERN.sub("", ctx.rest, count=1).strip()
        await self.api.set_special_title(ctx.group_id, target, title)
        return f"已为 {target} 设置头衔：{title or '(空)'}"

    async def cmd_clear_title(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)
        await self.api.set_special_title(ctx.group_id, target, "")
        return f"已清除 {target} 的头衔"

    # ------------------------------------------------------------------
    # Card locks
    # ------------------------------------------------------------------

    async def cmd_lock_card(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)
        info = await self.api.get_member_info(ctx.group_id, target)
        card = info.card or info.nickname or ""

        def lock(config: PluginConfig) -> None:
            config.card_locks[card_lock_key(ctx.group_id, target)] = card

        self.store.mutate(lock)
        return f"已锁定 {target} 的名片为：{card or '(空)'}"

    async def cmd_unlock_card(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)
        self.store.mutate(lambda config: config.card_locks.pop(card_lock_key(ctx.group_id, target), None))
        return f"已解锁 {target} 的名片"

    async def cmd_list_card_locks(self, ctx: CommandContext, spec: CommandSpec) -> str:
        prefix = f"{ctx.group_id}:"
        entries = [
            f"{key[len(prefix):]} → {card}"
            for key, card in self.store.read().card_locks.items()
            if key.startswith(prefix)
        ]
        return _format_list(entries, "名片锁定列表：", "当前群没有锁定的名片")

    # ------------------------------------------------------------------
    # Anti-recall and emoji react
    # ------------------------------------------------------------------

    async def cmd_anti_recall_on(self, ctx: CommandContext, spec: CommandSpec) -> str:
        self.store.mutate(lambda config: _add_unique(config.anti_recall_groups, ctx.group_id))
        return "已开启防撤回"

    async def cmd_anti_recall_off(self, ctx: CommandContext, spec: CommandSpec) -> str:
        def disable(config: PluginConfig) -> None:
            config.anti_recall_groups = [g for g in config.anti_recall_groups if g != ctx.group_id]

        self.store.mutate(disable)
        return "已关闭防撤回"

    async def cmd_list_anti_recall(self, ctx: CommandContext, spec: CommandSpec) -> str:
        return _format_list(list(self.store.read().anti_recall_groups), "防撤回已开启的群：", "没有开启防撤回的群")

    async def cmd_emoji_react_on(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = get_target(ctx.raw, ctx.rest)
        if target is None and ctx.rest.lower() == SELF_TARGET:
            target = SELF_TARGET

        def enable(config: PluginConfig) -> None:
            targets = config.emoji_react_groups.setdefault(ctx.group_id, [])
            if target:
                _add_unique(targets, target)

        self.store.mutate(enable)
        return f"已开启回应表情：{target}" if target else "已开启回应表情"

    async def cmd_emoji_react_off(self, ctx: CommandContext, spec: CommandSpec) -> str:
        self.store.mutate(lambda config: config.emoji_react_groups.pop(ctx.group_id, None))
        return "已关闭回应表情"

    # ------------------------------------------------------------------
    # Targeted auto-recall (scoped)
    # ------------------------------------------------------------------

    async def cmd_add_target(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：针对@某人 或 针对+QQ号")

        def add(config: PluginConfig) -> None:
            settings = self.store.scoped_settings(config, ctx.group_id)
            if settings.target_users is None:
                settings.target_users = []
            _add_unique(settings.target_users, target)

        self.store.mutate(add)
        return f"已针对 {target}，其消息将被自动撤回"

    async def cmd_remove_target(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)

        def remove(config: PluginConfig) -> None:
            settings = self.store.scoped_settings(config, ctx.group_id)
            if settings.target_users is not None:
                settings.target_users = [t for t in settings.target_users if t != target]

        self.store.mutate(remove)
        return f"已取消针对 {target}"

    async def cmd_list_targets(self, ctx: CommandContext, spec: CommandSpec) -> str:
        targets = list(self.store.effective_settings(ctx.group_id).target_users or [])
        return _format_list(targets, "当前群针对列表：", "当前群没有针对的用户")

    async def cmd_clear_targets(self, ctx: CommandContext, spec: CommandSpec) -> str:
        def clear(config: PluginConfig) -> None:
            self.store.scoped_settings(config, ctx.group_id).target_users = []

        self.store.mutate(clear)
        return "已清除当前群所有针对"

    # ------------------------------------------------------------------
    # Black/white lists
    # ------------------------------------------------------------------

    async def cmd_add_blacklist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：拉黑@某人 或 拉黑QQ号")
        self.store.mutate(lambda config: _add_unique(config.blacklist, target))
        return f"已将 {target} 加入全局黑名单"

    async def cmd_remove_blacklist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)

        def remove(config: PluginConfig) -> None:
            config.blacklist = [q for q in config.blacklist if q != target]

        self.store.mutate(remove)
        return f"已将 {target} 移出黑名单"

    async def cmd_list_blacklist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        return _format_list(list(self.store.read().blacklist), "全局黑名单：", "黑名单为空")

    async def cmd_add_group_blacklist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：群拉黑@某人 或 群拉黑QQ号")

        def add(config: PluginConfig) -> None:
            settings = self.store.ensure_group(config, ctx.group_id)
            if settings.group_blacklist is None:
                settings.group_blacklist = []
            _add_unique(settings.group_blacklist, target)

        self.store.mutate(add)
        return f"已将 {target} 加入本群黑名单"

    async def cmd_remove_group_blacklist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)

        def remove(config: PluginConfig) -> None:
            settings = config.groups.get(ctx.group_id)
            if settings is not None:
                settings.group_blacklist = [q for q in settings.group_blacklist or [] if q != target]

        self.store.mutate(remove)
        return f"已将 {target} 移出本群黑名单"

    async def cmd_list_group_blacklist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        members = list(self.store.effective_settings(ctx.group_id).group_blacklist or [])
        return _format_list(members, "本群黑名单：", "本群黑名单为空")

    async def cmd_add_whitelist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx, "请指定目标：白名单@某人 或 白名单QQ号")
        self.store.mutate(lambda config: _add_unique(config.whitelist, target))
        return f"已将 {target} 加入白名单"

    async def cmd_remove_whitelist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        target = self.require_target(ctx)

        def remove(config: PluginConfig) -> None:
            config.whitelist = [q for q in config.whitelist if q != target]

        self.store.mutate(remove)
        return f"已将 {target} 移出白名单"

    async def cmd_list_whitelist(self, ctx: CommandContext, spec: CommandSpec) -> str:
        return _format_list(list(self.store.read().whitelist), "全局白名单：", "白名单为空")

    # ------------------------------------------------------------------
    # Filter keywords
    # ------------------------------------------------------------------

    async def cmd_add_keyword(self, ctx: CommandContext, spec: CommandSpec) -> str:
        word = ctx.rest
        if not word:
            raise CommandError("请指定违禁词：添加违禁词 词语")
        self.store.mutate(lambda config: _add_unique(config.filter_keywords, word))
        return f"已添加违禁词：{word}"

    async def cmd_remove_keyword(self, ctx: CommandContext, spec: CommandSpec) -> str:
        word = ctx.rest
        if not word:
            raise CommandError("请指定违禁词")

        def remove(config: PluginConfig) -> None:
            config.filter_keywords = [w for w in config.filter_keywords if w != word]

        self.store.mutate(remove)
        return f"已删除违禁词：{word}"

    async def cmd_list_keywords(self, ctx: CommandContext, spec: CommandSpec) -> str:
        return _format_list(list(self.store.read().filter_keywords), "违禁词列表：", "违禁词列表为空", sep="、")

    # ------------------------------------------------------------------
    # Q&A (scoped)
    # ------------------------------------------------------------------

    def _scope_label(self, group_id: str) -> str:
        return "本群" if self.store.effective_scope(group_id) is SettingsScope.GROUP else "全局"

    async def cmd_list_qa(self, ctx: CommandContext, spec: CommandSpec) -> str:
        label = self._scope_label(ctx.group_id)
        entries = self.store.scoped_qa_list(ctx.group_id)
        if not entries:
            return f"{label}问答列表为空"
        lines = [
            f"{i}. [{QA_MODE_LABELS[entry.mode]}] {entry.keyword} → {entry.reply}"
            for i, entry in enumerate(entries, start=1)
        ]
        return f"{label}问答列表：\n" + "\n".join(lines)

    async def cmd_add_qa(self, ctx: CommandContext, spec: CommandSpec) -> str:
        mode = QA_ADD_MODES[spec.verb]
        sep = ctx.rest.find("|")
        if sep < 1:
            raise CommandError("格式：添加问答 关键词|回复内容")
        keyword = ctx.rest[:sep].strip()
        reply = ctx.rest[sep + 1:].strip()
        if not keyword or not reply:
            raise CommandError("关键词和回复不能为空")
        entry = QAEntry(keyword=keyword, reply=reply, mode=mode)

        def add(config: PluginConfig) -> None:
            if self.store.effective_scope(ctx.group_id) is SettingsScope.GROUP:
                settings = config.groups[ctx.group_id]
                if settings.qa_list is None:
                    settings.qa_list = []
                settings.qa_list.append(entry)
            else:
                config.qa_list.append(entry)

        self.store.mutate(add)
        return f"已添加{QA_MODE_LABELS[mode]}问答：{keyword} → {reply}"

    async def cmd_remove_qa(self, ctx: CommandContext, spec: CommandSpec) -> str:
        keyword = ctx.rest
        if not keyword:
            raise CommandError("请指定关键词：删除问答 关键词")
        if not any(entry.keyword == keyword for entry in self.store.scoped_qa_list(ctx.group_id)):
            raise CommandError(f"未找到问答：{keyword}")

        def remove(config: PluginConfig) -> None:
            if self.store.effective_scope(ctx.group_id) is SettingsScope.GROUP:
                settings = config.groups[ctx.group_id]
                settings.qa_list = [e for e in settings.qa_list or [] if e.keyword != keyword]
            else:
                config.qa_list = [e for e in config.qa_list if e.keyword != keyword]

        self.store.mutate(remove)
        return f"已删除问答：{keyword}"
