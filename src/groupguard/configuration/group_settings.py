"""
Plugin configuration document: global defaults, per-group overrides and lists.

Every GroupSettings field is optional; ``None`` means "not set here, inherit the
global value". The JSON document uses camelCase keys (``useGlobal``, ``filterKeywords``...)
so existing plugin config files load unchanged.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field, fields, replace
from enum import Enum
from typing import Any, Dict, List, Optional

from groupguard.util.logger import get_logger

logger = get_logger("group_settings")

DEFAULT_FILTER_PUNISH_LEVEL = 1
DEFAULT_FILTER_BAN_MINUTES = 10
DEFAULT_SPAM_WINDOW_SECONDS = 10
DEFAULT_SPAM_THRESHOLD = 10
DEFAULT_SPAM_BAN_MINUTES = 5


class QAMode(Enum):
    """How a Q&A keyword is compared against the stripped message text."""

    EXACT = "exact"
    CONTAINS = "contains"
    REGEX = "regex"

    def __str__(self) -> str:
        return self.value


QA_MODE_LABELS: Dict[QAMode, str] = {
    QAMode.EXACT: "精确",
    QAMode.CONTAINS: "模糊",
    QAMode.REGEX: "正则",
}


@dataclass(frozen=True, slots=True)
class QAEntry:
    """A keyword → reply rule. Empty keywords are rejected."""

    keyword: str
    reply: str
    mode: QAMode = QAMode.EXACT

    def __post_init__(self) -> None:
        if not self.keyword:
            raise ValueError("Q&A keyword must not be empty")

    def to_dict(self) -> Dict[str, Any]:
        return {"keyword": self.keyword, "reply": self.reply, "mode": self.mode.value}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "QAEntry":
        return cls(
            keyword=str(data.get("keyword", "")),
            reply=str(data.get("reply", "")),
            mode=QAMode(data.get("mode", "exact")),
        )


@dataclass(slots=True)
class MsgFilter:
    """Block flags for message content types."""

    block_video: bool = False
    block_image: bool = False
    block_record: bool = False
    block_forward: bool = False
    block_light_app: bool = False
    block_contact: bool = False
    block_url: bool = False


# dataclass field name -> JSON key
_MSG_FILTER_KEYS: Dict[str, str] = {
    "block_video": "blockVideo",
    "block_image": "blockImage",
    "block_record": "blockRecord",
    "block_forward": "blockForward",
    "block_light_app": "blockLightApp",
    "block_contact": "blockContact",
    "block_url": "blockUrl",
}


@dataclass(slots=True)
class GroupSettings:
    """Per-group override (or the global defaults when used as ``global``)."""

    use_global: bool = False
    target_users: Optional[List[str]] = None
    group_blacklist: Optional[List[str]] = None
    filter_keywords: Optional[List[str]] = None
    filter_punish_level: Optional[int] = None
    filter_ban_minutes: Optional[int] = None
    spam_detect: Optional[bool] = None
    spam_window: Optional[int] = None
    spam_threshold: Optional[int] = None
    spam_ban_minutes: Optional[int] = None
    msg_filter: Optional[MsgFilter] = None
    welcome_message: Optional[str] = None
    qa_list: Optional[List[QAEntry]] = None


_GROUP_SETTINGS_KEYS: Dict[str, str] = {
    "use_global": "useGlobal",
    "target_users": "targetUsers",
    "group_blacklist": "groupBlacklist",
    "filter_keywords": "filterKeywords",
    "filter_punish_level": "filterPunishLevel",
    "filter_ban_minutes": "filterBanMinutes",
    "spam_detect": "spamDetect",
    "spam_window": "spamWindow",
    "spam_threshold": "spamThreshold",
    "spam_ban_minutes": "spamBanMinutes",
    "msg_filter": "msgFilter",
    "welcome_message": "welcomeMessage",
    "qa_list": "qaList",
}

_LIST_FIELDS = frozenset({"target_users", "group_blacklist", "filter_keywords", "qa_list"})

# Fields that never inherit from the global settings.
_LOCAL_ONLY_FIELDS = {"use_global"}


def merge_settings(group: Optional[GroupSettings], global_settings: GroupSettings) -> GroupSettings:
    """Resolve ``group`` over ``global_settings``.

    A missing override, or one flagged ``use_global``, resolves to the global
    settings. Otherwise each unset field of the override takes the global value.
    The result is a fresh object; mutating it never touches stored config.
    """
    if group is None or group.use_global:
        return copy.deepcopy(replace(global_settings, use_global=group.use_global if group else False))

    resolved = {}
    for f in fields(GroupSettings):
        value = getattr(group, f.name)
        if value is None and f.name not in _LOCAL_ONLY_FIELDS:
            value = getattr(global_settings, f.name)
        resolved[f.name] = value
    return copy.deepcopy(GroupSettings(**resolved))


def _as_list(values: Any, key: str) -> List[Any]:
    """Return ``values`` as a list; anything but a JSON array is ignored."""
    if values is None:
        return []
    if not isinstance(values, (list, tuple)):
        logger.warning("[GROUP SETTINGS] Ignoring %s: expected a list, got %r", key, values)
        return []
    return list(values)


def _as_dict(values: Any, key: str) -> Dict[Any, Any]:
    if values is None:
        return {}
    if not isinstance(values, dict):
        logger.warning("[GROUP SETTINGS] Ignoring %s: expected an object, got %r", key, values)
        return {}
    return values


def _clean_id_list(values: Any, key: str = "id list") -> List[str]:
    result: List[str] = []
    for value in _as_list(values, key):
        text = str(value).strip()
        if text and text not in result:
            result.append(text)
    return result


def _clean_keywords(values: Any, key: str = "filterKeywords") -> List[str]:
    return [str(word) for word in _as_list(values, key) if str(word)]


def _load_qa_list(values: Any) -> List[QAEntry]:
    entries: List[QAEntry] = []
    for raw in _as_list(values, "qaList"):
        try:
            entries.append(QAEntry.from_dict(raw))
        except (ValueError, TypeError, AttributeError):
            logger.warning("[GROUP SETTINGS] Skipping invalid Q&A entry %r", raw)
    return entries


def msg_filter_from_dict(data: Dict[str, Any]) -> MsgFilter:
    if not isinstance(data, dict):
        raise TypeError(f"msgFilter must be an object, got {data!r}")
    return MsgFilter(**{name: bool(data.get(key, False)) for name, key in _MSG_FILTER_KEYS.items()})


def msg_filter_to_dict(msg_filter: MsgFilter) -> Dict[str, bool]:
    return {key: getattr(msg_filter, name) for name, key in _MSG_FILTER_KEYS.items()}


def _coerce_setting(name: str, key: str, value: Any) -> Any:
    if name in _LIST_FIELDS and not isinstance(value, (list, tuple)):
        raise TypeError(f"{key} must be a list, got {value!r}")
    if name in ("target_users", "group_blacklist"):
        return _clean_id_list(value, key)
    if name == "filter_keywords":
        return _clean_keywords(value, key)
    if name == "qa_list":
        return _load_qa_list(value)
    if name == "msg_filter":
        return msg_filter_from_dict(value)
    if name == "spam_detect":
        return bool(value)
    if name == "welcome_message":
        return str(value)
    if isinstance(value, bool):
        raise TypeError(f"{key} must be a number, got {value!r}")
    return int(value)


def group_settings_from_dict(data: Dict[str, Any]) -> GroupSettings:
    """Build settings from one JSON block. Fields with unusable values stay unset."""
    data = _as_dict(data, "group settings")
    settings = GroupSettings(use_global=bool(data.get("useGlobal", False)))
    for name, key in _GROUP_SETTINGS_KEYS.items():
        if name == "use_global" or data.get(key) is None:
            continue
        try:
            value = _coerce_setting(name, key, data[key])
        except (TypeError, ValueError, OverflowError) as exc:
            logger.warning("[GROUP SETTINGS] Ignoring invalid %s: %s", key, exc)
            continue
        setattr(settings, name, value)
    return settings


def group_settings_to_dict(settings: GroupSettings) -> Dict[str, Any]:
    data: Dict[str, Any] = {}
    for name, key in _GROUP_SETTINGS_KEYS.items():
        value = getattr(settings, name)
        if value is None:
            continue
        if name == "use_global" and not value:
            continue
        if name == "qa_list":
            value = [entry.to_dict() for entry in value]
        elif name == "msg_filter":
            value = msg_filter_to_dict(value)
        elif isinstance(value, list):
            value = list(value)
        data[key] = value
    return data


@dataclass(slots=True)
class PluginConfig:
    """The whole persisted document. ConfigStore is its only owner."""

    global_settings: GroupSettings = field(default_factory=GroupSettings)
    groups: Dict[str, GroupSettings] = field(default_factory=dict)
    blacklist: List[str] = field(default_factory=list)
    whitelist: List[str] = field(default_factory=list)
    filter_keywords: List[str] = field(default_factory=list)
    anti_recall_groups: List[str] = field(default_factory=list)
    global_anti_recall: bool = False
    global_emoji_react: bool = False
    emoji_react_groups: Dict[str, List[str]] = field(default_factory=dict)
    card_locks: Dict[str, str] = field(default_factory=dict)
    qa_list: List[QAEntry] = field(default_factory=list)
    owner_qqs: str = ""

    def owner_ids(self) -> List[str]:
        return [part.strip() for part in self.owner_qqs.split(",") if part.strip()]

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "PluginConfig":
        """Build a config from the JSON document. Missing keys take defaults."""
        groups = {
            str(group_id): group_settings_from_dict(raw or {})
            for group_id, raw in _as_dict(data.get("groups"), "groups").items()
        }
        return cls(
            global_settings=group_settings_from_dict(data.get("global") or {}),
            groups=groups,
            blacklist=_clean_id_list(data.get("blacklist"), "blacklist"),
            whitelist=_clean_id_list(data.get("whitelist"), "whitelist"),
            filter_keywords=_clean_keywords(data.get("filterKeywords")),
            anti_recall_groups=_clean_id_list(data.get("antiRecallGroups"), "antiRecallGroups"),
            global_anti_recall=bool(data.get("globalAntiRecall", False)),
            global_emoji_react=bool(data.get("globalEmojiReact", False)),
            emoji_react_groups={
                str(group_id): _clean_id_list(targets, "emojiReactGroups")
                for group_id, targets in _as_dict(data.get("emojiReactGroups"), "emojiReactGroups").items()
            },
            card_locks={str(key): str(value) for key, value in _as_dict(data.get("cardLocks"), "cardLocks").items()},
            qa_list=_load_qa_list(data.get("qaList")),
            owner_qqs=str(data.get("ownerQQs") or ""),
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "global": group_settings_to_dict(self.global_settings),
            "groups": {group_id: group_settings_to_dict(gs) for group_id, gs in self.groups.items()},
            "blacklist": list(self.blacklist),
            "whitelist": list(self.whitelist),
            "filterKeywords": list(self.filter_keywords),
            "antiRecallGroups": list(self.anti_recall_groups),
            "globalAntiRecall": self.global_anti_recall,
            "globalEmojiReact": self.global_emoji_react,
            "emojiReactGroups": {group_id: list(targets) for group_id, targets in self.emoji_react_groups.items()},
            "cardLocks": dict(self.card_locks),
            "qaList": [entry.to_dict() for entry in self.qa_list],
            "ownerQQs": self.owner_qqs,
        }


def card_lock_key(group_id: str, user_id: str) -> str:
    return f"{group_id}:{user_id}"
