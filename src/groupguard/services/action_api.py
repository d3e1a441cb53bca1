"""
Boundary between the moderation engines and the host messaging backend.

:class:`ActionAPI` is what every rule and command calls. The host runtime owns
the real implementation; :class:`OneBotActionAPI` adapts any OneBot-11
``call_api(action, params)`` coroutine to it. Calls are never retried; a failing
call raises and the error travels up to the pipeline entry point.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Mapping

from groupguard.util.logger import get_logger

logger = get_logger("action_api")


class MemberRole(Enum):
    """Role of a group member as reported by the host."""

    MEMBER = "member"
    ADMIN = "admin"
    OWNER = "owner"

    def __str__(self) -> str:
        return self.value

    @classmethod
    def parse(cls, value: Any) -> "MemberRole":
        try:
            return cls(str(value))
        except ValueError:
            return cls.MEMBER


@dataclass(slots=True)
class MemberInfo:
    """Subset of ``get_group_member_info`` the engines need."""

    user_id: str
    role: MemberRole = MemberRole.MEMBER
    card: str = ""
    nickname: str = ""


def text_segment(text: str) -> Dict[str, Any]:
    return {"type": "text", "data": {"text": text}}


def at_segment(user_id: str) -> Dict[str, Any]:
    return {"type": "at", "data": {"qq": user_id}}


def forward_node(nickname: str, user_id: str, text: str) -> Dict[str, Any]:
    return {"type": "node", "data": {"nickname": nickname, "user_id": user_id, "content": [text_segment(text)]}}


class ActionAPI(ABC):
    """Enforcement and messaging calls offered by the host."""

    @abstractmethod
    async def kick(self, group_id: str, user_id: str) -> None: ...

    @abstractmethod
    async def mute(self, group_id: str, user_id: str, duration_seconds: int) -> None: ...

    async def unmute(self, group_id: str, user_id: str) -> None:
        await self.mute(group_id, user_id, 0)

    @abstractmethod
    async def delete_message(self, message_id: str) -> None: ...

    @abstractmethod
    async def set_card(self, group_id: str, user_id: str, card: str) -> None: ...

    @abstractmethod
    async def set_special_title(self, group_id: str, user_id: str, title: str) -> None: ...

    @abstractmethod
    async def set_whole_group_mute(self, group_id: str, enabled: bool) -> None: ...

    @abstractmethod
    async def react_to_message(self, message_id: str, emoji_id: str) -> None: ...

    @abstractmethod
    async def send_group_message(self, group_id: str, segments: List[Dict[str, Any]]) -> None: ...

    async def send_group_text(self, group_id: str, text: str) -> None:
        await self.send_group_message(group_id, [text_segment(text)])

    @abstractmethod
    async def send_forwarded_nodes(self, group_id: str, nodes: List[Dict[str, Any]]) -> None: ...

    @abstractmethod
    async def send_private_message(self, user_id: str, text: str) -> None: ...

    @abstractmethod
    async def get_member_info(self, group_id: str, user_id: str, *, no_cache: bool = False) -> MemberInfo: ...

    async def lookup_member_role(self, group_id: str, user_id: str) -> MemberRole:
        info = await self.get_member_info(group_id, user_id)
        return info.role


CallApi = Callable[[str, Dict[str, Any]], Awaitable[Any]]


class OneBotActionAPI(ActionAPI):
    """ActionAPI over a OneBot-11 ``call_api(action, params)`` coroutine.

    Args:
        call_api: Host-provided coroutine issuing one OneBot action.
    """

    def __init__(self, call_api: CallApi) -> None:
        self._call_api = call_api

    async def _call(self, action: str, params: Dict[str, Any]) -> Any:
        logger.debug("[ACTION API] %s %s", action, params)
        return await self._call_api(action, params)

    async def kick(self, group_id: str, user_id: str) -> None:
        await self._call("set_group_kick", {"group_id": group_id, "user_id": user_id, "reject_add_request": False})

    async def mute(self, group_id: str, user_id: str, duration_seconds: int) -> None:
        await self._call("set_group_ban", {"group_id": group_id, "user_id": user_id, "duration": duration_seconds})

    async def delete_message(self, message_id: str) -> None:
        await self._call("delete_msg", {"message_id": message_id})

    async def set_card(self, group_id: str, user_id: str, card: str) -> None:
        await self._call("set_group_card", {"group_id": group_id, "user_id": user_id, "card": card})

    async def set_special_title(self, group_id: str, user_id: str, title: str) -> None:
        await self._call(
            "set_group_special_title",
            {"group_id": group_id, "user_id": user_id, "special_title": title},
        )

    async def set_whole_group_mute(self, group_id: str, enabled: bool) -> None:
        await self._call("set_group_whole_ban", {"group_id": group_id, "enable": enabled})

    async def react_to_message(self, message_id: str, emoji_id: str) -> None:
        await self._call("set_msg_emoji_like", {"message_id": message_id, "emoji_id": emoji_id})

    async def send_group_message(self, group_id: str, segments: List[Dict[str, Any]]) -> None:
        await self._call("send_group_msg", {"group_id": group_id, "message": segments})

    async def send_forwarded_nodes(self, group_id: str, nodes: List[Dict[str, Any]]) -> None:
        await self._call("send_group_forward_msg", {"group_id": group_id, "messages": nodes})

    async def send_private_message(self, user_id: str, text: str) -> None:
        await self._call("send_private_msg", {"user_id": user_id, "message": [text_segment(text)]})

    async def get_member_info(self, group_id: str, user_id: str, *, no_cache: bool = False) -> MemberInfo:
        params: Dict[str, Any] = {"group_id": group_id, "user_id": user_id}
        if no_cache:
            params["no_cache"] = True
        info = await self._call("get_group_member_info", params)
        if not isinstance(info, Mapping):
            return MemberInfo(user_id=user_id)
        return MemberInfo(
            user_id=user_id,
            role=MemberRole.parse(info.get("role")),
            card=info.get("card") or "",
            nickname=info.get("nickname") or "",
        )
