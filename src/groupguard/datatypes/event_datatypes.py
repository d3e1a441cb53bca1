"""
Inbound event types delivered by the host runtime.

The host speaks OneBot 11; events arrive as JSON-like mappings. The
``from_onebot`` constructors normalize ids to strings, which is how every id is
stored in the plugin configuration.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional


@dataclass(slots=True)
class MessageSegment:
    """One segment of a message array (``text``, ``image``, ``video``, ``at``...)."""

    type: str
    data: Dict[str, Any] = field(default_factory=dict)


@dataclass(slots=True)
class GroupMessageEvent:
    """A message posted in a group."""

    group_id: str
    user_id: str
    message_id: str
    raw_message: str
    segments: List[MessageSegment] = field(default_factory=list)
    sender_card: str = ""
    self_id: str = ""

    @property
    def segment_types(self) -> List[str]:
        return [segment.type for segment in self.segments]

    @classmethod
    def from_onebot(cls, payload: Mapping[str, Any]) -> "GroupMessageEvent":
        segments = [
            MessageSegment(type=str(seg.get("type", "")), data=dict(seg.get("data") or {}))
            for seg in payload.get("message") or []
            if isinstance(seg, Mapping)
        ]
        sender = payload.get("sender") or {}
        return cls(
            group_id=str(payload.get("group_id", "")),
            user_id=str(payload.get("user_id", "")),
            message_id=str(payload.get("message_id", "")),
            raw_message=payload.get("raw_message") or "",
            segments=segments,
            sender_card=sender.get("card") or "",
            self_id=str(payload.get("self_id", "")),
        )


@dataclass(slots=True)
class GroupRecallEvent:
    """A ``group_recall`` notice: a message was withdrawn."""

    group_id: str
    user_id: str
    message_id: str
    operator_id: str = ""

    @classmethod
    def from_onebot(cls, payload: Mapping[str, Any]) -> "GroupRecallEvent":
        return cls(
            group_id=str(payload.get("group_id", "")),
            user_id=str(payload.get("user_id", "")),
            message_id=str(payload.get("message_id", "")),
            operator_id=str(payload.get("operator_id", "")),
        )


@dataclass(slots=True)
class MemberIncreaseEvent:
    """A ``group_increase`` notice: someone joined the group."""

    group_id: str
    user_id: str

    @classmethod
    def from_onebot(cls, payload: Mapping[str, Any]) -> "MemberIncreaseEvent":
        return cls(group_id=str(payload.get("group_id", "")), user_id=str(payload.get("user_id", "")))


@dataclass(slots=True)
class MemberCardChangeEvent:
    """A ``group_card`` notice. ``card_new`` is None when the host omits it."""

    group_id: str
    user_id: str
    card_new: Optional[str] = None

    @classmethod
    def from_onebot(cls, payload: Mapping[str, Any]) -> "MemberCardChangeEvent":
        card_new = payload.get("card_new")
        return cls(
            group_id=str(payload.get("group_id", "")),
            user_id=str(payload.get("user_id", "")),
            card_new=None if card_new is None else str(card_new),
        )


def parse_onebot_event(payload: Mapping[str, Any]):
    """Map a raw OneBot payload to one of the event dataclasses, or None."""
    post_type = payload.get("post_type")
    if post_type == "message" and payload.get("message_type") == "group":
        return GroupMessageEvent.from_onebot(payload)
    if post_type == "notice":
        notice_type = payload.get("notice_type")
        if notice_type == "group_recall":
            return GroupRecallEvent.from_onebot(payload)
        if notice_type == "group_increase":
            return MemberIncreaseEvent.from_onebot(payload)
        if notice_type == "group_card":
            return MemberCardChangeEvent.from_onebot(payload)
    return None
