"""
Data structures for the chat-command surface.

A :class:`CommandSpec` binds a verb to its handler and minimum
:class:`PermissionTier`; a :class:`CommandContext` is what the handler receives.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import IntEnum
from typing import Tuple

from groupguard.datatypes.event_datatypes import GroupMessageEvent


class PermissionTier(IntEnum):
    """Principal tiers, ordered so that a higher tier satisfies a lower requirement."""

    MEMBER = 0
    ADMIN = 1
    OWNER = 2


@dataclass(frozen=True, slots=True)
class CommandSpec:
    """One command.

    Attributes:
        verb: Command keyword, matched against the markup-free message text.
        handler: Name of the router method implementing the command.
        tier: Minimum tier allowed to run it.
        exact: True if the whole text must equal ``verb``; otherwise prefix match.
        excludes: Exact texts that start with ``verb`` but are not this command.
        mutates: True if the command edits the persisted config.
        denied_reply: Reply sent when the caller's tier is too low.
    """
    verb: str
    handler: str
    tier: PermissionTier = PermissionTier.MEMBER
    exact: bool = False
    excludes: Tuple[str, ...] = field(default_factory=tuple)
    mutates: bool = False
    denied_reply: str = "需要管理员权限"

    def matches(self, text: str) -> bool:
        if self.exact:
            return text == self.verb
        return text.startswith(self.verb) and text not in self.excludes


@dataclass(slots=True)
class CommandContext:
    """Everything a command handler needs about the invoking message."""

    event: GroupMessageEvent
    text: str
    rest: str

    @property
    def group_id(self) -> str:
        return self.event.group_id

    @property
    def user_id(self) -> str:
        return self.event.user_id

    @property
    def raw(self) -> str:
        return self.event.raw_message
