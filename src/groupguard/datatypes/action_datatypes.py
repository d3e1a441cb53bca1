"""
Action types and data structures for enforcement actions.

This module defines the ActionType enum and ActionData dataclass used to describe
what a rule decided to do. Engines return ActionData records alongside issuing
the calls, which keeps their outcome inspectable in logs and tests.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ActionType(Enum):
    """Enumeration of enforcement actions a rule can issue."""

    DELETE = "delete"
    MUTE = "mute"
    KICK = "kick"
    BLACKLIST = "blacklist"

    def __str__(self) -> str:
        return self.value


@dataclass(slots=True)
class ActionData:
    """Data structure representing one enforcement action.

    Attributes:
        group_id: Group the action applies to
        user_id: Member the action is taken against
        action: Type of action
        reason: Human-readable reason, used in logs and notices
        mute_minutes: Mute duration in minutes (0 if not applicable)
        message_id: Message acted on (for delete actions)
        deferred: True when the action was scheduled rather than awaited
    """
    group_id: str
    user_id: str
    action: ActionType
    reason: str = ""
    mute_minutes: int = 0
    message_id: str = ""
    deferred: bool = False
