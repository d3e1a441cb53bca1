"""
Exception types raised by the admin command surface.

Rule paths never raise these; they only flow from command handlers to the
command router, which turns them into plain-text replies in the group.
"""


class GroupGuardError(Exception):
    """Base class for GroupGuard errors."""


class CommandError(GroupGuardError):
    """A command that cannot proceed. ``reply`` is sent back to the group."""

    def __init__(self, reply: str) -> None:
        super().__init__(reply)
        self.reply = reply


class PermissionDenied(CommandError):
    """The issuing principal is below the command's required tier."""


class MissingTarget(CommandError):
    """No @-mention or bare QQ number could be extracted for the command."""
