"""
Owning store for the plugin configuration document.

Responsibilities:
- Load the JSON document once at startup and keep it as the in-memory source of truth
- Resolve effective per-group settings (group override over global defaults)
- Decide whether list edits target a group's own lists or the shared global ones
- Persist the whole document after every mutation, best-effort

Every write goes through :meth:`ConfigStore.mutate`; commands that await the
action API between reading and writing hold :meth:`ConfigStore.locked` for the
group so concurrent edits to one group are applied one at a time.
"""

from __future__ import annotations

import asyncio
import json
import os
from contextlib import asynccontextmanager
from enum import Enum
from pathlib import Path
from typing import AsyncIterator, Callable, Dict, List, Optional, TypeVar

from groupguard.configuration.group_settings import (
    GroupSettings,
    PluginConfig,
    QAEntry,
    merge_settings,
)
from groupguard.util.logger import get_logger

logger = get_logger("config_store")

T = TypeVar("T")


class SettingsScope(Enum):
    """Which settings object a list-valued feature reads and edits."""

    GROUP = "group"
    GLOBAL = "global"

    def __str__(self) -> str:
        return self.value


class ConfigStore:
    """In-memory owner of :class:`PluginConfig` with JSON persistence.

    Attributes:
        path: Location of the JSON document, or None for a memory-only store.
    """

    def __init__(
        self,
        path: Optional[Path] = None,
        config: Optional[PluginConfig] = None,
        default_owner_ids: Optional[List[str]] = None,
    ) -> None:
        self.path = path
        self._config = config if config is not None else PluginConfig()
        self._default_owner_ids = list(default_owner_ids or [])
        self._group_locks: Dict[str, asyncio.Lock] = {}

    # -------- Persistence --------
    def load(self) -> bool:
        """Replace the in-memory config with the document on disk.

        Returns False, keeping defaults, when the file is missing or unreadable.
        """
        if self.path is None:
            return False
        try:
            raw = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            logger.info("[CONFIG STORE] No config at %s, starting with defaults", self.path)
            return False
        except (OSError, ValueError):
            logger.exception("[CONFIG STORE] Failed to read config from %s", self.path)
            return False

        if not isinstance(raw, dict):
            logger.error("[CONFIG STORE] Config at %s is not an object, ignoring it", self.path)
            return False

        try:
            config = PluginConfig.from_dict(raw)
        except (TypeError, ValueError, AttributeError):
            logger.exception("[CONFIG STORE] Config at %s has an unusable layout, ignoring it", self.path)
            return False

        self._config = config
        logger.info(
            "[CONFIG STORE] Loaded config: %d group override(s), %d blacklisted, %d keyword(s)",
            len(self._config.groups),
            len(self._config.blacklist),
            len(self._config.filter_keywords),
        )
        return True

    def save(self) -> bool:
        """Write the whole document. Failures are logged, never raised."""
        if self.path is None:
            return False
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            tmp_path = self.path.with_name(self.path.name + ".tmp")
            tmp_path.write_text(json.dumps(self._config.to_dict(), ensure_ascii=False, indent=2), encoding="utf-8")
            os.replace(tmp_path, self.path)
        except (OSError, TypeError, ValueError):
            logger.exception("[CONFIG STORE] Failed to persist config to %s", self.path)
            return False
        logger.debug("[CONFIG STORE] Persisted config to %s", self.path)
        return True

    # -------- Access --------
    def read(self) -> PluginConfig:
        """Return the live config. Callers must not mutate it; use :meth:`mutate`."""
        return self._config

    def mutate(self, fn: Callable[[PluginConfig], T]) -> T:
        """Apply ``fn`` to the live config, persist, and return ``fn``'s result."""
        result = fn(self._config)
        self.save()
        return result

    @asynccontextmanager
    async def locked(self, group_id: str) -> AsyncIterator[None]:
        """Hold the per-group mutation lock for the duration of the block."""
        lock = self._group_locks.setdefault(group_id, asyncio.Lock())
        async with lock:
            yield

    # -------- Resolution --------
    def effective_settings(self, group_id: str) -> GroupSettings:
        """Fully resolved settings for ``group_id`` (a detached copy)."""
        return merge_settings(self._config.groups.get(group_id), self._config.global_settings)

    def effective_scope(self, group_id: str) -> SettingsScope:
        """GROUP iff an override exists for the group and it is not ``use_global``."""
        override = self._config.groups.get(group_id)
        if override is not None and not override.use_global:
            return SettingsScope.GROUP
        return SettingsScope.GLOBAL

    def scoped_settings(self, config: PluginConfig, group_id: str) -> GroupSettings:
        """The stored settings object a scoped list edit must touch.

        Takes the config passed into a :meth:`mutate` callback so the scope is
        derived at edit time, not before.
        """
        if self.effective_scope(group_id) is SettingsScope.GROUP:
            return config.groups[group_id]
        return config.global_settings

    def scoped_qa_list(self, group_id: str) -> List[QAEntry]:
        """Q&A entries visible in the group: its own list when custom, else global."""
        if self.effective_scope(group_id) is SettingsScope.GROUP:
            return list(self._config.groups[group_id].qa_list or [])
        return list(self._config.qa_list)

    @staticmethod
    def ensure_group(config: PluginConfig, group_id: str) -> GroupSettings:
        """Return the group's override, creating an empty custom one if absent."""
        settings = config.groups.get(group_id)
        if settings is None:
            settings = GroupSettings()
            config.groups[group_id] = settings
        return settings

    # -------- Principals and lists --------
    def owner_ids(self) -> List[str]:
        return self._config.owner_ids() or list(self._default_owner_ids)

    def is_owner(self, user_id: str) -> bool:
        return user_id in self.owner_ids()

    def is_blacklisted(self, user_id: str) -> bool:
        return user_id in self._config.blacklist

    def is_whitelisted(self, user_id: str) -> bool:
        return user_id in self._config.whitelist

    def anti_recall_enabled(self, group_id: str) -> bool:
        return self._config.global_anti_recall or group_id in self._config.anti_recall_groups
