from __future__ import annotations
import fcntl
import os
from pathlib import Path
from typing import Any, Dict, List

import yaml

from groupguard.util.logger import get_logger

logger = get_logger("app_configuration")


CONFIG_PATH = Path(os.getenv("GROUPGUARD_CONFIG", "./config/app_config.yml")).resolve()


class AppConfig:
    """File-lock based accessor around the YAML application configuration.

    The class caches the contents of ``./config/app_config.yml`` and exposes
    typed shortcuts for the runtime knobs the moderation engines read. A
    missing or malformed file yields an empty mapping, so every shortcut falls
    back to its default.
    """

    def __init__(self, config_path: Path) -> None:
        self.config_path = config_path
        self._data: Dict[str, Any] = {}
        self.reload()

    # --------------------------
    # Private helpers
    # --------------------------
    def load_from_disk(self) -> Dict[str, Any]:
        try:
            with self.config_path.open("r", encoding="utf-8") as f:
                # Acquire a shared lock for reading
                fcntl.flock(f.fileno(), fcntl.LOCK_SH)
                data = yaml.safe_load(f)
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
                return data if isinstance(data, dict) else {}
        except FileNotFoundError:
            logger.warning("[APP CONFIGURATION] Config file %s not found, using defaults.", self.config_path)
        except Exception as exc:
            logger.error("[APP CONFIGURATION] Failed to load config %s: %s", self.config_path, exc)
        return {}

    def _section(self, name: str) -> Dict[str, Any]:
        section = self._data.get(name, {})
        return section if isinstance(section, dict) else {}

    # --------------------------
    # Public API
    # --------------------------
    def reload(self) -> Dict[str, Any]:
        """Reload configuration from disk and return the loaded mapping."""
        self._data = self.load_from_disk()
        return self._data

    @property
    def data(self) -> Dict[str, Any]:
        """Return the current cached configuration mapping (do not mutate)."""
        return self._data

    def get(self, key: str, default: Any = None) -> Any:
        """Safe lookup for top-level configuration keys."""
        return self._data.get(key, default)

    # --------------------------
    # High-level shortcuts
    # --------------------------
    @property
    def plugin_config_path(self) -> Path:
        """Location of the persisted plugin JSON document."""
        value = self._data.get("plugin_config_path") or "./data/groupguard.json"
        return Path(str(value)).resolve()

    @property
    def default_owner_qqs(self) -> List[str]:
        """Owner ids used when the plugin document does not define ``ownerQQs``."""
        value = self._data.get("owner_qqs", [])
        if isinstance(value, str):
            value = value.split(",")
        return [str(v).strip() for v in value or [] if str(v).strip()]

    @property
    def recall_ttl_ms(self) -> int:
        """How long a message stays recoverable by anti-recall (default 10 minutes)."""
        return int(self._section("anti_recall").get("ttl_seconds", 600)) * 1000

    @property
    def kick_delay_seconds(self) -> float:
        """Delay between a keyword-filter mute notice and the follow-up kick."""
        return float(self._section("keyword_filter").get("kick_delay_seconds", 1.0))

    @property
    def emoji_id(self) -> str:
        """Emoji id used by the auto-react feature."""
        return str(self._section("emoji_react").get("emoji_id", "76"))

    @property
    def menu_nickname(self) -> str:
        """Display name on the forwarded help-menu nodes."""
        return str(self._section("help_menu").get("nickname", "🛡️ 群管插件"))


# Shared application-wide configuration instance
app_config = AppConfig(CONFIG_PATH)
