"""
GroupGuard
==========

Moderation policy engine for QQ groups driven through a OneBot-11 host.

The host runtime embeds the engine with :func:`create_guard` and feeds it events.
Run as a program, it replays OneBot event payloads (one JSON object per line on
stdin) through the engine and prints every action it would take as a JSON line
on stdout, which is handy for checking a configuration before deploying it.
"""

import os
import sys
from pathlib import Path


def resolve_base_dir() -> Path:
    """Determine the base directory of the project.

    Resolution order:
    1. GROUPGUARD_HOME environment variable, if set.
    2. Otherwise, assume running from source and use the grandparent of this file's directory.
    """
    if env_home := os.getenv("GROUPGUARD_HOME"):
        return Path(env_home).resolve()
    return Path(__file__).resolve().parents[2]


BASE_DIR = resolve_base_dir()

import asyncio
import json
from typing import Any, Dict, Optional, TextIO

from dotenv import load_dotenv

from groupguard.command.admin_commands import CommandRouter
from groupguard.configuration.app_configuration import AppConfig
from groupguard.configuration.config_store import ConfigStore
from groupguard.datatypes.event_datatypes import parse_onebot_event
from groupguard.moderation.event_pipeline import EventPipeline
from groupguard.services.action_api import ActionAPI, MemberRole, OneBotActionAPI
from groupguard.util.logger import get_logger, handle_exception

logger = get_logger("main")


def load_environment() -> None:
    """Load ``.env`` from the base directory into the process environment."""
    load_dotenv(dotenv_path=BASE_DIR / ".env")


def create_store(config: Optional[AppConfig] = None) -> ConfigStore:
    """Build the config store from the application configuration and load it."""
    if config is None:
        from groupguard.configuration.app_configuration import app_config as config
    store = ConfigStore(config.plugin_config_path, default_owner_ids=config.default_owner_qqs)
    store.load()
    return store


def create_guard(
    action_api: ActionAPI,
    store: Optional[ConfigStore] = None,
    config: Optional[AppConfig] = None,
) -> EventPipeline:
    """Wire the event pipeline, command router and store around ``action_api``."""
    if config is None:
        from groupguard.configuration.app_configuration import app_config as config
    if store is None:
        store = create_store(config)

    commands = CommandRouter(store, action_api, menu_nickname=config.menu_nickname)
    return EventPipeline(
        store,
        action_api,
        commands=commands,
        recall_ttl_ms=config.recall_ttl_ms,
        kick_delay_seconds=config.kick_delay_seconds,
        emoji_id=config.emoji_id,
    )


class DryRunCaller:
    """OneBot ``call_api`` stand-in that records actions instead of performing them."""

    def __init__(self, out: TextIO) -> None:
        self.out = out
        self.calls = 0

    async def __call__(self, action: str, params: Dict[str, Any]) -> Any:
        self.calls += 1
        self.out.write(json.dumps({"action": action, "params": params}, ensure_ascii=False) + "\n")
        self.out.flush()
        if action == "get_group_member_info":
            return {"user_id": params.get("user_id"), "role": str(MemberRole.MEMBER), "card": "", "nickname": ""}
        return None


async def replay(guard: EventPipeline, lines, out: TextIO) -> int:
    """Dispatch every JSON event line through ``guard``. Returns the number of events handled."""
    handled = 0
    for lineno, line in enumerate(lines, start=1):
        line = line.strip()
        if not line:
            continue
        try:
            payload = json.loads(line)
        except ValueError:
            logger.warning("[MAIN] Skipping line %d: not valid JSON", lineno)
            continue

        event = parse_onebot_event(payload) if isinstance(payload, dict) else None
        if event is None:
            logger.debug("[MAIN] Skipping line %d: unsupported event", lineno)
            continue
        await guard.dispatch(event)
        handled += 1

    await guard.scheduler.drain()
    return handled


async def async_main(lines=None, out: Optional[TextIO] = None) -> int:
    """Replay stdin through a dry-run guard, returning an exit code."""
    out = out or sys.stdout
    caller = DryRunCaller(out)
    try:
        guard = create_guard(OneBotActionAPI(caller))
    except Exception as exc:
        logger.critical("[MAIN] Failed to initialize the guard: %s", exc)
        return 1

    try:
        handled = await replay(guard, lines if lines is not None else sys.stdin, out)
    finally:
        await guard.shutdown()

    logger.info("[MAIN] Replayed %d event(s), %d action(s) issued", handled, caller.calls)
    return 0


def main() -> int:
    """Entrypoint for the ``groupguard`` console script."""
    sys.excepthook = handle_exception
    load_environment()
    logger.info("Starting GroupGuard dry-run replay…")
    try:
        return asyncio.run(async_main())
    except KeyboardInterrupt:
        logger.info("Shutdown requested by user.")
        return 0


if __name__ == "__main__":
    sys.exit(main())
