"""
Pytest configuration and fixtures for GroupGuard tests.
"""

import sys
from pathlib import Path
from unittest.mock import AsyncMock

import pytest

# Add src directory to path so imports work
src_path = Path(__file__).parent.parent / "src"
sys.path.insert(0, str(src_path))

from groupguard.configuration.config_store import ConfigStore  # noqa: E402
from groupguard.services.action_api import ActionAPI, MemberInfo, MemberRole  # noqa: E402


def make_api(role: MemberRole = MemberRole.MEMBER, card: str = "", nickname: str = "") -> AsyncMock:
    """AsyncMock action API whose member lookups report ``role``."""
    api = AsyncMock(spec=ActionAPI)
    api.get_member_info.return_value = MemberInfo(user_id="", role=role, card=card, nickname=nickname)
    api.lookup_member_role.return_value = role
    return api


@pytest.fixture
def api() -> AsyncMock:
    return make_api()


@pytest.fixture
def store() -> ConfigStore:
    """Memory-only store."""
    return ConfigStore()


@pytest.fixture
def file_store(tmp_path) -> ConfigStore:
    return ConfigStore(tmp_path / "groupguard.json")
