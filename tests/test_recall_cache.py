"""Tests for the recall cache and anti-recall reporting."""

import pytest

from conftest import make_api
from groupguard.configuration.config_store import ConfigStore
from groupguard.datatypes.event_datatypes import GroupRecallEvent
from groupguard.moderation.recall_cache import AntiRecall, RecallCache


@pytest.fixture
def recall_store():
    store = ConfigStore(default_owner_ids=["10001", "10002"])
    store.read().anti_recall_groups.append("g")
    return store


class TestRecallCache:
    def test_only_records_covered_groups(self, recall_store):
        cache = RecallCache(recall_store, ttl_ms=1_000)

        assert cache.record("m1", "u", "g", "hello", 0) is True
        assert cache.record("m2", "u", "other", "hello", 0) is False
        assert "m1" in cache
        assert "m2" not in cache

    def test_insert_sweeps_expired_entries(self, recall_store):
        cache = RecallCache(recall_store, ttl_ms=1_000)
        cache.record("m1", "u", "g", "old", 0)
        cache.record("m2", "u", "g", "new", 1_000)

        assert "m1" not in cache
        assert len(cache) == 1

    def test_consume_removes_entry(self, recall_store):
        cache = RecallCache(recall_store, ttl_ms=1_000)
        cache.record("m1", "u", "g", "hello", 0)

        entry = cache.consume("m1", 500)

        assert entry.raw == "hello"
        assert cache.consume("m1", 500) is None

    def test_discard_drops_entry_silently(self, recall_store):
        cache = RecallCache(recall_store, ttl_ms=1_000)
        cache.record("m1", "u", "g", "hello", 0)

        assert cache.discard("m1") is True
        assert cache.discard("m1") is False
        assert cache.consume("m1", 10) is None

    def test_consume_refuses_stale_entry(self, recall_store):
        cache = RecallCache(recall_store, ttl_ms=1_000)
        cache.record("m1", "u", "g", "hello", 0)

        assert cache.consume("m1", 1_000) is None
        assert len(cache) == 0


@pytest.mark.asyncio
async def test_group_mode_reposts_to_group(recall_store):
    api = make_api()
    cache = RecallCache(recall_store)
    cache.record("m1", "u", "g", "secret", 0)

    handled = await AntiRecall(recall_store, api, cache).on_recall(GroupRecallEvent("g", "u", "m1"), 1_000)

    assert handled is True
    api.send_group_text.assert_awaited_once_with("g", "🔔 防撤回 - 用户 u 撤回了消息：\nsecret")
    api.send_private_message.assert_not_awaited()


@pytest.mark.asyncio
async def test_global_mode_reports_to_every_owner(recall_store):
    recall_store.read().anti_recall_groups.clear()
    recall_store.read().global_anti_recall = True
    api = make_api()
    cache = RecallCache(recall_store)
    cache.record("m1", "u", "g2", "secret", 0)

    handled = await AntiRecall(recall_store, api, cache).on_recall(GroupRecallEvent("g2", "u", "m1"), 1_000)

    assert handled is True
    api.send_group_text.assert_not_awaited()
    assert [c.args[0] for c in api.send_private_message.await_args_list] == ["10001", "10002"]
    report = api.send_private_message.await_args_list[0].args[1]
    assert report.startswith("🔔 防撤回通知\n群号：g2\nQQ号：u\n时间：")
    assert report.endswith("撤回内容：secret")


@pytest.mark.asyncio
async def test_recall_of_unknown_message_does_nothing(recall_store):
    api = make_api()
    cache = RecallCache(recall_store)

    assert await AntiRecall(recall_store, api, cache).on_recall(GroupRecallEvent("g", "u", "missing"), 0) is False
    api.send_group_text.assert_not_awaited()


@pytest.mark.asyncio
async def test_recall_in_disabled_group_keeps_nothing(recall_store):
    api = make_api()
    cache = RecallCache(recall_store)
    cache.record("m1", "u", "other", "secret", 0)

    assert await AntiRecall(recall_store, api, cache).on_recall(GroupRecallEvent("other", "u", "m1"), 0) is False


@pytest.mark.asyncio
async def test_removal_by_someone_else_is_not_reported(recall_store):
    cache = RecallCache(recall_store)
    cache.record("m1", "u", "g", "hello", 0)
    api = make_api()

    event = GroupRecallEvent("g", "u", "m1", operator_id="admin")
    assert await AntiRecall(recall_store, api, cache).on_recall(event, 1_000) is False

    api.send_group_text.assert_not_awaited()
    assert "m1" not in cache


@pytest.mark.asyncio
async def test_recall_by_sender_with_operator_id_is_reported(recall_store):
    cache = RecallCache(recall_store)
    cache.record("m1", "u", "g", "hello", 0)
    api = make_api()

    event = GroupRecallEvent("g", "u", "m1", operator_id="u")
    assert await AntiRecall(recall_store, api, cache).on_recall(event, 1_000) is True
    api.send_group_text.assert_awaited_once()
