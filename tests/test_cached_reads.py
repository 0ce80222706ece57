# tests/test_cached_reads.py
"""Tests for the per-user cache-aside reads and write-through helpers."""

from unittest.mock import AsyncMock

import pytest

from galibot_engine.cache import first_contact_key, history_key, retrieval_key, state_key
from galibot_engine.models import ConversationMessage, MessageRole, Phase, TopicId, UserState


def _state(email="student@example.com", **kwargs):
    return UserState(email=email, **kwargs)


class TestKeys:
    def test_user_keys_are_normalized(self):
        assert state_key(" Student@Example.com ") == "user_state:student@example.com"
        assert history_key("A@B.C") == "conv_history:a@b.c"
        assert first_contact_key("A@B.C") == "first_login:a@b.c"

    def test_retrieval_key_uses_query_head_and_category(self):
        long_a = "x" * 200 + "a"
        long_b = "x" * 200 + "b"

        assert retrieval_key(long_a, " statistics ") == retrieval_key(long_b, "statistics")
        assert retrieval_key("q", "Statistics") != retrieval_key("q", "statistics")
        assert retrieval_key("q", None).startswith("rag:all:")
        assert retrieval_key("q", "stats") != retrieval_key("q", "other")


class TestStateReads:
    @pytest.mark.asyncio
    async def test_miss_loads_then_hit_skips_loader(self, cached_reads):
        loader = AsyncMock(return_value=_state(topic=TopicId.MEAN, phase=Phase.TEACH))

        first = await cached_reads.get_state("student@example.com", loader)
        second = await cached_reads.get_state("STUDENT@example.com", loader)

        assert first.cached is False
        assert second.cached is True
        assert second.value.topic == TopicId.MEAN
        loader.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_malformed_cached_state_reloads(self, cached_reads, cache):
        cache.set(state_key("student@example.com"), "garbage")
        loader = AsyncMock(return_value=_state())

        lookup = await cached_reads.get_state("student@example.com", loader)

        assert lookup.cached is False
        assert isinstance(lookup.value, UserState)
        loader.assert_awaited_once()

    def test_update_state_only_touches_live_entries(self, cached_reads, cache):
        new_state = _state(topic=TopicId.MEDIAN, phase=Phase.DIAGNOSE)
        assert cached_reads.update_state("student@example.com", new_state) is False

        cache.set(state_key("student@example.com"), _state())
        assert cached_reads.update_state("student@example.com", new_state) is True
        assert cache.get(state_key("student@example.com")).topic == TopicId.MEDIAN


class TestHistoryReads:
    @pytest.mark.asyncio
    async def test_loader_failure_returns_empty_uncached(self, cached_reads, cache):
        loader = AsyncMock(side_effect=RuntimeError("store down"))

        lookup = await cached_reads.get_history("student@example.com", loader)

        assert lookup.value == []
        assert lookup.cached is False
        assert history_key("student@example.com") not in cache

    @pytest.mark.asyncio
    async def test_disabled_memory_skips_loader(self, cached_reads):
        loader = AsyncMock()

        lookup = await cached_reads.get_history("student@example.com", loader, enabled=False)

        assert lookup.value == []
        loader.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_update_history_appends_and_caps(self, cached_reads):
        loader = AsyncMock(return_value=[])
        await cached_reads.get_history("student@example.com", loader)

        for i in range(5):
            message = ConversationMessage(role=MessageRole.USER, content=f"m{i}")
            assert cached_reads.update_history("student@example.com", message, max_messages=3)

        lookup = await cached_reads.get_history("student@example.com", loader)
        assert lookup.cached is True
        assert [m.content for m in lookup.value] == ["m2", "m3", "m4"]

    def test_invalidate_user_drops_state_and_history(self, cached_reads, cache):
        cache.set(state_key("a@b.c"), _state("a@b.c"))
        cache.set(history_key("a@b.c"), [])
        cache.set(first_contact_key("a@b.c"), False)

        cached_reads.invalidate_user("a@b.c")

        assert state_key("a@b.c") not in cache
        assert history_key("a@b.c") not in cache
        assert first_contact_key("a@b.c") in cache


class TestFirstContactReads:
    @pytest.mark.asyncio
    async def test_first_read_true_then_cached_false(self, cached_reads):
        loader = AsyncMock(return_value=True)

        first = await cached_reads.get_first_contact("new@example.com", loader)
        second = await cached_reads.get_first_contact("new@example.com", loader)

        assert first.value is True
        assert second.value is False
        assert second.cached is True
        loader.assert_awaited_once()
