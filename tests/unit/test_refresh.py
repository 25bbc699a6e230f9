"""Tests for refresh ordering and quote debouncing."""

import asyncio

import pytest

from cpmm.refresh import QuoteDebouncer, SnapshotCache


class TestSnapshotCache:
    """Tests for last-writer-by-completion ordering."""

    def test_tokens_increase(self):
        cache: SnapshotCache[str] = SnapshotCache()
        first = cache.begin("pool")
        second = cache.begin("pool")
        assert second > first

    def test_in_order_commits_apply(self):
        cache: SnapshotCache[str] = SnapshotCache()
        first = cache.begin("pool")
        second = cache.begin("pool")
        assert cache.commit("pool", first, "old")
        assert cache.commit("pool", second, "new")
        assert cache.get("pool") == "new"

    def test_stale_completion_discarded(self):
        """The older request finishing last does not overwrite the newer one."""
        cache: SnapshotCache[str] = SnapshotCache()
        older = cache.begin("pool")
        newer = cache.begin("pool")
        assert cache.commit("pool", newer, "new")
        assert not cache.commit("pool", older, "old")
        assert cache.get("pool") == "new"

    def test_keys_are_independent(self):
        cache: SnapshotCache[int] = SnapshotCache()
        a_token = cache.begin("a")
        b_token = cache.begin("b")
        assert cache.commit("b", b_token, 2)
        assert cache.commit("a", a_token, 1)
        assert cache.get("a") == 1
        assert cache.get("b") == 2

    def test_invalidate(self):
        cache: SnapshotCache[int] = SnapshotCache()
        cache.commit("pool", cache.begin("pool"), 1)
        cache.invalidate("pool")
        assert cache.get("pool") is None

    @pytest.mark.asyncio
    async def test_refresh_returns_freshest_value(self):
        """A slow refresh started first yields the fast newer value."""
        cache: SnapshotCache[str] = SnapshotCache()
        slow_started = asyncio.Event()
        release_slow = asyncio.Event()

        async def slow_load() -> str:
            slow_started.set()
            await release_slow.wait()
            return "stale"

        async def fast_load() -> str:
            return "fresh"

        slow = asyncio.create_task(cache.refresh("pool", slow_load))
        await slow_started.wait()
        assert await cache.refresh("pool", fast_load) == "fresh"
        release_slow.set()
        assert await slow == "fresh"
        assert cache.get("pool") == "fresh"


class TestQuoteDebouncer:
    """Tests for QuoteDebouncer."""

    @pytest.mark.asyncio
    async def test_single_request_runs(self):
        debouncer = QuoteDebouncer(delay=0.01)

        async def request() -> int:
            return 42

        assert await debouncer.submit(request) == 42

    @pytest.mark.asyncio
    async def test_superseded_request_returns_none(self):
        debouncer = QuoteDebouncer(delay=0.05)
        calls: list[int] = []

        def make_request(value: int):
            async def request() -> int:
                calls.append(value)
                return value

            return request

        first = asyncio.create_task(debouncer.submit(make_request(1)))
        await asyncio.sleep(0)
        second = asyncio.create_task(debouncer.submit(make_request(2)))

        assert await first is None
        assert await second == 2
        assert calls == [2]

    @pytest.mark.asyncio
    async def test_request_errors_propagate(self):
        debouncer = QuoteDebouncer(delay=0)

        async def request() -> int:
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await debouncer.submit(request)

    @pytest.mark.asyncio
    async def test_caller_cancellation_propagates(self):
        debouncer = QuoteDebouncer(delay=10)

        async def request() -> int:
            return 1

        task = asyncio.create_task(debouncer.submit(request))
        await asyncio.sleep(0)
        task.cancel()
        with pytest.raises(asyncio.CancelledError):
            await task

    def test_negative_delay_rejected(self):
        with pytest.raises(ValueError):
            QuoteDebouncer(delay=-1)
