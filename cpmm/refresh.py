"""Refresh ordering and quote debouncing primitives.

Pool snapshots are refreshed by concurrent requests whose completions can
arrive out of order. ``SnapshotCache`` stamps every request with a
monotonically increasing token at start and only applies a completion if no
newer request has already been applied, so a slow stale read cannot
overwrite a fresher one.
"""

from __future__ import annotations

import asyncio
import itertools
from collections.abc import Awaitable, Callable, Hashable
from typing import Generic, TypeVar

import structlog

logger = structlog.get_logger()

T = TypeVar("T")


class SnapshotCache(Generic[T]):
    """Latest applied value per key, ordered by request token."""

    def __init__(self) -> None:
        self._tokens = itertools.count(1)
        self._values: dict[Hashable, T] = {}
        self._applied: dict[Hashable, int] = {}

    def begin(self, key: Hashable) -> int:
        """Issue the token for a new refresh of ``key``."""
        return next(self._tokens)

    def commit(self, key: Hashable, token: int, value: T) -> bool:
        """Apply a completed refresh.

        Returns:
            True if applied, False if a newer refresh already landed
        """
        if token < self._applied.get(key, 0):
            logger.debug("stale_refresh_discarded", key=str(key), token=token, applied=self._applied[key])
            return False
        self._applied[key] = token
        self._values[key] = value
        return True

    def get(self, key: Hashable) -> T | None:
        return self._values.get(key)

    def invalidate(self, key: Hashable) -> None:
        """Drop the cached value; the next refresh always applies."""
        self._values.pop(key, None)

    async def refresh(self, key: Hashable, load: Callable[[], Awaitable[T]]) -> T:
        """Run ``load`` and return the freshest applied value for ``key``.

        When a newer refresh completed first, its value is returned instead
        of this call's stale result.
        """
        token = self.begin(key)
        value = await load()
        if self.commit(key, token, value):
            return value
        current = self._values.get(key)
        return value if current is None else current


class QuoteDebouncer:
    """Runs only the latest of a burst of quote requests.

    Each ``submit`` waits ``delay`` seconds before starting its request.
    A newer ``submit`` cancels the pending one, which then resolves to
    None instead of raising.
    """

    def __init__(self, delay: float = 0.3) -> None:
        if delay < 0:
            raise ValueError(f"delay cannot be negative: {delay}")
        self.delay = delay
        self._pending: asyncio.Task | None = None

    async def _run(self, request: Callable[[], Awaitable[T]]) -> T:
        await asyncio.sleep(self.delay)
        return await request()

    def cancel(self) -> None:
        """Cancel the pending request, if any."""
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()

    async def submit(self, request: Callable[[], Awaitable[T]]) -> T | None:
        """Schedule ``request`` after the quiet period.

        Returns:
            The request's result, or None if a later submit superseded it
        """
        self.cancel()
        task: asyncio.Task = asyncio.ensure_future(self._run(request))
        self._pending = task
        try:
            return await task
        except asyncio.CancelledError:
            current = asyncio.current_task()
            # Our own caller was cancelled: propagate
            if current is not None and current.cancelling():
                raise
            logger.debug("quote_superseded")
            return None
        finally:
            if self._pending is task:
                self._pending = None


__all__ = ["SnapshotCache", "QuoteDebouncer"]
