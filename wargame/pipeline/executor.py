"""Bounded concurrency for the forecast fan-out.

Every forecast call of a turn goes through one BoundedExecutor:

  max_concurrency  — how many calls may be in flight at once.
  overflow         — "queue": excess calls wait for a free slot.
                     "reject": excess calls fail at once with ExecutorFull.
  timeout          — seconds one call may take once it holds a slot;
                     asyncio.TimeoutError otherwise.

The executor is shared across sessions, so the cap also bounds the total
load one process puts on the backend.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from typing import Literal, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

OverflowPolicy = Literal["queue", "reject"]


class ExecutorFull(RuntimeError):
    """Raised under the "reject" policy when every slot is taken."""


class BoundedExecutor:
    def __init__(
        self,
        max_concurrency: int = 4,
        timeout: float | None = 120.0,
        overflow: OverflowPolicy = "queue",
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if overflow not in ("queue", "reject"):
            raise ValueError(f"Unknown overflow policy {overflow!r}")
        self.max_concurrency = max_concurrency
        self.timeout = timeout
        self.overflow = overflow
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._in_flight = 0

    @property
    def in_flight(self) -> int:
        return self._in_flight

    async def run(self, factory: Callable[[], Awaitable[T]]) -> T:
        """Run `factory()` inside a slot, subject to the timeout."""
        if self.overflow == "reject" and self._semaphore.locked():
            raise ExecutorFull(
                f"All {self.max_concurrency} forecast slots are busy"
            )
        async with self._semaphore:
            self._in_flight += 1
            try:
                if self.timeout is None:
                    return await factory()
                return await asyncio.wait_for(factory(), timeout=self.timeout)
            finally:
                self._in_flight -= 1
