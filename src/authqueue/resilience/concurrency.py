# Copyright 2026 Firefly Software Solutions Inc.
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
"""Concurrency limiter for in-flight queue operations."""

from __future__ import annotations

import asyncio
import functools
from collections.abc import AsyncIterator, Callable
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any


class ConcurrencyLimiter:
    """Bounds simultaneous queue operations and paces their dispatch.

    Like a bulkhead, but callers beyond ``max_concurrency`` suspend until a
    slot frees instead of being rejected. On top of that at most
    ``max_jobs_per_tick`` admissions are granted per ``tick_interval``;
    further admissions wait for the next tick. A zero tick interval disables
    pacing. The limit is adapter-side backpressure only.

    Args:
        max_concurrency: Maximum number of operations in flight.
        max_jobs_per_tick: Maximum admissions per scheduling tick.
        tick_interval: Length of a scheduling tick.
    """

    def __init__(
        self,
        max_concurrency: int = 1,
        max_jobs_per_tick: int = 1,
        tick_interval: timedelta = timedelta(milliseconds=10),
    ) -> None:
        if max_concurrency < 1:
            raise ValueError("max_concurrency must be at least 1")
        if max_jobs_per_tick < 1:
            raise ValueError("max_jobs_per_tick must be at least 1")
        self._max_concurrency = max_concurrency
        self._max_jobs_per_tick = max_jobs_per_tick
        self._tick_seconds = tick_interval.total_seconds()
        self._semaphore = asyncio.Semaphore(max_concurrency)
        self._active = 0
        self._tick_started = float("-inf")
        self._dispatched_in_tick = 0

    async def acquire(self) -> None:
        """Wait for a free slot and a dispatch token in the current tick."""
        await self._semaphore.acquire()
        try:
            await self._await_dispatch()
        except BaseException:
            self._semaphore.release()
            raise
        self._active += 1

    def release(self) -> None:
        """Release a slot."""
        self._active -= 1
        self._semaphore.release()

    @asynccontextmanager
    async def slot(self) -> AsyncIterator[None]:
        await self.acquire()
        try:
            yield
        finally:
            self.release()

    async def _await_dispatch(self) -> None:
        if self._tick_seconds <= 0:
            return
        loop = asyncio.get_running_loop()
        while True:
            now = loop.time()
            if now - self._tick_started >= self._tick_seconds:
                self._tick_started = now
                self._dispatched_in_tick = 0
            if self._dispatched_in_tick < self._max_jobs_per_tick:
                self._dispatched_in_tick += 1
                return
            await asyncio.sleep(self._tick_started + self._tick_seconds - now)

    @property
    def active(self) -> int:
        """Number of operations currently holding a slot."""
        return self._active

    @property
    def available_slots(self) -> int:
        return self._max_concurrency - self._active

    @property
    def max_concurrency(self) -> int:
        return self._max_concurrency

    @property
    def max_jobs_per_tick(self) -> int:
        return self._max_jobs_per_tick


def limited(
    limiter: ConcurrencyLimiter,
) -> Callable[[Callable[..., Any]], Callable[..., Any]]:
    """Decorator that runs an async function inside a limiter slot.

    Args:
        limiter: The ConcurrencyLimiter instance to use.
    """

    def decorator(func: Callable[..., Any]) -> Callable[..., Any]:
        @functools.wraps(func)
        async def wrapper(*args: Any, **kwargs: Any) -> Any:
            async with limiter.slot():
                return await func(*args, **kwargs)

        return wrapper

    return decorator
