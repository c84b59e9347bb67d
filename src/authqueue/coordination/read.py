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
"""Read coordination: cache first, then an awaited backend round-trip."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from authqueue.cache.store import CacheStore
from authqueue.cache.types import CacheEntry
from authqueue.queue.command_queue import CommandQueue
from authqueue.queue.types import JobName, QueueJob

logger = logging.getLogger(__name__)


class ReadCoordinator:
    """Resolves a read from the cache, asking the backend on a miss.

    On a miss the backend is asked to populate the key itself; the
    coordinator only re-reads what the backend wrote and never calls
    ``CacheStore.set`` on that path. Reads are not retried. A read job
    carries only its lookup keys and gets a fresh job id, so asking again
    after an invalidation is never mistaken for a duplicate.
    """

    def __init__(
        self,
        cache: CacheStore,
        queue: CommandQueue,
        queue_name: str,
        dequeue_timeout: timedelta,
        process_timeout: timedelta,
    ) -> None:
        self._cache = cache
        self._queue = queue
        self._queue_name = queue_name
        self._dequeue_timeout = dequeue_timeout
        self._process_timeout = process_timeout

    async def read(
        self,
        operation: JobName,
        prefix: str,
        key: str,
        lookup: Mapping[str, Any],
        *,
        use_cache: bool = True,
    ) -> CacheEntry:
        """Return the entry at ``prefix:key``.

        With *use_cache* off the cache check is skipped and any stale entry
        is dropped first, so only a fresh backend answer is returned.

        Raises:
            ReadTimeoutException: the backend did not answer within budget.
            CacheUnavailableException: the store could not be reached.
        """
        if use_cache:
            entry = await self._cache.lookup(prefix, key)
            if entry is not None:
                logger.debug("read hit %s:%s", prefix, key)
                return entry
        else:
            await self._cache.invalidate(prefix, key)

        logger.debug("read miss %s:%s, asking backend via %s", prefix, key, operation)
        payload = dict(lookup)
        job = QueueJob(
            queue_name=self._queue_name,
            operation=operation,
            payload=payload,
            attempt_count=1,
        )
        return await self._queue.enqueue_and_await(
            job, prefix, key, self._dequeue_timeout, self._process_timeout
        )

    async def get(
        self,
        operation: JobName,
        prefix: str,
        key: str,
        lookup: Mapping[str, Any],
        *,
        use_cache: bool = True,
    ) -> Any | None:
        """Like ``read`` but returns the value; a backend ``null`` answer is None."""
        entry = await self.read(operation, prefix, key, lookup, use_cache=use_cache)
        return entry.value
