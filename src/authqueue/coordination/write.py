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
"""Write coordination: optimistic cache update, then bounded-retry enqueue."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from dataclasses import dataclass
from datetime import timedelta
from typing import Any

from authqueue.cache.store import CacheStore
from authqueue.cache.types import CacheEntry
from authqueue.idempotency.key_builder import IdempotencyKeyBuilder
from authqueue.kernel.exceptions import AuthQueueException
from authqueue.queue.command_queue import CommandQueue
from authqueue.queue.types import JobName, QueueJob
from authqueue.resilience.retry import RetryPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CacheUpdate:
    """Cache side of a write.

    ``invalidate`` is applied first, then ``primary`` together with its
    ``indexes``. Deletes carry only invalidations.
    """

    primary: CacheEntry | None = None
    indexes: tuple[CacheEntry, ...] = ()
    invalidate: tuple[tuple[str, str], ...] = ()


class WriteCoordinator:
    """Runs a mutation: derive key, update cache, enqueue with retry.

    The cache is updated before the enqueue is acknowledged so it never
    serves data that is being superseded. Every resubmission reuses the
    idempotency key. If the enqueue finally fails, the optimistic entries
    are invalidated before the error reaches the caller.
    """

    def __init__(
        self,
        cache: CacheStore,
        queue: CommandQueue,
        queue_name: str,
        enqueue_timeout: timedelta,
        retry: RetryPolicy | None = None,
        keys: IdempotencyKeyBuilder | None = None,
    ) -> None:
        self._cache = cache
        self._queue = queue
        self._queue_name = queue_name
        self._enqueue_timeout = enqueue_timeout
        self._retry = retry or RetryPolicy()
        self._keys = keys or IdempotencyKeyBuilder()

    async def write(
        self,
        operation: JobName,
        entity_id: str,
        payload: Mapping[str, Any],
        update: CacheUpdate = CacheUpdate(),
        *,
        persist: bool = True,
    ) -> str:
        """Apply *update* to the cache and enqueue *operation*.

        Returns the idempotency key of the job. With *persist* off only the
        cache side runs.

        Raises:
            ValidationException: malformed payload; nothing was touched.
            RetryExhaustedException: every attempt timed out or failed
                transiently.
            BackendReportedFailureException: the backend rejected the job.
        """
        body = dict(payload)
        idempotency_key = self._keys.build(entity_id, operation.value, body)

        await self._cache.invalidate_many(update.invalidate)
        if update.primary is not None:
            await self._cache.set_with_indexes(update.primary, update.indexes)

        if not persist:
            logger.debug("%s for %s kept in cache only", operation, entity_id)
            return idempotency_key

        job = QueueJob(
            queue_name=self._queue_name,
            operation=operation,
            payload=body,
            idempotency_key=idempotency_key,
        )
        try:
            await self._submit(job)
        except Exception:
            await self._rollback(update)
            raise
        return idempotency_key

    async def _submit(self, job: QueueJob) -> None:
        current = job

        async def attempt(number: int) -> None:
            nonlocal current
            current = current.next_attempt()
            await self._queue.enqueue(current, self._enqueue_timeout)

        await self._retry.execute(
            attempt,
            operation=job.operation.value,
            idempotency_key=job.idempotency_key,
        )

    async def _rollback(self, update: CacheUpdate) -> None:
        if update.primary is None:
            return
        logger.debug("enqueue failed, invalidating %d optimistic entries", 1 + len(update.indexes))
        try:
            await self._cache.invalidate_with_indexes(update.primary, update.indexes)
        except AuthQueueException:
            logger.warning("Could not invalidate optimistic entries for %s", update.primary.ref)
