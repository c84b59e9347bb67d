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
"""Command queue dispatcher: bounded enqueue and the read-side wait."""

from __future__ import annotations

import asyncio
import logging
from datetime import timedelta

from authqueue.cache.store import CacheStore
from authqueue.cache.types import CacheEntry
from authqueue.kernel.exceptions import (
    AuthQueueException,
    CacheUnavailableException,
    EnqueueTimeoutException,
    ReadTimeoutException,
)
from authqueue.queue.ports.outbound import QueueBrokerPort
from authqueue.queue.types import QueueJob
from authqueue.resilience.concurrency import ConcurrencyLimiter

logger = logging.getLogger(__name__)


class CommandQueue:
    """Hands jobs to the broker under the concurrency limiter.

    Writes are fire-and-forget once the broker acknowledges. Reads are
    answered by the backend writing the requested value into the cache, so
    ``enqueue_and_await`` polls the expected key every *poll_interval* until
    it appears or the ``dequeue + process`` budget runs out.
    """

    def __init__(
        self,
        broker: QueueBrokerPort,
        cache: CacheStore,
        limiter: ConcurrencyLimiter | None = None,
        poll_interval: timedelta = timedelta(milliseconds=50),
    ) -> None:
        self._broker = broker
        self._cache = cache
        self._limiter = limiter or ConcurrencyLimiter()
        self._poll_seconds = max(poll_interval.total_seconds(), 0.001)

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    async def enqueue(self, job: QueueJob, enqueue_timeout: timedelta) -> None:
        """Publish *job*, waiting at most *enqueue_timeout* for admission and ack.

        Raises:
            EnqueueTimeoutException: the broker did not acknowledge in time.
        """
        seconds = enqueue_timeout.total_seconds()
        try:
            async with asyncio.timeout(seconds):
                async with self._limiter.slot():
                    await self._publish(job)
        except TimeoutError as exc:
            raise EnqueueTimeoutException(
                f"{job.operation} not acknowledged within {seconds}s",
                context=self._job_context(job),
            ) from exc

    async def enqueue_and_await(
        self,
        job: QueueJob,
        prefix: str,
        key: str,
        dequeue_timeout: timedelta,
        process_timeout: timedelta,
    ) -> CacheEntry:
        """Publish a read job and wait for the backend to fill ``prefix:key``.

        Cancelling the caller aborts the wait only; a published job is not
        retracted.

        Raises:
            ReadTimeoutException: the key did not appear within
                ``dequeue_timeout + process_timeout``.
        """
        budget = (dequeue_timeout + process_timeout).total_seconds()
        try:
            async with asyncio.timeout(budget):
                async with self._limiter.slot():
                    await self._publish(job)
                    return await self._wait_for(prefix, key)
        except TimeoutError as exc:
            raise ReadTimeoutException(
                f"{job.operation} got no answer for {prefix}:{key} within {budget}s",
                context={**self._job_context(job), "prefix": prefix, "key": key},
            ) from exc

    def submit_read(
        self,
        job: QueueJob,
        prefix: str,
        key: str,
        dequeue_timeout: timedelta,
        process_timeout: timedelta,
    ) -> asyncio.Task[CacheEntry]:
        """Run ``enqueue_and_await`` as a task the caller may cancel or time out."""
        return asyncio.create_task(
            self.enqueue_and_await(job, prefix, key, dequeue_timeout, process_timeout),
            name=f"authqueue-read-{job.operation}-{job.job_id[:8]}",
        )

    async def _publish(self, job: QueueJob) -> None:
        try:
            await self._broker.publish(
                job.queue_name,
                job.to_wire(),
                job_id=job.job_id,
                headers={"operation": job.operation.value, "attempt": str(job.attempt_count)},
            )
        except AuthQueueException:
            raise
        except Exception as exc:
            raise CacheUnavailableException(
                f"Broker failed to accept {job.operation}: {exc}",
                context={**self._job_context(job), "cause": repr(exc)},
            ) from exc
        logger.debug(
            "enqueued %s on %s job=%s attempt=%d",
            job.operation,
            job.queue_name,
            job.job_id,
            job.attempt_count,
        )

    async def _wait_for(self, prefix: str, key: str) -> CacheEntry:
        while True:
            entry = await self._cache.lookup(prefix, key)
            if entry is not None:
                return entry
            await asyncio.sleep(self._poll_seconds)

    @staticmethod
    def _job_context(job: QueueJob) -> dict:
        return {
            "queue": job.queue_name,
            "operation": job.operation.value,
            "job_id": job.job_id,
            "idempotency_key": job.idempotency_key,
            "attempt": job.attempt_count,
        }
