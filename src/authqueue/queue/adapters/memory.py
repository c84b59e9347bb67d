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
"""In-memory queue broker for testing and single-process applications."""

from __future__ import annotations

from authqueue.kernel.exceptions import (
    AuthQueueException,
    BackendReportedFailureException,
    CacheUnavailableException,
)
from authqueue.queue.ports.outbound import QueueConsumer
from authqueue.queue.types import QueueMessage


class InMemoryQueueBroker:
    """Records every published message per queue.

    A consumer registered with ``subscribe`` stands in for the backend: it
    runs inline during ``publish``, so a consumer that never returns makes
    the enqueue hang and one that raises reports a backend failure.
    """

    def __init__(self) -> None:
        self._queues: dict[str, list[QueueMessage]] = {}
        self._consumers: dict[str, list[QueueConsumer]] = {}
        self._running = False

    async def publish(
        self,
        queue: str,
        value: bytes,
        *,
        job_id: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if not self._running:
            raise CacheUnavailableException(
                f"Queue '{queue}' is not accepting jobs: broker is not running",
                context={"queue": queue, "job_id": job_id},
            )
        msg = QueueMessage(queue=queue, value=value, job_id=job_id, headers=headers or {})
        self._queues.setdefault(queue, []).append(msg)
        for consumer in self._consumers.get(queue, []):
            try:
                await consumer(msg)
            except AuthQueueException:
                raise
            except Exception as exc:
                raise BackendReportedFailureException(
                    f"Backend failed job {job_id}: {exc}",
                    context={"job_id": job_id, "transient": False},
                ) from exc

    async def subscribe(self, queue: str, consumer: QueueConsumer) -> None:
        self._consumers.setdefault(queue, []).append(consumer)

    def messages(self, queue: str) -> list[QueueMessage]:
        """Messages published to *queue*, oldest first."""
        return list(self._queues.get(queue, []))

    async def start(self) -> None:
        self._running = True

    async def stop(self) -> None:
        self._running = False
