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
"""Outbound port for command queue brokers."""
from __future__ import annotations

from collections.abc import Callable, Coroutine
from typing import Any, Protocol, runtime_checkable

from authqueue.queue.types import QueueMessage

QueueConsumer = Callable[[QueueMessage], Coroutine[Any, Any, None]]


@runtime_checkable
class QueueBrokerPort(Protocol):
    """Durable queue the backend drains.

    ``publish`` returns once the broker acknowledged the message. A broker
    that exposes the backend's own failure channel raises
    ``BackendReportedFailureException`` from ``publish``.
    """

    async def publish(
        self,
        queue: str,
        value: bytes,
        *,
        job_id: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None: ...

    async def start(self) -> None: ...

    async def stop(self) -> None: ...
