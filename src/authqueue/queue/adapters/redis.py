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
"""Redis list-backed queue broker."""

from __future__ import annotations

import json
from typing import Any

from redis.exceptions import RedisError

from authqueue.kernel.exceptions import CacheUnavailableException


class RedisQueueBroker:
    """Pushes jobs onto ``<queue>:wait`` lists for the backend to drain.

    The client is normally the same handle the key-value store uses, so the
    broker only closes it when it was told it owns it.
    """

    def __init__(self, client: Any, *, owns_client: bool = False) -> None:
        self._client = client
        self._owns_client = owns_client

    async def publish(
        self,
        queue: str,
        value: bytes,
        *,
        job_id: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        if headers:
            envelope = json.loads(value)
            envelope["headers"] = headers
            value = json.dumps(envelope, separators=(",", ":")).encode()
        try:
            await self._client.rpush(f"{queue}:wait", value)
        except RedisError as exc:
            raise CacheUnavailableException(
                f"Queue '{queue}' unreachable",
                context={"queue": queue, "job_id": job_id, "cause": str(exc)},
            ) from exc

    async def start(self) -> None:
        try:
            await self._client.ping()
        except RedisError as exc:
            raise CacheUnavailableException("Queue store unreachable", context={"cause": str(exc)}) from exc

    async def stop(self) -> None:
        if self._owns_client:
            await self._client.aclose()
