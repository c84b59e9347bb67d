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
"""Redis-backed key-value store adapter."""

from __future__ import annotations

import logging
from typing import Any, cast

from redis.exceptions import RedisError

from authqueue.kernel.exceptions import CacheUnavailableException

_logger = logging.getLogger(__name__)


class RedisKeyValueStore:
    """Store adapter that delegates to a ``redis.asyncio.Redis``-like client.

    The client is the process-wide connection handle: it is borrowed from
    the host at construction and closed by ``stop()``. Every redis error
    surfaces as ``CacheUnavailableException`` so callers can tell a store
    outage apart from a miss.
    """

    def __init__(self, client: Any) -> None:
        self._client = client

    async def get(self, key: str) -> str | None:
        try:
            raw = await self._client.get(key)
        except RedisError as exc:
            raise self._unavailable("GET", key, exc) from exc
        if raw is None:
            return None
        return raw.decode() if isinstance(raw, bytes) else str(raw)

    async def set(self, key: str, value: str, ttl: int = 0) -> None:
        ex = ttl if ttl > 0 else None
        try:
            await self._client.set(key, value.encode(), ex=ex)
        except RedisError as exc:
            raise self._unavailable("SET", key, exc) from exc

    async def delete(self, key: str) -> bool:
        try:
            count = await self._client.delete(key)
        except RedisError as exc:
            raise self._unavailable("DEL", key, exc) from exc
        return cast(bool, count > 0)

    async def exists(self, key: str) -> bool:
        try:
            count = await self._client.exists(key)
        except RedisError as exc:
            raise self._unavailable("EXISTS", key, exc) from exc
        return cast(bool, count > 0)

    async def start(self) -> None:
        """Validate connectivity by pinging Redis."""
        try:
            await self._client.ping()
        except RedisError as exc:
            raise self._unavailable("PING", "", exc) from exc

    async def stop(self) -> None:
        """Close the underlying Redis connection."""
        await self._client.aclose()

    @staticmethod
    def _unavailable(command: str, key: str, exc: RedisError) -> CacheUnavailableException:
        _logger.debug("redis %s failed for '%s': %s", command, key, exc)
        return CacheUnavailableException(
            f"Key-value store unreachable during {command}",
            context={"key": key, "cause": str(exc)},
        )
