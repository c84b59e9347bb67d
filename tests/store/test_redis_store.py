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
"""Tests for RedisKeyValueStore using a FakeRedis stub."""

from __future__ import annotations

import pytest
from redis.exceptions import ConnectionError as RedisConnectionError

from authqueue.kernel.exceptions import CacheUnavailableException
from authqueue.store.adapters.redis import RedisKeyValueStore
from authqueue.store.ports.outbound import KeyValueStorePort


class FakeRedis:
    """Minimal in-memory stub matching the redis.asyncio.Redis interface."""

    def __init__(self) -> None:
        self._store: dict[str, bytes] = {}
        self.expiries: dict[str, int | None] = {}
        self.closed = False

    async def get(self, key: str) -> bytes | None:
        return self._store.get(key)

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        self._store[key] = value
        self.expiries[key] = ex

    async def delete(self, *keys: str) -> int:
        count = 0
        for k in keys:
            if k in self._store:
                del self._store[k]
                count += 1
        return count

    async def exists(self, *keys: str) -> int:
        return sum(1 for k in keys if k in self._store)

    async def ping(self) -> bool:
        return True

    async def aclose(self) -> None:
        self.closed = True


class DownRedis(FakeRedis):
    async def get(self, key: str) -> bytes | None:
        raise RedisConnectionError("Connection refused")

    async def set(self, key: str, value: bytes, ex: int | None = None) -> None:
        raise RedisConnectionError("Connection refused")

    async def ping(self) -> bool:
        raise RedisConnectionError("Connection refused")


class TestRedisKeyValueStore:
    def test_protocol_compliance(self) -> None:
        """RedisKeyValueStore satisfies KeyValueStorePort."""
        assert isinstance(RedisKeyValueStore(FakeRedis()), KeyValueStorePort)

    async def test_set_and_get_decodes_bytes(self) -> None:
        """Byte replies are decoded to str."""
        store = RedisKeyValueStore(FakeRedis())
        await store.set("SESSION_DATA:s1", '{"userId":"u1"}')
        assert await store.get("SESSION_DATA:s1") == '{"userId":"u1"}'

    async def test_get_missing(self) -> None:
        """A missing key reads as None."""
        assert await RedisKeyValueStore(FakeRedis()).get("missing") is None

    async def test_ttl_forwarded_as_seconds(self) -> None:
        """TTL is passed to Redis in seconds."""
        fake = FakeRedis()
        store = RedisKeyValueStore(fake)
        await store.set("a", "1", ttl=60)
        await store.set("b", "2", ttl=0)
        assert fake.expiries == {"a": 60, "b": None}

    async def test_delete_and_exists(self) -> None:
        """delete and exists reflect the stored keys."""
        store = RedisKeyValueStore(FakeRedis())
        await store.set("k", "v")
        assert await store.exists("k") is True
        assert await store.delete("k") is True
        assert await store.delete("k") is False

    async def test_connection_error_is_cache_unavailable(self) -> None:
        """A connection error becomes CacheUnavailableException."""
        store = RedisKeyValueStore(DownRedis())
        with pytest.raises(CacheUnavailableException) as exc_info:
            await store.get("USER_DATA:u1")
        assert exc_info.value.context["key"] == "USER_DATA:u1"

    async def test_start_fails_fast_when_unreachable(self) -> None:
        """start() fails when Redis cannot be reached."""
        with pytest.raises(CacheUnavailableException):
            await RedisKeyValueStore(DownRedis()).start()

    async def test_stop_closes_client(self) -> None:
        """stop() closes the client."""
        fake = FakeRedis()
        store = RedisKeyValueStore(fake)
        await store.start()
        await store.stop()
        assert fake.closed is True
