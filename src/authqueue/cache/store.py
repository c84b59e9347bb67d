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
"""Typed cache front end over the shared key-value store."""

from __future__ import annotations

import json
import logging
from collections.abc import Iterable, Sequence
from typing import Any

from authqueue.cache.keys import CacheKeyspace
from authqueue.cache.types import CacheEntry
from authqueue.kernel.exceptions import AuthQueueException, ValidationException
from authqueue.store.ports.outbound import KeyValueStorePort

logger = logging.getLogger(__name__)


class CacheStore:
    """Prefixed get/set/invalidate over a ``KeyValueStorePort``.

    Values are JSON-serialized. Lookups never involve the backend; a store
    outage raises ``CacheUnavailableException`` from the port and is never
    turned into a miss. The store handle is borrowed, not owned.
    """

    def __init__(self, store: KeyValueStorePort, keyspace: CacheKeyspace | None = None) -> None:
        self._store = store
        self._keyspace = keyspace or CacheKeyspace()

    @property
    def keyspace(self) -> CacheKeyspace:
        return self._keyspace

    async def get(self, prefix: str, key: str) -> Any | None:
        """Return the cached value, or None on a miss."""
        entry = await self.lookup(prefix, key)
        return entry.value if entry is not None else None

    async def lookup(self, prefix: str, key: str) -> CacheEntry | None:
        """Return the entry, or None on a miss.

        A stored JSON ``null`` is a hit whose value is None.
        """
        full_key = self._keyspace.key(prefix, key)
        raw = await self._store.get(full_key)
        if raw is None:
            return None
        try:
            value = json.loads(raw)
        except (json.JSONDecodeError, TypeError):
            logger.warning("Failed to deserialize cached value for key '%s'", full_key)
            return None
        return CacheEntry(prefix=prefix, key=key, value=value)

    async def set(self, prefix: str, key: str, value: Any, ttl_seconds: int = 0) -> None:
        """Store *value*, replacing any previous entry."""
        if ttl_seconds < 0:
            raise ValidationException("TTL must not be negative", context={"ttl_seconds": ttl_seconds})
        full_key = self._keyspace.key(prefix, key)
        try:
            raw = json.dumps(value, allow_nan=False)
        except (TypeError, ValueError) as exc:
            raise ValidationException(
                f"Value for '{full_key}' is not JSON-serializable", context={"key": full_key}
            ) from exc
        await self._store.set(full_key, raw, ttl=ttl_seconds)
        logger.debug("cache set %s ttl=%s", full_key, ttl_seconds)

    async def invalidate(self, prefix: str, key: str) -> None:
        """Delete an entry. Invalidating an absent key is not an error."""
        full_key = self._keyspace.key(prefix, key)
        await self._store.delete(full_key)
        logger.debug("cache invalidate %s", full_key)

    async def set_entry(self, entry: CacheEntry) -> None:
        await self.set(entry.prefix, entry.key, entry.value, entry.ttl_seconds)

    async def set_with_indexes(self, primary: CacheEntry, indexes: Sequence[CacheEntry] = ()) -> None:
        """Write an entity and its index entries as one logical operation.

        If an index write fails after the primary write succeeded, every
        entry written so far is invalidated and the original error is
        re-raised.
        """
        await self.set_entry(primary)
        written: list[CacheEntry] = [primary]
        for index in indexes:
            try:
                await self.set_entry(index)
            except AuthQueueException:
                await self._compensate(written)
                raise
            written.append(index)

    async def invalidate_with_indexes(self, primary: CacheEntry, indexes: Sequence[CacheEntry] = ()) -> None:
        """Invalidate an entity and every index entry pointing at it."""
        for entry in (primary, *indexes):
            await self.invalidate(entry.prefix, entry.key)

    async def invalidate_many(self, refs: Iterable[tuple[str, str]]) -> None:
        """Invalidate every ``(prefix, key)`` pair in *refs*."""
        for prefix, key in refs:
            await self.invalidate(prefix, key)

    async def _compensate(self, written: Sequence[CacheEntry]) -> None:
        logger.debug("index write failed, invalidating %d entries", len(written))
        for entry in written:
            try:
                await self.invalidate(entry.prefix, entry.key)
            except AuthQueueException:
                logger.warning("Compensating invalidation failed for %s:%s", entry.prefix, entry.key)
