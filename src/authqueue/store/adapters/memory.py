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
"""In-memory key-value store for testing and single-process deployments."""

from __future__ import annotations

import time
from collections.abc import Callable


class InMemoryKeyValueStore:
    """Dict-backed store with optional per-key TTL.

    Expiry is evaluated lazily against a monotonic clock, which tests may
    replace through *clock*.
    """

    def __init__(self, clock: Callable[[], float] = time.monotonic) -> None:
        self._store: dict[str, tuple[str, float | None]] = {}
        self._clock = clock

    async def get(self, key: str) -> str | None:
        """Get a value by key. Returns None if missing or expired."""
        entry = self._store.get(key)
        if entry is None:
            return None

        value, expires_at = entry
        if expires_at is not None and self._clock() >= expires_at:
            del self._store[key]
            return None

        return value

    async def set(self, key: str, value: str, ttl: int = 0) -> None:
        """Store a value, overwriting any previous one."""
        expires_at = self._clock() + ttl if ttl > 0 else None
        self._store[key] = (value, expires_at)

    async def delete(self, key: str) -> bool:
        """Remove a key. Returns True if the key existed."""
        return self._store.pop(key, None) is not None

    async def exists(self, key: str) -> bool:
        return await self.get(key) is not None

    def keys(self) -> list[str]:
        """Snapshot of every stored key, expired ones included."""
        return list(self._store)

    async def start(self) -> None:
        pass

    async def stop(self) -> None:
        self._store.clear()
