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
"""Builds a QueueCacheAdapter from configuration."""

from __future__ import annotations

import redis.asyncio as aioredis

from authqueue.adapter.queue_cache_adapter import QueueCacheAdapter
from authqueue.config.properties.adapter import AdapterProperties
from authqueue.core.config import Config
from authqueue.logging.structlog_adapter import StructlogAdapter
from authqueue.queue.adapters.memory import InMemoryQueueBroker
from authqueue.queue.adapters.redis import RedisQueueBroker
from authqueue.store.adapters.memory import InMemoryKeyValueStore
from authqueue.store.adapters.redis import RedisKeyValueStore


def create_adapter(config: Config | None = None, *, configure_logging: bool = True) -> QueueCacheAdapter:
    """Wire store, broker and adapter from ``authqueue.*`` configuration.

    ``authqueue.store.provider`` selects ``redis`` or ``memory``. With
    redis, store and broker share one client; the store closes it.
    """
    config = config or Config.defaults()
    logging_port: StructlogAdapter | None = None
    if configure_logging:
        logging_port = StructlogAdapter()
        logging_port.configure(config)

    props = config.bind(AdapterProperties)
    provider = str(config.get("authqueue.store.provider", "memory")).lower()

    if provider == "redis":
        url = str(config.get("authqueue.store.redis.url", "redis://localhost:6379/0"))
        client = aioredis.from_url(url)
        return QueueCacheAdapter(RedisKeyValueStore(client), RedisQueueBroker(client), props, logging_port)

    if provider != "memory":
        raise ValueError(f"Unknown store provider '{provider}'")
    return QueueCacheAdapter(InMemoryKeyValueStore(), InMemoryQueueBroker(), props, logging_port)
