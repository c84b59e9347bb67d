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
"""Shared fixtures for coordinator tests."""

from __future__ import annotations

from datetime import timedelta

import pytest

from authqueue.cache.store import CacheStore
from authqueue.queue.adapters.memory import InMemoryQueueBroker
from authqueue.queue.command_queue import CommandQueue
from authqueue.resilience.concurrency import ConcurrencyLimiter
from authqueue.store.adapters.memory import InMemoryKeyValueStore


@pytest.fixture
def store():
    return InMemoryKeyValueStore()


@pytest.fixture
def cache(store):
    return CacheStore(store)


@pytest.fixture
async def broker():
    broker = InMemoryQueueBroker()
    await broker.start()
    return broker


@pytest.fixture
def queue(broker, cache):
    limiter = ConcurrencyLimiter(max_concurrency=2, max_jobs_per_tick=2, tick_interval=timedelta(0))
    return CommandQueue(broker, cache, limiter, poll_interval=timedelta(milliseconds=5))
