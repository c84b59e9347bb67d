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
"""Adapter configuration properties."""

from __future__ import annotations

from dataclasses import dataclass, field

from authqueue.core.config import config_properties


@dataclass
class EntityProperties:
    """Per-entity switches (authqueue.adapter.<entity>.*)."""

    persist: bool = True
    cache: bool = True
    ttl: int = 0


@dataclass
class TimeoutProperties:
    """Queue timeouts in milliseconds (authqueue.adapter.timeouts.*)."""

    enqueue: int = 10000
    dequeue: int = 10000
    process: int = 10000


@config_properties(prefix="authqueue.adapter")
@dataclass
class AdapterProperties:
    """Configuration for the cache-and-queue adapter (authqueue.adapter.*)."""

    queue_name: str = "authqueue"
    cache_prefix: str = ""
    separator: str = ":"
    max_retries: int = 3
    max_concurrency: int = 1
    max_jobs_per_tick: int = 1
    tick_interval: int = 10
    poll_interval: int = 50
    retry_delay: int = 0
    debug: bool = False
    timeouts: TimeoutProperties = field(default_factory=TimeoutProperties)
    user: EntityProperties = field(default_factory=EntityProperties)
    session: EntityProperties = field(default_factory=EntityProperties)
    account: EntityProperties = field(default_factory=EntityProperties)
    verification_request: EntityProperties = field(default_factory=EntityProperties)
