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
"""Tests for QueueCacheAdapter against in-memory store and broker."""

from __future__ import annotations

import asyncio
import json
import logging
from typing import Any

import pytest

from authqueue.adapter.queue_cache_adapter import QueueCacheAdapter
from authqueue.cache.types import CachePrefix
from authqueue.config.properties.adapter import AdapterProperties, EntityProperties, TimeoutProperties
from authqueue.core.config import Config
from authqueue.kernel.exceptions import (
    CacheUnavailableException,
    ReadTimeoutException,
    RetryExhaustedException,
    ValidationException,
)
from authqueue.queue.adapters.memory import InMemoryQueueBroker
from authqueue.queue.types import JobName, QueueJob, QueueMessage
from authqueue.store.adapters.memory import InMemoryKeyValueStore


class FakeBackend:
    """Answers read jobs by writing the requested value into the cache."""

    def __init__(self, adapter: QueueCacheAdapter) -> None:
        self.adapter = adapter
        self.users: dict[str, dict[str, Any]] = {}
        self.sessions: dict[str, dict[str, Any]] = {}
        self.jobs: list[QueueJob] = []

    async def __call__(self, msg: QueueMessage) -> None:
        job = QueueJob.from_wire(msg.queue, msg.value)
        self.jobs.append(job)
        cache = self.adapter.cache
        data = job.payload
        if job.operation is JobName.GET_USER:
            await cache.set(CachePrefix.USER_DATA, data["id"], self.users.get(data["id"]))
        elif job.operation is JobName.GET_USER_BY_EMAIL:
            match = next((u["id"] for u in self.users.values() if u.get("email") == data["email"]), None)
            await cache.set(CachePrefix.EMAIL_INDEX, data["email"], match)
        elif job.operation is JobName.GET_SESSION_AND_USER:
            await cache.set(CachePrefix.SESSION_DATA, data["sessionToken"], self.sessions.get(data["sessionToken"]))

    def operations(self) -> list[str]:
        return [job.operation.value for job in self.jobs]


def _props(**overrides: Any) -> AdapterProperties:
    fields: dict[str, Any] = dict(
        tick_interval=0,
        poll_interval=5,
        timeouts=TimeoutProperties(enqueue=30, dequeue=30, process=30),
    )
    fields.update(overrides)
    return AdapterProperties(**fields)


class SlowBackend(FakeBackend):
    """FakeBackend that takes a while to answer each job."""

    def __init__(self, adapter: QueueCacheAdapter, delay: float) -> None:
        super().__init__(adapter)
        self.delay = delay

    async def __call__(self, msg: QueueMessage) -> None:
        await asyncio.sleep(self.delay)
        await super().__call__(msg)


class ResettingBroker(InMemoryQueueBroker):
    """Broker whose connection drops on every publish."""

    async def publish(self, queue: str, value: bytes, **kwargs: Any) -> None:
        raise ConnectionResetError("connection reset by peer")


class RecordingLoggingPort:
    """LoggingPort that records debug trace switches."""

    def __init__(self) -> None:
        self.debug_calls: list[bool] = []

    def configure(self, config: Config) -> None:
        pass

    def get_logger(self, name: str) -> Any:
        return logging.getLogger(name)

    def set_level(self, name: str, level: str) -> None:
        pass

    def enable_debug_trace(self, enabled: bool) -> None:
        self.debug_calls.append(enabled)


@pytest.fixture
def broker():
    return InMemoryQueueBroker()


@pytest.fixture
async def adapter(broker):
    adapter = QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props())
    await adapter.start()
    yield adapter
    await adapter.stop()


@pytest.fixture
async def backend(adapter, broker):
    backend = FakeBackend(adapter)
    await broker.subscribe("authqueue", backend)
    return backend


class TestUsers:
    async def test_create_then_get_is_served_from_cache(self, adapter, backend) -> None:
        """A created user is read back from cache without a backend round trip."""
        user = {"id": "u1", "email": "a@b.c", "name": "Ada"}
        await adapter.create_user(user)
        assert await adapter.get_user("u1") == user
        assert await adapter.get_user_by_email("a@b.c") == user
        assert backend.operations() == ["CREATE_USER"]

    async def test_get_user_miss_asks_backend(self, adapter, backend) -> None:
        """A cache miss enqueues GET_USER once, then the filled entry is reused."""
        backend.users["u9"] = {"id": "u9", "email": "x@y.z"}
        assert await adapter.get_user("u9") == {"id": "u9", "email": "x@y.z"}
        assert backend.operations() == ["GET_USER"]
        await adapter.get_user("u9")
        assert backend.operations() == ["GET_USER"]

    async def test_unknown_user_is_none(self, adapter, backend) -> None:
        """A user the backend does not know resolves to None."""
        assert await adapter.get_user("nobody") is None

    async def test_get_user_by_email_miss_chains_reads(self, adapter, backend) -> None:
        """An email miss resolves the index first, then the user."""
        backend.users["u2"] = {"id": "u2", "email": "b@c.d"}
        assert await adapter.get_user_by_email("b@c.d") == {"id": "u2", "email": "b@c.d"}
        assert backend.operations() == ["GET_USER_BY_EMAIL", "GET_USER"]

    async def test_update_merges_onto_cached_user(self, adapter, backend) -> None:
        """Update merges onto the cached user and moves the email index."""
        await adapter.create_user({"id": "u1", "email": "a@b.c", "name": "Ada"})
        merged = await adapter.update_user({"id": "u1", "email": "new@b.c"})
        assert merged == {"id": "u1", "email": "new@b.c", "name": "Ada"}
        assert await adapter.cache.get(CachePrefix.EMAIL_INDEX, "a@b.c") is None
        assert await adapter.cache.get(CachePrefix.EMAIL_INDEX, "new@b.c") == "u1"
        assert backend.jobs[-1].payload == {"id": "u1", "email": "new@b.c"}

    async def test_update_without_cached_user_only_invalidates(self, adapter, backend) -> None:
        """Update of an uncached user invalidates instead of guessing."""
        await adapter.update_user({"id": "u1", "name": "Ada"})
        assert await adapter.cache.lookup(CachePrefix.USER_DATA, "u1") is None
        assert backend.operations() == ["UPDATE_USER"]

    async def test_delete_user_invalidates_entity_and_email_index(self, adapter, backend) -> None:
        """Delete drops the user entry and its email index."""
        await adapter.create_user({"id": "u1", "email": "a@b.c"})
        await adapter.delete_user("u1")
        assert await adapter.cache.lookup(CachePrefix.USER_DATA, "u1") is None
        assert await adapter.cache.lookup(CachePrefix.EMAIL_INDEX, "a@b.c") is None
        assert backend.operations() == ["CREATE_USER", "DELETE_USER"]

    async def test_create_user_requires_id(self, adapter, backend) -> None:
        """A user without an id is rejected before anything is enqueued."""
        with pytest.raises(ValidationException):
            await adapter.create_user({"email": "a@b.c"})
        assert backend.jobs == []


class TestAccounts:
    async def test_link_account_indexes_user(self, adapter, backend) -> None:
        """Linking an account makes the user reachable by provider account."""
        user = {"id": "u1", "email": "a@b.c"}
        await adapter.create_user(user)
        await adapter.link_account({"userId": "u1", "provider": "github", "providerAccountId": "42"})
        assert await adapter.get_user_by_account("github", "42") == user
        assert backend.operations() == ["CREATE_USER", "LINK_ACCOUNT"]

    async def test_unlink_account_invalidates(self, adapter, backend) -> None:
        """Unlinking removes both account entries."""
        await adapter.link_account({"userId": "u1", "provider": "github", "providerAccountId": "42"})
        await adapter.unlink_account("github", "42")
        assert await adapter.cache.lookup(CachePrefix.ACCOUNT_INDEX, "github:42") is None
        assert await adapter.cache.lookup(CachePrefix.ACCOUNT_DATA, "github:42") is None

    async def test_link_account_requires_provider_fields(self, adapter, backend) -> None:
        """An account without providerAccountId is rejected."""
        with pytest.raises(ValidationException):
            await adapter.link_account({"userId": "u1", "provider": "github"})


class TestSessions:
    async def test_session_is_cached_before_backend_sees_job(self, adapter, broker) -> None:
        """The session is in cache by the time the backend handles CREATE_SESSION."""
        seen: list[Any] = []

        async def inspect(msg: QueueMessage) -> None:
            seen.append(await adapter.cache.get(CachePrefix.SESSION_DATA, "s1"))

        await broker.subscribe("authqueue", inspect)
        session = {"sessionToken": "s1", "userId": "u1", "expires": "2026-12-01T00:00:00Z"}
        await adapter.create_session(session)
        assert seen == [session]

    async def test_update_session_replaces_entry_before_backend_sees_job(self, adapter, broker) -> None:
        """The merged session is cached before the backend handles UPDATE_SESSION."""
        await adapter.create_session({"sessionToken": "s1", "userId": "u1", "expires": "old"})
        seen: list[Any] = []

        async def inspect(msg: QueueMessage) -> None:
            seen.append(await adapter.cache.get(CachePrefix.SESSION_DATA, "s1"))

        await broker.subscribe("authqueue", inspect)
        await adapter.update_session({"sessionToken": "s1", "expires": "new"})
        assert seen == [{"sessionToken": "s1", "userId": "u1", "expires": "new"}]

    async def test_update_session_without_cache_invalidates_before_backend_sees_job(self, broker) -> None:
        """With session caching off the stale entry is gone before the job is handled."""
        store = InMemoryKeyValueStore()
        adapter = QueueCacheAdapter(store, broker, _props(session=EntityProperties(cache=False)))
        await store.set("SESSION_DATA:s1", '{"sessionToken":"s1","expires":"old"}')
        seen: list[Any] = []

        async def inspect(msg: QueueMessage) -> None:
            seen.append(await store.get("SESSION_DATA:s1"))

        await broker.subscribe("authqueue", inspect)
        async with adapter:
            await adapter.update_session({"sessionToken": "s1", "expires": "new"})
        assert seen == [None]

    async def test_get_session_and_user(self, adapter, backend) -> None:
        """Session and user are joined from cache."""
        await adapter.create_user({"id": "u1", "email": "a@b.c"})
        await adapter.create_session({"sessionToken": "s1", "userId": "u1"})
        result = await adapter.get_session_and_user("s1")
        assert result == {
            "session": {"sessionToken": "s1", "userId": "u1"},
            "user": {"id": "u1", "email": "a@b.c"},
        }

    async def test_unknown_session_is_none(self, adapter, backend) -> None:
        """An unknown session token resolves to None."""
        assert await adapter.get_session_and_user("nope") is None

    async def test_update_session_merges(self, adapter, backend) -> None:
        """Session updates merge onto the cached session."""
        await adapter.create_session({"sessionToken": "s1", "userId": "u1", "expires": "a"})
        merged = await adapter.update_session({"sessionToken": "s1", "expires": "b"})
        assert merged == {"sessionToken": "s1", "userId": "u1", "expires": "b"}
        assert await adapter.cache.get(CachePrefix.SESSION_DATA, "s1") == merged

    async def test_delete_session(self, adapter, backend) -> None:
        """Delete removes the cached session and enqueues DELETE_SESSION."""
        await adapter.create_session({"sessionToken": "s1", "userId": "u1"})
        await adapter.delete_session("s1")
        assert await adapter.cache.lookup(CachePrefix.SESSION_DATA, "s1") is None
        assert backend.operations() == ["CREATE_SESSION", "DELETE_SESSION"]


class TestVerificationRequests:
    async def test_create_get_use(self, adapter, backend) -> None:
        """A verification request can be created, read, then used exactly once."""
        request = {"identifier": "a@b.c", "token": "t1", "expires": "2026-12-01T00:00:00Z"}
        await adapter.create_verification_request(request)
        assert await adapter.get_verification_request("a@b.c", "t1") == request
        assert await adapter.use_verification_request("a@b.c", "t1") == request
        assert await adapter.cache.lookup(CachePrefix.VERIFICATION_REQUEST_DATA, "a@b.c:t1") is None
        assert backend.operations() == ["CREATE_VERIFICATION_REQUEST", "USE_VERIFICATION_REQUEST"]

    async def test_use_uncached_request_returns_none(self, adapter, backend) -> None:
        """Using an uncached request still notifies the backend and returns None."""
        assert await adapter.use_verification_request("a@b.c", "t1") is None
        assert backend.operations() == ["USE_VERIFICATION_REQUEST"]


class TestEntitySwitches:
    async def test_persist_off_keeps_writes_local(self, broker) -> None:
        """With persist off writes stay in cache and nothing is published."""
        adapter = QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props(user=EntityProperties(persist=False)))
        async with adapter:
            await adapter.create_user({"id": "u1"})
            assert await adapter.get_user("u1") == {"id": "u1"}
        assert broker.messages("authqueue") == []

    async def test_cache_off_always_asks_backend(self, broker) -> None:
        """With cache off every read goes to the backend."""
        adapter = QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props(user=EntityProperties(cache=False)))
        backend = FakeBackend(adapter)
        await broker.subscribe("authqueue", backend)
        async with adapter:
            await adapter.create_user({"id": "u1"})
            assert await adapter.cache.lookup(CachePrefix.USER_DATA, "u1") is None
            backend.users["u1"] = {"id": "u1"}
            assert await adapter.get_user("u1") == {"id": "u1"}
            assert await adapter.get_user("u1") == {"id": "u1"}
        assert backend.operations() == ["CREATE_USER", "GET_USER", "GET_USER"]

    async def test_ttl_and_namespace_applied(self, broker) -> None:
        """Entity TTL and cache prefix reach the backing store."""
        store = InMemoryKeyValueStore()
        adapter = QueueCacheAdapter(store, broker, _props(cache_prefix="app:", session=EntityProperties(ttl=60)))
        async with adapter:
            await adapter.create_session({"sessionToken": "s1", "userId": "u1"})
            assert json.loads(await store.get("app:SESSION_DATA:s1")) == {"sessionToken": "s1", "userId": "u1"}


class TestFailures:
    async def test_read_without_backend_times_out(self, adapter) -> None:
        """A read nobody answers fails with ReadTimeoutException."""
        with pytest.raises(ReadTimeoutException):
            await adapter.get_user("u1")

    async def test_unacknowledged_write_is_rolled_back(self, adapter, broker) -> None:
        """A write never acknowledged is retried, then its cache entries removed."""
        async def hang(msg: QueueMessage) -> None:
            await asyncio.Event().wait()

        await broker.subscribe("authqueue", hang)
        with pytest.raises(RetryExhaustedException) as exc_info:
            await adapter.create_user({"id": "u1", "email": "a@b.c"})
        assert exc_info.value.to_error().code == "RETRY_EXHAUSTED"
        assert len(broker.messages("authqueue")) == 3
        assert await adapter.cache.lookup(CachePrefix.USER_DATA, "u1") is None
        assert await adapter.cache.lookup(CachePrefix.EMAIL_INDEX, "a@b.c") is None


class TestLifecycle:
    async def test_context_manager_starts_and_stops_broker(self, broker) -> None:
        """async with starts the broker and stops it on exit."""
        async with QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props()) as adapter:
            await adapter.create_user({"id": "u1"})
        with pytest.raises(CacheUnavailableException):
            await broker.publish("authqueue", b"{}")

    def test_debug_flag_toggles_trace_logging(self, broker) -> None:
        """debug=True enables DEBUG on the trace logger and debug=False turns it back off."""
        trace = logging.getLogger("authqueue")
        try:
            QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props(debug=True))
            assert trace.isEnabledFor(logging.DEBUG)
            QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props(debug=False))
            assert not trace.isEnabledFor(logging.DEBUG)
        finally:
            trace.setLevel(logging.NOTSET)

    def test_debug_flag_goes_through_logging_port(self, broker) -> None:
        """The debug flag is applied through the supplied logging port."""
        port = RecordingLoggingPort()
        QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props(debug=True), port)
        QueueCacheAdapter(InMemoryKeyValueStore(), broker, _props(), port)
        assert port.debug_calls == [True, False]


class TestBrokerTransportFailure:
    async def test_connection_reset_rolls_back_write(self) -> None:
        """A dropped broker connection surfaces as CacheUnavailableException with no cache residue."""
        adapter = QueueCacheAdapter(InMemoryKeyValueStore(), ResettingBroker(), _props())
        async with adapter:
            with pytest.raises(CacheUnavailableException) as exc_info:
                await adapter.create_user({"id": "u1", "email": "a@b.c"})
            assert isinstance(exc_info.value.__cause__, ConnectionResetError)
            assert exc_info.value.to_error().code == "CACHE_UNAVAILABLE"
            assert await adapter.cache.lookup(CachePrefix.USER_DATA, "u1") is None
            assert await adapter.cache.lookup(CachePrefix.EMAIL_INDEX, "a@b.c") is None


class TestDefaultPacing:
    async def test_read_miss_and_write_share_one_slot_within_budget(self, broker) -> None:
        """Default pacing still lets a read miss and a concurrent write finish in time."""
        props = _props(
            max_concurrency=1,
            max_jobs_per_tick=1,
            tick_interval=10,
            timeouts=TimeoutProperties(enqueue=500, dequeue=500, process=500),
        )
        adapter = QueueCacheAdapter(InMemoryKeyValueStore(), broker, props)
        backend = SlowBackend(adapter, delay=0.02)
        backend.users["u9"] = {"id": "u9", "email": "x@y.z"}
        await broker.subscribe("authqueue", backend)
        loop = asyncio.get_running_loop()
        async with adapter:
            started = loop.time()
            found, _ = await asyncio.gather(
                adapter.get_user("u9"),
                adapter.create_user({"id": "u1", "email": "a@b.c"}),
            )
            elapsed = loop.time() - started
        assert found == {"id": "u9", "email": "x@y.z"}
        assert sorted(backend.operations()) == ["CREATE_USER", "GET_USER"]
        assert adapter.limiter.active == 0
        assert elapsed < 0.5
