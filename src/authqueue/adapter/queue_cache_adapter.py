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
"""Identity adapter facade over the cache-and-queue mediation engine."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import timedelta
from typing import Any

from authqueue.cache.keys import CacheKeyspace
from authqueue.cache.store import CacheStore
from authqueue.cache.types import CacheEntry, CachePrefix
from authqueue.config.properties.adapter import AdapterProperties, EntityProperties
from authqueue.coordination.read import ReadCoordinator
from authqueue.coordination.write import CacheUpdate, WriteCoordinator
from authqueue.idempotency.key_builder import IdempotencyKeyBuilder
from authqueue.kernel.exceptions import ValidationException
from authqueue.logging.port import LoggingPort
from authqueue.logging.structlog_adapter import StructlogAdapter
from authqueue.queue.command_queue import CommandQueue
from authqueue.queue.ports.outbound import QueueBrokerPort
from authqueue.queue.types import JobName
from authqueue.resilience.concurrency import ConcurrencyLimiter
from authqueue.resilience.retry import RetryPolicy
from authqueue.store.ports.outbound import KeyValueStorePort

logger = logging.getLogger(__name__)


def _require(body: Mapping[str, Any], field: str) -> str:
    value = body.get(field)
    if not isinstance(value, str) or not value:
        raise ValidationException(f"'{field}' is required", context={"field": field})
    return value


def _ms(value: int) -> timedelta:
    return timedelta(milliseconds=value)


class QueueCacheAdapter:
    """Users, sessions, accounts and verification requests over cache + queue.

    Reads resolve from the cache and otherwise wait for the backend to fill
    it. Writes update the cache optimistically and enqueue an idempotent
    command. The store handle and broker are owned by this adapter: they are
    started by ``start()`` and released by ``stop()``. The ``debug`` switch
    is applied through *logging_port*, a fresh ``StructlogAdapter`` unless
    the host passes the one it configured.
    """

    def __init__(
        self,
        store: KeyValueStorePort,
        broker: QueueBrokerPort,
        properties: AdapterProperties | None = None,
        logging_port: LoggingPort | None = None,
    ) -> None:
        props = properties or AdapterProperties()
        self._props = props
        self._store = store
        self._broker = broker

        self._logging = logging_port or StructlogAdapter()
        self._logging.enable_debug_trace(props.debug)

        self._keyspace = CacheKeyspace(props.cache_prefix, props.separator)
        self._cache = CacheStore(store, self._keyspace)
        self._limiter = ConcurrencyLimiter(
            max_concurrency=props.max_concurrency,
            max_jobs_per_tick=props.max_jobs_per_tick,
            tick_interval=_ms(props.tick_interval),
        )
        self._queue = CommandQueue(broker, self._cache, self._limiter, poll_interval=_ms(props.poll_interval))
        self._reader = ReadCoordinator(
            self._cache,
            self._queue,
            props.queue_name,
            dequeue_timeout=_ms(props.timeouts.dequeue),
            process_timeout=_ms(props.timeouts.process),
        )
        self._writer = WriteCoordinator(
            self._cache,
            self._queue,
            props.queue_name,
            enqueue_timeout=_ms(props.timeouts.enqueue),
            retry=RetryPolicy(max_attempts=props.max_retries, base_delay=_ms(props.retry_delay)),
            keys=IdempotencyKeyBuilder(),
        )

    @property
    def cache(self) -> CacheStore:
        return self._cache

    @property
    def limiter(self) -> ConcurrencyLimiter:
        return self._limiter

    @property
    def properties(self) -> AdapterProperties:
        return self._props

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def start(self) -> None:
        await self._store.start()
        await self._broker.start()

    async def stop(self) -> None:
        await self._broker.stop()
        await self._store.stop()

    async def __aenter__(self) -> QueueCacheAdapter:
        await self.start()
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.stop()

    # ------------------------------------------------------------------
    # Users
    # ------------------------------------------------------------------

    async def create_user(self, user: Mapping[str, Any]) -> dict[str, Any]:
        user_id = _require(user, "id")
        body = dict(user)
        props = self._props.user
        primary = CacheEntry(CachePrefix.USER_DATA, user_id, body, props.ttl)
        await self._writer.write(
            JobName.CREATE_USER,
            user_id,
            body,
            self._cache_update(props, primary, self._user_indexes(body, props)),
            persist=props.persist,
        )
        return body

    async def get_user(self, user_id: str) -> dict[str, Any] | None:
        if not isinstance(user_id, str) or not user_id:
            raise ValidationException("'id' is required", context={"field": "id"})
        return await self._reader.get(
            JobName.GET_USER,
            CachePrefix.USER_DATA,
            user_id,
            {"id": user_id},
            use_cache=self._props.user.cache,
        )

    async def get_user_by_email(self, email: str) -> dict[str, Any] | None:
        if not isinstance(email, str) or not email:
            raise ValidationException("'email' is required", context={"field": "email"})
        user_id = await self._reader.get(
            JobName.GET_USER_BY_EMAIL,
            CachePrefix.EMAIL_INDEX,
            email,
            {"email": email},
            use_cache=self._props.user.cache,
        )
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def get_user_by_account(self, provider: str, provider_account_id: str) -> dict[str, Any] | None:
        account_key = self._keyspace.account_key(provider, provider_account_id)
        user_id = await self._reader.get(
            JobName.GET_USER_BY_ACCOUNT,
            CachePrefix.ACCOUNT_INDEX,
            account_key,
            {"provider": provider, "providerAccountId": provider_account_id},
            use_cache=self._props.account.cache,
        )
        if user_id is None:
            return None
        return await self.get_user(user_id)

    async def update_user(self, user: Mapping[str, Any]) -> dict[str, Any]:
        user_id = _require(user, "id")
        changes = dict(user)
        props = self._props.user
        previous = await self._cached(props, CachePrefix.USER_DATA, user_id)

        stale: list[tuple[str, str]] = []
        old_email = previous.get("email") if previous else None
        if old_email and "email" in changes and changes["email"] != old_email:
            stale.append((CachePrefix.EMAIL_INDEX, old_email))

        if previous is not None:
            merged = {**previous, **changes}
            primary = CacheEntry(CachePrefix.USER_DATA, user_id, merged, props.ttl)
            update = self._cache_update(props, primary, self._user_indexes(merged, props), stale)
        else:
            merged = changes
            update = CacheUpdate(invalidate=(*stale, (CachePrefix.USER_DATA, user_id)))

        await self._writer.write(JobName.UPDATE_USER, user_id, changes, update, persist=props.persist)
        return merged

    async def delete_user(self, user_id: str) -> None:
        if not isinstance(user_id, str) or not user_id:
            raise ValidationException("'id' is required", context={"field": "id"})
        props = self._props.user
        previous = await self._cached(props, CachePrefix.USER_DATA, user_id)
        refs: list[tuple[str, str]] = [(CachePrefix.USER_DATA, user_id)]
        if previous and previous.get("email"):
            refs.append((CachePrefix.EMAIL_INDEX, previous["email"]))
        await self._writer.write(
            JobName.DELETE_USER,
            user_id,
            {"id": user_id},
            CacheUpdate(invalidate=tuple(refs)),
            persist=props.persist,
        )

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def link_account(self, account: Mapping[str, Any]) -> dict[str, Any]:
        user_id = _require(account, "userId")
        provider = _require(account, "provider")
        provider_account_id = _require(account, "providerAccountId")
        account_key = self._keyspace.account_key(provider, provider_account_id)
        body = dict(account)
        props = self._props.account
        primary = CacheEntry(CachePrefix.ACCOUNT_DATA, account_key, body, props.ttl)
        index = CacheEntry(CachePrefix.ACCOUNT_INDEX, account_key, user_id, props.ttl)
        await self._writer.write(
            JobName.LINK_ACCOUNT,
            account_key,
            body,
            self._cache_update(props, primary, (index,)),
            persist=props.persist,
        )
        return body

    async def unlink_account(self, provider: str, provider_account_id: str) -> None:
        account_key = self._keyspace.account_key(provider, provider_account_id)
        await self._writer.write(
            JobName.UNLINK_ACCOUNT,
            account_key,
            {"provider": provider, "providerAccountId": provider_account_id},
            CacheUpdate(
                invalidate=(
                    (CachePrefix.ACCOUNT_DATA, account_key),
                    (CachePrefix.ACCOUNT_INDEX, account_key),
                )
            ),
            persist=self._props.account.persist,
        )

    # ------------------------------------------------------------------
    # Sessions
    # ------------------------------------------------------------------

    async def create_session(self, session: Mapping[str, Any]) -> dict[str, Any]:
        token = _require(session, "sessionToken")
        _require(session, "userId")
        body = dict(session)
        props = self._props.session
        primary = CacheEntry(CachePrefix.SESSION_DATA, token, body, props.ttl)
        await self._writer.write(
            JobName.CREATE_SESSION,
            token,
            body,
            self._cache_update(props, primary),
            persist=props.persist,
        )
        return body

    async def get_session_and_user(self, session_token: str) -> dict[str, Any] | None:
        if not isinstance(session_token, str) or not session_token:
            raise ValidationException("'sessionToken' is required", context={"field": "sessionToken"})
        session = await self._reader.get(
            JobName.GET_SESSION_AND_USER,
            CachePrefix.SESSION_DATA,
            session_token,
            {"sessionToken": session_token},
            use_cache=self._props.session.cache,
        )
        if session is None:
            return None
        user = await self.get_user(_require(session, "userId"))
        if user is None:
            return None
        return {"session": session, "user": user}

    async def update_session(self, session: Mapping[str, Any]) -> dict[str, Any]:
        token = _require(session, "sessionToken")
        changes = dict(session)
        props = self._props.session
        previous = await self._cached(props, CachePrefix.SESSION_DATA, token)
        if previous is not None:
            merged = {**previous, **changes}
            primary = CacheEntry(CachePrefix.SESSION_DATA, token, merged, props.ttl)
            update = self._cache_update(props, primary)
        else:
            merged = changes
            update = CacheUpdate(invalidate=((CachePrefix.SESSION_DATA, token),))
        await self._writer.write(JobName.UPDATE_SESSION, token, changes, update, persist=props.persist)
        return merged

    async def delete_session(self, session_token: str) -> None:
        if not isinstance(session_token, str) or not session_token:
            raise ValidationException("'sessionToken' is required", context={"field": "sessionToken"})
        await self._writer.write(
            JobName.DELETE_SESSION,
            session_token,
            {"sessionToken": session_token},
            CacheUpdate(invalidate=((CachePrefix.SESSION_DATA, session_token),)),
            persist=self._props.session.persist,
        )

    # ------------------------------------------------------------------
    # Verification requests
    # ------------------------------------------------------------------

    async def create_verification_request(self, request: Mapping[str, Any]) -> dict[str, Any]:
        key = self._verification_key(_require(request, "identifier"), _require(request, "token"))
        body = dict(request)
        props = self._props.verification_request
        primary = CacheEntry(CachePrefix.VERIFICATION_REQUEST_DATA, key, body, props.ttl)
        await self._writer.write(
            JobName.CREATE_VERIFICATION_REQUEST,
            key,
            body,
            self._cache_update(props, primary),
            persist=props.persist,
        )
        return body

    async def get_verification_request(self, identifier: str, token: str) -> dict[str, Any] | None:
        key = self._verification_key(identifier, token)
        return await self._reader.get(
            JobName.GET_VERIFICATION_REQUEST,
            CachePrefix.VERIFICATION_REQUEST_DATA,
            key,
            {"identifier": identifier, "token": token},
            use_cache=self._props.verification_request.cache,
        )

    async def use_verification_request(self, identifier: str, token: str) -> dict[str, Any] | None:
        """Consume a verification request.

        Returns the request as last cached, or None when it was not cached.
        """
        key = self._verification_key(identifier, token)
        props = self._props.verification_request
        previous = await self._cached(props, CachePrefix.VERIFICATION_REQUEST_DATA, key)
        await self._writer.write(
            JobName.USE_VERIFICATION_REQUEST,
            key,
            {"identifier": identifier, "token": token},
            CacheUpdate(invalidate=((CachePrefix.VERIFICATION_REQUEST_DATA, key),)),
            persist=props.persist,
        )
        return previous

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    @staticmethod
    def _verification_key(identifier: str, token: str) -> str:
        if not isinstance(identifier, str) or not identifier or not isinstance(token, str) or not token:
            raise ValidationException(
                "Verification requests need both identifier and token",
                context={"field": "identifier" if not identifier else "token"},
            )
        return f"{identifier}:{token}"

    @staticmethod
    def _user_indexes(user: Mapping[str, Any], props: EntityProperties) -> tuple[CacheEntry, ...]:
        email = user.get("email")
        if not isinstance(email, str) or not email:
            return ()
        return (CacheEntry(CachePrefix.EMAIL_INDEX, email, user["id"], props.ttl),)

    @staticmethod
    def _cache_update(
        props: EntityProperties,
        primary: CacheEntry,
        indexes: tuple[CacheEntry, ...] = (),
        stale: list[tuple[str, str]] | tuple[tuple[str, str], ...] = (),
    ) -> CacheUpdate:
        """Write-through when caching is on; otherwise only invalidate."""
        if props.cache:
            return CacheUpdate(primary=primary, indexes=indexes, invalidate=tuple(stale))
        refs = (primary.ref, *(index.ref for index in indexes))
        return CacheUpdate(invalidate=(*stale, *refs))

    async def _cached(self, props: EntityProperties, prefix: str, key: str) -> dict[str, Any] | None:
        if not props.cache:
            return None
        value = await self._cache.get(prefix, key)
        return value if isinstance(value, dict) else None
