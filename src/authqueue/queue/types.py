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
"""Queue data types."""

from __future__ import annotations

import dataclasses
import json
import time
import uuid
from dataclasses import dataclass, field
from enum import StrEnum
from typing import Any

from authqueue.idempotency.key_builder import IDEMPOTENCY_FIELD


class JobName(StrEnum):
    """Operations understood by the backend."""

    CREATE_USER = "CREATE_USER"
    GET_USER = "GET_USER"
    GET_USER_BY_EMAIL = "GET_USER_BY_EMAIL"
    GET_USER_BY_ACCOUNT = "GET_USER_BY_ACCOUNT"
    UPDATE_USER = "UPDATE_USER"
    DELETE_USER = "DELETE_USER"
    LINK_ACCOUNT = "LINK_ACCOUNT"
    UNLINK_ACCOUNT = "UNLINK_ACCOUNT"
    CREATE_SESSION = "CREATE_SESSION"
    GET_SESSION_AND_USER = "GET_SESSION_AND_USER"
    UPDATE_SESSION = "UPDATE_SESSION"
    DELETE_SESSION = "DELETE_SESSION"
    CREATE_VERIFICATION_REQUEST = "CREATE_VERIFICATION_REQUEST"
    GET_VERIFICATION_REQUEST = "GET_VERIFICATION_REQUEST"
    USE_VERIFICATION_REQUEST = "USE_VERIFICATION_REQUEST"

    @property
    def is_read(self) -> bool:
        return self.value.startswith("GET_")


@dataclass(frozen=True)
class QueueMessage:
    """A serialized job as handed to a broker."""

    queue: str
    value: bytes
    job_id: str | None = None
    headers: dict[str, str] = field(default_factory=dict)


def _now_ms() -> int:
    return int(time.time() * 1000)


def _new_request_id() -> str:
    return uuid.uuid4().hex


@dataclass(frozen=True)
class QueueJob:
    """A command destined for the backend.

    Mutations carry an ``idempotency_key``, which is also their broker job
    id, so every resubmission of the same logical command is recognisable.
    Reads carry only their lookup keys and get a fresh ``request_id`` per
    request: a repeated read is a new question, not a duplicate.

    ``enqueued_at`` is informational only; it never feeds the idempotency
    key. ``attempt_count`` counts submissions of this logical job.
    """

    queue_name: str
    operation: JobName
    payload: dict[str, Any]
    idempotency_key: str | None = None
    attempt_count: int = 0
    enqueued_at: int = field(default_factory=_now_ms)
    request_id: str = field(default_factory=_new_request_id, compare=False)

    @property
    def job_id(self) -> str:
        """Broker job id: the idempotency key, or the request id for reads."""
        return self.idempotency_key or self.request_id

    def next_attempt(self) -> QueueJob:
        """The same job, resubmitted: same key, one more attempt."""
        return dataclasses.replace(self, attempt_count=self.attempt_count + 1, enqueued_at=_now_ms())

    def to_wire(self) -> bytes:
        """JSON envelope consumed by the backend."""
        data = dict(self.payload)
        if self.idempotency_key is not None:
            data[IDEMPOTENCY_FIELD] = self.idempotency_key
        envelope = {
            "name": self.operation.value,
            "data": data,
            "opts": {"jobId": self.job_id, "attempts": self.attempt_count},
            "timestamp": self.enqueued_at,
        }
        return json.dumps(envelope, separators=(",", ":"), default=str).encode()

    @classmethod
    def from_wire(cls, queue_name: str, raw: bytes | str) -> QueueJob:
        envelope = json.loads(raw)
        data = dict(envelope["data"])
        key = data.pop(IDEMPOTENCY_FIELD, None)
        opts = envelope.get("opts", {})
        return cls(
            queue_name=queue_name,
            operation=JobName(envelope["name"]),
            payload=data,
            idempotency_key=key,
            attempt_count=int(opts.get("attempts", 0)),
            enqueued_at=int(envelope.get("timestamp", 0)),
            request_id=str(opts.get("jobId") or _new_request_id()),
        )
