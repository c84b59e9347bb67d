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
"""Deterministic idempotency keys for queued commands."""

from __future__ import annotations

import hashlib
import json
from collections.abc import Mapping
from datetime import date, datetime
from typing import Any

from authqueue.kernel.exceptions import ValidationException

IDEMPOTENCY_FIELD = "idempotency_key"


class IdempotencyKeyBuilder:
    """Derives a fixed-width key from ``(entity_id, operation, payload)``.

    The payload is canonicalized first (sorted keys, compact separators,
    ISO-8601 dates) so logically equal payloads hash identically regardless
    of their original ordering. No wall clock or random input is involved,
    so the same logical command yields the same key in every process.
    """

    def __init__(self, digest_size: int = 16) -> None:
        self._digest_size = digest_size

    def build(self, entity_id: str, operation: str, payload: Any = None) -> str:
        if not isinstance(entity_id, str) or not entity_id:
            raise ValidationException("Idempotency keys need a non-empty entity id", context={"entity_id": repr(entity_id)})
        if not isinstance(operation, str) or not operation:
            raise ValidationException("Idempotency keys need a non-empty operation name", context={"operation": repr(operation)})

        canonical = self.canonicalize(payload)
        digest = hashlib.blake2b(digest_size=self._digest_size)
        # Length prefixes keep ("ab", "c") and ("a", "bc") apart.
        for part in (entity_id, operation, canonical):
            encoded = part.encode("utf-8")
            digest.update(f"{len(encoded)}:".encode())
            digest.update(encoded)
        return digest.hexdigest()

    @staticmethod
    def canonicalize(payload: Any) -> str:
        """Render *payload* as canonical JSON.

        A top-level ``idempotency_key`` field is ignored so that a payload
        which already carries its key canonicalizes like the original.
        """
        if isinstance(payload, Mapping):
            payload = {k: v for k, v in payload.items() if k != IDEMPOTENCY_FIELD}
        _check_keys(payload)
        try:
            return json.dumps(
                payload,
                sort_keys=True,
                separators=(",", ":"),
                ensure_ascii=False,
                allow_nan=False,
                default=_encode_default,
            )
        except (TypeError, ValueError) as exc:
            raise ValidationException(f"Payload cannot be canonicalized: {exc}") from exc


def _encode_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not canonicalizable")


def _check_keys(value: Any) -> None:
    if isinstance(value, Mapping):
        for key, item in value.items():
            if not isinstance(key, str):
                raise ValidationException(
                    "Payload map keys must be strings", context={"key": repr(key)}
                )
            _check_keys(item)
    elif isinstance(value, (list, tuple)):
        for item in value:
            _check_keys(item)
