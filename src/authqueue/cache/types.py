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
"""Cache data types."""

from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Any


class CachePrefix(StrEnum):
    """Key namespaces shared with the backend."""

    USER_DATA = "USER_DATA"
    EMAIL_INDEX = "EMAIL_INDEX"
    ACCOUNT_INDEX = "ACCOUNT_INDEX"
    SESSION_DATA = "SESSION_DATA"
    VERIFICATION_REQUEST_DATA = "VERIFICATION_REQUEST_DATA"
    ACCOUNT_DATA = "ACCOUNT_DATA"


@dataclass(frozen=True)
class CacheEntry:
    """A value stored under ``prefix + separator + key``.

    ``ttl_seconds == 0`` means the entry never expires. An index entry is a
    CacheEntry whose value is the id of the entity it points at.
    """

    prefix: str
    key: str
    value: Any
    ttl_seconds: int = 0

    @property
    def ref(self) -> tuple[str, str]:
        return (self.prefix, self.key)
