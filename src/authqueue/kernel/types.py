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
"""Structured error shape reported by every adapter operation.

All types use only the Python standard library.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any


class ErrorCategory(Enum):
    """Classifies an error by its origin or domain."""

    VALIDATION = "VALIDATION"
    BUSINESS = "BUSINESS"
    TECHNICAL = "TECHNICAL"
    EXTERNAL = "EXTERNAL"
    RESOURCE = "RESOURCE"


@dataclass(frozen=True)
class ErrorShape:
    """The single error shape surfaced to callers: ``{message, code, stack?, data?}``.

    ``category`` is kept for in-process handling and is not part of the
    serialized shape.
    """

    message: str
    code: str
    stack: str | None = None
    data: dict[str, Any] | None = None
    category: ErrorCategory = ErrorCategory.TECHNICAL

    def to_dict(self) -> dict[str, Any]:
        """Serialize to a dict, omitting ``stack`` and ``data`` when absent."""
        result: dict[str, Any] = {"message": self.message, "code": self.code}
        if self.stack is not None:
            result["stack"] = self.stack
        if self.data is not None:
            result["data"] = self.data
        return result
