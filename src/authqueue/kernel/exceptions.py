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
"""Unified exception hierarchy for authqueue.

All adapter exceptions inherit from AuthQueueException, so a caller can
catch one type for every failure the mediation engine reports, or catch a
specific subclass for targeted handling.

Categories:
- BusinessException: caller bugs such as malformed payloads
- InfrastructureException: cache, queue and timeout failures
"""

from __future__ import annotations

import traceback
from typing import Any

from authqueue.kernel.types import ErrorCategory, ErrorShape


# =============================================================================
# Base Exception
# =============================================================================


class AuthQueueException(Exception):
    """Base exception for all authqueue errors.

    Carries a machine-readable code and a context dict for structured error
    data. ``to_error()`` renders the single error shape reported to callers.

    Args:
        message: Human-readable error description.
        code: Machine-readable error code (e.g. "READ_TIMEOUT").
        context: Arbitrary key-value pairs for error context and debugging.
    """

    default_code: str = "INTERNAL_ERROR"
    category: ErrorCategory = ErrorCategory.TECHNICAL
    retryable: bool = False

    def __init__(
        self,
        message: str,
        code: str | None = None,
        context: dict | None = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.code = code if code is not None else self.default_code
        self.context: dict = context if context is not None else {}

    def to_error(self, include_stack: bool = False) -> ErrorShape:
        """Render this exception as an ``ErrorShape``."""
        stack = None
        if include_stack and self.__traceback__ is not None:
            stack = "".join(traceback.format_exception(type(self), self, self.__traceback__))
        return ErrorShape(
            message=self.message,
            code=self.code,
            stack=stack,
            data=dict(self.context) or None,
            category=self.category,
        )


# =============================================================================
# Business Exceptions
# =============================================================================


class BusinessException(AuthQueueException):
    """Caller-side errors that no amount of resubmission can fix."""

    category = ErrorCategory.BUSINESS


class ValidationException(BusinessException):
    """Malformed input to key derivation or cache key construction."""

    default_code = "VALIDATION_ERROR"
    category = ErrorCategory.VALIDATION


# =============================================================================
# Infrastructure Exceptions
# =============================================================================


class InfrastructureException(AuthQueueException):
    """Infrastructure failures: key-value store, queue, timeouts."""


class CacheUnavailableException(InfrastructureException):
    """The shared key-value store could not be reached.

    Never a synonym for a cache miss.
    """

    default_code = "CACHE_UNAVAILABLE"
    category = ErrorCategory.RESOURCE


class OperationTimeoutException(InfrastructureException):
    """Operation exceeded its allowed time limit."""

    default_code = "TIMEOUT"
    retryable = True


class EnqueueTimeoutException(OperationTimeoutException):
    """The queue did not acknowledge an enqueue within the enqueue timeout."""

    default_code = "ENQUEUE_TIMEOUT"


class ReadTimeoutException(OperationTimeoutException):
    """The backend did not populate the awaited cache key within budget."""

    default_code = "READ_TIMEOUT"


class RetryExhaustedException(InfrastructureException):
    """All retry attempts have been exhausted without success."""

    default_code = "RETRY_EXHAUSTED"


class BackendReportedFailureException(InfrastructureException):
    """A job failure signalled through the backend's own channel.

    Non-retryable unless the backend classified it as transient by
    supplying ``{"transient": True}`` in its data.
    """

    default_code = "BACKEND_FAILURE"
    category = ErrorCategory.EXTERNAL

    @property
    def transient(self) -> bool:
        return self.context.get("transient") is True


def describe(exc: BaseException) -> dict[str, Any]:
    """Summarize *exc* for inclusion in another error's ``data``."""
    if isinstance(exc, AuthQueueException):
        return exc.to_error().to_dict()
    return {"message": str(exc), "code": type(exc).__name__}
