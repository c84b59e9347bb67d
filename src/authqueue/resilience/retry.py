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
"""Bounded retry for queue submissions."""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Awaitable, Callable
from datetime import timedelta
from typing import Any, TypeVar

from authqueue.kernel.exceptions import (
    BackendReportedFailureException,
    EnqueueTimeoutException,
    RetryExhaustedException,
    describe,
)

T = TypeVar("T")

logger = logging.getLogger(__name__)


def is_transient(exc: Exception) -> bool:
    """Default classification: enqueue timeouts and transient backend failures."""
    if isinstance(exc, EnqueueTimeoutException):
        return True
    if isinstance(exc, BackendReportedFailureException):
        return exc.transient
    return False


class RetryPolicy:
    """Retry policy with optional exponential backoff.

    ``max_attempts`` counts every submission, the first one included. The
    attempt number (starting at 1) is passed to the callable so it can
    stamp the job it resubmits. Errors the classifier rejects propagate
    untouched on the first occurrence.

    Args:
        max_attempts: Maximum number of attempts (including the first).
        base_delay: Base delay between retries (doubled each attempt).
        retryable: Decides whether an exception warrants another attempt.
    """

    def __init__(
        self,
        max_attempts: int = 3,
        base_delay: timedelta = timedelta(0),
        retryable: Callable[[Exception], bool] = is_transient,
    ) -> None:
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self._max_attempts = max_attempts
        self._base_delay = base_delay.total_seconds()
        self._retryable = retryable

    @property
    def max_attempts(self) -> int:
        return self._max_attempts

    async def execute(self, func: Callable[[int], Awaitable[T]], **context: Any) -> T:
        """Run *func* until it succeeds, fails permanently, or attempts run out.

        Raises:
            RetryExhaustedException: after the last retryable failure, with
                the last cause under ``data["cause"]``.
        """
        last_exception: Exception | None = None

        for attempt in range(1, self._max_attempts + 1):
            try:
                return await func(attempt)
            except Exception as exc:
                if not self._retryable(exc):
                    raise
                last_exception = exc
                logger.debug("attempt %d/%d failed: %s", attempt, self._max_attempts, exc)
                if attempt < self._max_attempts and self._base_delay > 0:
                    await asyncio.sleep(self._base_delay * (2 ** (attempt - 1)))

        assert last_exception is not None
        raise RetryExhaustedException(
            f"Gave up after {self._max_attempts} attempts",
            context={**context, "attempts": self._max_attempts, "cause": describe(last_exception)},
        ) from last_exception
