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
"""authqueue Kernel: foundation layer with zero external dependencies."""

from authqueue.kernel.exceptions import (
    AuthQueueException,
    BackendReportedFailureException,
    BusinessException,
    CacheUnavailableException,
    EnqueueTimeoutException,
    InfrastructureException,
    OperationTimeoutException,
    ReadTimeoutException,
    RetryExhaustedException,
    ValidationException,
)
from authqueue.kernel.lifecycle import Lifecycle
from authqueue.kernel.types import ErrorCategory, ErrorShape

__all__ = [
    # Lifecycle
    "Lifecycle",
    # Types
    "ErrorCategory",
    "ErrorShape",
    # Base
    "AuthQueueException",
    # Business
    "BusinessException",
    "ValidationException",
    # Infrastructure
    "InfrastructureException",
    "CacheUnavailableException",
    "OperationTimeoutException",
    "EnqueueTimeoutException",
    "ReadTimeoutException",
    "RetryExhaustedException",
    "BackendReportedFailureException",
]
