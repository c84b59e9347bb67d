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
"""Cache key construction."""

from __future__ import annotations

from authqueue.kernel.exceptions import ValidationException


class CacheKeyspace:
    """Builds full store keys: ``namespace + prefix + separator + key``.

    *namespace* is the deployment-wide cache prefix and is empty by default.
    """

    def __init__(self, namespace: str = "", separator: str = ":") -> None:
        if not separator:
            raise ValidationException("Cache key separator must not be empty")
        self._namespace = namespace
        self._separator = separator

    @property
    def separator(self) -> str:
        return self._separator

    def key(self, prefix: str, key: str) -> str:
        if not isinstance(prefix, str) or not prefix:
            raise ValidationException("Cache prefix must be a non-empty string", context={"prefix": repr(prefix)})
        if not isinstance(key, str) or not key:
            raise ValidationException(
                "Cache key must be a non-empty string", context={"prefix": prefix, "key": repr(key)}
            )
        return f"{self._namespace}{prefix}{self._separator}{key}"

    def account_key(self, provider: str, provider_account_id: str) -> str:
        """Key of a provider account inside ``ACCOUNT_INDEX`` / ``ACCOUNT_DATA``."""
        if not provider or not provider_account_id:
            raise ValidationException(
                "Account keys need both provider and providerAccountId",
                context={"provider": provider, "providerAccountId": provider_account_id},
            )
        return f"{provider}:{provider_account_id}"
