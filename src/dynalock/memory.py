"""In-memory lock store and driver."""

from __future__ import annotations

import asyncio
import copy
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog

from .client import LockDriver
from .exceptions import LockAlreadyAcquiredError, LockError, ProviderError, UnhandledError
from .models import DAY_SECONDS, LockOptions

logger = structlog.stdlib.get_logger(__name__)


class ConditionNotMetError(Exception):
    """A conditional write was rejected by the store."""

    def __init__(self, key: str) -> None:
        self.key = key
        super().__init__(f"Condition not met: {key}")


class InMemoryLockStore:
    """Process-local conditional-write store.

    Several drivers may share one store to simulate independent processes.
    Each operation is atomic: it never awaits while inspecting a record.
    """

    def __init__(self) -> None:
        self._records: dict[str, dict[str, Any]] = {}

    async def update_if(
        self,
        key: str,
        token_field: str,
        expected: str,
        updates: dict[str, Any],
    ) -> None:
        """Apply ``updates`` if the token is absent or equals ``expected``."""
        record = self._records.get(key)
        if record is not None and token_field in record and record[token_field] != expected:
            raise ConditionNotMetError(key)
        if record is None:
            record = self._records[key] = {}
        record.update(updates)

    async def remove_if(self, key: str, token_field: str, expected: str) -> None:
        """Remove the token if it is present and equals ``expected``."""
        record = self._records.get(key)
        if record is None or record.get(token_field) != expected:
            raise ConditionNotMetError(key)
        del record[token_field]

    async def get(self, key: str) -> dict[str, Any] | None:
        record = self._records.get(key)
        return copy.deepcopy(record) if record is not None else None

    def purge_expired(self, ttl_field: str, now: float | None = None) -> int:
        """Drop records whose TTL hint has passed, as store-side GC would.

        Returns the number of records removed.
        """
        now = time.time() if now is None else now
        expired = [
            key
            for key, record in self._records.items()
            if ttl_field in record and record[ttl_field] <= now
        ]
        for key in expired:
            del self._records[key]
        return len(expired)


def _map_store_error(exc: BaseException) -> LockError:
    if isinstance(exc, ConditionNotMetError):
        logger.warning("conditional check failed", error=str(exc))
        return LockAlreadyAcquiredError()
    if isinstance(exc, asyncio.TimeoutError):
        logger.error("store request timed out")
        return ProviderError("request timed out")
    logger.error("store request failed", error=repr(exc))
    return ProviderError(f"{type(exc).__name__}: {exc}")


class InMemoryDriver(LockDriver[LockOptions]):
    """Lock driver over an ``InMemoryLockStore``, for tests and local runs."""

    def __init__(
        self,
        store: InMemoryLockStore,
        key: str = "singleton",
        token_field_name: str = "rvn",
        duration_field_name: str = "duration",
        ttl_field_name: str = "ttl",
        ttl_value: timedelta | None = None,
    ) -> None:
        self._store = store
        self._key = key
        self._token_field_name = token_field_name
        self._duration_field_name = duration_field_name
        self._ttl_field_name = ttl_field_name
        self._ttl_value = ttl_value or timedelta(seconds=DAY_SECONDS * 7)
        self._current_token: str | None = None

    @property
    def current_token(self) -> str | None:
        return self._current_token

    async def _call(self, coro: Any, timeout: timedelta) -> Any:
        try:
            return await asyncio.wait_for(coro, timeout=timeout.total_seconds())
        except Exception as e:
            raise _map_store_error(e) from e

    async def acquire(self, duration: timedelta, options: LockOptions | None = None) -> float:
        options = options or LockOptions()
        new_token = str(uuid.uuid4())
        cond_token = self._current_token or new_token
        lease_seconds = int(duration.total_seconds())
        try:
            ttl = int((datetime.now(timezone.utc) + self._ttl_value).timestamp())
        except (OverflowError, OSError, ValueError) as e:
            logger.error("failed to read system clock", error=str(e))
            raise UnhandledError(str(e), cause=e) from e

        await self._call(
            self._store.update_if(
                self._key,
                self._token_field_name,
                cond_token,
                {
                    self._token_field_name: new_token,
                    self._duration_field_name: lease_seconds,
                    self._ttl_field_name: ttl,
                },
            ),
            options.timeout,
        )
        start = time.monotonic()

        logger.info(
            "lock acquired",
            lock=self._key,
            token=self._current_token,
            new_token=new_token,
            lease_seconds=lease_seconds,
        )
        self._current_token = new_token
        return start

    async def refresh(self, options: LockOptions | None = None) -> None:
        options = options or LockOptions()
        record = await self._call(self._store.get(self._key), options.timeout)
        if record is None or self._token_field_name not in record:
            return
        self._current_token = record[self._token_field_name]
        logger.info("lock refreshed", lock=self._key, token=self._current_token)

    async def release(self, options: LockOptions | None = None) -> None:
        options = options or LockOptions()
        if self._current_token is None:
            logger.warning("release without a fencing token", lock=self._key)
            raise LockAlreadyAcquiredError("no fencing token held")

        await self._call(
            self._store.remove_if(self._key, self._token_field_name, self._current_token),
            options.timeout,
        )
        logger.info("lock released", lock=self._key, token=self._current_token)
        self._current_token = None
