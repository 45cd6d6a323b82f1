"""Locking contract and the distributed lock handle."""

from __future__ import annotations

import time
from abc import ABC, abstractmethod
from datetime import timedelta
from typing import Generic, TypeVar

from .models import LockOptions

OptionsT = TypeVar("OptionsT", bound=LockOptions)
DriverT = TypeVar("DriverT", bound="LockDriver")

_RESOLUTION = timedelta(microseconds=1)


class LockDriver(ABC, Generic[OptionsT]):
    """Contract every storage back-end implements.

    A driver keeps the fencing token it believes is current. It is not safe to
    call a driver's operations concurrently: use one driver per lock per task,
    or serialize calls externally.
    """

    @property
    @abstractmethod
    def current_token(self) -> str | None: ...

    @abstractmethod
    async def acquire(self, duration: timedelta, options: OptionsT | None = None) -> float:
        """Acquire or renew the lease.

        Returns the ``time.monotonic()`` instant at which the lease started.
        Drivers must capture it only after the last store round trip.
        """
        ...

    @abstractmethod
    async def refresh(self, options: OptionsT | None = None) -> None:
        """Adopt the fencing token currently of record, if any.

        Needed when ``acquire`` failed with LockAlreadyAcquiredError and the
        store only offers compare-and-set.
        """
        ...

    async def release(self, options: OptionsT | None = None) -> None:
        """Release the lease by clearing the fencing token.

        Back-ends that cannot release keep this default no-op.
        """
        return None


class DistLock(Generic[DriverT]):
    """A lease on a shared resource, backed by a storage driver."""

    def __init__(self, driver: DriverT, duration: timedelta) -> None:
        if duration <= timedelta(0):
            raise ValueError(f"Lease duration must be positive: {duration}")
        self._driver = driver
        self._duration = duration

    @property
    def driver(self) -> DriverT:
        return self._driver

    @property
    def duration(self) -> timedelta:
        return self._duration

    async def acquire(self, options: LockOptions | None = None) -> float:
        return await self._driver.acquire(self._duration, options)

    async def refresh(self, options: LockOptions | None = None) -> None:
        await self._driver.refresh(options)

    async def release(self, options: LockOptions | None = None) -> None:
        await self._driver.release(options)

    def remaining(self, lease_start: float) -> timedelta | None:
        """Return the time left on a lease started at ``lease_start``.

        ``None`` means the lease has expired and the caller must stop mutating
        the shared resource immediately.
        """
        elapsed = max(time.monotonic() - lease_start, 0.0)
        left = self._duration - timedelta(seconds=elapsed)
        if elapsed > 0 and left >= self._duration:
            # sub-microsecond elapsed time rounds away in timedelta
            left = self._duration - _RESOLUTION
        if left <= timedelta(0):
            return None
        return left
