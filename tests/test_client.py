"""DistLock and LockDriver contract tests."""

from datetime import timedelta

import pytest

from dynalock import DistLock, LockDriver, LockOptions


class _NoReleaseDriver(LockDriver[LockOptions]):
    def __init__(self) -> None:
        self.acquired_with: list[timedelta] = []
        self.refreshed = 0

    @property
    def current_token(self) -> str | None:
        return None

    async def acquire(self, duration: timedelta, options: LockOptions | None = None) -> float:
        self.acquired_with.append(duration)
        return 100.0

    async def refresh(self, options: LockOptions | None = None) -> None:
        self.refreshed += 1


def test_dist_lock_new() -> None:
    driver = _NoReleaseDriver()
    lock = DistLock(driver, timedelta(seconds=10))
    assert lock.driver is driver
    assert lock.duration == timedelta(seconds=10)


@pytest.mark.parametrize("duration", [timedelta(0), timedelta(seconds=-1)])
def test_dist_lock_rejects_non_positive_duration(duration: timedelta) -> None:
    with pytest.raises(ValueError, match="must be positive"):
        DistLock(_NoReleaseDriver(), duration)


async def test_operations_delegate_to_driver() -> None:
    driver = _NoReleaseDriver()
    lock = DistLock(driver, timedelta(seconds=5))
    assert await lock.acquire() == 100.0
    await lock.refresh()
    assert driver.acquired_with == [timedelta(seconds=5)]
    assert driver.refreshed == 1


async def test_default_release_is_noop() -> None:
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=5))
    assert await lock.release() is None


def test_remaining_immediately(mocker) -> None:
    mocker.patch("dynalock.client.time.monotonic", return_value=1000.0)
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=10))
    assert lock.remaining(1000.0) == timedelta(seconds=10)


def test_remaining_strictly_less_after_any_elapsed_time(mocker) -> None:
    mocker.patch("dynalock.client.time.monotonic", return_value=1000.0 + 1e-9)
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=10))
    left = lock.remaining(1000.0)
    assert left is not None
    assert left < timedelta(seconds=10)


def test_remaining_partial(mocker) -> None:
    mocker.patch("dynalock.client.time.monotonic", return_value=1004.0)
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=10))
    assert lock.remaining(1000.0) == timedelta(seconds=6)


def test_remaining_none_at_exact_expiry(mocker) -> None:
    mocker.patch("dynalock.client.time.monotonic", return_value=1010.0)
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=10))
    assert lock.remaining(1000.0) is None


def test_remaining_none_after_expiry(mocker) -> None:
    mocker.patch("dynalock.client.time.monotonic", return_value=1030.0)
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=10))
    assert lock.remaining(1000.0) is None


def test_remaining_future_start_counts_as_no_elapsed_time(mocker) -> None:
    mocker.patch("dynalock.client.time.monotonic", return_value=1000.0)
    lock = DistLock(_NoReleaseDriver(), timedelta(seconds=10))
    assert lock.remaining(1005.0) == timedelta(seconds=10)
