"""Lock driver inputs."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta

# The number of seconds in 24 hours.
DAY_SECONDS = 86400


@dataclass
class LockOptions:
    """Per-call input shared by every driver."""

    timeout: timedelta = field(default_factory=lambda: timedelta(seconds=10))


@dataclass
class DynamoDbLockOptions(LockOptions):
    """Per-call input for the DynamoDB driver.

    ``consistent_read`` is only used by ``refresh``.
    """

    consistent_read: bool = False


@dataclass
class DynamoDbDriverConfig:
    """Store coordinates and attribute names for a DynamoDB lock item.

    Only ``table_name`` and ``partition_key_field_name`` are required. Use a
    distinct ``partition_key_value`` per protected resource when one table
    holds several locks.
    """

    table_name: str
    partition_key_field_name: str
    partition_key_value: str = "singleton"
    token_field_name: str = "rvn"
    duration_field_name: str = "duration"
    ttl_field_name: str = "ttl"
    ttl_value: timedelta = field(default_factory=lambda: timedelta(seconds=DAY_SECONDS * 7))
