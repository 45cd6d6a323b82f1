"""dynalock: a lease based distributed lock."""

from .client import DistLock, LockDriver
from .config import DynalockConfig, load
from .dynamodb import DynamoDbDriver, map_client_error
from .exceptions import (
    ConfigError,
    ConfigErrorCodes,
    LockAlreadyAcquiredError,
    LockError,
    LockErrorKind,
    ProviderError,
    UnhandledError,
)
from .logger import new_logger
from .memory import ConditionNotMetError, InMemoryDriver, InMemoryLockStore
from .models import DAY_SECONDS, DynamoDbDriverConfig, DynamoDbLockOptions, LockOptions

__all__ = [
    "ConditionNotMetError",
    "ConfigError",
    "ConfigErrorCodes",
    "DAY_SECONDS",
    "DistLock",
    "DynalockConfig",
    "DynamoDbDriver",
    "DynamoDbDriverConfig",
    "DynamoDbLockOptions",
    "InMemoryDriver",
    "InMemoryLockStore",
    "LockAlreadyAcquiredError",
    "LockDriver",
    "LockError",
    "LockErrorKind",
    "LockOptions",
    "ProviderError",
    "UnhandledError",
    "load",
    "map_client_error",
    "new_logger",
]
