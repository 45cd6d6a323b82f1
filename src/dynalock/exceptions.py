"""Lock and configuration errors."""

from __future__ import annotations

from enum import Enum


class LockErrorKind(str, Enum):
    """Closed set of lock error kinds."""

    UNHANDLED_ERROR = "unhandled_error"
    PROVIDER_ERROR = "provider_error"
    LOCK_ALREADY_ACQUIRED = "lock_already_acquired"

    @property
    def description(self) -> str:
        return _DESCRIPTIONS[self]


_DESCRIPTIONS: dict[LockErrorKind, str] = {
    LockErrorKind.UNHANDLED_ERROR: "unhandled internal error",
    LockErrorKind.PROVIDER_ERROR: "provider error",
    LockErrorKind.LOCK_ALREADY_ACQUIRED: "lock has been acquired by another processor",
}


class LockError(Exception):
    """Base class for every error raised by a lock operation."""

    kind: LockErrorKind = LockErrorKind.UNHANDLED_ERROR

    def __init__(
        self,
        detail: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(detail or self.kind.description)
        self.detail = detail
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        if self.detail:
            return f"{self.kind.description}: {self.detail}"
        return self.kind.description

    @staticmethod
    def from_kind(kind: LockErrorKind, detail: str | None = None) -> LockError:
        """Build the exception subclass matching ``kind``."""
        return _ERROR_TYPES[kind](detail)


class LockAlreadyAcquiredError(LockError):
    """Another party's fencing token is of record."""

    kind = LockErrorKind.LOCK_ALREADY_ACQUIRED


class ProviderError(LockError):
    """The backing store call failed (timeout, transport, bad response, ...)."""

    kind = LockErrorKind.PROVIDER_ERROR


class UnhandledError(LockError):
    """A local failure unrelated to the store call."""

    kind = LockErrorKind.UNHANDLED_ERROR


_ERROR_TYPES: dict[LockErrorKind, type[LockError]] = {
    LockErrorKind.UNHANDLED_ERROR: UnhandledError,
    LockErrorKind.PROVIDER_ERROR: ProviderError,
    LockErrorKind.LOCK_ALREADY_ACQUIRED: LockAlreadyAcquiredError,
}


class ConfigError(Exception):
    """Raised when a lock config file cannot be loaded."""

    def __init__(
        self,
        code: str,
        message: str,
        cause: Exception | None = None,
    ) -> None:
        super().__init__(message)
        self.code = code
        if cause is not None:
            self.__cause__ = cause

    def __str__(self) -> str:
        return f"{self.code}: {super().__str__()}"


class ConfigErrorCodes:
    """Codes carried by ConfigError."""

    READ_FILE: str = "READ_FILE_ERROR"
    PARSE_YAML: str = "PARSE_YAML_ERROR"
    VALIDATION: str = "VALIDATION_ERROR"
