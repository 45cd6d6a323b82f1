"""YAML configuration for a DynamoDB-backed lock."""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path
from typing import Any, Literal

import structlog
import yaml
from pydantic import BaseModel, Field, ValidationError

from .exceptions import ConfigError, ConfigErrorCodes
from .logger import new_logger
from .models import DAY_SECONDS, DynamoDbDriverConfig, DynamoDbLockOptions


class LockSection(BaseModel):
    """Lease length and per-call options."""

    duration_seconds: float = Field(default=10.0, gt=0)
    timeout_seconds: float = Field(default=10.0, gt=0)
    consistent_read: bool = False


class DynamoDbSection(BaseModel):
    """Lock table coordinates and client endpoint."""

    table_name: str
    partition_key_field_name: str
    partition_key_value: str = "singleton"
    token_field_name: str = "rvn"
    duration_field_name: str = "duration"
    ttl_field_name: str = "ttl"
    ttl_seconds: int = Field(default=DAY_SECONDS * 7, gt=0)
    region_name: str | None = None
    endpoint_url: str | None = None


class LogSection(BaseModel):
    level: str = "INFO"
    format: Literal["json", "text"] = "json"


class DynalockConfig(BaseModel):
    """Everything needed to build a ``DistLock`` over DynamoDB."""

    lock: LockSection = Field(default_factory=LockSection)
    dynamodb: DynamoDbSection
    log: LogSection = Field(default_factory=LogSection)

    @property
    def duration(self) -> timedelta:
        return timedelta(seconds=self.lock.duration_seconds)

    def driver_config(self) -> DynamoDbDriverConfig:
        section = self.dynamodb
        return DynamoDbDriverConfig(
            table_name=section.table_name,
            partition_key_field_name=section.partition_key_field_name,
            partition_key_value=section.partition_key_value,
            token_field_name=section.token_field_name,
            duration_field_name=section.duration_field_name,
            ttl_field_name=section.ttl_field_name,
            ttl_value=timedelta(seconds=section.ttl_seconds),
        )

    def lock_options(self) -> DynamoDbLockOptions:
        return DynamoDbLockOptions(
            timeout=timedelta(seconds=self.lock.timeout_seconds),
            consistent_read=self.lock.consistent_read,
        )

    def client_kwargs(self) -> dict[str, str]:
        """Keyword arguments for ``session.create_client("dynamodb", ...)``.

        Unset values are left out so botocore falls back to its own
        environment and profile lookup.
        """
        kwargs = {
            "region_name": self.dynamodb.region_name,
            "endpoint_url": self.dynamodb.endpoint_url,
        }
        return {k: v for k, v in kwargs.items() if v is not None}

    def configure_logging(self) -> structlog.stdlib.BoundLogger:
        """Apply the ``log`` section; the logger is bound to this lock's key."""
        return new_logger(
            level=self.log.level,
            format=self.log.format,
            lock=self.dynamodb.partition_key_value,
        )


def overlay(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    """Return ``base`` with ``override`` applied section by section.

    Nested mappings merge recursively; any other value, lists included,
    replaces the base value. Neither input is modified.
    """
    merged: dict[str, Any] = dict(base)
    for key, value in override.items():
        current = merged.get(key)
        if isinstance(current, dict) and isinstance(value, dict):
            merged[key] = overlay(current, value)
        else:
            merged[key] = value
    return merged


def _load_mapping(path: Path) -> dict[str, Any]:
    try:
        data = yaml.safe_load(path.read_text(encoding="utf-8"))
    except OSError as e:
        raise ConfigError(
            code=ConfigErrorCodes.READ_FILE,
            message=f"Failed to read lock config: {path}",
            cause=e,
        ) from e
    except yaml.YAMLError as e:
        raise ConfigError(
            code=ConfigErrorCodes.PARSE_YAML,
            message=f"Failed to parse lock config: {path}",
            cause=e,
        ) from e
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            code=ConfigErrorCodes.PARSE_YAML,
            message=f"Lock config root must be a mapping: {path}",
        )
    return data


def load(base_path: Path, env_path: Path | None = None) -> DynalockConfig:
    """Load the lock config from ``base_path``.

    ``env_path``, when it exists, is overlaid on top (e.g. a per-environment
    table name or endpoint).
    """
    data = _load_mapping(base_path)
    if env_path is not None and env_path.exists():
        data = overlay(data, _load_mapping(env_path))
    try:
        return DynalockConfig.model_validate(data)
    except ValidationError as e:
        raise ConfigError(
            code=ConfigErrorCodes.VALIDATION,
            message=f"Invalid lock config: {e}",
            cause=e,
        ) from e
