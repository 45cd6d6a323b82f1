"""DynamoDB implementation of the locking contract.

A lock item on the table carries four attributes:

- the partition key, identifying the shared resource;
- the fencing token (default ``rvn``), replaced on every acquire so that a
  holder of an old token can tell it has been superseded;
- the lease duration in seconds (default ``duration``);
- a TTL epoch timestamp (default ``ttl``) that only tells DynamoDB when it may
  garbage-collect the item, if TTL is enabled on the table. Lock validity never
  depends on it.

Mutual exclusion comes from conditional updates alone. Every operation is a
single round trip and nothing is retried here.
"""

from __future__ import annotations

import asyncio
import time
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any

import structlog
from botocore.exceptions import BotoCoreError, ClientError

from .client import LockDriver
from .exceptions import (
    LockAlreadyAcquiredError,
    LockError,
    ProviderError,
    UnhandledError,
)
from .models import DynamoDbDriverConfig, DynamoDbLockOptions, LockOptions

logger = structlog.stdlib.get_logger(__name__)

ACQUIRE_UPDATE = "SET #token_field = :new_token, #duration_field = :lease, #ttl_field = :ttl"
ACQUIRE_CONDITION = "attribute_not_exists(#token_field) OR #token_field = :cond_current_token"
RELEASE_UPDATE = "REMOVE #token_field"
RELEASE_CONDITION = "attribute_exists(#token_field) AND #token_field = :cond_current_token"

CONDITIONAL_CHECK_FAILED = "ConditionalCheckFailedException"


def map_client_error(exc: BaseException) -> LockError:
    """Map a failure raised by a DynamoDB call to a lock error."""
    if isinstance(exc, ClientError):
        code = exc.response.get("Error", {}).get("Code")
        if code == CONDITIONAL_CHECK_FAILED:
            logger.warning("conditional check failed", error=str(exc))
            return LockAlreadyAcquiredError()
        logger.error("dynamodb request failed", error=str(exc))
        return ProviderError(str(exc))
    if isinstance(exc, BotoCoreError):
        logger.error("dynamodb request failed", error=str(exc))
        return ProviderError(str(exc))
    if isinstance(exc, asyncio.TimeoutError):
        logger.error("dynamodb request timed out")
        return ProviderError("request timed out")
    # anything else raised by the client, e.g. a malformed response
    logger.error("dynamodb request failed", error=repr(exc))
    return ProviderError(f"{type(exc).__name__}: {exc}")


def _dynamodb_options(options: LockOptions | None) -> DynamoDbLockOptions:
    if options is None:
        return DynamoDbLockOptions()
    if isinstance(options, DynamoDbLockOptions):
        return options
    return DynamoDbLockOptions(timeout=options.timeout)


def _ttl_epoch_seconds(ttl_value: timedelta) -> int:
    try:
        return int((datetime.now(timezone.utc) + ttl_value).timestamp())
    except (OverflowError, OSError, ValueError) as e:
        logger.error("failed to read system clock", error=str(e))
        raise UnhandledError(str(e), cause=e) from e


class DynamoDbDriver(LockDriver[DynamoDbLockOptions]):
    """Lock driver backed by a DynamoDB table.

    ``client`` is an async DynamoDB client, e.g. one created with
    ``aiobotocore.session.get_session().create_client("dynamodb")``. The
    caller owns its lifecycle.
    """

    def __init__(self, client: Any, config: DynamoDbDriverConfig) -> None:
        self._client = client
        self._config = config
        self._current_token: str | None = None

    @property
    def config(self) -> DynamoDbDriverConfig:
        return self._config

    @property
    def current_token(self) -> str | None:
        return self._current_token

    def _key(self) -> dict[str, dict[str, str]]:
        return {
            self._config.partition_key_field_name: {"S": self._config.partition_key_value},
        }

    async def _call(self, operation: str, timeout: timedelta, **kwargs: Any) -> dict[str, Any]:
        method = getattr(self._client, operation)
        try:
            return await asyncio.wait_for(method(**kwargs), timeout=timeout.total_seconds())
        except Exception as e:
            raise map_client_error(e) from e

    async def acquire(
        self,
        duration: timedelta,
        options: LockOptions | None = None,
    ) -> float:
        options = _dynamodb_options(options)
        new_token = str(uuid.uuid4())
        # No record of ours yet: only the attribute_not_exists branch can match.
        cond_token = self._current_token or new_token
        lease_seconds = int(duration.total_seconds())
        ttl = _ttl_epoch_seconds(self._config.ttl_value)

        await self._call(
            "update_item",
            options.timeout,
            TableName=self._config.table_name,
            Key=self._key(),
            UpdateExpression=ACQUIRE_UPDATE,
            ConditionExpression=ACQUIRE_CONDITION,
            ExpressionAttributeNames={
                "#token_field": self._config.token_field_name,
                "#duration_field": self._config.duration_field_name,
                "#ttl_field": self._config.ttl_field_name,
            },
            ExpressionAttributeValues={
                ":new_token": {"S": new_token},
                ":lease": {"N": str(lease_seconds)},
                ":ttl": {"N": str(ttl)},
                ":cond_current_token": {"S": cond_token},
            },
        )

        # The lease clock starts here.
        start = time.monotonic()

        logger.info(
            "lock acquired",
            lock=self._config.partition_key_value,
            token=self._current_token,
            new_token=new_token,
            lease_seconds=lease_seconds,
        )
        self._current_token = new_token
        return start

    async def refresh(self, options: LockOptions | None = None) -> None:
        options = _dynamodb_options(options)
        output = await self._call(
            "get_item",
            options.timeout,
            TableName=self._config.table_name,
            Key=self._key(),
            ConsistentRead=options.consistent_read,
        )

        item = output.get("Item")
        if not item:
            return
        attr = item.get(self._config.token_field_name)
        if attr is None:
            return
        token = attr.get("S") if isinstance(attr, dict) else None
        if not isinstance(token, str):
            logger.error(
                "malformed token attribute",
                lock=self._config.partition_key_value,
                attribute=attr,
            )
            raise ProviderError(f"Malformed token attribute: {self._config.token_field_name}")

        self._current_token = token
        logger.info(
            "lock refreshed",
            lock=self._config.partition_key_value,
            token=token,
        )

    async def release(self, options: LockOptions | None = None) -> None:
        options = _dynamodb_options(options)
        if self._current_token is None:
            logger.warning("release without a fencing token", lock=self._config.partition_key_value)
            raise LockAlreadyAcquiredError("no fencing token held")

        await self._call(
            "update_item",
            options.timeout,
            TableName=self._config.table_name,
            Key=self._key(),
            UpdateExpression=RELEASE_UPDATE,
            ConditionExpression=RELEASE_CONDITION,
            ExpressionAttributeNames={"#token_field": self._config.token_field_name},
            ExpressionAttributeValues={":cond_current_token": {"S": self._current_token}},
        )

        logger.info(
            "lock released",
            lock=self._config.partition_key_value,
            token=self._current_token,
        )
        self._current_token = None
