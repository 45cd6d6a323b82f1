"""Shared fixtures for dynalock tests."""

from __future__ import annotations

import asyncio
import copy
import time
from typing import Any

import pytest
import structlog
from botocore.exceptions import ClientError

from dynalock import DynamoDbDriverConfig
from dynalock.dynamodb import (
    ACQUIRE_CONDITION,
    ACQUIRE_UPDATE,
    RELEASE_CONDITION,
    RELEASE_UPDATE,
)


def _conditional_check_failed(operation: str) -> ClientError:
    return ClientError(
        {
            "Error": {
                "Code": "ConditionalCheckFailedException",
                "Message": "The conditional request failed",
            }
        },
        operation,
    )


class FakeDynamoDbClient:
    """Async stand-in for a DynamoDB client that understands the lock expressions.

    Each request yields to the event loop once before it reaches the table;
    the condition check and the write then run together, as in DynamoDB.
    """

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, dict[str, Any]]] = {}
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.returned_at: float | None = None
        self.fail_with: BaseException | None = None
        self.sent_at_write: list[int] = []

    def item(self, table: str, key: str) -> dict[str, Any] | None:
        return self.tables.get(table, {}).get(key)

    def put(self, table: str, key: str, item: dict[str, Any]) -> None:
        self.tables.setdefault(table, {})[key] = item

    async def update_item(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("update_item", kwargs))
        # request in flight: lets concurrent callers interleave here
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        table = self.tables.setdefault(kwargs["TableName"], {})
        (key_value,) = [v["S"] for v in kwargs["Key"].values()]
        names = kwargs["ExpressionAttributeNames"]
        values = kwargs["ExpressionAttributeValues"]
        token_field = names["#token_field"]
        item = table.get(key_value)
        stored = item.get(token_field) if item is not None else None
        expected = values[":cond_current_token"]

        if kwargs["ConditionExpression"] == ACQUIRE_CONDITION:
            assert kwargs["UpdateExpression"] == ACQUIRE_UPDATE
            if stored is not None and stored != expected:
                raise _conditional_check_failed("UpdateItem")
            self.sent_at_write.append(len(self.calls))
            if item is None:
                item = table[key_value] = dict(kwargs["Key"])
            item[token_field] = values[":new_token"]
            item[names["#duration_field"]] = values[":lease"]
            item[names["#ttl_field"]] = values[":ttl"]
        elif kwargs["ConditionExpression"] == RELEASE_CONDITION:
            assert kwargs["UpdateExpression"] == RELEASE_UPDATE
            if stored is None or stored != expected:
                raise _conditional_check_failed("UpdateItem")
            del item[token_field]
        else:
            raise AssertionError(f"unexpected condition: {kwargs['ConditionExpression']}")

        self.returned_at = time.monotonic()
        return {}

    async def get_item(self, **kwargs: Any) -> dict[str, Any]:
        self.calls.append(("get_item", kwargs))
        await asyncio.sleep(0)
        if self.fail_with is not None:
            raise self.fail_with
        (key_value,) = [v["S"] for v in kwargs["Key"].values()]
        item = self.item(kwargs["TableName"], key_value)
        self.returned_at = time.monotonic()
        if item is None:
            return {}
        return {"Item": copy.deepcopy(item)}


@pytest.fixture
def fake_client() -> FakeDynamoDbClient:
    return FakeDynamoDbClient()


@pytest.fixture
def driver_config() -> DynamoDbDriverConfig:
    return DynamoDbDriverConfig(
        table_name="test_lock_table",
        partition_key_field_name="lock_id",
        partition_key_value="R1",
    )


@pytest.fixture(autouse=True)
def _reset_structlog():
    yield
    structlog.reset_defaults()
