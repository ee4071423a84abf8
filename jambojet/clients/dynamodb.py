"""
DynamoDB-backed shared tier.

The table needs a string partition key ``pk`` and native TTL enabled on the
numeric ``ttl`` attribute. DynamoDB deletes expired items lazily, so reads
compare ``expires_at`` themselves.
"""

from __future__ import annotations

import time
from decimal import Decimal
from typing import Any, Callable, Dict, Optional

import boto3
from boto3.dynamodb.conditions import Attr
from botocore.config import Config
from botocore.exceptions import BotoCoreError, ClientError

from jambojet.clients.base import ttl_whole_seconds
from jambojet.core.config import AWSSettings
from jambojet.core.exceptions import SharedTierUnavailable

_CONDITION_FAILED = "ConditionalCheckFailedException"


def _epoch(value: float) -> Decimal:
    return Decimal(str(round(value, 3)))


class DynamoDBSharedCache:
    """Cache entries stored as ``{pk, value, expires_at, ttl}`` items."""

    def __init__(
        self,
        settings: AWSSettings,
        *,
        timeout_seconds: float = 2.0,
        table: Any = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings
        self._clock = clock
        if table is None:
            config = Config(
                connect_timeout=timeout_seconds,
                read_timeout=timeout_seconds,
                retries={"max_attempts": 1, "mode": "standard"},
            )
            resource = boto3.resource(
                "dynamodb", region_name=settings.region_name, config=config
            )
            table = resource.Table(settings.dynamodb_table_name)
        self._table = table

    def _item(self, key: str, value: str, ttl_seconds: float) -> Dict[str, Any]:
        now = self._clock()
        return {
            "pk": key,
            "value": value,
            "expires_at": _epoch(now + ttl_seconds),
            "ttl": int(now) + ttl_whole_seconds(ttl_seconds),
        }

    def get(self, key: str) -> Optional[str]:
        try:
            response = self._table.get_item(Key={"pk": key}, ConsistentRead=True)
        except (BotoCoreError, ClientError) as exc:
            raise SharedTierUnavailable(f"DynamoDB get_item {key!r} failed: {exc}") from exc
        item = response.get("Item")
        if not item:
            return None
        if float(item["expires_at"]) <= self._clock():
            return None
        return item["value"]

    def set(self, key: str, value: str, ttl_seconds: float) -> None:
        try:
            self._table.put_item(Item=self._item(key, value, ttl_seconds))
        except (BotoCoreError, ClientError) as exc:
            raise SharedTierUnavailable(f"DynamoDB put_item {key!r} failed: {exc}") from exc

    def delete(self, key: str) -> None:
        try:
            self._table.delete_item(Key={"pk": key})
        except (BotoCoreError, ClientError) as exc:
            raise SharedTierUnavailable(f"DynamoDB delete_item {key!r} failed: {exc}") from exc

    def add(self, key: str, value: str, ttl_seconds: float) -> bool:
        condition = Attr("pk").not_exists() | Attr("expires_at").lte(_epoch(self._clock()))
        try:
            self._table.put_item(
                Item=self._item(key, value, ttl_seconds),
                ConditionExpression=condition,
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED:
                return False
            raise SharedTierUnavailable(f"DynamoDB conditional put {key!r} failed: {exc}") from exc
        except BotoCoreError as exc:
            raise SharedTierUnavailable(f"DynamoDB conditional put {key!r} failed: {exc}") from exc
        return True

    def delete_if_equals(self, key: str, value: str) -> bool:
        try:
            self._table.delete_item(
                Key={"pk": key},
                ConditionExpression=Attr("value").eq(value),
            )
        except ClientError as exc:
            if exc.response.get("Error", {}).get("Code") == _CONDITION_FAILED:
                return False
            raise SharedTierUnavailable(f"DynamoDB conditional delete {key!r} failed: {exc}") from exc
        except BotoCoreError as exc:
            raise SharedTierUnavailable(f"DynamoDB conditional delete {key!r} failed: {exc}") from exc
        return True


__all__ = ["DynamoDBSharedCache"]
