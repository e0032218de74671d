"""DynamoDB gateway — point lookups and key-prefix queries over boto3."""

from __future__ import annotations

from decimal import Decimal
from typing import Any, Protocol

import boto3
from boto3.dynamodb.conditions import Key
from botocore.exceptions import BotoCoreError, ClientError

from agent.config import DataStoreConfig
from agent.exceptions import DataStoreError


class DataStoreGateway(Protocol):
    """The two primitives the data tools rely on."""

    def get_item(self, table_name: str, pk: str, sk: str | None = None) -> dict | None:
        ...

    def query(
        self,
        table_name: str,
        pk: str,
        sk_prefix: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        ...


class DynamoDBGateway:
    """Stateless wrapper around the boto3 DynamoDB resource."""

    def __init__(self, config: DataStoreConfig, resource: Any = None):
        self.config = config
        self._resource = resource

    @property
    def resource(self):
        if self._resource is None:
            self._resource = boto3.resource(
                "dynamodb",
                region_name=self.config.region,
                endpoint_url=self.config.endpoint_url,
            )
        return self._resource

    def get_item(self, table_name: str, pk: str, sk: str | None = None) -> dict | None:
        """Fetch one item by partition key and, when given, sort key."""
        key: dict[str, Any] = {self.config.partition_key: pk}
        if sk:
            key[self.config.sort_key] = sk

        try:
            response = self.resource.Table(table_name).get_item(Key=key)
        except (ClientError, BotoCoreError) as e:
            raise DataStoreError(f"Failed to get item: {e}") from e

        item = response.get("Item")
        return to_plain(item) if item is not None else None

    def query(
        self,
        table_name: str,
        pk: str,
        sk_prefix: str | None = None,
        limit: int = 100,
    ) -> list[dict]:
        """Fetch items sharing a partition key, optionally narrowed by sort-key prefix."""
        condition = Key(self.config.partition_key).eq(pk)
        if sk_prefix:
            condition = condition & Key(self.config.sort_key).begins_with(sk_prefix)

        try:
            response = self.resource.Table(table_name).query(
                KeyConditionExpression=condition,
                Limit=limit,
                ScanIndexForward=self.config.scan_forward,
            )
        except (ClientError, BotoCoreError) as e:
            raise DataStoreError(f"Failed to query table: {e}") from e

        return [to_plain(item) for item in response.get("Items", [])]


def to_plain(value: Any) -> Any:
    """Convert boto3's Decimal-based items into plain JSON-friendly values."""
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, dict):
        return {k: to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_plain(v) for v in value]
    if isinstance(value, (set, frozenset)):
        return sorted((to_plain(v) for v in value), key=str)
    return value
