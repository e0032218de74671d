"""Query table tool — range scan by partition key with optional sort-key prefix."""

import asyncio

from agent.exceptions import ToolArgumentError
from datastore.gateway import DataStoreGateway
from tools.base_tool import ParameterSpec, Tool, require_text

DEFAULT_LIMIT = 100


class QueryTableTool(Tool):
    name = "query_table"
    description = "Query a DynamoDB table using pk and optional sk prefix"
    parameters = {
        "tableName": ParameterSpec("string", "The DynamoDB table name", required=True),
        "pk": ParameterSpec("string", "The partition key", required=True),
        "sk": ParameterSpec("string", "The sort key prefix (optional)"),
        "limit": ParameterSpec("number", "Maximum number of items to return"),
    }

    def __init__(self, gateway: DataStoreGateway, default_limit: int = DEFAULT_LIMIT):
        self.gateway = gateway
        self.default_limit = default_limit

    async def before_execution(self, **kwargs):
        require_text(self.name, kwargs, "tableName", "pk")
        limit = kwargs.get("limit")
        if limit is not None and (float(limit) < 1 or not float(limit).is_integer()):
            raise ToolArgumentError(f"{self.name} \"limit\" must be a positive integer")

    async def execute(self, **kwargs) -> list[dict]:
        limit = kwargs.get("limit")
        limit = self.default_limit if limit is None else int(limit)
        sk_prefix = kwargs.get("sk") or None
        return await asyncio.to_thread(
            self.gateway.query,
            kwargs["tableName"],
            kwargs["pk"],
            sk_prefix,
            limit,
        )
