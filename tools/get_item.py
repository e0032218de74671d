"""Get item tool — point lookup by partition key and optional sort key."""

import asyncio

from datastore.gateway import DataStoreGateway
from tools.base_tool import ParameterSpec, Tool, require_text


class GetItemTool(Tool):
    name = "get_item"
    description = "Get an item from DynamoDB table using pk and optional sk"
    parameters = {
        "tableName": ParameterSpec("string", "The DynamoDB table name", required=True),
        "pk": ParameterSpec("string", "The partition key", required=True),
        "sk": ParameterSpec("string", "The sort key (optional)"),
    }

    def __init__(self, gateway: DataStoreGateway):
        self.gateway = gateway

    async def before_execution(self, **kwargs):
        require_text(self.name, kwargs, "tableName", "pk")

    async def execute(self, **kwargs) -> dict | None:
        table_name = kwargs["tableName"]
        pk = kwargs["pk"]
        sk = kwargs.get("sk") or None
        if sk is None:
            return await asyncio.to_thread(self.gateway.get_item, table_name, pk)
        return await asyncio.to_thread(self.gateway.get_item, table_name, pk, sk)
