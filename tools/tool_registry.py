"""Tool catalog and name-to-handler lookup."""

from __future__ import annotations

from typing import Iterable

from datastore.gateway import DataStoreGateway
from tools.base_tool import Tool, ToolDescriptor
from tools.format_timestamp import FormatTimestampTool
from tools.get_item import GetItemTool
from tools.query_table import DEFAULT_LIMIT, QueryTableTool
from tools.sum_property import SumPropertyTool


class ToolRegistry:
    """
    Fixed set of tool instances, built once and never changed during a chat.
    The order of registration is the order the catalog is sent to the model.
    """

    def __init__(self, tools: Iterable[Tool] = ()):
        self._tools: dict[str, Tool] = {}
        for tool in tools:
            self.register(tool)

    @classmethod
    def default(
        cls, gateway: DataStoreGateway, default_limit: int = DEFAULT_LIMIT
    ) -> "ToolRegistry":
        """Registry with the lookup, scan, aggregation and time-conversion tools."""
        return cls([
            GetItemTool(gateway),
            QueryTableTool(gateway, default_limit=default_limit),
            SumPropertyTool(),
            FormatTimestampTool(),
        ])

    def register(self, tool: Tool) -> None:
        if not tool.name:
            raise ValueError(f"Tool {type(tool).__name__} has no name")
        if tool.name in self._tools:
            raise ValueError(f"Duplicate tool name: {tool.name}")
        self._tools[tool.name] = tool

    def get_tool(self, name: str) -> Tool | None:
        """Return the registered tool, or None for an unknown name."""
        return self._tools.get(name)

    @property
    def tool_names(self) -> list[str]:
        """List all registered tool names in registration order."""
        return list(self._tools)

    @property
    def descriptors(self) -> list[ToolDescriptor]:
        return [tool.descriptor() for tool in self._tools.values()]

    def get_tool_schemas(self) -> list[dict]:
        """The ``tools`` list sent with every chat-completion request."""
        return [d.to_schema() for d in self.descriptors]

    def get_tool_descriptions(self) -> str:
        """Generate markdown listing of all tools for the system prompt."""
        return "\n".join(tool.get_prompt_description() for tool in self._tools.values())

    def __contains__(self, name: str) -> bool:
        return name in self._tools

    def __len__(self) -> int:
        return len(self._tools)
