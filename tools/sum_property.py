"""Sum property tool — adds up one numeric field across a list of records."""

from typing import Any

from tools.base_tool import ParameterSpec, Tool, require_text


def sum_property(data: list, prop: str) -> int | float:
    """Sum ``prop`` over ``data``; missing or non-numeric values count as zero."""
    total: int | float = 0
    for item in data:
        if not isinstance(item, dict):
            continue
        value = item.get(prop)
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            total += value
    return total


class SumPropertyTool(Tool):
    name = "sum_property"
    description = "Calculate the sum of a numeric property from an array of objects"
    parameters = {
        "data": ParameterSpec(
            "array", "Array of objects to sum", required=True, items={"type": "object"}
        ),
        "property": ParameterSpec("string", "Property name to sum", required=True),
    }

    async def before_execution(self, **kwargs):
        require_text(self.name, kwargs, "property")

    async def execute(self, **kwargs) -> Any:
        return sum_property(kwargs["data"], kwargs["property"])
