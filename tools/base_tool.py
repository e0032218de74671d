"""Abstract base class for all tools, plus the descriptors sent to the model."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any

from agent.exceptions import ToolArgumentError


@dataclass(frozen=True)
class ParameterSpec:
    """One named parameter of a tool, typed with a JSON-schema type name."""
    type: str
    description: str
    required: bool = False
    items: dict[str, Any] | None = None

    def to_schema(self) -> dict[str, Any]:
        schema: dict[str, Any] = {"type": self.type, "description": self.description}
        if self.items is not None:
            schema["items"] = self.items
        return schema


@dataclass(frozen=True)
class ToolDescriptor:
    """Name, description and parameter schema of a tool."""
    name: str
    description: str
    parameters: dict[str, ParameterSpec] = field(default_factory=dict)

    @property
    def required(self) -> list[str]:
        return [name for name, spec in self.parameters.items() if spec.required]

    def to_schema(self) -> dict[str, Any]:
        """Render the function entry of the chat-completions ``tools`` list."""
        return {
            "type": "function",
            "function": {
                "name": self.name,
                "description": self.description,
                "parameters": {
                    "type": "object",
                    "properties": {
                        name: spec.to_schema() for name, spec in self.parameters.items()
                    },
                    "required": self.required,
                },
            },
        }


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


_TYPE_CHECKS = {
    "string": lambda v: isinstance(v, str),
    "number": _is_number,
    "integer": lambda v: _is_number(v) and float(v).is_integer(),
    "boolean": lambda v: isinstance(v, bool),
    "array": lambda v: isinstance(v, list),
    "object": lambda v: isinstance(v, dict),
}


class Tool(ABC):
    """Base class for all agent tools. Subclass this to create new tools."""

    name: str = ""
    description: str = ""
    parameters: dict[str, ParameterSpec] = {}
    timeout_seconds: float | None = None

    def descriptor(self) -> ToolDescriptor:
        return ToolDescriptor(
            name=self.name,
            description=self.description,
            parameters=dict(self.parameters),
        )

    def validate_args(self, args: dict[str, Any]) -> None:
        """Check required arguments and JSON types. Null counts as absent."""
        for arg_name, spec in self.parameters.items():
            value = args.get(arg_name)
            if value is None:
                if spec.required:
                    raise ToolArgumentError(
                        f"{self.name} requires a \"{arg_name}\" parameter"
                    )
                continue
            check = _TYPE_CHECKS.get(spec.type)
            if check and not check(value):
                raise ToolArgumentError(
                    f"{self.name} parameter \"{arg_name}\" must be of type {spec.type}"
                )

    async def before_execution(self, **kwargs):
        """Hook called before execute. Override to validate args further."""
        pass

    @abstractmethod
    async def execute(self, **kwargs) -> Any:
        """Execute the tool and return a JSON-serialisable payload."""
        ...

    def get_prompt_description(self) -> str:
        """Markdown description of this tool for the system prompt."""
        lines = [f"### {self.name}", self.description]
        for arg_name, spec in self.parameters.items():
            flag = "required" if spec.required else "optional"
            lines.append(f"- `{arg_name}` ({spec.type}, {flag}): {spec.description}")
        return "\n".join(lines) + "\n"


def require_text(tool_name: str, args: dict[str, Any], *names: str) -> None:
    """Raise ToolArgumentError unless every named argument is a non-blank string."""
    for arg_name in names:
        value = args.get(arg_name)
        if not isinstance(value, str) or not value.strip():
            raise ToolArgumentError(
                f"{tool_name} requires a non-empty \"{arg_name}\" parameter"
            )
