"""Message and ToolCall dataclasses in the chat-completions wire shape."""

from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

from agent.exceptions import ProtocolError

ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class ToolCall:
    """A tool invocation requested by the model. Arguments stay raw JSON text."""
    id: str
    name: str
    arguments: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ToolCall":
        function = data.get("function") or {}
        call_id = data.get("id")
        name = function.get("name")
        if not call_id or not name:
            raise ProtocolError(f"Malformed tool call from provider: {data!r}")
        arguments = function.get("arguments")
        if arguments is None:
            arguments = ""
        elif not isinstance(arguments, str):
            # some OpenAI-compatible servers send decoded arguments
            arguments = json.dumps(arguments)
        return cls(id=str(call_id), name=str(name), arguments=arguments)


@dataclass(frozen=True)
class Message:
    """One turn in the conversation."""
    role: str
    content: str | None = None
    tool_calls: tuple[ToolCall, ...] = ()
    tool_call_id: str | None = None

    @classmethod
    def system(cls, content: str) -> "Message":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Message":
        return cls(role="user", content=content)

    @classmethod
    def assistant(cls, content: str | None, tool_calls: tuple[ToolCall, ...] = ()) -> "Message":
        return cls(role="assistant", content=content, tool_calls=tuple(tool_calls))

    @classmethod
    def tool(cls, tool_call_id: str, content: str) -> "Message":
        return cls(role="tool", content=content, tool_call_id=tool_call_id)

    @property
    def requests_tools(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            data["tool_calls"] = [tc.to_dict() for tc in self.tool_calls]
        if self.tool_call_id is not None:
            data["tool_call_id"] = self.tool_call_id
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Message":
        role = data.get("role")
        if role not in ROLES:
            raise ProtocolError(f"Unknown message role from provider: {role!r}")
        tool_calls = tuple(ToolCall.from_dict(tc) for tc in data.get("tool_calls") or [])
        return cls(
            role=role,
            content=data.get("content"),
            tool_calls=tool_calls,
            tool_call_id=data.get("tool_call_id"),
        )
