"""Tool outcomes: a tagged Success | Failure wrapped in a ToolResult."""

from __future__ import annotations

import json
from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Union

from agent.messages import Message


@dataclass(frozen=True)
class Success:
    """Handler returned normally; payload is JSON-serialisable data."""
    payload: Any


@dataclass(frozen=True)
class Failure:
    """Handler could not produce a payload. Only the message crosses the tool boundary."""
    message: str


Outcome = Union[Success, Failure]


@dataclass(frozen=True)
class ToolResult:
    """Outcome of one tool invocation, correlated to its request."""
    tool_call_id: str
    tool_name: str
    outcome: Outcome

    @property
    def ok(self) -> bool:
        return isinstance(self.outcome, Success)

    def to_content(self) -> str:
        """Serialize the outcome to the text carried by a tool message."""
        if isinstance(self.outcome, Success):
            return json.dumps(self.outcome.payload, default=_json_default)
        return json.dumps({"error": self.outcome.message})

    def to_message(self) -> Message:
        return Message.tool(self.tool_call_id, self.to_content())

    def summary(self, limit: int = 200) -> str:
        """Short preview used in logs and telemetry."""
        text = self.to_content()
        return text if len(text) <= limit else text[:limit] + "..."


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (set, frozenset)):
        return sorted(value, key=str)
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return str(value)
