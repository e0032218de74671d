"""ToolExecutor — runs one tool call and folds any failure into a ToolResult."""

from __future__ import annotations

import asyncio
import json
import time

from agent.config import ToolExecutionConfig
from agent.exceptions import ToolArgumentError
from agent.logs import build_logger
from agent.messages import ToolCall
from agent.results import Failure, Success, ToolResult
from agent.telemetry import RunRecorder
from tools.base_tool import Tool
from tools.tool_registry import ToolRegistry


class ToolExecutor:
    """
    Dispatches tool calls to the registry's handlers.

    Never raises: unknown tools, malformed arguments, timeouts and handler
    exceptions all come back as ``Failure`` outcomes for the model to read.
    """

    def __init__(
        self,
        registry: ToolRegistry,
        config: ToolExecutionConfig | None = None,
        log_dir: str = "data/logs",
    ):
        self.registry = registry
        self.config = config or ToolExecutionConfig()
        self._logger = build_logger(f"tools.{id(self)}", log_dir, "tools.log")

    async def execute(self, call: ToolCall, run: RunRecorder | None = None) -> ToolResult:
        """Run one call. ``run`` receives the tool-call metric when given."""
        start = time.monotonic()
        self._logger.info("Tool call %s (%s): %s", call.name, call.id, call.arguments)

        outcome = await self._run(call)
        result = ToolResult(tool_call_id=call.id, tool_name=call.name, outcome=outcome)

        duration_ms = (time.monotonic() - start) * 1000
        if result.ok:
            self._logger.info("Tool %s succeeded in %.1fms: %s", call.name, duration_ms, result.summary())
        else:
            self._logger.warning("Tool %s failed in %.1fms: %s", call.name, duration_ms, outcome.message)
        if run is not None:
            run.record_tool_call(
                tool_call_id=call.id,
                tool_name=call.name,
                arguments=call.arguments,
                duration_ms=duration_ms,
                ok=result.ok,
                result_summary=result.summary(),
            )
        return result

    async def _run(self, call: ToolCall) -> Success | Failure:
        try:
            args = self._parse_arguments(call)
        except ToolArgumentError as e:
            return Failure(str(e))

        tool = self.registry.get_tool(call.name)
        if tool is None:
            return Failure(f"Unknown tool: {call.name}")

        args = self._known_args(tool, args)
        try:
            tool.validate_args(args)
            await tool.before_execution(**args)
            payload = await asyncio.wait_for(
                tool.execute(**args), timeout=self._timeout_for(tool)
            )
        except ToolArgumentError as e:
            return Failure(str(e))
        except asyncio.TimeoutError:
            return Failure(f"Tool '{call.name}' timed out after {self._timeout_for(tool)}s")
        except Exception as e:
            return Failure(str(e) or type(e).__name__)
        return Success(payload)

    @staticmethod
    def _parse_arguments(call: ToolCall) -> dict:
        raw = call.arguments.strip() if call.arguments else ""
        if not raw:
            return {}
        try:
            args = json.loads(raw)
        except json.JSONDecodeError as e:
            raise ToolArgumentError(
                f"Invalid JSON arguments for tool '{call.name}': {e.msg} in {raw[:200]!r}"
            )
        if not isinstance(args, dict):
            raise ToolArgumentError(
                f"Arguments for tool '{call.name}' must be a JSON object, got {raw[:200]!r}"
            )
        return args

    def _known_args(self, tool: Tool, args: dict) -> dict:
        unknown = [k for k in args if k not in tool.parameters]
        if unknown:
            self._logger.warning("Ignoring unknown arguments for %s: %s", tool.name, ", ".join(unknown))
        return {k: v for k, v in args.items() if k in tool.parameters}

    def _timeout_for(self, tool: Tool) -> float:
        if tool.name in self.config.timeouts:
            return self.config.timeouts[tool.name]
        if tool.timeout_seconds is not None:
            return tool.timeout_seconds
        return self.config.default_timeout
