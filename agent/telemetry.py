"""Per-run telemetry for chat sessions, written as JSONL."""

from __future__ import annotations

from dataclasses import dataclass, asdict, field
from datetime import datetime, timezone
import json
import os
import threading
import time
from typing import Any

from agent.config import TelemetryConfig


@dataclass
class ProviderCallMetric:
    """One chat-completion request."""
    model: str
    prompt_tokens: int
    completion_tokens: int
    latency_ms: float
    error: str | None = None


@dataclass
class ToolCallMetric:
    """One tool invocation inside a round."""
    tool_call_id: str
    tool_name: str
    arguments: str
    duration_ms: float
    ok: bool
    result_summary: str


@dataclass
class RoundMetric:
    round_no: int
    tool_names: list[str]
    duration_ms: float


@dataclass
class RunSummary:
    """Everything that happened between one user turn and its answer (or failure)."""
    session_id: str
    run_no: int
    outcome: str
    rounds: int
    provider_calls: list[ProviderCallMetric] = field(default_factory=list)
    tool_calls: list[ToolCallMetric] = field(default_factory=list)
    duration_ms: float = 0.0

    @property
    def total_tokens(self) -> int:
        return sum(c.prompt_tokens + c.completion_tokens for c in self.provider_calls)

    @property
    def failed_tool_calls(self) -> int:
        return sum(1 for c in self.tool_calls if not c.ok)


class RunRecorder:
    """Metrics buffer for one chat run. Owned by that run only."""

    def __init__(self, telemetry: "Telemetry"):
        self._telemetry = telemetry
        self.start_time = time.monotonic()
        self.provider_calls: list[ProviderCallMetric] = []
        self.tool_calls: list[ToolCallMetric] = []
        self.rounds: list[RoundMetric] = []
        self.closed = False

    @property
    def enabled(self) -> bool:
        return self._telemetry.config.enabled

    def record_provider_call(
        self,
        model: str,
        prompt_tokens: int,
        completion_tokens: int,
        latency_ms: float,
        error: str | None = None,
    ) -> None:
        if not self.enabled:
            return
        metric = ProviderCallMetric(model, prompt_tokens, completion_tokens, latency_ms, error)
        self.provider_calls.append(metric)
        self._telemetry._write("provider_call", asdict(metric))

    def record_tool_call(
        self,
        tool_call_id: str,
        tool_name: str,
        arguments: str,
        duration_ms: float,
        ok: bool,
        result_summary: str,
    ) -> None:
        if not self.enabled:
            return
        metric = ToolCallMetric(tool_call_id, tool_name, arguments, duration_ms, ok, result_summary)
        self.tool_calls.append(metric)
        self._telemetry._write("tool_call", asdict(metric))

    def record_round(self, round_no: int, tool_names: list[str], duration_ms: float) -> None:
        """Record one model round; ``tool_names`` is empty for the answering round."""
        if not self.enabled:
            return
        metric = RoundMetric(round_no, list(tool_names), duration_ms)
        self.rounds.append(metric)
        self._telemetry._write("round", asdict(metric))


class Telemetry:
    """
    Session-level sink for run metrics. When enabled, every event is
    appended to ``<log_dir>/<session_id>.jsonl``.

    Each chat run gets its own ``RunRecorder`` from ``start_run``; runs may
    overlap. ``finalize`` closes one recorder and keeps its summary in ``runs``.
    """

    def __init__(self, config: TelemetryConfig, session_id: str):
        self.config = config
        self.session_id = session_id
        self.runs: list[RunSummary] = []
        self._lock = threading.Lock()
        self._log_path: str | None = None

        if self.config.enabled:
            os.makedirs(self.config.log_dir, exist_ok=True)
            self._log_path = os.path.join(self.config.log_dir, f"{session_id}.jsonl")

    def start_run(self) -> RunRecorder:
        return RunRecorder(self)

    def finalize(self, run: RunRecorder, outcome: str) -> RunSummary | None:
        """Close ``run`` with ``outcome`` (answer, error, protocol_error or max_rounds)."""
        if not self.config.enabled or run.closed:
            return None
        run.closed = True
        with self._lock:
            summary = RunSummary(
                session_id=self.session_id,
                run_no=len(self.runs) + 1,
                outcome=outcome,
                rounds=len(run.rounds),
                provider_calls=list(run.provider_calls),
                tool_calls=list(run.tool_calls),
                duration_ms=(time.monotonic() - run.start_time) * 1000,
            )
            self.runs.append(summary)
        self._write("run_summary", {
            "run_no": summary.run_no,
            "outcome": summary.outcome,
            "rounds": summary.rounds,
            "provider_calls": len(summary.provider_calls),
            "tool_calls": len(summary.tool_calls),
            "failed_tool_calls": summary.failed_tool_calls,
            "total_tokens": summary.total_tokens,
            "duration_ms": summary.duration_ms,
        })
        return summary

    def _write(self, event_type: str, payload: dict[str, Any]) -> None:
        if not self._log_path:
            return
        record = {
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "session_id": self.session_id,
            "event": event_type,
            **payload,
        }
        line = json.dumps(record, default=str)
        with self._lock:
            with open(self._log_path, "a", encoding="utf-8") as f:
                f.write(line + "\n")
