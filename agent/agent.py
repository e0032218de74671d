"""Agent class — the core actor with the tool-orchestration loop."""

from __future__ import annotations

import time
import uuid

from agent.config import AgentConfig
from agent.conversation import Conversation
from agent.exceptions import ChatError, MaxIterationsError, ProtocolError
from agent.logs import build_logger
from agent.messages import Message
from agent.models import ChatCompletion, OpenAIClient
from agent.telemetry import RunRecorder, Telemetry
from tools.executor import ToolExecutor
from tools.tool_registry import ToolRegistry


class Agent:
    """
    Drives one chat run: model → tool calls → tool results → model → ...
    until the model answers without requesting tools.

    The agent keeps no conversation state of its own. ``chat`` appends to the
    Conversation it is given and returns the final answer text.
    """

    def __init__(
        self,
        config: AgentConfig,
        client: OpenAIClient,
        registry: ToolRegistry,
        executor: ToolExecutor | None = None,
        telemetry: Telemetry | None = None,
    ):
        self.config = config
        self.client = client
        self.registry = registry
        self.telemetry = telemetry or Telemetry(config.telemetry, uuid.uuid4().hex[:12])
        self.executor = executor or ToolExecutor(
            registry,
            config=config.tool_execution,
            log_dir=config.log_dir,
        )
        self._logger = build_logger(f"agent.{id(self)}", config.log_dir, "agent.log")

    # ── Tool loop ────────────────────────────────────────────────────

    async def chat(self, conversation: Conversation) -> str:
        """
        Run the tool loop on ``conversation`` and return the final answer.

        Raises ChatError when the provider call fails and MaxIterationsError
        when the model still requests tools in the last allowed round. That
        last batch is not executed.
        """
        max_rounds = self.config.max_tool_rounds
        run = self.telemetry.start_run()

        try:
            for round_no in range(1, max_rounds + 1):
                round_start = time.monotonic()
                reply = await self._request_reply(conversation, run)

                if not reply.requests_tools:
                    answer = reply.content or ""
                    conversation.append(Message.assistant(answer))
                    self._logger.info("Round %d: final answer (%d chars)", round_no, len(answer))
                    run.record_round(round_no, [], _elapsed_ms(round_start))
                    self.telemetry.finalize(run, "answer")
                    return answer

                names = [tc.name for tc in reply.tool_calls]
                if round_no == max_rounds:
                    self._logger.error(
                        "Tool loop did not converge after %d rounds; skipping %s",
                        max_rounds, ", ".join(names),
                    )
                    run.record_round(round_no, names, _elapsed_ms(round_start))
                    self.telemetry.finalize(run, "max_rounds")
                    raise MaxIterationsError(
                        f"Tool loop did not converge after {max_rounds} rounds"
                    )

                self._logger.info("Round %d: model requested %d tool(s): %s",
                                  round_no, len(names), ", ".join(names))

                # sequential, in the order the provider returned them
                results = []
                for call in reply.tool_calls:
                    results.append(await self.executor.execute(call, run))

                conversation.append(reply)
                for result in results:
                    conversation.append(result.to_message())

                run.record_round(round_no, names, _elapsed_ms(round_start))
        except MaxIterationsError:
            raise
        except ProtocolError as e:
            self._logger.error("Protocol error: %s", e)
            self.telemetry.finalize(run, "protocol_error")
            raise

        # max_tool_rounds < 1 never enters the loop
        self.telemetry.finalize(run, "max_rounds")
        raise MaxIterationsError(f"Tool loop did not converge after {max_rounds} rounds")

    async def _request_reply(self, conversation: Conversation, run: RunRecorder) -> Message:
        """One provider call. Provider failures are wrapped in ChatError, never retried."""
        model = self.config.chat_model.model_name
        start = time.monotonic()
        try:
            completion: ChatCompletion = await self.client.chat_completion(
                model=model,
                messages=conversation.to_payload(),
                tools=self.registry.get_tool_schemas(),
                tool_choice="auto",
                temperature=self.config.chat_model.temperature,
            )
        except ProtocolError:
            raise
        except Exception as e:
            latency_ms = _elapsed_ms(start)
            self._logger.error("LLM call failed after %.1fms: %s", latency_ms, e)
            run.record_provider_call(model, 0, 0, latency_ms, error=str(e))
            self.telemetry.finalize(run, "error")
            raise ChatError(f"AI chat failed: {e}") from e

        run.record_provider_call(
            model=completion.model,
            prompt_tokens=completion.prompt_tokens,
            completion_tokens=completion.completion_tokens,
            latency_ms=_elapsed_ms(start),
        )
        return completion.message


def _elapsed_ms(start: float) -> float:
    return (time.monotonic() - start) * 1000
