"""Conversation — the append-only message log handed to the agent loop."""

from __future__ import annotations

from typing import Iterable, Iterator

from agent.exceptions import ProtocolError
from agent.messages import Message


class Conversation:
    """
    Ordered message log whose first entry is always the system message.

    Appends are checked against the tool-call protocol: every tool message
    answers exactly one pending request of the assistant message right
    before it, and nothing else may be appended until the batch is answered.
    """

    def __init__(self, system_prompt: str, messages: Iterable[Message] = ()):
        self._messages: list[Message] = [Message.system(system_prompt)]
        self._pending: dict[str, str] = {}
        for message in messages:
            self.append(message)

    # ── Appends ──────────────────────────────────────────────────────

    def append(self, message: Message) -> None:
        if message.role == "system":
            raise ProtocolError("The system message can only be the first message")

        if message.role == "tool":
            self._answer(message)
        else:
            if self._pending:
                raise ProtocolError(
                    "Cannot append a new message while tool calls are unanswered: "
                    + ", ".join(self._pending)
                )
            if message.requests_tools:
                self._open_batch(message)

        self._messages.append(message)

    def add_user(self, text: str) -> Message:
        message = Message.user(text)
        self.append(message)
        return message

    def reset(self) -> None:
        """Drop everything but the system message."""
        del self._messages[1:]
        self._pending.clear()

    def _open_batch(self, message: Message) -> None:
        pending: dict[str, str] = {}
        for call in message.tool_calls:
            if call.id in pending:
                raise ProtocolError(f"Duplicate tool call id in one turn: {call.id}")
            pending[call.id] = call.name
        self._pending = pending

    def _answer(self, message: Message) -> None:
        call_id = message.tool_call_id
        if call_id is None or call_id not in self._pending:
            raise ProtocolError(f"Tool result without a matching request: {call_id}")
        del self._pending[call_id]

    # ── Views ────────────────────────────────────────────────────────

    @property
    def system_message(self) -> Message:
        return self._messages[0]

    @property
    def messages(self) -> tuple[Message, ...]:
        return tuple(self._messages)

    @property
    def last_message(self) -> Message:
        return self._messages[-1]

    @property
    def pending_tool_calls(self) -> list[str]:
        return list(self._pending)

    def to_payload(self) -> list[dict]:
        """Messages in the provider's wire format."""
        return [m.to_dict() for m in self._messages]

    def __len__(self) -> int:
        return len(self._messages)

    def __iter__(self) -> Iterator[Message]:
        return iter(self._messages)
