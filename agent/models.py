"""OpenAIClient - Direct HTTP communication with an OpenAI-compatible chat API."""

import asyncio
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, TypeVar

import aiohttp
from agent.exceptions import (
    ProviderAuthError,
    ProviderConnectionError,
    ProviderModelError,
    ProviderResponseError,
)
from agent.messages import Message


T = TypeVar("T")


@dataclass
class ChatCompletion:
    """The assistant message of a completion plus its token usage."""
    message: Message
    model: str
    usage: dict[str, int] = field(default_factory=dict)

    @property
    def prompt_tokens(self) -> int:
        return int(self.usage.get("prompt_tokens", 0) or 0)

    @property
    def completion_tokens(self) -> int:
        return int(self.usage.get("completion_tokens", 0) or 0)


class OpenAIClient:
    """Direct async HTTP client for the chat-completions API."""

    def __init__(
        self,
        api_key: str,
        base_url: str = "https://api.openai.com/v1",
        connect_timeout: float = 5.0,
        read_timeout: float = 120.0,
        max_retries: int = 3,
    ):
        self.api_key = api_key
        self.base_url = base_url.rstrip("/")
        self.connect_timeout = connect_timeout
        self.read_timeout = read_timeout
        self.max_retries = max_retries

    async def health_check(self) -> bool:
        """True when the provider answers GET /models with this key."""
        try:
            await self.list_models()
        except (ProviderConnectionError, ProviderAuthError, ProviderResponseError):
            return False
        return True

    async def list_models(self) -> list[dict]:
        """List models visible to this API key. GET /models"""
        async def _request() -> list[dict]:
            async with aiohttp.ClientSession(
                timeout=self._timeout(), headers=self._headers()
            ) as session:
                async with session.get(f"{self.base_url}/models") as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        self._raise_for_status(resp.status, body, "list models")
                    data = await resp.json()
                    return data.get("data", [])

        return await self._with_retry("list models", _request)

    async def get_missing_models(self, required_models: Iterable[str]) -> list[str]:
        """Return a list of required model names that are not available."""
        models = await self.list_models()
        names = [m.get("id", "") for m in models]
        return self.filter_missing_models(required_models, names)

    @staticmethod
    def filter_missing_models(
        required_models: Iterable[str],
        available_models: Iterable[str],
    ) -> list[str]:
        """Filter required models against a list of available model ids."""
        available = {m for m in available_models if m}
        return [m for m in required_models if m and m not in available]

    async def chat_completion(
        self,
        model: str,
        messages: list[dict],
        tools: list[dict] | None = None,
        tool_choice: str = "auto",
        temperature: float | None = None,
    ) -> ChatCompletion:
        """
        Send one chat completion request. POST /chat/completions

        Not retried: a failed round is reported to the caller as-is.
        """
        payload: dict[str, Any] = {
            "model": model,
            "messages": messages,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = tool_choice
        if temperature is not None:
            payload["temperature"] = temperature

        try:
            async with aiohttp.ClientSession(
                timeout=self._timeout(), headers=self._headers()
            ) as session:
                async with session.post(
                    f"{self.base_url}/chat/completions",
                    json=payload,
                ) as resp:
                    if resp.status != 200:
                        body = await resp.text()
                        if resp.status == 404:
                            raise ProviderModelError(
                                f"Model '{model}' not found (HTTP 404): {body}"
                            )
                        self._raise_for_status(resp.status, body, "chat completion")
                    data = await resp.json()
        except (aiohttp.ClientError, asyncio.TimeoutError) as e:
            raise ProviderConnectionError(
                self._connection_error_message("chat completion", e, attempts=1)
            ) from e

        return self._parse_completion(data, model)

    @staticmethod
    def _parse_completion(data: dict, model: str) -> ChatCompletion:
        choices = data.get("choices") or []
        if not choices or "message" not in choices[0]:
            raise ProviderResponseError(f"Provider returned no choices: {data!r}")
        raw = dict(choices[0]["message"])
        raw.setdefault("role", "assistant")
        return ChatCompletion(
            message=Message.from_dict(raw),
            model=data.get("model", model),
            usage=data.get("usage") or {},
        )

    @staticmethod
    def _raise_for_status(status: int, body: str, operation: str) -> None:
        if status in (401, 403):
            raise ProviderAuthError(
                f"Provider rejected the API key during {operation} (HTTP {status}): {body}"
            )
        raise ProviderResponseError(f"Provider {operation} failed (HTTP {status}): {body}")

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }

    def _timeout(self) -> aiohttp.ClientTimeout:
        """Build a client timeout configuration from settings."""
        return aiohttp.ClientTimeout(
            total=None,
            connect=self.connect_timeout,
            sock_connect=self.connect_timeout,
            sock_read=self.read_timeout,
        )

    async def _with_retry(self, operation: str, func: Callable[[], Awaitable[T]]) -> T:
        """Run an async operation with exponential backoff retries."""
        delay = 1.0
        last_error: Exception | None = None
        for attempt in range(1, self.max_retries + 1):
            try:
                return await func()
            except (aiohttp.ClientError, asyncio.TimeoutError) as e:
                last_error = e
                if attempt >= self.max_retries:
                    break
                await asyncio.sleep(delay)
                delay *= 2

        raise ProviderConnectionError(
            self._connection_error_message(operation, last_error, attempts=self.max_retries)
        )

    def _connection_error_message(
        self, operation: str, error: Exception | None, attempts: int
    ) -> str:
        """Create a user-friendly connection error message."""
        details = f"{error}" if error else "unknown error"
        return (
            f"Cannot connect to provider at {self.base_url} during {operation} "
            f"(after {attempts} attempt(s)): {details}"
        )
