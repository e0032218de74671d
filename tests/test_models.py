import unittest
from unittest import mock

import aiohttp

from agent.exceptions import (
    ProtocolError,
    ProviderAuthError,
    ProviderConnectionError,
    ProviderResponseError,
)
from agent.models import OpenAIClient


class TestOpenAIClient(unittest.IsolatedAsyncioTestCase):
    async def test_with_retry_succeeds_after_failures(self):
        client = OpenAIClient(api_key="sk-test", max_retries=3)
        attempts = 0

        async def operation():
            nonlocal attempts
            attempts += 1
            if attempts < 3:
                raise aiohttp.ClientError("boom")
            return "ok"

        with mock.patch("agent.models.asyncio.sleep", new=mock.AsyncMock()) as sleep_mock:
            result = await client._with_retry("test", operation)

        self.assertEqual(result, "ok")
        self.assertEqual(attempts, 3)
        self.assertEqual(sleep_mock.call_count, 2)

    async def test_with_retry_raises_after_exhausted(self):
        client = OpenAIClient(api_key="sk-test", max_retries=2)

        async def operation():
            raise aiohttp.ClientError("boom")

        with mock.patch("agent.models.asyncio.sleep", new=mock.AsyncMock()):
            with self.assertRaises(ProviderConnectionError):
                await client._with_retry("test", operation)

    async def test_chat_completion_connection_error_is_not_retried(self):
        client = OpenAIClient(api_key="sk-test", max_retries=3)
        session_factory = mock.Mock(side_effect=aiohttp.ClientConnectionError("refused"))

        with mock.patch("agent.models.aiohttp.ClientSession", new=session_factory):
            with self.assertRaises(ProviderConnectionError) as ctx:
                await client.chat_completion("gpt-4.1-mini", [{"role": "user", "content": "hi"}])

        self.assertEqual(session_factory.call_count, 1)
        self.assertIn("refused", str(ctx.exception))

    def test_filter_missing_models(self):
        available = ["gpt-4.1-mini", "gpt-4o"]
        missing = OpenAIClient.filter_missing_models(["gpt-4.1-mini", "gpt-5"], available)
        self.assertEqual(missing, ["gpt-5"])

    def test_parse_completion_with_tool_calls(self):
        data = {
            "model": "gpt-4.1-mini-2025-04-14",
            "choices": [{
                "message": {
                    "role": "assistant",
                    "content": None,
                    "tool_calls": [{
                        "id": "call_1",
                        "type": "function",
                        "function": {"name": "get_item", "arguments": '{"tableName": "Auth"}'},
                    }],
                },
            }],
            "usage": {"prompt_tokens": 12, "completion_tokens": 3},
        }

        completion = OpenAIClient._parse_completion(data, "gpt-4.1-mini")

        self.assertTrue(completion.message.requests_tools)
        self.assertEqual(completion.message.tool_calls[0].name, "get_item")
        self.assertEqual(completion.message.tool_calls[0].arguments, '{"tableName": "Auth"}')
        self.assertEqual(completion.model, "gpt-4.1-mini-2025-04-14")
        self.assertEqual(completion.prompt_tokens, 12)
        self.assertEqual(completion.completion_tokens, 3)

    def test_parse_completion_plain_answer(self):
        data = {"choices": [{"message": {"role": "assistant", "content": "Hello"}}]}
        completion = OpenAIClient._parse_completion(data, "gpt-4.1-mini")
        self.assertFalse(completion.message.requests_tools)
        self.assertEqual(completion.message.content, "Hello")
        self.assertEqual(completion.prompt_tokens, 0)

    def test_parse_completion_without_choices_raises(self):
        with self.assertRaises(ProviderResponseError):
            OpenAIClient._parse_completion({"choices": []}, "gpt-4.1-mini")

    def test_parse_completion_malformed_tool_call_raises(self):
        data = {"choices": [{"message": {
            "role": "assistant",
            "tool_calls": [{"id": "call_1", "function": {}}],
        }}]}
        with self.assertRaises(ProtocolError):
            OpenAIClient._parse_completion(data, "gpt-4.1-mini")

    def test_status_mapping(self):
        with self.assertRaises(ProviderAuthError):
            OpenAIClient._raise_for_status(401, "bad key", "chat completion")
        with self.assertRaises(ProviderResponseError):
            OpenAIClient._raise_for_status(429, "rate limited", "chat completion")

    async def test_health_check_reports_listing_outcome(self):
        client = OpenAIClient(api_key="sk-test")

        with mock.patch.object(client, "list_models", new=mock.AsyncMock(return_value=[{"id": "gpt-4.1-mini"}])):
            self.assertTrue(await client.health_check())
        with mock.patch.object(
            client, "list_models", new=mock.AsyncMock(side_effect=ProviderAuthError("bad key"))
        ):
            self.assertFalse(await client.health_check())
        with mock.patch.object(
            client, "list_models", new=mock.AsyncMock(side_effect=ProviderConnectionError("refused"))
        ):
            self.assertFalse(await client.health_check())
