import asyncio
import json
import tempfile
import unittest

from agent.agent import Agent
from agent.config import AgentConfig, TelemetryConfig
from agent.conversation import Conversation
from agent.exceptions import (
    ChatError,
    DataStoreError,
    MaxIterationsError,
    ProtocolError,
    ProviderAuthError,
)
from agent.messages import Message, ToolCall
from agent.models import ChatCompletion
from tools.tool_registry import ToolRegistry


class ScriptedClient:
    """Stands in for OpenAIClient; replays canned assistant messages."""

    def __init__(self, replies):
        self.replies = list(replies)
        self.requests = []

    async def chat_completion(self, model, messages, tools=None, tool_choice="auto", temperature=None):
        self.requests.append({
            "model": model,
            "messages": messages,
            "tools": tools,
            "tool_choice": tool_choice,
        })
        reply = self.replies.pop(0)
        if isinstance(reply, Exception):
            raise reply
        return ChatCompletion(message=reply, model=model)


class StubGateway:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error

    def get_item(self, table_name, pk, sk=None):
        if self.error:
            raise self.error
        return None

    def query(self, table_name, pk, sk_prefix=None, limit=100):
        return self.rows[:limit]


class CountingGateway(StubGateway):
    def __init__(self, rows=None):
        super().__init__(rows)
        self.queries = 0

    def query(self, table_name, pk, sk_prefix=None, limit=100):
        self.queries += 1
        return super().query(table_name, pk, sk_prefix, limit)


class RoutedClient:
    """Answers each conversation from its own script, keyed by the first user message."""

    def __init__(self, scripts):
        self.scripts = {question: list(replies) for question, replies in scripts.items()}

    async def chat_completion(self, model, messages, tools=None, tool_choice="auto", temperature=None):
        await asyncio.sleep(0)
        question = next(m["content"] for m in messages if m["role"] == "user")
        return ChatCompletion(message=self.scripts[question].pop(0), model=model)


def tool_reply(*calls: tuple[str, str, dict]) -> Message:
    return Message.assistant(None, tuple(
        ToolCall(id=call_id, name=name, arguments=json.dumps(args))
        for call_id, name, args in calls
    ))


class TestAgentLoop(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.config = AgentConfig(log_dir=tmpdir.name, max_tool_rounds=5)
        self.conversation = Conversation("You query DynamoDB.")
        self.conversation.add_user("How many threat points does buyer 5491226 have?")

    def _agent(self, client, gateway=None) -> Agent:
        registry = ToolRegistry.default(gateway or StubGateway())
        return Agent(self.config, client=client, registry=registry)

    async def test_plain_answer_ends_on_first_round(self):
        client = ScriptedClient([Message.assistant("No tools needed.")])

        answer = await self._agent(client).chat(self.conversation)

        self.assertEqual(answer, "No tools needed.")
        self.assertEqual(len(client.requests), 1)
        request = client.requests[0]
        self.assertEqual(request["tool_choice"], "auto")
        self.assertEqual(request["model"], "gpt-4.1-mini")
        self.assertEqual(
            [t["function"]["name"] for t in request["tools"]],
            ["get_item", "query_table", "sum_property", "format_timestamp"],
        )
        self.assertEqual(self.conversation.last_message, Message.assistant("No tools needed."))
        self.assertEqual([m.role for m in self.conversation], ["system", "user", "assistant"])

    async def test_null_content_answer_is_empty_string(self):
        client = ScriptedClient([Message.assistant(None)])
        self.assertEqual(await self._agent(client).chat(self.conversation), "")

    async def test_batch_results_follow_request_order(self):
        reply = tool_reply(
            ("c1", "sum_property", {"data": [{"score": 3}, {"score": "x"}, {"score": 5}], "property": "score"}),
            ("c2", "delete_item", {"tableName": "Auth"}),
            ("c3", "get_item", {"tableName": "Auth", "pk": "AUTH#VENDOR#123"}),
        )
        client = ScriptedClient([reply, Message.assistant("Total is 8.")])

        answer = await self._agent(client).chat(self.conversation)

        self.assertEqual(answer, "Total is 8.")
        second = client.requests[1]["messages"]
        self.assertEqual(second[2]["role"], "assistant")
        self.assertEqual([tc["id"] for tc in second[2]["tool_calls"]], ["c1", "c2", "c3"])
        tool_messages = second[3:]
        self.assertEqual(len(tool_messages), 3)
        self.assertEqual([m["role"] for m in tool_messages], ["tool", "tool", "tool"])
        self.assertEqual([m["tool_call_id"] for m in tool_messages], ["c1", "c2", "c3"])
        self.assertEqual(json.loads(tool_messages[0]["content"]), 8)
        self.assertEqual(json.loads(tool_messages[1]["content"]), {"error": "Unknown tool: delete_item"})
        self.assertIsNone(json.loads(tool_messages[2]["content"]))

    async def test_failed_tool_does_not_block_the_rest_of_the_batch(self):
        gateway = StubGateway(error=DataStoreError("Failed to get item: throttled"))
        reply = tool_reply(
            ("c1", "get_item", {"tableName": "Auth", "pk": "P"}),
            ("c2", "sum_property", {"data": [{"n": 2}], "property": "n"}),
        )
        client = ScriptedClient([reply, Message.assistant("done")])

        await self._agent(client, gateway).chat(self.conversation)

        tool_messages = client.requests[1]["messages"][3:]
        self.assertEqual(json.loads(tool_messages[0]["content"]), {"error": "Failed to get item: throttled"})
        self.assertEqual(json.loads(tool_messages[1]["content"]), 2)

    async def test_multi_round_query_then_sum(self):
        rows = [
            {"PK": "THREAT_SCORE#5491226", "SK": "EVENT#001", "score": 10},
            {"PK": "THREAT_SCORE#5491226", "SK": "EVENT#002", "score": 15},
        ]
        client = ScriptedClient([
            tool_reply(("q1", "query_table", {"tableName": "Shield", "pk": "THREAT_SCORE#5491226", "sk": "EVENT#"})),
            tool_reply(("s1", "sum_property", {"data": rows, "property": "score"})),
            Message.assistant("Buyer 5491226 has a total threat score of 25."),
        ])

        answer = await self._agent(client, StubGateway(rows)).chat(self.conversation)

        self.assertEqual(answer, "Buyer 5491226 has a total threat score of 25.")
        self.assertEqual(len(client.requests), 3)
        self.assertEqual(
            [m.role for m in self.conversation],
            ["system", "user", "assistant", "tool", "assistant", "tool", "assistant"],
        )
        self.assertEqual(json.loads(self.conversation.messages[3].content), rows)
        self.assertEqual(self.conversation.messages[5].content, "25")

    async def test_unknown_tool_does_not_abort_run(self):
        client = ScriptedClient([
            tool_reply(("c1", "delete_item", {"tableName": "Auth", "pk": "P"})),
            Message.assistant("I can't delete items."),
        ])

        answer = await self._agent(client).chat(self.conversation)

        self.assertEqual(answer, "I can't delete items.")
        self.assertEqual(
            json.loads(self.conversation.messages[3].content),
            {"error": "Unknown tool: delete_item"},
        )

    async def test_provider_failure_is_wrapped_and_not_retried(self):
        cause = ProviderAuthError("Provider rejected the API key")
        client = ScriptedClient([cause, Message.assistant("unused")])

        with self.assertRaises(ChatError) as ctx:
            await self._agent(client).chat(self.conversation)

        self.assertIs(ctx.exception.__cause__, cause)
        self.assertIn("AI chat failed", str(ctx.exception))
        self.assertEqual(len(client.requests), 1)
        self.assertEqual([m.role for m in self.conversation], ["system", "user"])

    async def test_round_ceiling_raises_without_running_last_batch(self):
        self.config.max_tool_rounds = 3
        rows = [{"PK": "P", "SK": "A"}]
        gateway = CountingGateway(rows)
        endless = [
            tool_reply((f"c{i}", "query_table", {"tableName": "Auth", "pk": "P"}))
            for i in range(10)
        ]
        client = ScriptedClient(endless)

        with self.assertRaises(MaxIterationsError) as ctx:
            await self._agent(client, gateway).chat(self.conversation)

        self.assertIn("did not converge", str(ctx.exception))
        self.assertEqual(len(client.requests), 3)
        self.assertEqual(gateway.queries, 2)
        self.assertEqual(self.conversation.pending_tool_calls, [])
        self.assertEqual(
            [m.role for m in self.conversation],
            ["system", "user", "assistant", "tool", "assistant", "tool"],
        )

    async def test_run_telemetry(self):
        self.config.telemetry = TelemetryConfig(enabled=True, log_dir=self.config.log_dir)
        client = ScriptedClient([
            tool_reply(("c1", "sum_property", {"data": [{"n": 1}], "property": "n"})),
            Message.assistant("1"),
        ])
        agent = self._agent(client)

        await agent.chat(self.conversation)

        [run] = agent.telemetry.runs
        self.assertEqual(run.outcome, "answer")
        self.assertEqual(run.rounds, 2)
        self.assertEqual(len(run.provider_calls), 2)
        self.assertEqual([c.tool_name for c in run.tool_calls], ["sum_property"])


class TestAgentRunTelemetry(unittest.IsolatedAsyncioTestCase):
    def setUp(self):
        tmpdir = tempfile.TemporaryDirectory()
        self.addCleanup(tmpdir.cleanup)
        self.config = AgentConfig(
            log_dir=tmpdir.name,
            telemetry=TelemetryConfig(enabled=True, log_dir=tmpdir.name),
        )

    def _conversation(self, question: str) -> Conversation:
        conversation = Conversation("You query DynamoDB.")
        conversation.add_user(question)
        return conversation

    async def test_overlapping_runs_are_summarised_separately(self):
        sum_call = {"data": [{"n": 1}], "property": "n"}
        client = RoutedClient({
            "long": [
                tool_reply(("a1", "sum_property", sum_call)),
                tool_reply(("a2", "sum_property", sum_call)),
                Message.assistant("long answer"),
            ],
            "short": [Message.assistant("short answer")],
        })
        agent = Agent(self.config, client=client, registry=ToolRegistry.default(StubGateway()))

        answers = await asyncio.gather(
            agent.chat(self._conversation("long")),
            agent.chat(self._conversation("short")),
        )

        self.assertEqual(answers, ["long answer", "short answer"])
        shapes = sorted(
            (run.rounds, len(run.provider_calls), len(run.tool_calls))
            for run in agent.telemetry.runs
        )
        self.assertEqual(shapes, [(1, 1, 0), (3, 3, 2)])

    async def test_protocol_error_closes_the_run(self):
        duplicate_ids = tool_reply(
            ("x", "sum_property", {"data": [], "property": "n"}),
            ("x", "sum_property", {"data": [], "property": "n"}),
        )
        client = ScriptedClient([duplicate_ids, Message.assistant("fine")])
        agent = Agent(self.config, client=client, registry=ToolRegistry.default(StubGateway()))

        with self.assertRaises(ProtocolError):
            await agent.chat(self._conversation("first"))
        await agent.chat(self._conversation("second"))

        self.assertEqual(
            [(r.outcome, len(r.provider_calls), len(r.tool_calls)) for r in agent.telemetry.runs],
            [("protocol_error", 1, 2), ("answer", 1, 0)],
        )

    async def test_provider_failure_closes_the_run(self):
        client = ScriptedClient([ProviderAuthError("bad key")])
        agent = Agent(self.config, client=client, registry=ToolRegistry.default(StubGateway()))

        with self.assertRaises(ChatError):
            await agent.chat(self._conversation("q"))

        [run] = agent.telemetry.runs
        self.assertEqual(run.outcome, "error")
        self.assertEqual(run.provider_calls[0].error, "bad key")
