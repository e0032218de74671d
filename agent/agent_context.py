"""AgentContext — wires config, provider client, gateway, tools and agent together."""

from __future__ import annotations
import uuid
from datetime import datetime, timezone

from agent.agent import Agent
from agent.config import AgentConfig
from agent.conversation import Conversation
from agent.models import OpenAIClient
from agent.telemetry import Telemetry
from datastore.gateway import DataStoreGateway, DynamoDBGateway
from prompts.template_engine import SYSTEM_TEMPLATE, PromptTemplateEngine
from tools.executor import ToolExecutor
from tools.tool_registry import ToolRegistry


class AgentContext:
    """
    One process-level session. Holds the shared, immutable pieces (tool
    registry, gateway handle, provider client) and hands out conversations.
    """

    def __init__(
        self,
        config: AgentConfig,
        session_id: str | None = None,
        gateway: DataStoreGateway | None = None,
        client: OpenAIClient | None = None,
    ):
        self.id: str = session_id or uuid.uuid4().hex[:12]
        self.config = config
        self.telemetry = Telemetry(config.telemetry, self.id)
        self.gateway = gateway or DynamoDBGateway(config.datastore)
        self.client = client or OpenAIClient(
            api_key=config.chat_model.api_key,
            base_url=config.chat_model.base_url,
            connect_timeout=config.provider.connect_timeout,
            read_timeout=config.provider.read_timeout,
            max_retries=config.provider.max_retries,
        )
        self.registry = ToolRegistry.default(
            self.gateway, default_limit=config.datastore.default_limit
        )
        self.executor = ToolExecutor(
            self.registry,
            config=config.tool_execution,
            log_dir=config.log_dir,
        )
        self.agent = Agent(
            config,
            client=self.client,
            registry=self.registry,
            executor=self.executor,
            telemetry=self.telemetry,
        )
        self._prompt_engine = PromptTemplateEngine(profile=config.prompt_profile)

    def build_system_prompt(self) -> str:
        """Render the system prompt with the tool catalog and current time."""
        variables = {
            "current_time": datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M:%S UTC"),
            "tool_descriptions": self.registry.get_tool_descriptions(),
        }
        return self._prompt_engine.render(SYSTEM_TEMPLATE, variables)

    def new_conversation(self, system_prompt: str | None = None) -> Conversation:
        return Conversation(system_prompt or self.build_system_prompt())

    async def ask(self, query: str, conversation: Conversation | None = None) -> str:
        """Append ``query`` as a user turn and run the agent on it."""
        if conversation is None:
            conversation = self.new_conversation()
        conversation.add_user(query)
        return await self.agent.chat(conversation)
