"""Interactive CLI for the DynamoDB chat agent."""

import sys
from agent.agent_context import AgentContext
from agent.config import AgentConfig
from agent.conversation import Conversation


# ANSI color codes
RESET = "\033[0m"
BOLD = "\033[1m"
DIM = "\033[2m"
CYAN = "\033[36m"
GREEN = "\033[32m"
YELLOW = "\033[33m"
RED = "\033[31m"


class CLIApp:
    """Interactive REPL and one-shot query runner."""

    def __init__(self, config: AgentConfig, context: AgentContext | None = None):
        self.config = config
        self.context = context or AgentContext(config)
        self.conversation: Conversation | None = None

    async def run(self) -> int:
        """Main REPL loop. Returns the process exit code."""
        self._print_banner()

        if not await self._preflight():
            return 1

        self.conversation = self.context.new_conversation()

        while True:
            try:
                user_input = input(f"{BOLD}You:{RESET} ").strip()
            except (EOFError, KeyboardInterrupt):
                print(f"\n{DIM}Goodbye!{RESET}")
                break

            if not user_input:
                continue

            # Commands
            command = user_input.lower()
            if command in ("exit", "quit"):
                print(f"{DIM}Goodbye!{RESET}")
                break
            if command == "clear":
                self.conversation.reset()
                print(f"{DIM}Conversation history cleared.{RESET}")
                continue
            if command == "help":
                self._print_help()
                continue

            print(f"{DIM}Thinking...{RESET}")
            try:
                result = await self.context.ask(user_input, self.conversation)
            except Exception as e:
                print(f"{RED}Error: {e}{RESET}")
                self._recover_conversation()
                continue

            print(f"{BOLD}{GREEN}AI:{RESET} {result}")
            print()

        return 0

    async def run_once(self, query: str) -> int:
        """Answer a single query and return the process exit code."""
        if not await self._preflight():
            return 1

        print(f"Processing query: {query}")
        print("Thinking...")
        try:
            result = await self.context.ask(query)
        except Exception as e:
            print(f"Error: {e}", file=sys.stderr)
            return 1

        print(f"Result: {result}")
        return 0

    def _recover_conversation(self) -> None:
        """
        Keep the history after a failed run. Only a run that stopped with
        tool calls still unanswered leaves the log unusable; start over then.
        """
        if self.conversation is not None and self.conversation.pending_tool_calls:
            self.conversation.reset()
            print(f"{YELLOW}[Conversation reset after an incomplete tool round]{RESET}")

    def _print_banner(self):
        print(f"""
{BOLD}{CYAN}DynamoDB AI Handler CLI{RESET}
{DIM}Chat model: {self.config.chat_model.model_name}
Provider: {self.config.chat_model.base_url}
DynamoDB region: {self.config.datastore.region}{RESET}

Available commands:
- Buyer Activity: "Find activities for vendor X buyer Y"
- Login Account: "Find login for vendor X" or "Find login for vendor X email Y"
- Type "exit" or "quit" to quit
- Type "clear" to clear conversation history
- Type "help" for details
""")

    def _print_help(self):
        print(f"""
{BOLD}Commands:{RESET}
  {CYAN}clear{RESET}       — Clear conversation history (keeps the system prompt)
  {CYAN}help{RESET}        — Show this help
  {CYAN}exit{RESET}/{CYAN}quit{RESET}   — Quit

{BOLD}How it works:{RESET}
  Your message goes to the model together with the tool catalog
  ({", ".join(self.context.registry.tool_names)}).
  The model may call tools any number of rounds; their results are fed
  back until it answers in plain text.
""")

    async def _preflight(self) -> bool:
        """Check provider connectivity and model availability before starting."""
        if not self.config.provider.health_check_on_start:
            return True

        client = self.context.client
        try:
            missing = await client.get_missing_models([self.config.chat_model.model_name])
        except Exception as e:
            print(f"{RED}[Error] Cannot reach provider at {client.base_url}: {e}{RESET}", file=sys.stderr)
            return False

        if missing:
            print(f"{RED}[Error] Model not available: {', '.join(missing)}{RESET}", file=sys.stderr)
            return False
        return True
