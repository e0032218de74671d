#!/usr/bin/env python3
"""CLI entry point for the DynamoDB chat agent."""

import argparse
import asyncio
import sys
import os

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from dotenv import load_dotenv

from agent.config import load_config
from agent.exceptions import ConfigError
from cli.cli_app import CLIApp


def parse_args(argv: list[str] | None = None) -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Ask questions about DynamoDB data in plain language")
    parser.add_argument("--config", default="config.json", help="Path to the JSON config file")
    parser.add_argument(
        "--onetimequery",
        nargs="+",
        metavar="QUERY",
        help="Answer a single query and exit",
    )
    return parser.parse_args(argv)


def main(argv: list[str] | None = None) -> int:
    load_dotenv()
    args = parse_args(argv)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    if not config.chat_model.api_key:
        print("Error: OPENAI_API_KEY environment variable is required", file=sys.stderr)
        return 1

    app = CLIApp(config)
    if args.onetimequery:
        return asyncio.run(app.run_once(" ".join(args.onetimequery)))
    return asyncio.run(app.run())


if __name__ == "__main__":
    sys.exit(main())
