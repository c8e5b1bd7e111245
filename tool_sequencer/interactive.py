#!/usr/bin/env python3
"""
Tool Sequencer Interactive CLI

A command-line chat with a function-calling model that can read, search
and edit files in a workspace, one tool call at a time.
"""

import argparse
import asyncio
import json
import logging
import sys
from pathlib import Path
from typing import Optional

from .config import config as env_config
from .config_loader import DEFAULT_CONFIG_PATH, load_app_config
from .engine import EngineHooks, EngineSettings, EngineState
from .errors import ToolSequencerError
from .gateway import OpenAIGateway
from .models import AppConfig
from .models.catalog import get_model_info
from .session import ChatSession
from .tools import create_tools
from .tracing import init_tracing_client, shutdown_tracing

logger = logging.getLogger(__name__)


def setup_logging(level: str = "INFO", verbose: bool = False) -> None:
    """Configure logging based on configuration and verbosity."""
    resolved = logging.DEBUG if verbose else getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=resolved,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
        handlers=[logging.StreamHandler(sys.stderr)],
    )


def print_banner() -> None:
    """Print the welcome banner."""
    banner = """
╔════════════════════════════════════════════════════════════════╗
║                  Tool Sequencer Interactive                     ║
║                                                                 ║
║  Function-calling chat with workspace tools                     ║
╚════════════════════════════════════════════════════════════════╝

Available commands:
  /help     - Show this help message
  /trace    - Show the trace of the last run
  /tools    - List available tools
  /clear    - Clear conversation history
  /quit     - Exit the CLI

Type your questions or tasks below.
"""
    print(banner)


def print_trace(session: ChatSession) -> None:
    """Print the step trace of the last engine run."""
    trace = session.engine.get_trace() if session.engine else []
    if not trace:
        print("\nNo trace available. Run a query first.\n")
        return

    print("\n" + "═" * 70)
    print("ENGINE TRACE")
    print("═" * 70)
    for step in trace:
        print(f"\n┌─ Step {step['step']}" + ("  [FINAL]" if step["is_final"] else ""))
        if step["action"]:
            print(f"│  Action: {step['action']}")
        if step["action_input"]:
            print(f"│  Input: {json.dumps(step['action_input'], indent=2)}")
        if step["error"]:
            print(f"│  Error: {step['error']}")
        elif step["observation"]:
            obs = step["observation"]
            if len(obs) > 200:
                obs = obs[:200] + "..."
            print(f"│  Observation: {obs}")
        if step["final_text"]:
            print(f"│  Result: {step['final_text']}")
        print("└" + "─" * 68)
    print()


class ConsoleApprover:
    """Asks on the terminal before a side-effecting tool runs."""

    def __init__(self, auto_approve: bool = False):
        self.auto_approve = auto_approve

    async def approve(self, tool_name: str, params: dict) -> bool:
        if self.auto_approve:
            return True
        print(f"\nThe model wants to run '{tool_name}':")
        print(json.dumps(params, indent=2)[:2000])
        answer = await asyncio.to_thread(input, "Allow? [y/N] ")
        return answer.strip().lower() in ("y", "yes")


class ConsoleQuestionHandler:
    """Puts the model's clarifying questions to the user."""

    async def ask(self, question: str) -> Optional[str]:
        print(f"\n? {question}")
        answer = (await asyncio.to_thread(input, "answer> ")).strip()
        # An empty answer defers; the next message is taken as the answer.
        return answer or None


class CompletionPrinter:
    """Prints the final result when the model signals completion."""

    async def on_task_completed(self, result: str, command: Optional[str]) -> None:
        print("\n" + "═" * 70)
        print("TASK COMPLETED")
        print("═" * 70)
        print(result)
        if command:
            print(f"\nTry: {command}")
        print("═" * 70 + "\n")


def load_config(path: Optional[str]) -> AppConfig:
    """Load YAML config when available, else fall back to the environment."""
    if path is not None:
        return load_app_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_app_config()
    return env_config


def build_session(
    app_config: AppConfig,
    workspace: Optional[str] = None,
    model: Optional[str] = None,
    auto_approve: bool = False,
) -> ChatSession:
    """Wire gateway, tools and console hooks into a chat session."""
    if model:
        app_config.gateway.model = model
    root = Path(workspace or app_config.workspace.root).resolve()

    gateway = OpenAIGateway.from_config(app_config.gateway)
    registry = create_tools(
        root,
        read_line_limit=app_config.workspace.read_line_limit,
        list_max_entries=app_config.workspace.list_max_entries,
    )
    hooks = EngineHooks(
        approver=ConsoleApprover(auto_approve=auto_approve),
        completion_handler=CompletionPrinter(),
        question_handler=ConsoleQuestionHandler(),
    )
    logger.info("Workspace: %s, model: %s", root, gateway.model_id)
    return ChatSession(
        gateway=gateway,
        registry=registry,
        settings=EngineSettings.from_config(app_config.engine),
        hooks=hooks,
        model_info=get_model_info(gateway.model_id),
        block_token_cost=app_config.engine.block_token_cost,
    )


class InteractiveCLI:
    """Interactive CLI for Tool Sequencer."""

    def __init__(self, session: ChatSession):
        self.session = session

    async def process_query(self, query: str) -> None:
        """Send one message and print the reply."""
        try:
            reply = await self.session.send_message(query)
        except ToolSequencerError as e:
            print(f"\nError: {e}\n")
            return

        outcome = reply.outcome
        if outcome is None:
            print(f"\n{reply.text}\n")
            return

        if outcome.question:
            print(f"\n? {outcome.question}\n(Your next message answers this question.)\n")
        elif outcome.state is EngineState.DONE_TEXT:
            print(f"\n{outcome.text}\n")
        elif outcome.last_error:
            print(f"\nStopped after repeated tool failures: {outcome.last_error}\n")
        elif outcome.state is not EngineState.DONE_COMPLETION:
            print(f"\nStopped: {outcome.state.value}\n")

        steps = outcome.iterations
        print(
            f"({steps} step{'s' if steps != 1 else ''}, "
            f"{reply.usage.total_tokens} tokens)"
        )

    async def run(self) -> None:
        """Run the interactive loop."""
        print_banner()
        while True:
            try:
                user_input = (await asyncio.to_thread(input, ">>> ")).strip()
            except EOFError:
                print("\nGoodbye!\n")
                break

            if not user_input:
                continue

            if user_input.startswith("/"):
                command = user_input.lower()
                if command in ("/quit", "/exit", "/q"):
                    print("\nGoodbye!\n")
                    break
                elif command in ("/help", "/h", "/?"):
                    print_banner()
                elif command == "/trace":
                    print_trace(self.session)
                elif command == "/tools":
                    print("\n" + self.session.registry.get_tools_summary() + "\n")
                elif command == "/clear":
                    self.session.clear()
                    print("\nConversation history cleared.\n")
                else:
                    print(f"\nUnknown command: {user_input}")
                    print("Type /help for available commands.\n")
                continue

            await self.process_query(user_input)


async def _amain(args: argparse.Namespace, app_config: AppConfig) -> None:
    session = build_session(
        app_config,
        workspace=args.workspace,
        model=args.model,
        auto_approve=args.auto_approve,
    )
    try:
        if args.query:
            reply = await session.send_message(args.query)
            print(reply.text)
        else:
            await InteractiveCLI(session).run()
    finally:
        close = getattr(session.gateway, "close", None)
        if close is not None:
            await close()


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Tool Sequencer Interactive CLI",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s                              # Start interactive mode
  %(prog)s --workspace ./project -v     # Work on ./project with debug logging
  %(prog)s -q "List the files here"     # Run a single query
""",
    )
    parser.add_argument("--config", type=str, default=None, help="Path to config.yaml")
    parser.add_argument(
        "--workspace", type=str, default=None, help="Workspace root for file tools"
    )
    parser.add_argument("--model", type=str, default=None, help="Model id override")
    parser.add_argument(
        "-v", "--verbose", action="store_true", help="Enable verbose logging"
    )
    parser.add_argument(
        "--auto-approve",
        action="store_true",
        help="Run write_to_file and edit_file without asking",
    )
    parser.add_argument("-q", "--query", type=str, help="Run a single query and exit")
    args = parser.parse_args()

    app_config = load_config(args.config)
    setup_logging(app_config.log_level, args.verbose)

    if app_config.langfuse.is_configured:
        init_tracing_client(
            public_key=app_config.langfuse.public_key,
            secret_key=app_config.langfuse.secret_key,
            host=app_config.langfuse.host,
            debug=app_config.langfuse.debug,
        )

    try:
        asyncio.run(_amain(args, app_config))
    except KeyboardInterrupt:
        print("\n\nInterrupted.\n")
    finally:
        shutdown_tracing()


if __name__ == "__main__":
    main()
