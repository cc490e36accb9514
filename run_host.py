"""
Run Host — end-to-end: MCP servers → tool catalog → chat model loop.

This is the script that closes the loop. It:
1. Reads the MCP server config (.mcp.json)
2. Starts every tool server (stdio subprocesses) and lists their tools
3. Builds a LangChain chat model for the selected provider
4. Runs the conversation engine on the prompt
5. Prints the answer
6. Shuts the servers down and waits until every client is released

Usage:
    # Ask a question using the servers in .mcp.json and a local Ollama model
    python run_host.py "Create a users table and add some dummy rows"

    # Use a specific config, provider and model
    python run_host.py --config tools.json --provider anthropic --model claude-sonnet-4-5 "List the files here"

    # Keep the servers up after answering until Ctrl+C
    python run_host.py --wait "What tools do you have?"
"""

from __future__ import annotations

import argparse
import logging
import sys
import time

from mcp_host.bridge import LangChainProvider, build_chat_model
from mcp_host.config import load_settings
from mcp_host.engine import ConversationEngine
from mcp_host.errors import ConfigError, ProviderOverloadedError, SetupError
from mcp_host.lifetime import Lifetime
from mcp_host.pool import load_alive_client_count, load_mcp_clients

logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
logger = logging.getLogger(__name__)


def drain_clients(first_interval: float = 1.0, interval: float = 5.0) -> None:
    """Block until every tool server client has been released."""
    wait = first_interval
    while True:
        alive = load_alive_client_count()
        if alive == 0:
            logger.info("all clients finished")
            return
        logger.info(f"waiting for {alive} clients to finish")
        time.sleep(wait)
        wait = interval


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        description="Run a chat model against the MCP tool servers in a config file.",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python run_host.py "List the files in the current directory"
  python run_host.py --provider anthropic --model claude-sonnet-4-5 "Summarise README.md"
  python run_host.py --prompt "What is in README.md?"
  echo "What time is it?" | python run_host.py
        """,
    )
    parser.add_argument("prompt", nargs="?", help="Prompt for the model (read from stdin if omitted)")
    parser.add_argument("--prompt", dest="prompt_option", type=str, default=None, help="Prompt for the model (alternative to the positional argument)")
    parser.add_argument("--config", "-c", type=str, default=None, help="Path to MCP config file (default: .mcp.json)")
    parser.add_argument("--model", "-m", type=str, default=None, help="Model name (default: mistral-small)")
    parser.add_argument("--provider", "-p", type=str, choices=["ollama", "anthropic"], default=None, help="Model provider (default: ollama)")
    parser.add_argument("--system-prompt", type=str, default=None, help="Override the system prompt")
    parser.add_argument("--wait", action="store_true", help="Keep tool servers running after the answer until Ctrl+C")
    parser.add_argument("--verbose", "-v", action="store_true", help="Show debug output")

    args = parser.parse_args(argv)

    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if args.prompt_option is not None and args.prompt is not None:
        parser.error("give the prompt either positionally or with --prompt, not both")
    prompt = args.prompt_option if args.prompt_option is not None else args.prompt
    if prompt is None:
        prompt = sys.stdin.read().strip()
    if not prompt:
        parser.error("a prompt is required (argument or stdin)")

    settings = load_settings(
        provider=args.provider,
        model=args.model,
        config_path=args.config,
        system_prompt=args.system_prompt,
    )

    # Ctrl+C cancels the lifetime, which closes every tool server
    lifetime = Lifetime.on_interrupt()

    # ── Start MCP servers ─────────────────────────────────
    try:
        pool, tools = load_mcp_clients(
            settings.config_path,
            lifetime,
            init_timeout=settings.init_timeout,
            list_timeout=settings.list_timeout,
        )
    except (ConfigError, SetupError) as e:
        print(f"Error: {e}", file=sys.stderr)
        return 1

    print(f"Loaded {len(tools)} tools from {len(pool)} servers: {[t.name for t in tools]}\n")

    # ── Run the conversation ──────────────────────────────
    exit_code = 0
    try:
        chat_model = build_chat_model(
            provider=settings.provider,
            model=settings.model,
            ollama_base_url=settings.ollama_base_url,
        )
        engine = ConversationEngine(
            LangChainProvider(chat_model, system_prompt=settings.system_prompt),
            pool,
            tools,
        )
        result = engine.run(prompt)
        print("=" * 60)
        print(result)
        print("=" * 60)
    except (ConfigError, ProviderOverloadedError) as e:
        print(f"Error: {e}", file=sys.stderr)
        exit_code = 1
    except Exception as e:
        logger.exception("Conversation failed")
        print(f"Agent invocation failed: {e}", file=sys.stderr)
        exit_code = 1

    # ── Shut down ─────────────────────────────────────────
    if args.wait and not lifetime.cancelled:
        print("\nTool servers still running. Press Ctrl+C to stop.")
        lifetime.wait()

    lifetime.cancel()
    drain_clients()
    print("\nMCP servers stopped.")
    return exit_code


if __name__ == "__main__":
    sys.exit(main())
