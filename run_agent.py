#!/usr/bin/env python3
"""
Run the agent on a single query.

Usage:
    python run_agent.py --query "List the Python files in the workspace"
    python run_agent.py --query "..." --provider anthropic --model claude-sonnet-4-20250514
    python run_agent.py --list_tools
    python run_agent.py --list_sessions

Configuration is read from ~/.clawloop/config.yaml (see agent/config.py);
command-line flags override it for this run.
"""

import asyncio
import logging
import sys
from typing import Optional

import fire
import httpx
from pydantic import ValidationError

from agent.config import ConfigError, load_config
from agent.events import AgentEvent
from agent.loop import IterationLimitExceeded
from agent.session import AgentSession
from agent.session_persister import SessionStore
from providers.errors import ProviderError

logger = logging.getLogger(__name__)


def setup_logging(verbose: bool = False) -> None:
    if verbose:
        logging.basicConfig(
            level=logging.DEBUG,
            format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        # Keep third-party libraries at WARNING level to reduce noise
        logging.getLogger('httpx').setLevel(logging.WARNING)
        logging.getLogger('httpcore').setLevel(logging.WARNING)
        logging.getLogger('asyncio').setLevel(logging.WARNING)
        logger.info("Verbose logging enabled (third-party library logs suppressed)")
    else:
        logging.basicConfig(
            level=logging.INFO,
            format='%(asctime)s - %(levelname)s - %(message)s',
            datefmt='%H:%M:%S'
        )
        logging.getLogger('httpx').setLevel(logging.ERROR)
        logging.getLogger('httpcore').setLevel(logging.ERROR)


def print_event(event: AgentEvent) -> None:
    if event.kind == "token":
        sys.stdout.write(event.text)
        sys.stdout.flush()
    elif event.kind == "tool_start":
        print(f"\n[tool] {event.name} ...")
    elif event.kind == "tool_result":
        print(f"[tool] {event.name} -> {event.text}")


async def _run(session: AgentSession, query: str, resume: Optional[str]) -> int:
    try:
        if resume:
            try:
                session.restore(resume)
            except (OSError, ValidationError, ValueError, RuntimeError) as e:
                print(f"Cannot resume session {resume}: {e}")
                return 1
        await session.start()
        await session.handle_message(query, print_event)
    except IterationLimitExceeded as e:
        print(f"\n{e}")
        return 2
    except ProviderError as e:
        print(f"\nProvider error: {e}")
        return 1
    except httpx.HTTPError as e:
        logger.debug("Network failure", exc_info=True)
        print(f"\nNetwork error: {e}")
        return 1
    finally:
        await session.aclose()

    usage = session.usage.snapshot()
    print(
        f"\n\n[session {session.session_id}] requests={session.usage.requests()} "
        f"tokens={usage.total_tokens} (prompt={usage.prompt_tokens}, "
        f"completion={usage.completion_tokens}) est_cost=${session.usage.estimated_cost_usd():.4f}"
    )
    return 0


def main(
    query: str = None,
    provider: str = None,
    model: str = None,
    temperature: float = None,
    resume: str = None,
    list_tools: bool = False,
    list_sessions: bool = False,
    verbose: bool = False,
):
    """
    Run one agent turn from the command line.

    Args:
        query (str): The request for the agent.
        provider (str): Provider id (openrouter, anthropic, openai, ollama, custom:<url>).
        model (str): Model name, or hint:<name> for a configured model route.
        temperature (float): Sampling temperature.
        resume (str): Session id to continue.
        list_tools (bool): Print the available tools and exit.
        list_sessions (bool): Print saved sessions and exit.
        verbose (bool): Enable debug logging.
    """
    setup_logging(verbose)

    try:
        config = load_config()
    except ConfigError as e:
        print(f"Configuration error: {e}")
        sys.exit(1)

    overrides = {}
    if provider:
        overrides["default_provider"] = provider
    if model:
        overrides["default_model"] = model
    if temperature is not None:
        overrides["default_temperature"] = temperature
    if overrides:
        config = config.model_validate({**config.model_dump(), **overrides})

    if list_sessions:
        for meta in SessionStore(config.workspace_dir).list():
            print(f"{meta.id}  {meta.updated_at}  {meta.message_count:>3} msgs  {meta.preview}")
        return

    session = AgentSession.from_config(config)

    if list_tools:
        for tool in session.registry.list_tools():
            print(f"{tool.name:<15} [{tool.category}] {tool.description}")
        return

    if not query:
        print("Nothing to do: pass --query")
        sys.exit(1)

    exit_code = asyncio.run(_run(session, query, resume))
    if exit_code:
        sys.exit(exit_code)


def cli():
    fire.Fire(main)


if __name__ == "__main__":
    cli()
