"""
minimal-agent entry point.

This file handles startup concerns (arg-parsing, logging) and either runs a single prompt through the
agent or launches the HTTP API.

    $ OPENAI_API_KEY=... minimal-agent --prompt 'Call the echo tool with message="hi", then summarize.'
"""

import argparse
import asyncio
import json
import logging
import sys

from minimal_agent.agent.agent_loop import Agent
from minimal_agent.common import (
    AnsiColors,
    colored_print,
)
from minimal_agent.config import settings
from minimal_agent.errors import AgentError
from minimal_agent.tools.echo import echo_tool

logger = logging.getLogger(__name__)

DEFAULT_PROMPT = 'Say hello, call the echo tool with message="hi", then summarize.'


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------
def _init_logging(level: str) -> None:
    numeric = getattr(logging, level.upper(), logging.INFO)
    logging.basicConfig(
        level=numeric,
        format="%(asctime)s | %(name)s | %(levelname)s | %(message)s",
        stream=sys.stderr,
    )
    # Request lines from httpx are noise next to the agent trace
    logging.getLogger("httpx").setLevel(logging.WARNING)


def build_parser() -> argparse.ArgumentParser:
    """Command-line interface definition."""
    parser = argparse.ArgumentParser(description="Run the minimal tool-calling agent")
    parser.add_argument(
        "--mode",
        choices=["run", "api"],
        type=str.lower,
        default="run",
        help="Run a single prompt or serve the REST API (default: run)",
    )
    parser.add_argument("--prompt", default=DEFAULT_PROMPT, help="Task text for run mode")
    parser.add_argument("--system", default=None, help="System prompt (default from env)")
    parser.add_argument("--model", default=None, help="Model name (default from env)")
    parser.add_argument("--max-turns", type=int, default=None, help="Turn guardrail")
    parser.add_argument("--timeout", type=float, default=None, help="Deadline for the run, seconds")
    parser.add_argument("--verbose", action="store_true", help="Log the agent trace at INFO")
    parser.add_argument(
        "--show-messages", action="store_true", help="Print the full transcript as JSON"
    )
    parser.add_argument(
        "--log-level",
        choices=["debug", "info", "warning", "error", "critical"],
        type=str.lower,
        default=settings.LOG_LEVEL,
        help="Logging level (default from env: %(default)s)",
    )
    return parser


async def run_prompt(args: argparse.Namespace) -> int:
    """Run one prompt and print the answer; return the process exit code."""
    try:
        options = settings.agent_options(
            model=args.model,
            system=args.system,
            max_turns=args.max_turns,
            verbose=args.verbose or None,
            tools=[echo_tool],
        )
        agent = Agent(options)
        result = await agent.run(
            args.prompt, return_messages=args.show_messages, timeout=args.timeout
        )
    except AgentError as exc:
        logger.debug("Run failed", exc_info=True)
        colored_print(f"Error: {exc}", AnsiColors.RED, file=sys.stderr)
        return 1

    if args.show_messages and result.messages is not None:
        colored_print(json.dumps(result.messages, indent=2, default=str), AnsiColors.BLUE)
    colored_print(f"Final: {result.text}", AnsiColors.YELLOW)
    return 0


# ---------------------------------------------------------------------------
# Main
# ---------------------------------------------------------------------------
def main(argv: list[str] | None = None) -> int:
    """
    Main entry point for the minimal-agent application.

    This function parses the command line, initializes logging, and either runs one prompt or
    starts the API server.
    """
    if argv is None:
        argv = sys.argv[1:]

    args = build_parser().parse_args(argv)

    # Override log level setting with command-line argument
    settings.LOG_LEVEL = args.log_level
    _init_logging(settings.LOG_LEVEL)

    logger.info("Starting minimal-agent [%s mode]", args.mode)
    logger.debug("Settings: %s", settings.model_dump(exclude={"OPENAI_API_KEY"}))

    if args.mode == "api":
        # Lazy import to avoid web dependencies if not needed
        from minimal_agent.api.app import run_api  # pylint: disable=import-outside-toplevel

        run_api(host="0.0.0.0", port=settings.API_PORT, reload=settings.DEBUG)
        return 0

    return asyncio.run(run_prompt(args))


if __name__ == "__main__":
    sys.exit(main())
