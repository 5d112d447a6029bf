"""
Main module for the ai-cli command.

Parses arguments, resolves configuration, aggregates input, and streams the
model's answer to standard output.
"""

from __future__ import annotations

import argparse
import asyncio
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

import httpx
import structlog

from .config import ConfigOverrides, EffectiveConfig, load_effective_config
from .exceptions import AICliError
from .input import aggregate_input
from .llm.client import ChatClient
from .llm.models import build_chat_request
from .logging_utils import (
    LogSettings,
    configure_logging,
    mask_secret,
    operation_context,
)
from .output import OutputSink
from .version import get_build_info

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_INTERRUPTED = 130


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="ai-cli",
        description="OpenAI Compatible API Client",
    )
    parser.add_argument(
        "-f", "--files",
        nargs="+",
        action="extend",
        default=[],
        type=Path,
        metavar="FILE",
        help="Input file(s) to process",
    )
    parser.add_argument("-p", "--prompt", help="Prompt to provide context")
    parser.add_argument("-m", "--model", help="Model to use")
    parser.add_argument("--base-url", help="Base URL for the API")
    parser.add_argument("--api-key", help="API Key (if needed)")
    parser.add_argument(
        "--temperature",
        type=float,
        metavar="FLOAT",
        help="LLM temperature between 0.0 (deterministic) and 2.0 (creative)",
    )
    parser.add_argument(
        "--timeout",
        type=float,
        metavar="SECS",
        help="Connection timeout in seconds until first chunk (default: 300)",
    )
    parser.add_argument(
        "--config",
        type=Path,
        metavar="PATH",
        help="Config file path (default: ~/.config/ai-cli/config.toml)",
    )
    parser.add_argument(
        "-v", "--verbose",
        action="count",
        default=0,
        help="Enable verbose logging (-v debug, -vv request/response details)",
    )
    parser.add_argument(
        "--version",
        action="store_true",
        help="Show version information",
    )
    return parser


def overrides_from_args(args: argparse.Namespace) -> ConfigOverrides:
    return ConfigOverrides(
        model=args.model,
        base_url=args.base_url,
        api_key=args.api_key,
        temperature=args.temperature,
        timeout_secs=args.timeout,
        prompt=args.prompt,
    )


async def stream_to_sink(
    config: EffectiveConfig,
    content: str,
    sink: OutputSink,
    *,
    log_settings: LogSettings | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Send one request and write every delta to the sink as it arrives."""
    log_settings = log_settings or LogSettings()
    request = build_chat_request(config, content)
    logger = log_settings.get_logger("main", model=config.model)

    async with ChatClient(
        config, log_settings=log_settings, http_transport=http_transport
    ) as client:
        async with operation_context(
            "stream_response",
            logger=logger,
            context={"endpoint": client.endpoint},
            # main() prints the error itself
            failure_level=logging.DEBUG,
        ):
            async for event in client.stream_chat(request):
                sink.write(event)
    sink.finish()


async def run(
    args: argparse.Namespace,
    *,
    log_settings: LogSettings | None = None,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    http_transport: httpx.AsyncBaseTransport | None = None,
) -> None:
    """Resolve config, read input, and stream the response."""
    config = load_effective_config(overrides_from_args(args), args.config)
    content = aggregate_input(args.files, config.prompt, stdin=stdin, stdout=stdout)
    await stream_to_sink(
        config,
        content,
        OutputSink(stdout),
        log_settings=log_settings,
        http_transport=http_transport,
    )


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    if args.version:
        sys.stdout.write(get_build_info().render())
        return EXIT_OK

    log_settings = configure_logging(args.verbose)
    logger = structlog.get_logger(__name__)
    logger.debug(
        "Command line arguments",
        args=vars(args) | {"api_key": mask_secret(args.api_key)},
    )

    try:
        asyncio.run(run(args, log_settings=log_settings))
    except AICliError as e:
        print(f"Error: {e}", file=sys.stderr)
        return EXIT_FAILURE
    except KeyboardInterrupt:
        print("\nInterrupted", file=sys.stderr)
        return EXIT_INTERRUPTED
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
