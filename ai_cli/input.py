"""Collect the user message from files, standard input, and a prompt."""

from __future__ import annotations

import sys
from collections.abc import Sequence
from pathlib import Path
from typing import TextIO

import structlog

from .exceptions import InputError

INTERACTIVE_BANNER = (
    "Enter the data you'd like the AI to work on (Ctrl+D to submit):\n"
)

logger = structlog.get_logger(__name__)


def read_files(paths: Sequence[str | Path]) -> str:
    """Concatenate file contents in order, each followed by a newline."""
    parts: list[str] = []
    for i, path in enumerate(paths, start=1):
        logger.debug("Reading file", index=i, path=str(path))
        try:
            # newline="" keeps CRLF files byte-for-byte
            with open(path, encoding="utf-8", newline="") as f:
                content = f.read()
        except UnicodeDecodeError as e:
            raise InputError(f"File is not valid UTF-8 text: {path}", path=str(path)) from e
        except OSError as e:
            raise InputError(f"Failed to read file {path}: {e}", path=str(path)) from e
        parts.append(content)
        parts.append("\n")
    return "".join(parts)


def read_stdin(stdin: TextIO, prompt_out: TextIO | None = None) -> str:
    """Read standard input to end, printing a banner first when interactive."""
    if prompt_out is not None:
        prompt_out.write(INTERACTIVE_BANNER)
        prompt_out.flush()
    try:
        return stdin.read()
    except (OSError, UnicodeDecodeError) as e:
        raise InputError(f"Failed to read from stdin: {e}") from e


def aggregate_input(
    files: Sequence[str | Path] = (),
    prompt: str | None = None,
    *,
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
    interactive: bool | None = None,
) -> str:
    """
    Build the single user message sent to the model.

    Named files win over standard input; standard input is never read when
    files are given. A prompt, if any, is prepended as "Prompt: <text>\\n".

    Args:
        files: Paths to read, in order
        prompt: Optional instruction placed before the body
        stdin: Input stream, sys.stdin by default
        stdout: Where the interactive banner goes, sys.stdout by default
        interactive: Override terminal detection for stdin

    Returns:
        The aggregated message text

    Raises:
        InputError: If a file or standard input cannot be read as text
    """
    if files:
        logger.info("Reading input from files", count=len(files))
        body = read_files(files)
    else:
        stdin = stdin if stdin is not None else sys.stdin
        if interactive is None:
            interactive = stdin.isatty()
        if interactive:
            logger.info("Reading input from terminal (interactive mode)")
            body = read_stdin(stdin, stdout if stdout is not None else sys.stdout)
        else:
            logger.info("Reading input from stdin (pipe mode)")
            body = read_stdin(stdin)

    if prompt is not None:
        logger.debug("Adding prompt to input", prompt=prompt)
        body = f"Prompt: {prompt}\n{body}"

    logger.info("Input aggregated", length=len(body))
    return body
