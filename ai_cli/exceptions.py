"""
Error types shared by the CLI layers.

Every failure that aborts an invocation derives from AICliError so the
entry point can report it uniformly and exit non-zero.
"""

from __future__ import annotations


class AICliError(Exception):
    """Base error for anything that aborts the whole invocation."""


class ConfigError(AICliError):
    """Bad configuration file, bad TOML, or an out-of-range value."""

    def __init__(self, message: str, source: str | None = None):
        super().__init__(message)
        self.source = source


class InputError(AICliError):
    """An input file or standard input could not be read."""

    def __init__(self, message: str, path: str | None = None):
        super().__init__(message)
        self.path = path
