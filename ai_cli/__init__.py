"""
Command-line client for OpenAI-compatible chat-completion endpoints.

This package streams a model's answer to the terminal as it is generated:
- TOML configuration with CLI overrides
- Input from files, piped stdin, or an interactive terminal
- Incremental SSE decoding with a first-chunk timeout
"""

from __future__ import annotations

__version__ = "0.1.0"

__all__ = ["__version__"]
