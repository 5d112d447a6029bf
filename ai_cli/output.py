"""Write streamed deltas to standard output as they arrive."""

from __future__ import annotations

import sys
from typing import TextIO

from .llm.streaming.models import DeltaEvent


class OutputSink:
    """Unbuffered writer for DeltaEvents."""

    def __init__(self, stream: TextIO | None = None):
        self.stream = stream or sys.stdout
        self.written = 0

    def write(self, event: DeltaEvent) -> None:
        self.stream.write(event.text)
        self.stream.flush()
        self.written += len(event.text)

    def finish(self) -> None:
        """Terminate the response with a newline."""
        self.stream.write("\n")
        self.stream.flush()
