"""
Output Aggregator

Architectural Intent:
- Multiplexes the output of concurrently running services onto one stream
- Every service writes through its own NodeOutput scope; lines from
  different services never interleave mid-line
- Status helpers (step/info/warning/success) replace the spinner-style UI
  with plain prefixed lines that survive CI logs

Design Decisions:
- A single threading.Lock guards the shared stream, because subprocess
  output and to_thread workers may write from outside the event loop
- Partial lines are buffered per scope and only emitted when complete, or
  on flush()
- Colour is applied to the label only, and never in plain-text mode
"""

from __future__ import annotations
import asyncio
import contextlib
import sys
import threading
from typing import Iterator, Optional, TextIO

_PALETTE = ("36", "35", "33", "32", "34", "96", "95", "93")
_YELLOW = "33"
_GREEN = "32"
_RED = "31"


class OutputAggregator:
    def __init__(self, stream: Optional[TextIO] = None, plain_text: bool = False) -> None:
        self._stream = stream or sys.stdout
        self.plain_text = plain_text
        self._lock = threading.Lock()
        self._scopes: dict[str, NodeOutput] = {}

    def scope(self, name: str) -> "NodeOutput":
        with self._lock:
            if name not in self._scopes:
                color = _PALETTE[len(self._scopes) % len(_PALETTE)]
                self._scopes[name] = NodeOutput(name, self, color)
            return self._scopes[name]

    def header(self, text: str) -> None:
        self.emit(self.paint(f"==> {text}", "1"))

    def emit(self, line: str) -> None:
        with self._lock:
            self._stream.write(line + "\n")
            self._stream.flush()

    def paint(self, text: str, color: str) -> str:
        if self.plain_text:
            return text
        return f"\033[{color}m{text}\033[0m"


class NodeOutput:
    """File-like, line-buffered output scope of one service."""

    def __init__(self, name: str, aggregator: OutputAggregator, color: str = "0") -> None:
        self.name = name
        self._aggregator = aggregator
        self._color = color
        self._buffer = ""
        self._buffer_lock = threading.Lock()

    def write(self, data: str) -> int:
        with self._buffer_lock:
            self._buffer += data
            *lines, self._buffer = self._buffer.split("\n")
        for line in lines:
            self._emit_line(line.rstrip("\r"))
        return len(data)

    def writelines(self, lines) -> None:
        for line in lines:
            self.write(line)

    def flush(self) -> None:
        with self._buffer_lock:
            pending, self._buffer = self._buffer, ""
        if pending:
            self._emit_line(pending.rstrip("\r"))

    def isatty(self) -> bool:
        return False

    def info(self, message: str) -> None:
        self._status(message)

    def warning(self, message: str) -> None:
        self._status(f"WARNING: {message}", _YELLOW)

    def success(self, message: str) -> None:
        self._status(message, _GREEN)

    @contextlib.contextmanager
    def step(self, title: str) -> Iterator[None]:
        """Prints the step title, then 'done' or the reason it failed."""
        self._status(title)
        try:
            yield
        except asyncio.CancelledError:
            self.flush()
            self._status(f"{title} cancelled", _YELLOW)
            raise
        except Exception as e:
            self.flush()
            reason = str(e).splitlines()[0] if str(e) else type(e).__name__
            self._status(f"{title} failed: {reason}", _RED)
            raise
        self.flush()
        self._status(f"{title} done", _GREEN)

    def _label(self, separator: str) -> str:
        return self._aggregator.paint(f"{self.name}{separator}", self._color)

    def _emit_line(self, line: str) -> None:
        self._aggregator.emit(f"{self._label(' |')} {line}")

    def _status(self, message: str, color: Optional[str] = None) -> None:
        for line in message.splitlines() or [""]:
            text = self._aggregator.paint(line, color) if color else line
            self._aggregator.emit(f"{self._label(':')} {text}")
