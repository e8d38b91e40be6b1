"""
Console Prompt

Architectural Intent:
- Implements ConfirmationPort on the controlling terminal
- Only one service may own the terminal at a time; prompts from
  concurrently running services queue behind an asyncio.Lock, and the
  detail lines of a question are written while that lock is held
"""

import asyncio
import logging
from typing import Callable, Sequence

logger = logging.getLogger(__name__)

_YES = ("y", "yes")


def _print_line(line: str) -> None:
    print(line, flush=True)


class ConsolePrompt:
    def __init__(
        self,
        reader: Callable[[str], str] = input,
        writer: Callable[[str], None] = _print_line,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._lock = asyncio.Lock()

    async def confirm(
        self, question: str, default: bool = False, details: Sequence[str] = ()
    ) -> bool:
        suffix = "[Y/n]" if default else "[y/N]"
        async with self._lock:
            for line in details:
                self._writer(line)
            try:
                answer = await asyncio.to_thread(self._reader, f"{question} {suffix} ")
            except EOFError:
                logger.info("No input available for %r; treating as no", question)
                return False
        answer = answer.strip().lower()
        if not answer:
            return default
        return answer in _YES
