"""
Process Runner

Architectural Intent:
- Single place where external tools (docker, terraform, bash, ssh, the
  session plugin) are spawned
- Streams merged stdout/stderr to the service's output scope while keeping
  a copy for error reports
- Ties child lifetime to the awaiting task: cancelling the task terminates
  the child

Design Decisions:
- asyncio.create_subprocess_exec, never a shell string, unless the caller
  explicitly runs `bash -c`
- On CancelledError: SIGTERM, wait terminate_timeout, then SIGKILL, then
  re-raise
- Interactive children inherit the terminal; the parent ignores SIGINT while
  the child owns the TTY and forwards SIGTERM/SIGHUP to it
"""

from __future__ import annotations
import asyncio
import codecs
import logging
import os
import shlex
import signal
import threading
from typing import Mapping, Optional, Sequence

from convoy.domain.errors import SubprocessError
from convoy.domain.ports.output_port import OutputPort
from convoy.domain.ports.process_runner_port import ProcessResult

logger = logging.getLogger(__name__)

_READ_CHUNK = 4096
_FORWARDED_SIGNALS = tuple(
    sig for sig in (getattr(signal, "SIGTERM", None), getattr(signal, "SIGHUP", None)) if sig
)


class ProcessRunner:
    def __init__(self, terminate_timeout: float = 5.0) -> None:
        self.terminate_timeout = terminate_timeout

    async def run(
        self,
        args: Sequence[str],
        output: Optional[OutputPort] = None,
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
        stdin_data: Optional[bytes] = None,
        check: bool = True,
    ) -> ProcessResult:
        """Run a command to completion, streaming its merged output."""
        args = tuple(str(a) for a in args)
        logger.debug("Running %s (cwd=%s)", shlex.join(args), cwd or os.getcwd())

        proc = await asyncio.create_subprocess_exec(
            *args,
            stdin=asyncio.subprocess.PIPE if stdin_data is not None else asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.STDOUT,
            cwd=cwd,
            env=_merge_env(env),
        )

        decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")
        captured: list[str] = []
        try:
            if stdin_data is not None:
                proc.stdin.write(stdin_data)
                await proc.stdin.drain()
                proc.stdin.close()

            while True:
                chunk = await proc.stdout.read(_READ_CHUNK)
                if not chunk:
                    break
                self._forward(decoder.decode(chunk), captured, output)
            self._forward(decoder.decode(b"", final=True), captured, output)
            returncode = await proc.wait()
        except asyncio.CancelledError:
            await self._terminate(proc, args)
            raise

        if output is not None:
            output.flush()

        result = ProcessResult(args=args, returncode=returncode, output="".join(captured))
        if check and returncode != 0:
            raise SubprocessError(args, returncode, result.output)
        return result

    async def interactive(
        self,
        args: Sequence[str],
        *,
        cwd: Optional[str] = None,
        env: Optional[Mapping[str, str]] = None,
    ) -> int:
        """Run a child attached to the operator's terminal. Returns its exit status."""
        args = tuple(str(a) for a in args)
        logger.debug("Running interactively %s", shlex.join(args))

        proc = await asyncio.create_subprocess_exec(*args, cwd=cwd, env=_merge_env(env))
        with _terminal_owned_by(proc):
            try:
                return await proc.wait()
            except asyncio.CancelledError:
                await self._terminate(proc, args)
                raise

    @staticmethod
    def _forward(text: str, captured: list[str], output: Optional[OutputPort]) -> None:
        if not text:
            return
        captured.append(text)
        if output is not None:
            output.write(text)

    async def _terminate(self, proc: asyncio.subprocess.Process, args: Sequence[str]) -> None:
        if proc.returncode is not None:
            return
        logger.info("Terminating %s", args[0])
        try:
            proc.terminate()
        except ProcessLookupError:
            return
        try:
            await asyncio.wait_for(proc.wait(), self.terminate_timeout)
        except asyncio.TimeoutError:
            logger.warning("%s ignored SIGTERM for %.0fs; killing", args[0], self.terminate_timeout)
            try:
                proc.kill()
            except ProcessLookupError:
                return
            await proc.wait()


def _merge_env(env: Optional[Mapping[str, str]]) -> Optional[dict[str, str]]:
    if not env:
        return None
    merged = dict(os.environ)
    merged.update({k: str(v) for k, v in env.items()})
    return merged


class _terminal_owned_by:
    """Signal disposition while an interactive child owns the terminal."""

    def __init__(self, proc: asyncio.subprocess.Process) -> None:
        self._proc = proc
        self._previous: dict[int, object] = {}

    def __enter__(self) -> "_terminal_owned_by":
        if threading.current_thread() is not threading.main_thread():
            return self
        # The child receives SIGINT/SIGWINCH from the TTY directly.
        self._previous[signal.SIGINT] = signal.signal(signal.SIGINT, signal.SIG_IGN)
        for sig in _FORWARDED_SIGNALS:
            self._previous[sig] = signal.signal(sig, self._forward)
        return self

    def __exit__(self, *exc_info) -> None:
        for sig, handler in self._previous.items():
            signal.signal(sig, handler)
        self._previous.clear()

    def _forward(self, signum, frame) -> None:
        if self._proc.returncode is None:
            try:
                self._proc.send_signal(signum)
            except ProcessLookupError:
                pass
