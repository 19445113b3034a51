"""Process execution.

ProcessRunner is the single way easy-npm starts external commands (npm,
git, npx, osascript). Each call blocks until the command finishes; inside,
stdout and stderr are read concurrently with asyncio as lines arrive, so
output can be echoed live while still being captured for the caller.
"""

from __future__ import annotations

import asyncio
import contextlib
import os
import shutil
from collections.abc import Callable, Iterable, Mapping
from pathlib import Path

from .console import Log
from .errors import CommandFailedError, CommandNotFoundError
from .models import ProcessResult

LineHandler = Callable[[str], None]

# Bytes read per chunk; lines are split out of the chunks so any length works
_READ_SIZE = 1 << 16


class ProcessRunner:
    """Runs external commands one at a time.

    Args:
        log: Where echoed output and debug traces go.
    """

    def __init__(self, log: Log) -> None:
        self.log = log
        self._known_commands: set[str] = set()

    def ensure_commands(self, commands: Iterable[str]) -> None:
        """Check that each executable is on PATH.

        Raises:
            CommandNotFoundError: For the first missing command.
        """
        for command in commands:
            if command in self._known_commands:
                continue
            if shutil.which(command) is None:
                raise CommandNotFoundError(command)
            self._known_commands.add(command)

    def run(
        self,
        command: str,
        *args: str,
        cwd: Path | None = None,
        env: Mapping[str, str] | None = None,
        echo: bool = True,
        on_line: LineHandler | None = None,
        check: bool = True,
    ) -> ProcessResult:
        """Run a command and wait for it to finish.

        Args:
            command: Executable name or path.
            *args: Arguments to pass.
            cwd: Working directory; defaults to the current one.
            env: Extra environment variables layered over os.environ.
            echo: If True, output lines are written to the log as they arrive.
            on_line: Receives each stdout line instead of the log (implies echo).
            check: If True (default), raise on non-zero exit.

        Returns:
            ProcessResult with the exit code and the captured output.

        Raises:
            CommandNotFoundError: If the executable cannot be started.
            CommandFailedError: If ``check`` and the exit code is non-zero.
        """
        argv = [command, *args]
        where = f" (in {cwd})" if cwd else ""
        self.log.debug(f"$ {' '.join(argv)}{where}")

        out_handler = on_line or (self.log.info if echo else None)
        err_handler = self.log.info if echo or on_line else None
        try:
            result = asyncio.run(
                self._run(
                    argv, cwd=cwd, env=env, on_out=out_handler, on_err=err_handler
                )
            )
        except FileNotFoundError as exc:
            raise CommandNotFoundError(command) from exc

        if check and not result.ok:
            raise CommandFailedError(argv, result.returncode, result.stderr)
        return result

    def git(self, *args: str, cwd: Path | None = None, check: bool = True) -> str:
        """Run a git command quietly and return its stripped stdout."""
        return self.run("git", *args, cwd=cwd, echo=False, check=check).stdout.strip()

    async def _run(
        self,
        argv: list[str],
        *,
        cwd: Path | None,
        env: Mapping[str, str] | None,
        on_out: LineHandler | None,
        on_err: LineHandler | None,
    ) -> ProcessResult:
        proc = await asyncio.create_subprocess_exec(
            *argv,
            cwd=str(cwd) if cwd else None,
            env={**os.environ, **env} if env else None,
            stdin=asyncio.subprocess.DEVNULL,
            stdout=asyncio.subprocess.PIPE,
            stderr=asyncio.subprocess.PIPE,
        )
        assert proc.stdout is not None and proc.stderr is not None
        try:
            stdout, stderr = await asyncio.gather(
                _pump(proc.stdout, on_out), _pump(proc.stderr, on_err)
            )
        except BaseException:
            if proc.returncode is None:
                with contextlib.suppress(ProcessLookupError):
                    proc.kill()
            await proc.wait()
            raise
        returncode = await proc.wait()
        return ProcessResult(
            argv=argv, returncode=returncode, stdout=stdout, stderr=stderr
        )


async def _pump(stream: asyncio.StreamReader, handler: LineHandler | None) -> str:
    """Read a stream to EOF, handing each line to ``handler``.

    Reads fixed-size chunks rather than ``readline()`` so a single line
    longer than the stream buffer (minified bundles, for one) is not an error.
    """
    chunks: list[str] = []
    pending = bytearray()

    def emit(raw: bytes) -> None:
        line = raw.decode("utf-8", errors="replace")
        chunks.append(line)
        if handler is not None:
            handler(line.rstrip("\r\n"))

    while True:
        block = await stream.read(_READ_SIZE)
        if not block:
            break
        pending += block
        end = pending.rfind(b"\n")
        if end < 0:
            continue
        for raw in bytes(pending[:end]).split(b"\n"):
            emit(raw + b"\n")
        del pending[: end + 1]

    if pending:
        emit(bytes(pending))
    return "".join(chunks)
