"""Process executor.

Runs external commands (the container runtime, kind, kubectl, openssl)
as asyncio subprocesses. Cancelling the awaiting task kills the child
process before the cancellation propagates, so no process outlives the
operation that started it.
"""

from __future__ import annotations

import asyncio
import codecs
import contextlib
import io
import os
from collections.abc import AsyncIterator, Mapping
from pathlib import Path
from typing import IO, Any

from ..errors import STDERR_TAIL_BYTES, ExternalCommandFailed
from ..shared.logging import get_logger
from . import dryrun

logger = get_logger(__name__)

_CHUNK_SIZE = 64 * 1024


class _Sink:
    """Forward one output stream of a child to a writer.

    Text writers get UTF-8 decoded incrementally, so a character split
    across two reads is not replaced.
    """

    def __init__(self, writer: IO[Any]):
        self.writer = writer
        self._decoder = None
        if isinstance(writer, io.TextIOBase):
            self._decoder = codecs.getincrementaldecoder("utf-8")(errors="replace")

    def write(self, chunk: bytes) -> None:
        if self._decoder is None:
            self.writer.write(chunk)
        else:
            text = self._decoder.decode(chunk)
            if not text:
                return
            self.writer.write(text)
        self.writer.flush()

    def close(self) -> None:
        if self._decoder is None:
            return
        text = self._decoder.decode(b"", final=True)
        if text:
            self.writer.write(text)
            self.writer.flush()


async def _discard(reader: asyncio.StreamReader | None) -> None:
    if reader is None:
        return
    while await reader.read(_CHUNK_SIZE):
        pass


async def _reap(proc: asyncio.subprocess.Process) -> None:
    """Kill a child and wait for it.

    Unread pipe data is discarded so the pipes reach EOF and the wait can
    finish.
    """
    with contextlib.suppress(ProcessLookupError):
        proc.kill()
    await asyncio.gather(_discard(proc.stdout), _discard(proc.stderr))
    await proc.wait()


class Executor:
    """Run external commands with env injection and output redirection."""

    def __init__(self, dry_run: bool = False):
        """Initialize executor.

        Args:
            dry_run: Print commands instead of running them.
        """
        self.dry_run = dry_run

    async def run(
        self,
        command: str,
        *args: str,
        env: Mapping[str, str] | None = None,
        stdout: IO[Any] | None = None,
        stderr: IO[Any] | None = None,
        combined: bool = False,
        cwd: str | Path | None = None,
        input: bytes | None = None,
    ) -> None:
        """Run a command to completion.

        Args:
            command: Executable name or path.
            *args: Command arguments.
            env: Variables merged over the inherited environment.
            stdout: Writer receiving stdout. Discarded when None.
            stderr: Writer receiving stderr. Only the tail is kept when None.
            combined: Send stderr to the stdout writer as well.
            cwd: Working directory override.
            input: Bytes fed to the child's stdin.

        Raises:
            ExternalCommandFailed: The process could not start or exited nonzero.
        """
        argv = [command, *args]
        if self.dry_run:
            dryrun.print_message(dryrun.format_command(command, args, env))
            return

        logger.debug("Running command", command=dryrun.format_command(command, args, env))
        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.PIPE if input is not None else asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._merge_env(env),
                cwd=str(cwd) if cwd else None,
            )
        except OSError as e:
            raise ExternalCommandFailed(command=argv, exit_code=None, stderr_tail=str(e)) from e

        tail = bytearray()
        err_writer = stdout if combined else stderr
        out_sink = _Sink(stdout) if stdout is not None else None
        err_sink = _Sink(err_writer) if err_writer is not None else None

        async def pump_stdout() -> None:
            assert proc.stdout is not None
            while chunk := await proc.stdout.read(_CHUNK_SIZE):
                if out_sink is not None:
                    out_sink.write(chunk)
            if out_sink is not None:
                out_sink.close()

        async def pump_stderr() -> None:
            assert proc.stderr is not None
            while chunk := await proc.stderr.read(_CHUNK_SIZE):
                tail.extend(chunk)
                del tail[:-STDERR_TAIL_BYTES]
                if err_sink is not None:
                    err_sink.write(chunk)
            if err_sink is not None:
                err_sink.close()

        async def feed_stdin() -> None:
            if input is None or proc.stdin is None:
                return
            try:
                proc.stdin.write(input)
                await proc.stdin.drain()
            except (BrokenPipeError, ConnectionResetError):
                pass
            finally:
                proc.stdin.close()

        tasks = [asyncio.create_task(c) for c in (feed_stdin(), pump_stdout(), pump_stderr())]
        try:
            await asyncio.gather(*tasks)
            returncode = await proc.wait()
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            if proc.returncode is None:
                await _reap(proc)

        if returncode != 0:
            raise ExternalCommandFailed(
                command=argv,
                exit_code=returncode,
                stderr_tail=tail.decode(errors="replace").strip(),
            )

    async def output(self, command: str, *args: str, **kwargs: Any) -> bytes:
        """Run a command and return its captured stdout."""
        buf = io.BytesIO()
        await self.run(command, *args, stdout=buf, **kwargs)
        return buf.getvalue()

    async def stream(
        self,
        command: str,
        *args: str,
        env: Mapping[str, str] | None = None,
    ) -> AsyncIterator[bytes]:
        """Yield stdout chunks of a long-running command.

        The child is killed when the consumer stops iterating.
        """
        argv = [command, *args]
        if self.dry_run:
            dryrun.print_message(dryrun.format_command(command, args, env))
            return

        try:
            proc = await asyncio.create_subprocess_exec(
                *argv,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                env=self._merge_env(env),
            )
        except OSError as e:
            raise ExternalCommandFailed(command=argv, exit_code=None, stderr_tail=str(e)) from e

        assert proc.stdout is not None and proc.stderr is not None
        tail = bytearray()

        async def drain_stderr() -> None:
            assert proc.stderr is not None
            while chunk := await proc.stderr.read(_CHUNK_SIZE):
                tail.extend(chunk)
                del tail[:-STDERR_TAIL_BYTES]

        stderr_task = asyncio.create_task(drain_stderr())
        try:
            while chunk := await proc.stdout.read(_CHUNK_SIZE):
                yield chunk
            await stderr_task
            returncode = await proc.wait()
        finally:
            stderr_task.cancel()
            with contextlib.suppress(asyncio.CancelledError):
                await stderr_task
            if proc.returncode is None:
                await _reap(proc)

        if returncode != 0:
            raise ExternalCommandFailed(
                command=argv,
                exit_code=returncode,
                stderr_tail=tail.decode(errors="replace").strip(),
            )

    @staticmethod
    def _merge_env(env: Mapping[str, str] | None) -> dict[str, str] | None:
        if not env:
            return None
        merged = dict(os.environ)
        merged.update(env)
        return merged
