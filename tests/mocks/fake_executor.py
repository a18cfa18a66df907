"""Executor double for kindsim tests.

FakeExecutor records every command line and answers through a handler:

    def handler(argv: list[str], input: bytes | None) -> bytes | None

The handler returns the command's stdout or raises ExternalCommandFailed
to simulate a failing command.
"""

from __future__ import annotations

from collections.abc import AsyncIterator, Callable, Mapping
from pathlib import Path
from typing import IO, Any

from kindsim.errors import ExternalCommandFailed
from kindsim.runtime import dryrun
from kindsim.runtime.executor import Executor, _Sink

Handler = Callable[[list[str], bytes | None], bytes | None]


def command_failed(argv: list[str], stderr: str = "", exit_code: int = 1) -> ExternalCommandFailed:
    return ExternalCommandFailed(command=list(argv), exit_code=exit_code, stderr_tail=stderr)


class FakeExecutor(Executor):
    """Executor that records commands instead of running them."""

    def __init__(self, handler: Handler | None = None, dry_run: bool = False):
        super().__init__(dry_run=dry_run)
        self.handler = handler
        self.calls: list[list[str]] = []
        self.envs: list[dict[str, str]] = []
        self.inputs: list[bytes | None] = []

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
        argv = [command, *args]
        self.calls.append(argv)
        self.envs.append(dict(env or {}))
        self.inputs.append(input)
        if self.dry_run:
            dryrun.print_message(dryrun.format_command(command, args, env))
            return
        out = self.handler(argv, input) if self.handler else None
        if out and stdout is not None:
            sink = _Sink(stdout)
            sink.write(out)
            sink.close()

    async def stream(
        self,
        command: str,
        *args: str,
        env: Mapping[str, str] | None = None,
    ) -> AsyncIterator[bytes]:
        argv = [command, *args]
        self.calls.append(argv)
        self.envs.append(dict(env or {}))
        self.inputs.append(None)
        out = self.handler(argv, None) if self.handler else None
        if out:
            yield out

    def commands(self, binary: str) -> list[list[str]]:
        """Recorded calls of one binary."""
        return [call for call in self.calls if call[0] == binary]
