"""Dry-run output.

In dry-run mode state-changing operations print the equivalent shell
command instead of executing it.
"""

from __future__ import annotations

import shlex
from collections.abc import Mapping, Sequence

from rich.console import Console

console = Console(highlight=False, soft_wrap=True)


def format_command(
    command: str,
    args: Sequence[str],
    env: Mapping[str, str] | None = None,
) -> str:
    """Render a command line with its environment prefix, shell-quoted."""
    parts = [f"{key}={shlex.quote(value)}" for key, value in (env or {}).items()]
    parts.append(shlex.join([command, *args]))
    return " ".join(parts)


def print_message(message: str) -> None:
    """Print a dry-run message verbatim."""
    console.print(message, markup=False)


class CatToFile:
    """Writer standing in for a file that a dry run would redirect into."""

    def __init__(self, path):
        self.name = str(path)

    def write(self, data) -> int:
        return len(data)

    def flush(self) -> None:
        pass

    def close(self) -> None:
        pass

    def __enter__(self) -> CatToFile:
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()
