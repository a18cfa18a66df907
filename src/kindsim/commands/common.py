"""Shared helpers for CLI commands."""

from __future__ import annotations

import asyncio
import sys
from collections.abc import Coroutine
from dataclasses import dataclass
from pathlib import Path
from typing import Any, TypeVar

import click

from ..cluster import Cluster, KindCluster, new_cluster
from ..config import ClusterConfig
from ..errors import KindsimError
from ..shared.paths import cluster_workdir

T = TypeVar("T")


@dataclass
class CLIContext:
    """Global options shared by every command."""

    name: str
    workdir: Path | None = None
    config_path: Path | None = None
    dry_run: bool = False

    @property
    def cluster_workdir(self) -> Path:
        return self.workdir or cluster_workdir(self.name)


def get_context(ctx: click.Context) -> CLIContext:
    return ctx.find_object(CLIContext)


def open_cluster(cli_ctx: CLIContext, config: ClusterConfig | None = None) -> KindCluster:
    """Build the cluster object for the selected cluster.

    Args:
        cli_ctx: Global options.
        config: Configuration of a new cluster. When None the configuration
            saved in the working directory is used.
    """
    workdir = cli_ctx.cluster_workdir
    if config is None:
        config = Cluster(cli_ctx.name, workdir).config()
    cluster = new_cluster(config.options.runtime, cli_ctx.name, workdir, dry_run=cli_ctx.dry_run)
    cluster.set_config(config)
    return cluster


def run_async(coro: Coroutine[Any, Any, T]) -> T:
    """Run a coroutine, turning kindsim errors into a CLI failure."""
    try:
        return asyncio.run(coro)
    except (KindsimError, FileExistsError) as e:
        click.echo(f"Error: {e}", err=True)
        for note in getattr(e, "__notes__", []):
            click.echo(f"  {note}", err=True)
        sys.exit(1)
