"""Snapshot commands."""

from __future__ import annotations

from pathlib import Path

import click

from .common import get_context, open_cluster, run_async


@click.group()
def snapshot():
    """Save and restore cluster resources."""


@snapshot.command()
@click.option("--path", required=True, type=click.Path(dir_okay=False, path_type=Path))
@click.option("--filter", "filters", multiple=True, help="Resource to save (repeatable)")
@click.pass_context
def save(ctx, path, filters):
    """Save resources to a YAML file."""
    cli_ctx = get_context(ctx)

    async def _save() -> None:
        await open_cluster(cli_ctx).snapshot_save(path, list(filters))

    run_async(_save())


@snapshot.command()
@click.option(
    "--path",
    required=True,
    type=click.Path(exists=True, dir_okay=False, path_type=Path),
)
@click.option("--filter", "filters", multiple=True, help="Resource to restore (repeatable)")
@click.pass_context
def restore(ctx, path, filters):
    """Create the resources of a YAML file in the cluster."""
    cli_ctx = get_context(ctx)

    async def _restore() -> None:
        await open_cluster(cli_ctx).snapshot_restore(path, list(filters))

    run_async(_restore())
