"""Inventory commands."""

from __future__ import annotations

import click

from .common import get_context, open_cluster, run_async


@click.group()
def get():
    """Show what a cluster is made of."""


@get.command()
@click.pass_context
def images(ctx):
    """List the images the cluster uses."""
    cli_ctx = get_context(ctx)

    async def _images() -> list[str]:
        return await open_cluster(cli_ctx).list_images()

    for image in run_async(_images()):
        click.echo(image)


@get.command()
@click.pass_context
def binaries(ctx):
    """List the binaries the cluster uses."""
    cli_ctx = get_context(ctx)

    async def _binaries() -> list[str]:
        return await open_cluster(cli_ctx).list_binaries()

    for binary in run_async(_binaries()):
        click.echo(binary)
