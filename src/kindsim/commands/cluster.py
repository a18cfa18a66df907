"""Cluster lifecycle commands."""

from __future__ import annotations

import shutil
import sys
from pathlib import Path

import click

from ..config import finalize_options, load_config
from ..runtime import dryrun
from .common import get_context, open_cluster, run_async


@click.command()
@click.option("--runtime", type=click.Choice(["docker", "podman", "nerdctl"]), default=None)
@click.option("--kube-version", default=None, help="Kubernetes version (e.g. v1.29.2)")
@click.option("--kwok-controller-port", type=int, default=None)
@click.option("--dashboard-port", type=int, default=None, help="Enable the dashboard on this port")
@click.option("--prometheus-port", type=int, default=None, help="Enable prometheus on this port")
@click.option("--jaeger-port", type=int, default=None, help="Enable jaeger on this port")
@click.option("--quiet-pull", is_flag=True, default=None, help="Pull images quietly")
@click.option("--wait", type=float, default=0, help="Seconds to wait for the cluster to be ready")
@click.pass_context
def create(
    ctx,
    runtime,
    kube_version,
    kwok_controller_port,
    dashboard_port,
    prometheus_port,
    jaeger_port,
    quiet_pull,
    wait,
):
    """Create a cluster.

    Options given here override the config file and KINDSIM_* variables.

    Examples:

        # Create a cluster with prometheus on port 9090
        kindsim --name demo create --prometheus-port 9090 --wait 120
    """
    cli_ctx = get_context(ctx)
    overrides = {
        "runtime": runtime,
        "kube_version": kube_version,
        "kwok_controller_port": kwok_controller_port,
        "dashboard_port": dashboard_port,
        "prometheus_port": prometheus_port,
        "jaeger_port": jaeger_port,
        "quiet_pull": quiet_pull,
    }

    async def _create() -> None:
        config = load_config(cli_ctx.config_path)
        if kube_version is not None:
            # Derived from the version, recompute them
            config.options.kind_node_image = ""
            config.options.kubectl_binary = ""
        for key, value in overrides.items():
            if value is not None:
                setattr(config.options, key, value)
        finalize_options(config.options)

        cluster = open_cluster(cli_ctx, config)
        await cluster.install()
        await cluster.up(wait=wait or None)
        if wait > 0:
            await cluster.wait_ready(wait)
        click.echo(f"✓ Cluster {cli_ctx.name!r} created.", err=True)

    run_async(_create())


@click.command()
@click.option("--keep-workdir", is_flag=True, help="Keep the cluster working directory")
@click.pass_context
def delete(ctx, keep_workdir):
    """Delete a cluster."""
    cli_ctx = get_context(ctx)

    async def _delete() -> None:
        cluster = open_cluster(cli_ctx)
        await cluster.down()
        if keep_workdir:
            return
        if cluster.dry_run:
            dryrun.print_message(f"rm -rf {cluster.workdir}")
        else:
            shutil.rmtree(cluster.workdir, ignore_errors=True)
        click.echo(f"✓ Cluster {cli_ctx.name!r} deleted.", err=True)

    run_async(_delete())


@click.command()
@click.pass_context
def start(ctx):
    """Start a stopped cluster."""
    cli_ctx = get_context(ctx)

    async def _start() -> None:
        await open_cluster(cli_ctx).start()

    run_async(_start())


@click.command()
@click.pass_context
def stop(ctx):
    """Stop a running cluster."""
    cli_ctx = get_context(ctx)

    async def _stop() -> None:
        await open_cluster(cli_ctx).stop()

    run_async(_stop())


@click.command("start-component")
@click.argument("component")
@click.pass_context
def start_component(ctx, component):
    """Start a component of the cluster."""
    cli_ctx = get_context(ctx)

    async def _start_component() -> None:
        await open_cluster(cli_ctx).start_component(component)

    run_async(_start_component())


@click.command("stop-component")
@click.argument("component")
@click.pass_context
def stop_component(ctx, component):
    """Stop a component of the cluster."""
    cli_ctx = get_context(ctx)

    async def _stop_component() -> None:
        await open_cluster(cli_ctx).stop_component(component)

    run_async(_stop_component())


@click.command()
@click.argument("component")
@click.option("--follow", "-f", is_flag=True, help="Follow log output")
@click.pass_context
def logs(ctx, component, follow):
    """Show the logs of a component."""
    cli_ctx = get_context(ctx)

    async def _logs() -> None:
        cluster = open_cluster(cli_ctx)
        await cluster.logs(component, sys.stdout.buffer, follow=follow)

    run_async(_logs())


@click.command("export-logs")
@click.option(
    "--path",
    "path",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Directory to export into (default: ./<name>-logs)",
)
@click.pass_context
def export_logs(ctx, path):
    """Export configuration, version info and component logs."""
    cli_ctx = get_context(ctx)
    target = path or Path.cwd() / f"{cli_ctx.name}-logs"

    async def _export() -> None:
        await open_cluster(cli_ctx).collect_logs(target)
        click.echo(f"✓ Logs exported to {target}", err=True)

    run_async(_export())


@click.command(context_settings={"ignore_unknown_options": True})
@click.argument("args", nargs=-1, type=click.UNPROCESSED)
@click.pass_context
def etcdctl(ctx, args):
    """Run etcdctl inside the cluster's etcd."""
    cli_ctx = get_context(ctx)

    async def _etcdctl() -> None:
        cluster = open_cluster(cli_ctx)
        await cluster.etcdctl_in_cluster(*args, stdout=sys.stdout.buffer, stderr=sys.stderr.buffer)

    run_async(_etcdctl())
