"""CLI main entry point."""

from pathlib import Path

import click

from . import __version__
from .commands.cluster import (
    create,
    delete,
    etcdctl,
    export_logs,
    logs,
    start,
    start_component,
    stop,
    stop_component,
)
from .commands.common import CLIContext
from .commands.get import get
from .commands.snapshot import snapshot
from .shared import configure_logging, ensure_dirs


@click.group()
@click.version_option(__version__, prog_name="kindsim")
@click.option("--name", default="kindsim", envvar="KINDSIM_NAME", help="Cluster name")
@click.option(
    "--workdir",
    type=click.Path(file_okay=False, path_type=Path),
    default=None,
    help="Working directory (default: ~/.kindsim/clusters/<name>)",
)
@click.option(
    "-c",
    "--config",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Config file path",
)
@click.option("-v", "--verbose", count=True, help="Increase verbosity")
@click.option("--json-logs", is_flag=True, help="Log as JSON")
@click.option(
    "--log-file",
    type=click.Path(dir_okay=False, path_type=Path),
    default=None,
    help="Write logs to a file instead of stderr",
)
@click.option("--dry-run", is_flag=True, help="Print actions instead of running them")
@click.pass_context
def cli(
    ctx: click.Context,
    name: str,
    workdir: Path | None,
    config: Path | None,
    verbose: int,
    json_logs: bool,
    log_file: Path | None,
    dry_run: bool,
) -> None:
    """Simulated Kubernetes clusters on kind."""
    configure_logging(
        level="debug" if verbose else "info",
        log_file=log_file,
        json_output=json_logs,
    )
    if not dry_run:
        ensure_dirs()
    ctx.obj = CLIContext(name=name, workdir=workdir, config_path=config, dry_run=dry_run)


for command in (
    create,
    delete,
    start,
    stop,
    start_component,
    stop_component,
    logs,
    export_logs,
    etcdctl,
    snapshot,
    get,
):
    cli.add_command(command)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
