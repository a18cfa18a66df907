"""Diagnostics collection.

Gathers the resolved configuration, runtime version information and
per-component logs of a running cluster into a directory. A component
whose logs cannot be fetched is logged and skipped; collection never
fails because of one component.
"""

from __future__ import annotations

from collections.abc import Iterator
from contextlib import contextmanager
from pathlib import Path
from typing import IO, TYPE_CHECKING, Any

from ..errors import KindsimError
from ..runtime import dryrun
from ..shared.logging import get_logger
from ..shared.paths import CONFIG_NAME

if TYPE_CHECKING:
    from .kind import KindCluster

logger = get_logger(__name__)

COMPONENTS_DIR_NAME = "components"


@contextmanager
def _open_log(cluster: KindCluster, path: Path) -> Iterator[IO[Any]]:
    if cluster.dry_run:
        with dryrun.CatToFile(path) as f:
            yield f
    else:
        with open(path, "wb") as f:
            yield f


async def _remove_quietly(cluster: KindCluster, path: Path) -> None:
    try:
        await cluster.remove(path)
    except OSError as e:
        logger.error("Failed to remove file", path=str(path), err=str(e))


async def collect_logs(cluster: KindCluster, dir: Path) -> None:
    """Export diagnostics of ``cluster`` into ``dir``.

    Raises:
        FileExistsError: ``dir`` already holds exported diagnostics.
    """
    config_path = dir / CONFIG_NAME
    if config_path.exists():
        raise FileExistsError(f"{config_path} already exists")

    await cluster.mkdir(dir)
    logger.info("Exporting logs", dir=str(dir))

    await cluster.copy_file(cluster.workdir_path(CONFIG_NAME), config_path)

    config = cluster.config()
    components_dir = dir / COMPONENTS_DIR_NAME
    await cluster.mkdir(components_dir)

    await cluster.write_version_info(dir / f"{config.options.runtime}-info.txt")

    for component in config.components:
        log_path = components_dir / f"{component.name}.log"
        try:
            with _open_log(cluster, log_path) as f:
                await cluster.logs(component.name, f)
        except (KindsimError, OSError) as e:
            logger.error("Failed to get log", component=component.name, err=str(e))
            await _remove_quietly(cluster, log_path)

    if config.options.kube_audit_policy:
        audit_path = components_dir / "audit.log"
        try:
            with _open_log(cluster, audit_path) as f:
                await cluster.audit_logs(f)
        except (KindsimError, OSError) as e:
            logger.error("Failed to get audit log", err=str(e))
            await _remove_quietly(cluster, audit_path)
