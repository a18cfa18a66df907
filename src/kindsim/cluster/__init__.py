"""Cluster lifecycle, images, snapshots and diagnostics."""

from __future__ import annotations

from collections.abc import Callable
from pathlib import Path

from ..errors import ConfigurationInvalid
from ..runtime.executor import Executor
from .base import Cluster
from .kind import DEFAULT_CRITICAL_COMPONENTS, CriticalComponents, KindCluster

ClusterFactory = Callable[..., KindCluster]


def _kind_factory(runtime: str) -> ClusterFactory:
    def factory(
        name: str,
        workdir: str | Path,
        executor: Executor | None = None,
        dry_run: bool = False,
    ) -> KindCluster:
        return KindCluster(name, workdir, runtime=runtime, executor=executor, dry_run=dry_run)

    return factory


# Cluster implementations by container runtime
RUNTIMES: dict[str, ClusterFactory] = {
    "docker": _kind_factory("docker"),
    "podman": _kind_factory("podman"),
    "nerdctl": _kind_factory("nerdctl"),
}


def new_cluster(
    runtime: str,
    name: str,
    workdir: str | Path,
    executor: Executor | None = None,
    dry_run: bool = False,
) -> KindCluster:
    """Create a cluster for a runtime.

    Raises:
        ConfigurationInvalid: The runtime is unknown.
    """
    try:
        factory = RUNTIMES[runtime]
    except KeyError:
        raise ConfigurationInvalid(f"unsupported runtime {runtime!r}") from None
    return factory(name, workdir, executor=executor, dry_run=dry_run)


__all__ = [
    "DEFAULT_CRITICAL_COMPONENTS",
    "RUNTIMES",
    "Cluster",
    "CriticalComponents",
    "KindCluster",
    "new_cluster",
]
