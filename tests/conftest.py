"""Shared test fixtures for kindsim tests."""

from __future__ import annotations

from typing import Any

import pytest

from kindsim.cluster import KindCluster
from kindsim.config import ClusterConfig, ClusterOptions, finalize_options
from kindsim.runtime.executor import Executor
from tests.mocks.fake_executor import FakeExecutor


@pytest.fixture
def fake_executor() -> FakeExecutor:
    return FakeExecutor()


@pytest.fixture(autouse=True)
def binaries_on_path(monkeypatch):
    """kind and kubectl resolve from PATH, so nothing is downloaded."""
    monkeypatch.setattr("kindsim.cluster.base.shutil.which", lambda name: f"/usr/bin/{name}")


@pytest.fixture(autouse=True)
def fixed_local_addresses(monkeypatch):
    monkeypatch.setattr(
        "kindsim.cluster.kind.local_addresses", lambda: ["127.0.0.1", "localhost"]
    )


@pytest.fixture
def make_cluster(tmp_path):
    """Factory building a KindCluster in a temporary working directory."""

    def factory(
        executor: Executor,
        runtime: str = "docker",
        name: str = "demo",
        **options: Any,
    ) -> KindCluster:
        cluster_options = ClusterOptions(
            runtime=runtime,
            cache_dir=str(tmp_path / "cache"),
            **options,
        )
        finalize_options(cluster_options)
        cluster = KindCluster(name, tmp_path / "work", runtime=runtime, executor=executor)
        cluster.set_config(ClusterConfig(options=cluster_options))
        return cluster

    return factory
