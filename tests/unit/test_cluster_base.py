"""Unit tests for runtime-independent cluster helpers."""

from __future__ import annotations

import httpx
import pytest

from kindsim.cluster import KindCluster, new_cluster
from kindsim.cluster.pki import _san_entry, generate_pki
from kindsim.errors import ConfigurationInvalid, DownloadFailed
from kindsim.runtime.executor import Executor
from tests.mocks.fake_executor import FakeExecutor

KUBECTL_URL = "https://dl.k8s.io/release/v1.29.2/bin/linux/amd64/kubectl"


@pytest.fixture
def not_on_path(monkeypatch):
    monkeypatch.setattr("kindsim.cluster.base.shutil.which", lambda name: None)


@pytest.fixture
def mock_download(monkeypatch):
    """Serve downloads from a handler instead of the network."""
    requests: list[httpx.Request] = []
    responses = {"status": 200, "content": b"#!/bin/sh\n"}

    def handler(request: httpx.Request) -> httpx.Response:
        requests.append(request)
        return httpx.Response(responses["status"], content=responses["content"])

    real_client = httpx.AsyncClient
    monkeypatch.setattr(
        "kindsim.cluster.base.httpx.AsyncClient",
        lambda **kwargs: real_client(transport=httpx.MockTransport(handler), **kwargs),
    )
    return requests, responses


class TestConfig:
    """Tests for the persisted configuration."""

    def test_missing_config(self, tmp_path):
        """Test a cluster without configuration says so."""
        cluster = KindCluster("demo", tmp_path / "work", executor=FakeExecutor())
        with pytest.raises(ConfigurationInvalid, match="no configuration"):
            cluster.config()

    @pytest.mark.asyncio
    async def test_saved_config_is_read_back(self, make_cluster, fake_executor, tmp_path):
        """Test a new cluster object picks up the saved configuration."""
        cluster = make_cluster(fake_executor, prometheus_port=9090)
        await cluster.save()
        reopened = KindCluster("demo", cluster.workdir, executor=fake_executor)
        assert reopened.config().options.prometheus_port == 9090

    def test_unknown_runtime(self, tmp_path):
        """Test an unknown runtime has no cluster implementation."""
        with pytest.raises(ConfigurationInvalid):
            new_cluster("lxc", "demo", tmp_path)

    def test_runtime_selects_cluster(self, tmp_path):
        """Test each runtime gets a kind cluster driven by it."""
        cluster = new_cluster("nerdctl", "demo", tmp_path)
        assert isinstance(cluster, KindCluster)
        assert cluster.runtime == "nerdctl"


class TestDryRunFlag:
    """Tests for agreement between the cluster and executor dry-run flags."""

    def test_dry_run_with_running_executor_rejected(self, tmp_path):
        """Test a dry-run cluster refuses an executor that runs commands."""
        with pytest.raises(ValueError, match="dry_run"):
            KindCluster("demo", tmp_path, executor=Executor(), dry_run=True)

    def test_dry_run_executor_marks_cluster(self, tmp_path):
        """Test a dry-run executor makes the cluster dry-run."""
        cluster = KindCluster("demo", tmp_path, executor=Executor(dry_run=True))
        assert cluster.dry_run

    def test_default_executor_follows_flag(self, tmp_path):
        """Test the executor created for a dry-run cluster does not run commands."""
        cluster = KindCluster("demo", tmp_path, dry_run=True)
        assert cluster.executor.dry_run


class TestBinaries:
    """Tests for ensure_binary."""

    @pytest.mark.asyncio
    async def test_binary_on_path(self, make_cluster, fake_executor):
        """Test a binary on PATH is used as is."""
        cluster = make_cluster(fake_executor)
        assert await cluster.ensure_binary("kubectl", KUBECTL_URL) == "kubectl"

    @pytest.mark.asyncio
    async def test_download(self, make_cluster, fake_executor, not_on_path, mock_download, tmp_path):
        """Test a missing binary is downloaded, cached and made executable."""
        requests, _ = mock_download
        cluster = make_cluster(fake_executor)

        path = await cluster.ensure_binary("kubectl", KUBECTL_URL)

        assert path == str(cluster.bin_path("kubectl"))
        assert cluster.bin_path("kubectl").read_bytes() == b"#!/bin/sh\n"
        assert cluster.bin_path("kubectl").stat().st_mode & 0o777 == 0o750
        cached = tmp_path / "cache" / "dl.k8s.io" / "release" / "v1.29.2" / "bin" / "linux"
        assert (cached / "amd64" / "kubectl").is_file()
        assert [str(r.url) for r in requests] == [KUBECTL_URL]

        # Resolved once per cluster
        await cluster.ensure_binary("kubectl", KUBECTL_URL)
        assert len(requests) == 1

    @pytest.mark.asyncio
    async def test_download_uses_cache(
        self, make_cluster, fake_executor, not_on_path, mock_download, tmp_path
    ):
        """Test a second cluster reuses the cached download."""
        requests, _ = mock_download
        await make_cluster(fake_executor, name="a").ensure_binary("kubectl", KUBECTL_URL)
        other = KindCluster("b", tmp_path / "other", executor=fake_executor)
        other.set_config(make_cluster(fake_executor).config())
        await other.ensure_binary("kubectl", KUBECTL_URL)
        assert len(requests) == 1
        assert other.bin_path("kubectl").is_file()

    @pytest.mark.asyncio
    async def test_download_failure(self, make_cluster, fake_executor, not_on_path, mock_download):
        """Test an HTTP error is a DownloadFailed and leaves no partial file."""
        _, responses = mock_download
        responses["status"] = 404
        cluster = make_cluster(fake_executor)
        with pytest.raises(DownloadFailed) as exc_info:
            await cluster.ensure_binary("kubectl", KUBECTL_URL)
        assert exc_info.value.url == KUBECTL_URL
        assert not cluster.bin_path("kubectl").exists()
        cache_dir = cluster._cache_path(KUBECTL_URL).parent
        assert not list(cache_dir.glob("*.part"))

    @pytest.mark.asyncio
    async def test_dry_run(self, make_cluster, not_on_path, capsys):
        """Test dry-run prints the download."""
        cluster = make_cluster(FakeExecutor(dry_run=True))
        path = await cluster.ensure_binary("kubectl", KUBECTL_URL)
        assert f"wget -O {path} {KUBECTL_URL}" in capsys.readouterr().out
        assert not cluster.bin_path("kubectl").exists()


class TestImageVersion:
    """Tests for parse_version_from_image."""

    @pytest.mark.asyncio
    async def test_from_tag(self, make_cluster, fake_executor):
        """Test a version tag is used without running the image."""
        cluster = make_cluster(fake_executor)
        version = await cluster.parse_version_from_image("docker", "registry.k8s.io/kwok/kwok:v0.5.1")
        assert version == "0.5.1"
        assert fake_executor.calls == []

    @pytest.mark.asyncio
    async def test_from_output(self, make_cluster):
        """Test images without a version tag report their version."""
        executor = FakeExecutor(lambda argv, _input: b"kwok version v0.6.0-rc.1\n")
        cluster = make_cluster(executor)
        version = await cluster.parse_version_from_image(
            "podman", "registry.k8s.io/kwok/kwok:latest", "kwok"
        )
        assert version == "0.6.0rc1"
        assert executor.calls == [
            [
                "podman", "run", "--rm", "--entrypoint", "kwok",
                "registry.k8s.io/kwok/kwok:latest", "--version",
            ]
        ]

    @pytest.mark.asyncio
    async def test_dry_run_uses_tag(self, make_cluster):
        """Test dry-run does not run the image."""
        executor = FakeExecutor(dry_run=True)
        cluster = make_cluster(executor)
        assert await cluster.parse_version_from_image("docker", "example/kwok:main") == "main"
        assert executor.calls == []


class TestSnapshotDryRun:
    """Tests for snapshot commands in dry-run mode."""

    @pytest.mark.asyncio
    async def test_save(self, make_cluster, tmp_path, capsys):
        """Test dry-run save prints the equivalent kubectl command."""
        cluster = make_cluster(FakeExecutor(dry_run=True))
        await cluster.snapshot_save(tmp_path / "snap.yaml", ["node", "pod"])
        assert f"kubectl get node,pod -o yaml >{tmp_path / 'snap.yaml'}" in capsys.readouterr().out
        assert not (tmp_path / "snap.yaml").exists()

    @pytest.mark.asyncio
    async def test_restore(self, make_cluster, tmp_path, capsys):
        """Test dry-run restore prints the equivalent kubectl command."""
        cluster = make_cluster(FakeExecutor(dry_run=True))
        await cluster.snapshot_restore(tmp_path / "snap.yaml")
        assert f"kubectl create -f {tmp_path / 'snap.yaml'}" in capsys.readouterr().out


class TestPki:
    """Tests for key material generation."""

    def test_san_entry(self):
        """Test IPs and names get their SAN prefixes."""
        assert _san_entry("10.0.0.1") == "IP:10.0.0.1"
        assert _san_entry("::1") == "IP:::1"
        assert _san_entry("kindsim.local") == "DNS:kindsim.local"

    @pytest.mark.asyncio
    async def test_generate(self, tmp_path):
        """Test the CA and admin certificate are issued with openssl."""
        executor = FakeExecutor()
        await generate_pki(executor, tmp_path, ["127.0.0.1", "localhost", "127.0.0.1"])
        assert [call[:2] for call in executor.calls] == [
            ["openssl", "req"],
            ["openssl", "req"],
            ["openssl", "x509"],
        ]
        assert "/O=system:masters/CN=kubernetes-admin" in executor.calls[1]
        assert not (tmp_path / "admin.ext").exists()

    @pytest.mark.asyncio
    async def test_generate_dry_run(self, tmp_path, capsys):
        """Test dry-run prints the certificate extensions."""
        await generate_pki(FakeExecutor(dry_run=True), tmp_path, ["127.0.0.1", "localhost"])
        out = capsys.readouterr().out
        assert "subjectAltName=IP:127.0.0.1,DNS:localhost" in out
        assert not (tmp_path / "admin.ext").exists()
