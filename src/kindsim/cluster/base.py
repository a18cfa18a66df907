"""Runtime-independent cluster helpers.

``Cluster`` owns a working directory and the resolved configuration
stored in it, and provides the file, binary, kubectl and snapshot
helpers the runtime implementations build on. Every state-changing
helper honors dry-run mode.
"""

from __future__ import annotations

import os
import shutil
from collections.abc import Mapping
from pathlib import Path
from typing import IO, Any
from urllib.parse import urlparse

import httpx
import yaml

from ..client import KubectlClient
from ..config import ClusterConfig, save_config, validate_options
from ..errors import ConfigurationInvalid, DownloadFailed
from ..runtime import dryrun
from ..runtime.executor import Executor
from ..shared.logging import get_logger
from ..shared.paths import (
    AUDIT_LOG_NAME,
    BIN_NAME,
    CONFIG_NAME,
    IN_HOST_KUBECONFIG_NAME,
    LOGS_NAME,
)
from ..version import image_tag, version_from_image_tag, version_from_output
from . import images as image_ops
from . import snapshot

logger = get_logger(__name__)

BINARY_MODE = 0o750
DOWNLOAD_TIMEOUT = 300.0
_COPY_CHUNK = 64 * 1024


class Cluster:
    """A cluster bound to a working directory."""

    def __init__(
        self,
        name: str,
        workdir: str | Path,
        executor: Executor | None = None,
        dry_run: bool = False,
    ):
        """Initialize cluster.

        Args:
            name: Cluster name.
            workdir: Working directory owning all on-disk state.
            executor: Executor for external commands.
            dry_run: Print actions instead of performing them. Taken from
                the executor when one is given.

        Raises:
            ValueError: dry_run is set but the executor runs commands.
        """
        if dry_run and executor is not None and not executor.dry_run:
            raise ValueError("dry_run cluster given an executor that runs commands")
        self.name = name
        self.workdir = Path(workdir)
        self.dry_run = dry_run or (executor is not None and executor.dry_run)
        self.executor = executor or Executor(dry_run=self.dry_run)
        self._config: ClusterConfig | None = None
        self._binaries: dict[str, str] = {}

    # Paths

    def workdir_path(self, *parts: str) -> Path:
        return self.workdir.joinpath(*parts)

    def log_path(self, name: str) -> Path:
        return self.workdir_path(LOGS_NAME, name)

    def bin_path(self, name: str) -> Path:
        return self.workdir_path(BIN_NAME, name)

    # Configuration

    def config(self) -> ClusterConfig:
        """Return the resolved configuration, reading it from disk once.

        Raises:
            ConfigurationInvalid: No configuration was set or saved.
        """
        if self._config is None:
            path = self.workdir_path(CONFIG_NAME)
            if not path.exists():
                raise ConfigurationInvalid(f"cluster {self.name!r} has no configuration at {path}")
            try:
                with open(path) as f:
                    data = yaml.safe_load(f) or {}
            except yaml.YAMLError as e:
                raise ConfigurationInvalid(f"failed to parse {path}: {e}") from e
            self._config = ClusterConfig.from_dict(data)
        return self._config

    def set_config(self, config: ClusterConfig) -> None:
        self._config = config

    async def save(self) -> None:
        """Persist the resolved configuration to the working directory."""
        path = self.workdir_path(CONFIG_NAME)
        if self.dry_run:
            dryrun.print_message(f"# save configuration to {path}")
            return
        save_config(path, self.config())

    # Files

    async def mkdir(self, path: Path) -> None:
        if self.dry_run:
            dryrun.print_message(f"mkdir -p {path}")
            return
        path.mkdir(parents=True, exist_ok=True)

    async def write_file(self, path: Path, data: str | bytes) -> None:
        if self.dry_run:
            text = data.decode(errors="replace") if isinstance(data, bytes) else data
            dryrun.print_message(f"cat <<EOF >{path}\n{text.rstrip()}\nEOF")
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, bytes):
            path.write_bytes(data)
        else:
            path.write_text(data)

    async def create_file(self, path: Path) -> None:
        if self.dry_run:
            dryrun.print_message(f"touch {path}")
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        path.touch()

    async def copy_file(self, src: Path, dst: Path) -> None:
        if self.dry_run:
            dryrun.print_message(f"cp {src} {dst}")
            return
        dst.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src, dst)

    async def remove(self, path: Path) -> None:
        if self.dry_run:
            dryrun.print_message(f"rm -f {path}")
            return
        path.unlink(missing_ok=True)

    async def run_to_path(
        self,
        path: Path,
        command: str,
        *args: str,
        env: Mapping[str, str] | None = None,
    ) -> None:
        """Run a command with its stdout redirected into ``path``."""
        if self.dry_run:
            dryrun.print_message(f"{dryrun.format_command(command, args, env)} >{path}")
            return
        path.parent.mkdir(parents=True, exist_ok=True)
        with open(path, "wb") as f:
            await self.executor.run(command, *args, env=env, stdout=f)

    # Install

    async def install(self) -> None:
        """Validate options and prepare the working directory."""
        config = self.config()
        validate_options(config.options)
        await self.mkdir(self.workdir)
        await self.kubectl_path()

    # Binaries

    def _cache_path(self, url: str) -> Path:
        parsed = urlparse(url)
        cache_dir = Path(os.path.expanduser(self.config().options.cache_dir))
        return cache_dir / parsed.netloc / parsed.path.lstrip("/")

    async def _download(self, url: str, dest: Path) -> None:
        if dest.exists():
            return
        dest.parent.mkdir(parents=True, exist_ok=True)
        tmp = dest.with_name(dest.name + ".part")
        logger.info("Downloading", url=url)
        try:
            async with httpx.AsyncClient(follow_redirects=True, timeout=DOWNLOAD_TIMEOUT) as client:
                async with client.stream("GET", url) as response:
                    response.raise_for_status()
                    with open(tmp, "wb") as f:
                        async for chunk in response.aiter_bytes():
                            f.write(chunk)
        except httpx.HTTPError as e:
            tmp.unlink(missing_ok=True)
            raise DownloadFailed(message=f"failed to download {url}: {e}", url=url) from e
        tmp.replace(dest)

    async def ensure_binary(self, name: str, url: str) -> str:
        """Resolve a binary from PATH, or download it into the working directory.

        Args:
            name: Binary name looked up on PATH.
            url: Download URL used when the binary is not on PATH.

        Returns:
            Name or path to invoke the binary with.
        """
        if name in self._binaries:
            return self._binaries[name]
        if shutil.which(name):
            self._binaries[name] = name
            return name

        suffix = self.config().options.bin_suffix
        target = self.bin_path(name + suffix)
        if self.dry_run:
            dryrun.print_message(f"wget -O {target} {url}")
            dryrun.print_message(f"chmod {BINARY_MODE:o} {target}")
        elif not target.exists():
            cached = self._cache_path(url)
            await self._download(url, cached)
            target.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(cached, target)
            target.chmod(BINARY_MODE)
        self._binaries[name] = str(target)
        return str(target)

    async def kubectl_path(self) -> str:
        return await self.ensure_binary("kubectl", self.config().options.kubectl_binary)

    # Images

    async def pull_images(self, runtime: str, images: list[str], quiet: bool = False) -> None:
        await image_ops.pull_images(self.executor, runtime, images, quiet)

    async def parse_version_from_image(self, runtime: str, image: str, command: str = "") -> str:
        """Resolve the version of an image.

        The tag is used when it is a version, otherwise the image is run
        with ``--version``.
        """
        version = version_from_image_tag(image)
        if version is not None:
            return version
        if self.dry_run:
            return image_tag(image)

        args = ["run", "--rm"]
        if command:
            args += ["--entrypoint", command]
        args += [image, "--version"]
        out = await self.executor.output(runtime, *args, combined=True)
        return version_from_output(out.decode(errors="replace"))

    # kubectl

    async def kubectl(self, *args: str, **kwargs: Any) -> None:
        """Run kubectl against the cluster's context in the user kubeconfig."""
        kubectl = await self.kubectl_path()
        await self.executor.run(kubectl, "--context", f"kind-{self.name}", *args, **kwargs)

    async def kubectl_output(self, *args: str) -> bytes:
        kubectl = await self.kubectl_path()
        return await self.executor.output(kubectl, "--context", f"kind-{self.name}", *args)

    def in_host_kubeconfig(self) -> Path:
        return self.workdir_path(IN_HOST_KUBECONFIG_NAME)

    async def kubectl_in_cluster(self, *args: str, **kwargs: Any) -> None:
        """Run kubectl with the kubeconfig exported into the working directory."""
        kubectl = await self.kubectl_path()
        await self.executor.run(
            kubectl, "--kubeconfig", str(self.in_host_kubeconfig()), *args, **kwargs
        )

    async def kubectl_in_cluster_output(self, *args: str) -> bytes:
        kubectl = await self.kubectl_path()
        return await self.executor.output(
            kubectl, "--kubeconfig", str(self.in_host_kubeconfig()), *args
        )

    async def resource_client(self) -> KubectlClient:
        return KubectlClient(
            self.executor,
            kubectl=await self.kubectl_path(),
            kubeconfig=self.in_host_kubeconfig(),
        )

    async def ready(self) -> bool:
        """Check the API server health endpoint."""
        out = await self.kubectl_in_cluster_output("get", "--raw=/healthz")
        return out.strip() == b"ok"

    # Logs

    async def audit_logs(self, out: IO[Any]) -> None:
        """Copy the audit log into ``out``."""
        path = self.log_path(AUDIT_LOG_NAME)
        if isinstance(out, dryrun.CatToFile):
            dryrun.print_message(f"cp {path} {out.name}")
            return
        with open(path, "rb") as f:
            while chunk := f.read(_COPY_CHUNK):
                out.write(chunk)

    # Snapshots

    async def snapshot_save(self, path: str | Path, filters: list[str] | None = None) -> None:
        """Save cluster resources matching ``filters`` into a YAML file."""
        filters = filters or snapshot.DEFAULT_FILTERS
        if self.dry_run:
            dryrun.print_message(f"kubectl get {','.join(filters)} -o yaml >{path}")
            return
        client = await self.resource_client()
        with open(path, "w") as f:
            await snapshot.save(client, f, filters)

    async def snapshot_restore(self, path: str | Path, filters: list[str] | None = None) -> None:
        """Create the resources of a saved YAML file in the cluster."""
        if self.dry_run:
            dryrun.print_message(f"kubectl create -f {path}")
            return
        client = await self.resource_client()
        with open(path) as f:
            await snapshot.load(client, f, filters)
