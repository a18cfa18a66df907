"""Image inventory, pulling, and loading into a kind cluster."""

from __future__ import annotations

import os
from pathlib import Path

from ..config import ClusterOptions
from ..errors import ExternalCommandFailed
from ..runtime import dryrun
from ..runtime.executor import Executor
from ..shared.logging import get_logger
from ..shared.paths import IMAGE_ARCHIVE_NAME

logger = get_logger(__name__)

# Runtimes whose daemon kind can read images from directly
DIRECT_LOAD_RUNTIMES = frozenset({"docker"})


def provider_env(runtime: str) -> dict[str, str]:
    """Environment selecting kind's node provider."""
    return {"KIND_EXPERIMENTAL_PROVIDER": runtime}


def list_all_images(options: ClusterOptions) -> list[str]:
    """Images of the enabled components, without the node image."""
    images = [options.kwok_controller_image]
    if options.dashboard_port:
        images.append(options.dashboard_image)
    if options.prometheus_port:
        images.append(options.prometheus_image)
    if options.jaeger_port:
        images.append(options.jaeger_image)
    return list(dict.fromkeys(images))


async def pull_images(executor: Executor, runtime: str, images: list[str], quiet: bool = False) -> None:
    """Pull images that are not present in the runtime yet."""
    for image in images:
        if not executor.dry_run:
            try:
                await executor.run(runtime, "image", "inspect", image)
            except ExternalCommandFailed:
                pass
            else:
                logger.debug("Image already present", image=image)
                continue

        args = ["pull"]
        if quiet:
            args.append("-q")
        args.append(image)
        logger.info("Pulling image", image=image)
        await executor.run(runtime, *args)


def archive_path(cache_dir: str | Path, image: str) -> Path:
    """Location of the tarball an image is saved to for archive loading."""
    return Path(cache_dir) / IMAGE_ARCHIVE_NAME / (image.replace(":", "/") + ".tar")


class ImageLoader:
    """Load images into the nodes of a kind cluster.

    docker shares its image store with kind, so images are loaded
    directly. Other runtimes go through a saved archive.
    """

    def __init__(
        self,
        executor: Executor,
        runtime: str,
        kind: str,
        cluster_name: str,
        cache_dir: str | Path,
    ):
        """Initialize loader.

        Args:
            executor: Executor used to run the runtime and kind.
            runtime: Container runtime name.
            kind: kind binary name or path.
            cluster_name: Name of the kind cluster.
            cache_dir: Directory holding temporary image archives.
        """
        self.executor = executor
        self.runtime = runtime
        self.kind = kind
        self.cluster_name = cluster_name
        self.cache_dir = Path(os.path.expanduser(cache_dir))

    @property
    def direct(self) -> bool:
        return self.runtime in DIRECT_LOAD_RUNTIMES

    async def load(self, images: list[str]) -> None:
        for image in images:
            if self.direct:
                await self._load_direct(image)
            else:
                await self._load_archive(image)
            logger.info("Loaded image", image=image)

    async def _load_direct(self, image: str) -> None:
        await self.executor.run(
            self.kind,
            "load",
            "docker-image",
            image,
            "--name",
            self.cluster_name,
            env=provider_env(self.runtime),
        )

    async def _load_archive(self, image: str) -> None:
        archive = archive_path(self.cache_dir, image)
        if self.executor.dry_run:
            dryrun.print_message(f"mkdir -p {archive.parent}")
        else:
            archive.parent.mkdir(parents=True, exist_ok=True)

        await self.executor.run(self.runtime, "save", image, "-o", str(archive))
        await self.executor.run(
            self.kind,
            "load",
            "image-archive",
            str(archive),
            "--name",
            self.cluster_name,
            env=provider_env(self.runtime),
        )

        if self.executor.dry_run:
            dryrun.print_message(f"rm -f {archive}")
            return
        try:
            archive.unlink()
        except OSError as e:
            logger.warning("Failed to remove image archive", path=str(archive), err=str(e))
