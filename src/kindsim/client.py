"""Cluster API access through kubectl.

The orchestrator only needs get/list/create/update/delete/watch over
arbitrary resource kinds. ``KubectlClient`` provides them by running
kubectl with JSON output, so no generated API client is required.
"""

from __future__ import annotations

import json
from collections.abc import AsyncIterator
from pathlib import Path
from typing import Any, Protocol

from .errors import (
    ExternalCommandFailed,
    ResourceConflict,
    ResourceNotFound,
    is_already_exists,
    is_not_found,
)
from .runtime.executor import Executor
from .shared.logging import get_logger

logger = get_logger(__name__)


class ResourceClient(Protocol):
    """Operations the snapshot code needs from the cluster API."""

    async def list(
        self,
        resource: str,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[dict[str, Any]]: ...

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]: ...


class KubectlClient:
    """Resource client backed by the kubectl binary."""

    def __init__(
        self,
        executor: Executor,
        kubectl: str = "kubectl",
        kubeconfig: str | Path | None = None,
        timeout: float | None = None,
    ):
        """Initialize client.

        Args:
            executor: Executor used to run kubectl.
            kubectl: kubectl binary name or path.
            kubeconfig: Optional kubeconfig file.
            timeout: Per-request timeout in seconds.
        """
        self.executor = executor
        self.kubectl = kubectl
        self.kubeconfig = kubeconfig
        self.timeout = timeout

    def _base_args(self) -> list[str]:
        args = []
        if self.kubeconfig:
            args.append(f"--kubeconfig={self.kubeconfig}")
        if self.timeout:
            args.append(f"--request-timeout={int(self.timeout)}s")
        return args

    async def _run(
        self,
        *args: str,
        kind: str = "",
        name: str = "",
        input: bytes | None = None,
    ) -> bytes:
        try:
            return await self.executor.output(self.kubectl, *self._base_args(), *args, input=input)
        except ExternalCommandFailed as e:
            if is_not_found(e.stderr_tail):
                raise ResourceNotFound(
                    message=f"{kind or 'resource'} {name!r} not found",
                    kind=kind,
                    name=name,
                ) from e
            if is_already_exists(e.stderr_tail):
                raise ResourceConflict(
                    message=f"{kind or 'resource'} {name!r} already exists",
                    kind=kind,
                    name=name,
                ) from e
            raise

    @staticmethod
    def _scope_args(namespace: str | None) -> list[str]:
        if namespace is None:
            return ["--all-namespaces"]
        return [f"--namespace={namespace}"]

    async def list(
        self,
        resource: str,
        namespace: str | None = None,
        label_selector: str | None = None,
        field_selector: str | None = None,
    ) -> list[dict[str, Any]]:
        """List objects of a resource kind.

        Args:
            resource: Resource name as kubectl accepts it (``pod``,
                ``deployment.apps``).
            namespace: Namespace to list in, None for all namespaces.
            label_selector: Optional label selector.
            field_selector: Optional field selector.
        """
        args = ["get", resource, "--output=json", *self._scope_args(namespace)]
        if label_selector:
            args.append(f"--selector={label_selector}")
        if field_selector:
            args.append(f"--field-selector={field_selector}")
        out = await self._run(*args, kind=resource)
        if not out.strip():
            return []
        return json.loads(out).get("items") or []

    async def get(self, resource: str, name: str, namespace: str | None = None) -> dict[str, Any]:
        args = ["get", resource, name, "--output=json"]
        if namespace:
            args.append(f"--namespace={namespace}")
        out = await self._run(*args, kind=resource, name=name)
        return json.loads(out)

    async def create(self, obj: dict[str, Any]) -> dict[str, Any]:
        """Create an object.

        Raises:
            ResourceConflict: The object already exists.
        """
        metadata = obj.get("metadata") or {}
        out = await self._run(
            "create",
            "--filename=-",
            "--output=json",
            kind=obj.get("kind", ""),
            name=metadata.get("name", ""),
            input=json.dumps(obj).encode(),
        )
        return json.loads(out) if out.strip() else obj

    async def update(self, obj: dict[str, Any]) -> dict[str, Any]:
        metadata = obj.get("metadata") or {}
        out = await self._run(
            "replace",
            "--filename=-",
            "--output=json",
            kind=obj.get("kind", ""),
            name=metadata.get("name", ""),
            input=json.dumps(obj).encode(),
        )
        return json.loads(out) if out.strip() else obj

    async def delete(self, resource: str, name: str, namespace: str | None = None) -> None:
        args = ["delete", resource, name, "--wait=false"]
        if namespace:
            args.append(f"--namespace={namespace}")
        await self._run(*args, kind=resource, name=name)

    async def watch(
        self,
        resource: str,
        namespace: str | None = None,
        label_selector: str | None = None,
    ) -> AsyncIterator[dict[str, Any]]:
        """Yield watch events (``{"type": ..., "object": ...}``) for a resource."""
        args = [
            *self._base_args(),
            "get",
            resource,
            "--watch",
            "--output-watch-events",
            "--output=json",
            *self._scope_args(namespace),
        ]
        if label_selector:
            args.append(f"--selector={label_selector}")

        logger.debug("Watching resource", resource=resource, namespace=namespace)
        decoder = json.JSONDecoder()
        buf = ""
        async for chunk in self.executor.stream(self.kubectl, *args):
            buf += chunk.decode(errors="replace")
            while True:
                buf = buf.lstrip()
                if not buf:
                    break
                try:
                    event, end = decoder.raw_decode(buf)
                except json.JSONDecodeError:
                    # incomplete document, wait for more output
                    break
                buf = buf[end:]
                yield event
