"""Snapshot save and restore of cluster resources as a YAML stream."""

from __future__ import annotations

import copy
from collections.abc import Iterable
from typing import IO, Any

import yaml

from ..client import ResourceClient
from ..errors import ResourceConflict, ResourceNotFound
from ..shared.logging import get_logger

logger = get_logger(__name__)

# Resources saved when no filter is given. Namespaces come first so that
# namespaced objects can be recreated inside them.
DEFAULT_FILTERS = [
    "namespace",
    "node",
    "serviceaccount",
    "configmap",
    "secret",
    "limitrange",
    "runtimeclass.node.k8s.io",
    "priorityclass.scheduling.k8s.io",
    "clusterrolebinding.rbac.authorization.k8s.io",
    "clusterrole.rbac.authorization.k8s.io",
    "rolebinding.rbac.authorization.k8s.io",
    "role.rbac.authorization.k8s.io",
    "daemonset.apps",
    "deployment.apps",
    "replicaset.apps",
    "statefulset.apps",
    "cronjob.batch",
    "job.batch",
    "persistentvolumeclaim",
    "persistentvolume",
    "pod",
    "service",
    "endpoints",
]

# Fields the API server fills in; a restored object gets fresh ones.
SERVER_POPULATED_METADATA = (
    "uid",
    "resourceVersion",
    "creationTimestamp",
    "managedFields",
    "selfLink",
    "generation",
)


def strip_metadata(obj: dict[str, Any]) -> dict[str, Any]:
    """Return a copy of ``obj`` without server-populated metadata."""
    obj = copy.deepcopy(obj)
    metadata = obj.get("metadata") or {}
    for key in SERVER_POPULATED_METADATA:
        metadata.pop(key, None)
    annotations = metadata.get("annotations")
    if annotations:
        annotations.pop("kubectl.kubernetes.io/last-applied-configuration", None)
        if not annotations:
            del metadata["annotations"]
    return obj


def _plural(kind: str) -> str:
    if kind.endswith("s"):
        return kind + "es"
    if kind.endswith("y") and kind[-2:-1] not in "aeiou":
        return kind[:-1] + "ies"
    return kind + "s"


def resource_names(obj: dict[str, Any]) -> set[str]:
    """Names a filter may use to select ``obj``'s kind."""
    kind = str(obj.get("kind", "")).lower()
    if not kind:
        return set()
    api_version = str(obj.get("apiVersion", ""))
    group = api_version.split("/", 1)[0] if "/" in api_version else ""
    names = {kind, _plural(kind)}
    if group:
        names |= {f"{name}.{group}" for name in names}
    return names


def matches(obj: dict[str, Any], filters: Iterable[str]) -> bool:
    """Check whether an object is selected by the filters; empty selects all."""
    filters = [f.lower() for f in filters]
    if not filters:
        return True
    return not resource_names(obj).isdisjoint(filters)


async def save(client: ResourceClient, sink: IO[str], filters: list[str] | None = None) -> None:
    """Write every object matching ``filters`` to ``sink`` as YAML documents.

    Objects of each filter are written in creation order.

    Args:
        client: Cluster API access.
        sink: Text stream the documents are written to.
        filters: Resource names to save. Defaults to ``DEFAULT_FILTERS``.
    """
    for resource in filters or DEFAULT_FILTERS:
        try:
            items = await client.list(resource)
        except ResourceNotFound:
            logger.warning("Resource not served by the cluster, skipping", resource=resource)
            continue
        items.sort(key=lambda item: (item.get("metadata") or {}).get("creationTimestamp") or "")
        for item in items:
            sink.write("---\n")
            yaml.safe_dump(strip_metadata(item), sink, default_flow_style=False, sort_keys=False)
        logger.debug("Saved resource", resource=resource, count=len(items))


def _fix_owner_references(obj: dict[str, Any], created: dict[tuple[str, str, str], str]) -> None:
    metadata = obj.get("metadata") or {}
    refs = metadata.get("ownerReferences")
    if not refs:
        return
    namespace = metadata.get("namespace", "")
    kept = []
    for ref in refs:
        uid = created.get((ref.get("kind", ""), namespace, ref.get("name", "")))
        if uid is None:
            uid = created.get((ref.get("kind", ""), "", ref.get("name", "")))
        if uid is None:
            logger.debug(
                "Dropping owner reference to an object not restored",
                owner=f"{ref.get('kind')}/{ref.get('name')}",
            )
            continue
        kept.append({**ref, "uid": uid})
    if kept:
        metadata["ownerReferences"] = kept
    else:
        del metadata["ownerReferences"]


async def load(client: ResourceClient, source: IO[str], filters: list[str] | None = None) -> None:
    """Create every object read from ``source`` that matches ``filters``.

    An object that already exists is skipped. Any other error aborts.

    Args:
        client: Cluster API access.
        source: Text stream of YAML documents.
        filters: Resource names to restore. Empty or None restores everything.
    """
    created: dict[tuple[str, str, str], str] = {}
    for doc in yaml.safe_load_all(source):
        if not doc:
            continue
        if not matches(doc, filters or []):
            continue
        obj = strip_metadata(doc)
        obj.pop("status", None)
        _fix_owner_references(obj, created)
        metadata = obj.get("metadata") or {}
        key = (obj.get("kind", ""), metadata.get("namespace", ""), metadata.get("name", ""))
        try:
            result = await client.create(obj)
        except ResourceConflict:
            logger.debug("Resource already exists, skipping", kind=key[0], name=key[2])
            continue
        uid = (result.get("metadata") or {}).get("uid")
        if uid:
            created[key] = uid
