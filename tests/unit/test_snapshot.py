"""Unit tests for snapshot save and restore."""

from __future__ import annotations

import io
import uuid

import pytest
import yaml

from kindsim.cluster import snapshot
from kindsim.errors import ExternalCommandFailed, ResourceConflict, ResourceNotFound


class InMemoryClient:
    """Resource client over a dict of objects keyed by resource name."""

    def __init__(self, objects=None, served=None):
        self.objects: dict[str, list[dict]] = objects or {}
        self.served = served
        self.created: list[dict] = []
        self.fail_on: dict[str, Exception] = {}

    async def list(self, resource, namespace=None, label_selector=None, field_selector=None):
        if self.served is not None and resource not in self.served:
            raise ResourceNotFound(kind=resource)
        return [dict(obj) for obj in self.objects.get(resource, [])]

    async def create(self, obj):
        name = obj["metadata"]["name"]
        if name in self.fail_on:
            raise self.fail_on[name]
        if any(o["metadata"]["name"] == name and o["kind"] == obj["kind"] for o in self.created):
            raise ResourceConflict(kind=obj["kind"], name=name)
        result = {**obj, "metadata": {**obj["metadata"], "uid": str(uuid.uuid4())}}
        self.created.append(result)
        return result


def make_obj(kind, name, namespace=None, created="2024-01-01T00:00:00Z", api_version="v1", **extra):
    metadata = {
        "name": name,
        "uid": str(uuid.uuid4()),
        "resourceVersion": "42",
        "creationTimestamp": created,
        "managedFields": [{"manager": "kubectl"}],
    }
    if namespace:
        metadata["namespace"] = namespace
    return {"apiVersion": api_version, "kind": kind, "metadata": metadata, **extra}


class TestSave:
    """Tests for snapshot.save."""

    @pytest.mark.asyncio
    async def test_strips_server_fields(self):
        """Test saved objects carry no server-populated metadata."""
        client = InMemoryClient({"node": [make_obj("Node", "fake-node-0")]})
        sink = io.StringIO()
        await snapshot.save(client, sink, ["node"])
        (doc,) = [d for d in yaml.safe_load_all(sink.getvalue()) if d]
        assert doc["metadata"] == {"name": "fake-node-0"}

    @pytest.mark.asyncio
    async def test_creation_order(self):
        """Test objects of a resource are written oldest first."""
        client = InMemoryClient(
            {
                "pod": [
                    make_obj("Pod", "b", "default", created="2024-01-02T00:00:00Z"),
                    make_obj("Pod", "a", "default", created="2024-01-01T00:00:00Z"),
                ]
            }
        )
        sink = io.StringIO()
        await snapshot.save(client, sink, ["pod"])
        names = [d["metadata"]["name"] for d in yaml.safe_load_all(sink.getvalue()) if d]
        assert names == ["a", "b"]

    @pytest.mark.asyncio
    async def test_unserved_resource_skipped(self):
        """Test resources the cluster does not serve are skipped."""
        client = InMemoryClient(
            {"namespace": [make_obj("Namespace", "team-a")]}, served={"namespace"}
        )
        sink = io.StringIO()
        await snapshot.save(client, sink, ["namespace", "stage.kwok.x-k8s.io"])
        assert len([d for d in yaml.safe_load_all(sink.getvalue()) if d]) == 1

    @pytest.mark.asyncio
    async def test_default_filters(self):
        """Test namespaces are saved before namespaced objects by default."""
        client = InMemoryClient(
            {
                "pod": [make_obj("Pod", "p", "team-a")],
                "namespace": [make_obj("Namespace", "team-a")],
            }
        )
        sink = io.StringIO()
        await snapshot.save(client, sink)
        kinds = [d["kind"] for d in yaml.safe_load_all(sink.getvalue()) if d]
        assert kinds == ["Namespace", "Pod"]
        assert snapshot.DEFAULT_FILTERS[0] == "namespace"


class TestLoad:
    """Tests for snapshot.load."""

    @pytest.mark.asyncio
    async def test_round_trip(self):
        """Test saved objects are recreated in a fresh cluster."""
        source = InMemoryClient(
            {
                "namespace": [make_obj("Namespace", "team-a")],
                "node": [make_obj("Node", "fake-node-0", status={"phase": "Running"})],
            }
        )
        sink = io.StringIO()
        await snapshot.save(source, sink, ["namespace", "node"])

        target = InMemoryClient()
        await snapshot.load(target, io.StringIO(sink.getvalue()))
        assert [(o["kind"], o["metadata"]["name"]) for o in target.created] == [
            ("Namespace", "team-a"),
            ("Node", "fake-node-0"),
        ]
        assert "status" not in target.created[1]

    @pytest.mark.asyncio
    async def test_existing_objects_tolerated(self):
        """Test an object that already exists is skipped."""
        data = yaml.safe_dump_all(
            [make_obj("Namespace", "default"), make_obj("Namespace", "default"),
             make_obj("Namespace", "team-a")]
        )
        target = InMemoryClient()
        await snapshot.load(target, io.StringIO(data))
        assert [o["metadata"]["name"] for o in target.created] == ["default", "team-a"]

    @pytest.mark.asyncio
    async def test_other_errors_abort(self):
        """Test a failure other than a conflict stops the restore."""
        data = yaml.safe_dump_all([make_obj("Namespace", "bad"), make_obj("Namespace", "after")])
        target = InMemoryClient()
        target.fail_on["bad"] = ExternalCommandFailed(command=["kubectl"], exit_code=1)
        with pytest.raises(ExternalCommandFailed):
            await snapshot.load(target, io.StringIO(data))
        assert target.created == []

    @pytest.mark.asyncio
    async def test_filters(self):
        """Test only selected kinds are restored."""
        data = yaml.safe_dump_all(
            [
                make_obj("Namespace", "team-a"),
                make_obj("Deployment", "web", "team-a", api_version="apps/v1"),
                make_obj("Pod", "web-1", "team-a"),
            ]
        )
        target = InMemoryClient()
        await snapshot.load(target, io.StringIO(data), ["deployment.apps", "namespaces"])
        assert [o["kind"] for o in target.created] == ["Namespace", "Deployment"]

    @pytest.mark.asyncio
    async def test_owner_references_remapped(self):
        """Test owner references point at the recreated owner."""
        owner = make_obj("ReplicaSet", "web-5d4", "team-a", api_version="apps/v1")
        pod = make_obj("Pod", "web-5d4-x", "team-a")
        pod["metadata"]["ownerReferences"] = [
            {"apiVersion": "apps/v1", "kind": "ReplicaSet", "name": "web-5d4",
             "uid": owner["metadata"]["uid"]},
            {"apiVersion": "v1", "kind": "Node", "name": "gone", "uid": "stale"},
        ]
        target = InMemoryClient()
        await snapshot.load(target, io.StringIO(yaml.safe_dump_all([owner, pod])))
        restored_owner, restored_pod = target.created
        (ref,) = restored_pod["metadata"]["ownerReferences"]
        assert ref["uid"] == restored_owner["metadata"]["uid"]
        assert ref["uid"] != owner["metadata"]["uid"]


class TestMatching:
    """Tests for filter matching."""

    def test_names(self):
        """Test kinds match by singular, plural and group-qualified names."""
        deployment = {"apiVersion": "apps/v1", "kind": "Deployment"}
        assert snapshot.matches(deployment, ["deployment"])
        assert snapshot.matches(deployment, ["deployments.apps"])
        assert not snapshot.matches(deployment, ["pod"])
        assert snapshot.matches(deployment, [])

    def test_plural(self):
        """Test irregular English plurals used by Kubernetes resources."""
        assert "priorityclasses" in snapshot.resource_names({"kind": "PriorityClass"})
        assert "networkpolicies" in snapshot.resource_names({"kind": "NetworkPolicy"})
        assert "gateways" in snapshot.resource_names({"kind": "Gateway"})

    def test_strip_keeps_user_annotations(self):
        """Test only the last-applied annotation is dropped."""
        obj = make_obj("ConfigMap", "c", "default")
        obj["metadata"]["annotations"] = {
            "kubectl.kubernetes.io/last-applied-configuration": "{}",
            "team": "a",
        }
        stripped = snapshot.strip_metadata(obj)
        assert stripped["metadata"]["annotations"] == {"team": "a"}
        assert obj["metadata"]["uid"]
