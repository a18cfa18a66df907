"""Component model.

A Component is a named runnable unit of the simulated cluster. A
ComponentPatch overlays extra args, volumes and envs onto a component
before it is finalized.
"""

from __future__ import annotations

import os
from dataclasses import asdict, dataclass, field, replace
from pathlib import Path
from typing import Any

# Component names
COMPONENT_ETCD = "etcd"
COMPONENT_KUBE_APISERVER = "kube-apiserver"
COMPONENT_KUBE_CONTROLLER_MANAGER = "kube-controller-manager"
COMPONENT_KUBE_SCHEDULER = "kube-scheduler"
COMPONENT_KWOK_CONTROLLER = "kwok-controller"
COMPONENT_DASHBOARD = "dashboard"
COMPONENT_PROMETHEUS = "prometheus"
COMPONENT_JAEGER = "jaeger"

# Namespace static pods run in
SYSTEM_NAMESPACE = "kube-system"


@dataclass
class Volume:
    """Host path mounted into a component."""

    host_path: str
    mount_path: str
    read_only: bool = False
    name: str = ""


@dataclass
class Port:
    """Container port published on the host."""

    port: int
    host_port: int = 0
    name: str = ""
    protocol: str = "TCP"


@dataclass
class Env:
    """Environment variable."""

    name: str
    value: str = ""


@dataclass
class ExtraArg:
    """Extra ``--key=value`` flag."""

    key: str
    value: str = ""

    def to_flag(self) -> str:
        return f"--{self.key}={self.value}"


@dataclass
class ComponentMetric:
    """How to scrape a component's metrics."""

    scheme: str
    host: str
    path: str
    cert_path: str = ""
    key_path: str = ""
    insecure_skip_verify: bool = False


@dataclass
class Component:
    """Canonical descriptor of a runnable unit."""

    name: str
    version: str = ""
    image: str = ""
    binary: str = ""
    command: list[str] = field(default_factory=list)
    args: list[str] = field(default_factory=list)
    envs: list[Env] = field(default_factory=list)
    volumes: list[Volume] = field(default_factory=list)
    ports: list[Port] = field(default_factory=list)
    metric: ComponentMetric | None = None
    links: list[str] = field(default_factory=list)
    work_dir: str = ""

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        if self.metric is None:
            del data["metric"]
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> Component:
        metric = data.get("metric")
        return cls(
            name=data["name"],
            version=str(data.get("version", "")),
            image=data.get("image", ""),
            binary=data.get("binary", ""),
            command=list(data.get("command") or []),
            args=list(data.get("args") or []),
            envs=[Env(**e) for e in data.get("envs") or []],
            volumes=[Volume(**v) for v in data.get("volumes") or []],
            ports=[Port(**p) for p in data.get("ports") or []],
            metric=ComponentMetric(**metric) if metric else None,
            links=list(data.get("links") or []),
            work_dir=data.get("work_dir", ""),
        )


@dataclass
class ComponentPatch:
    """Extra args, volumes and envs merged onto a named component."""

    name: str
    extra_args: list[ExtraArg] = field(default_factory=list)
    extra_volumes: list[Volume] = field(default_factory=list)
    extra_envs: list[Env] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ComponentPatch:
        return cls(
            name=data["name"],
            extra_args=[ExtraArg(**a) for a in data.get("extra_args") or []],
            extra_volumes=[Volume(**v) for v in data.get("extra_volumes") or []],
            extra_envs=[Env(**e) for e in data.get("extra_envs") or []],
        )


def get_component_patch(patches: list[ComponentPatch], name: str) -> ComponentPatch:
    """Look up the patch for a component; a missing patch is an empty one."""
    for patch in patches:
        if patch.name == name:
            return replace(
                patch,
                extra_args=list(patch.extra_args),
                extra_volumes=list(patch.extra_volumes),
                extra_envs=list(patch.extra_envs),
            )
    return ComponentPatch(name=name)


def expand_volume_host_paths(volumes: list[Volume]) -> list[Volume]:
    """Return copies of ``volumes`` with host paths made absolute."""
    expanded = []
    for volume in volumes:
        host_path = os.path.expanduser(volume.host_path)
        expanded.append(replace(volume, host_path=str(Path(host_path).absolute())))
    return expanded


def extra_args_to_strings(args: list[ExtraArg]) -> list[str]:
    return [arg.to_flag() for arg in args]


def apply_patch(component: Component, patch: ComponentPatch) -> Component:
    """Merge a patch onto a component, leaving the original untouched."""
    return replace(
        component,
        args=[*component.args, *extra_args_to_strings(patch.extra_args)],
        volumes=[*component.volumes, *patch.extra_volumes],
        envs=[*component.envs, *patch.extra_envs],
    )


def convert_to_pod(component: Component) -> dict[str, Any]:
    """Render a component as a static pod manifest.

    Static pods run on the host network of the node, so a component port
    is published on the node by the kind port mappings, not by the pod.
    """
    container: dict[str, Any] = {
        "name": component.name,
        "image": component.image,
        "imagePullPolicy": "IfNotPresent",
    }
    if component.command:
        container["command"] = list(component.command)
    if component.args:
        container["args"] = list(component.args)
    if component.work_dir:
        container["workingDir"] = component.work_dir
    if component.envs:
        container["env"] = [{"name": e.name, "value": e.value} for e in component.envs]
    if component.ports:
        container["ports"] = [
            {
                "name": p.name or f"port-{p.port}",
                "containerPort": p.port,
                "protocol": p.protocol,
            }
            for p in component.ports
        ]

    volumes = []
    mounts = []
    for i, volume in enumerate(component.volumes):
        name = volume.name or f"volume-{i}"
        volumes.append({"name": name, "hostPath": {"path": volume.host_path}})
        mount: dict[str, Any] = {"name": name, "mountPath": volume.mount_path}
        if volume.read_only:
            mount["readOnly"] = True
        mounts.append(mount)
    if mounts:
        container["volumeMounts"] = mounts

    spec: dict[str, Any] = {
        "containers": [container],
        "hostNetwork": True,
        "restartPolicy": "Always",
        "priorityClassName": "system-node-critical",
    }
    if volumes:
        spec["volumes"] = volumes

    return {
        "apiVersion": "v1",
        "kind": "Pod",
        "metadata": {
            "name": component.name,
            "namespace": SYSTEM_NAMESPACE,
            "labels": {"component": component.name, "tier": "control-plane"},
        },
        "spec": spec,
    }
