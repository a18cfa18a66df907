"""kind cluster configuration.

Renders the ``kind.yaml`` handed to ``kind create cluster``: node
port mappings, host mounts, and the kubeadm patches carrying
control-plane flags.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from packaging.version import Version

from ..components.builders import (
    DASHBOARD_PORT,
    JAEGER_PORT,
    KWOK_CONTROLLER_PORT,
    PROMETHEUS_PORT,
)
from ..components.model import (
    COMPONENT_ETCD,
    COMPONENT_KUBE_APISERVER,
    COMPONENT_KUBE_CONTROLLER_MANAGER,
    COMPONENT_KUBE_SCHEDULER,
    ComponentPatch,
    Volume,
)
from ..shared.logging import get_logger

logger = get_logger(__name__)

ETCD_PORT = 2379
JAEGER_OTLP_GRPC_PORT = 4317

# Paths inside the kind node
NODE_MANIFESTS_DIR = "/etc/kubernetes/manifests"
NODE_PKI_DIR = "/etc/kubernetes/pki"
NODE_AUDIT_POLICY_PATH = "/etc/kubernetes/audit/audit.yaml"
NODE_AUDIT_LOG_PATH = "/var/log/kubernetes/audit.log"
NODE_SCHEDULER_CONFIG_PATH = "/etc/kubernetes/scheduler/scheduler.yaml"
NODE_SCHEDULER_KUBECONFIG_PATH = "/etc/kubernetes/scheduler.conf"
NODE_TRACING_CONFIG_PATH = "/etc/kubernetes/apiserver-tracing-config.yaml"
NODE_COMPONENTS_DIR = "/var/components"

TRACING_GA_VERSION = Version("1.27")


def node_volume_path(component: str, mount_path: str) -> str:
    """Path on the node a host volume of ``component`` is mounted at."""
    return f"{NODE_COMPONENTS_DIR}/{component}{mount_path}"


@dataclass
class KindConfigParams:
    """Inputs of the kind configuration."""

    workdir: Path
    kube_version: Version
    bind_address: str = "0.0.0.0"
    kube_apiserver_port: int = 0
    etcd_port: int = 0
    kwok_controller_port: int = 0
    dashboard_port: int = 0
    prometheus_port: int = 0
    jaeger_port: int = 0
    feature_gates: dict[str, bool] = field(default_factory=dict)
    runtime_config: dict[str, str] = field(default_factory=dict)
    audit_policy_path: Path | None = None
    audit_log_path: Path | None = None
    scheduler_config_path: Path | None = None
    tracing_config_path: Path | None = None
    disable_qps_limits: bool = False
    verbosity: int = logging.INFO
    control_plane_patches: dict[str, ComponentPatch] = field(default_factory=dict)
    # Host volumes of static-pod components, keyed by component name
    component_volumes: dict[str, list[Volume]] = field(default_factory=dict)


def build_tracing_config(endpoint: str, kube_version: Version) -> str:
    """Render the kube-apiserver tracing configuration."""
    api_version = (
        "apiserver.config.k8s.io/v1beta1"
        if kube_version >= TRACING_GA_VERSION
        else "apiserver.config.k8s.io/v1alpha1"
    )
    return yaml.safe_dump(
        {
            "apiVersion": api_version,
            "kind": "TracingConfiguration",
            "endpoint": endpoint,
            "samplingRatePerMillion": 1000000,
        },
        default_flow_style=False,
        sort_keys=False,
    )


def rewrite_scheduler_config(data: str, kubeconfig_path: str = NODE_SCHEDULER_KUBECONFIG_PATH) -> str:
    """Point a user scheduler configuration at the in-node kubeconfig."""
    config = yaml.safe_load(data) or {}
    config.setdefault("clientConnection", {})["kubeconfig"] = kubeconfig_path
    return yaml.safe_dump(config, default_flow_style=False, sort_keys=False)


def _port_mappings(params: KindConfigParams) -> list[dict[str, Any]]:
    mappings = []
    for container_port, host_port in (
        (ETCD_PORT, params.etcd_port),
        (KWOK_CONTROLLER_PORT, params.kwok_controller_port),
        (DASHBOARD_PORT, params.dashboard_port),
        (PROMETHEUS_PORT, params.prometheus_port),
        (JAEGER_PORT, params.jaeger_port),
    ):
        if host_port:
            mappings.append(
                {
                    "containerPort": container_port,
                    "hostPort": host_port,
                    "listenAddress": params.bind_address,
                    "protocol": "TCP",
                }
            )
    return mappings


def _extra_mounts(params: KindConfigParams) -> list[dict[str, Any]]:
    mounts: list[dict[str, Any]] = [
        {"hostPath": str(params.workdir / "manifests"), "containerPath": NODE_MANIFESTS_DIR},
        {"hostPath": str(params.workdir / "pki"), "containerPath": NODE_PKI_DIR},
    ]
    if params.audit_policy_path and params.audit_log_path:
        mounts.append(
            {
                "hostPath": str(params.audit_policy_path),
                "containerPath": NODE_AUDIT_POLICY_PATH,
                "readOnly": True,
            }
        )
        mounts.append({"hostPath": str(params.audit_log_path), "containerPath": NODE_AUDIT_LOG_PATH})
    if params.scheduler_config_path:
        mounts.append(
            {
                "hostPath": str(params.scheduler_config_path),
                "containerPath": NODE_SCHEDULER_CONFIG_PATH,
                "readOnly": True,
            }
        )
    if params.tracing_config_path:
        mounts.append(
            {
                "hostPath": str(params.tracing_config_path),
                "containerPath": NODE_TRACING_CONFIG_PATH,
                "readOnly": True,
            }
        )

    volumes_by_component = dict(params.component_volumes)
    for name, patch in params.control_plane_patches.items():
        if name != COMPONENT_ETCD:
            volumes_by_component.setdefault(name, []).extend(patch.extra_volumes)
    for name, volumes in volumes_by_component.items():
        for volume in volumes:
            mount: dict[str, Any] = {
                "hostPath": volume.host_path,
                "containerPath": node_volume_path(name, volume.mount_path),
            }
            if volume.read_only:
                mount["readOnly"] = True
            mounts.append(mount)
    return mounts


def _kubeadm_volumes(name: str, patch: ComponentPatch | None) -> list[dict[str, Any]]:
    if patch is None:
        return []
    return [
        {
            "name": volume.name or f"{name}-volume-{i}",
            "hostPath": node_volume_path(name, volume.mount_path),
            "mountPath": volume.mount_path,
            "readOnly": volume.read_only,
        }
        for i, volume in enumerate(patch.extra_volumes)
    ]


def _kubeadm_args(patch: ComponentPatch | None) -> dict[str, str]:
    if patch is None:
        return {}
    return {arg.key: arg.value for arg in patch.extra_args}


def _cluster_configuration(params: KindConfigParams) -> dict[str, Any]:
    patches = params.control_plane_patches
    debug = params.verbosity <= logging.DEBUG

    apiserver_args: dict[str, str] = {}
    apiserver_volumes: list[dict[str, Any]] = []
    if params.audit_policy_path and params.audit_log_path:
        apiserver_args["audit-policy-file"] = NODE_AUDIT_POLICY_PATH
        apiserver_args["audit-log-path"] = NODE_AUDIT_LOG_PATH
        apiserver_volumes.append(
            {
                "name": "audit-policy-file",
                "hostPath": NODE_AUDIT_POLICY_PATH,
                "mountPath": NODE_AUDIT_POLICY_PATH,
                "readOnly": True,
                "pathType": "File",
            }
        )
        apiserver_volumes.append(
            {
                "name": "audit-log-path",
                "hostPath": NODE_AUDIT_LOG_PATH,
                "mountPath": NODE_AUDIT_LOG_PATH,
                "readOnly": False,
                "pathType": "File",
            }
        )
    if params.tracing_config_path:
        apiserver_args["tracing-config-file"] = NODE_TRACING_CONFIG_PATH
        apiserver_volumes.append(
            {
                "name": "tracing-config-file",
                "hostPath": NODE_TRACING_CONFIG_PATH,
                "mountPath": NODE_TRACING_CONFIG_PATH,
                "readOnly": True,
                "pathType": "File",
            }
        )
    if params.disable_qps_limits:
        apiserver_args["max-requests-inflight"] = "0"
        apiserver_args["max-mutating-requests-inflight"] = "0"
        apiserver_args["enable-priority-and-fairness"] = "false"

    scheduler_args: dict[str, str] = {}
    scheduler_volumes: list[dict[str, Any]] = []
    if params.scheduler_config_path:
        scheduler_args["config"] = NODE_SCHEDULER_CONFIG_PATH
        scheduler_volumes.append(
            {
                "name": "config",
                "hostPath": NODE_SCHEDULER_CONFIG_PATH,
                "mountPath": NODE_SCHEDULER_CONFIG_PATH,
                "readOnly": True,
                "pathType": "File",
            }
        )

    controller_manager_args: dict[str, str] = {}
    if params.disable_qps_limits:
        for args in (scheduler_args, controller_manager_args):
            args["kube-api-qps"] = "5000"
            args["kube-api-burst"] = "10000"

    if debug:
        for args in (apiserver_args, scheduler_args, controller_manager_args):
            args["v"] = "4"

    apiserver_args.update(_kubeadm_args(patches.get(COMPONENT_KUBE_APISERVER)))
    apiserver_volumes.extend(
        _kubeadm_volumes(COMPONENT_KUBE_APISERVER, patches.get(COMPONENT_KUBE_APISERVER))
    )
    scheduler_args.update(_kubeadm_args(patches.get(COMPONENT_KUBE_SCHEDULER)))
    scheduler_volumes.extend(
        _kubeadm_volumes(COMPONENT_KUBE_SCHEDULER, patches.get(COMPONENT_KUBE_SCHEDULER))
    )
    controller_manager_args.update(_kubeadm_args(patches.get(COMPONENT_KUBE_CONTROLLER_MANAGER)))
    controller_manager_volumes = _kubeadm_volumes(
        COMPONENT_KUBE_CONTROLLER_MANAGER, patches.get(COMPONENT_KUBE_CONTROLLER_MANAGER)
    )

    etcd_patch = patches.get(COMPONENT_ETCD)
    if etcd_patch is not None and etcd_patch.extra_volumes:
        logger.warning("extraVolumes for etcd is not supported in kind, ignoring")

    def section(args: dict[str, str], volumes: list[dict[str, Any]]) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if args:
            out["extraArgs"] = args
        if volumes:
            out["extraVolumes"] = volumes
        return out

    configuration: dict[str, Any] = {"kind": "ClusterConfiguration"}
    for key, value in (
        ("apiServer", section(apiserver_args, apiserver_volumes)),
        ("scheduler", section(scheduler_args, scheduler_volumes)),
        ("controllerManager", section(controller_manager_args, controller_manager_volumes)),
    ):
        if value:
            configuration[key] = value
    etcd_args = _kubeadm_args(etcd_patch)
    if etcd_args:
        configuration["etcd"] = {"local": {"extraArgs": etcd_args}}
    return configuration


def build_kind_config(params: KindConfigParams) -> str:
    """Render the kind Cluster configuration.

    Args:
        params: Resolved inputs.

    Returns:
        YAML document as a string.
    """
    networking: dict[str, Any] = {"apiServerAddress": params.bind_address}
    if params.kube_apiserver_port:
        networking["apiServerPort"] = params.kube_apiserver_port

    feature_gates = dict(params.feature_gates)
    if params.tracing_config_path and params.kube_version < TRACING_GA_VERSION:
        feature_gates.setdefault("APIServerTracing", True)

    node: dict[str, Any] = {"role": "control-plane"}
    mappings = _port_mappings(params)
    if mappings:
        node["extraPortMappings"] = mappings
    node["extraMounts"] = _extra_mounts(params)
    cluster_configuration = _cluster_configuration(params)
    if len(cluster_configuration) > 1:
        node["kubeadmConfigPatches"] = [
            yaml.safe_dump(cluster_configuration, default_flow_style=False, sort_keys=False)
        ]

    config: dict[str, Any] = {
        "kind": "Cluster",
        "apiVersion": "kind.x-k8s.io/v1alpha4",
        "networking": networking,
    }
    if feature_gates:
        config["featureGates"] = feature_gates
    if params.runtime_config:
        config["runtimeConfig"] = params.runtime_config
    config["nodes"] = [node]
    return yaml.safe_dump(config, default_flow_style=False, sort_keys=False)
