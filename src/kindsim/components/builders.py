"""Component builders.

Pure functions from a typed configuration to a Component. Host paths
given to the builders are paths on the kind node, not on the machine
running kindsim.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field

from .model import (
    COMPONENT_DASHBOARD,
    COMPONENT_ETCD,
    COMPONENT_JAEGER,
    COMPONENT_KUBE_APISERVER,
    COMPONENT_KUBE_CONTROLLER_MANAGER,
    COMPONENT_KUBE_SCHEDULER,
    COMPONENT_KWOK_CONTROLLER,
    COMPONENT_PROMETHEUS,
    Component,
    ComponentMetric,
    Port,
    Volume,
)

LOCAL_ADDRESS = "127.0.0.1"
PUBLIC_ADDRESS = "0.0.0.0"

KWOK_CONTROLLER_PORT = 10247
DASHBOARD_PORT = 8000
PROMETHEUS_PORT = 9090
JAEGER_PORT = 16686
JAEGER_ADMIN_PORT = 14269

_PROMETHEUS_LOG_LEVELS = {
    logging.DEBUG: "debug",
    logging.INFO: "info",
    logging.WARNING: "warn",
    logging.ERROR: "error",
    logging.CRITICAL: "error",
}


@dataclass
class KwokControllerConfig:
    image: str
    version: str
    kubeconfig_path: str
    ca_cert_path: str
    admin_cert_path: str
    admin_key_path: str
    port: int = 0
    node_ip: str = "$(POD_IP)"
    node_name: str = "kwok-controller.kube-system.svc"
    manage_nodes_with_annotation_selector: str = "kwok.x-k8s.io/node=fake"
    node_lease_duration_seconds: int = 40
    enable_crds: list[str] = field(default_factory=list)


def build_kwok_controller_component(conf: KwokControllerConfig) -> Component:
    """Build the controller that simulates nodes and pods."""
    args = [
        "--manage-all-nodes=false",
        f"--manage-nodes-with-annotation-selector={conf.manage_nodes_with_annotation_selector}",
        "--kubeconfig=/root/.kube/config",
        "--tls-cert-file=/etc/kubernetes/pki/admin.crt",
        "--tls-private-key-file=/etc/kubernetes/pki/admin.key",
        f"--node-ip={conf.node_ip}",
        f"--node-name={conf.node_name}",
        f"--node-port={KWOK_CONTROLLER_PORT}",
        f"--server-address={PUBLIC_ADDRESS}:{KWOK_CONTROLLER_PORT}",
        f"--node-lease-duration-seconds={conf.node_lease_duration_seconds}",
    ]
    if conf.enable_crds:
        args.append(f"--enable-crds={','.join(conf.enable_crds)}")

    volumes = [
        Volume(host_path=conf.kubeconfig_path, mount_path="/root/.kube/config", read_only=True),
        Volume(host_path=conf.ca_cert_path, mount_path="/etc/kubernetes/pki/ca.crt", read_only=True),
        Volume(
            host_path=conf.admin_cert_path,
            mount_path="/etc/kubernetes/pki/admin.crt",
            read_only=True,
        ),
        Volume(
            host_path=conf.admin_key_path,
            mount_path="/etc/kubernetes/pki/admin.key",
            read_only=True,
        ),
    ]

    ports = []
    if conf.port:
        ports.append(Port(port=KWOK_CONTROLLER_PORT, host_port=conf.port))

    return Component(
        name=COMPONENT_KWOK_CONTROLLER,
        version=conf.version,
        image=conf.image,
        command=["kwok"],
        args=args,
        volumes=volumes,
        ports=ports,
        metric=ComponentMetric(
            scheme="http",
            host=f"{LOCAL_ADDRESS}:{KWOK_CONTROLLER_PORT}",
            path="/metrics",
        ),
        links=[COMPONENT_KUBE_APISERVER],
    )


@dataclass
class DashboardConfig:
    image: str
    version: str
    kubeconfig_path: str
    ca_cert_path: str
    admin_cert_path: str
    admin_key_path: str
    port: int = 0
    banner: str = ""


def build_dashboard_component(conf: DashboardConfig) -> Component:
    args = [
        f"--insecure-bind-address={PUBLIC_ADDRESS}",
        f"--insecure-port={DASHBOARD_PORT}",
        "--bind-address=127.0.0.1",
        "--port=0",
        "--enable-insecure-login",
        "--enable-skip-login",
        "--disable-settings-authorizer",
        "--metrics-provider=none",
        "--kubeconfig=/root/.kube/config",
    ]
    if conf.banner:
        args.append(f"--system-banner={conf.banner}")

    ports = []
    if conf.port:
        ports.append(Port(port=DASHBOARD_PORT, host_port=conf.port))

    return Component(
        name=COMPONENT_DASHBOARD,
        version=conf.version,
        image=conf.image,
        args=args,
        volumes=[
            Volume(host_path=conf.kubeconfig_path, mount_path="/root/.kube/config", read_only=True),
            Volume(host_path=conf.ca_cert_path, mount_path="/etc/kubernetes/pki/ca.crt", read_only=True),
            Volume(
                host_path=conf.admin_cert_path,
                mount_path="/etc/kubernetes/pki/admin.crt",
                read_only=True,
            ),
            Volume(
                host_path=conf.admin_key_path,
                mount_path="/etc/kubernetes/pki/admin.key",
                read_only=True,
            ),
        ],
        ports=ports,
        links=[COMPONENT_KUBE_APISERVER],
    )


@dataclass
class PrometheusConfig:
    image: str
    version: str
    config_path: str
    admin_cert_path: str
    admin_key_path: str
    port: int = 0
    verbosity: int = logging.INFO


def build_prometheus_component(conf: PrometheusConfig) -> Component:
    """Build the metrics scraper.

    The scrape configuration itself is rendered separately, once every
    other component is known (see ``prometheus.build_prometheus_config``).
    """
    args = [
        "--config.file=/etc/prometheus/prometheus.yaml",
        f"--web.listen-address={PUBLIC_ADDRESS}:{PROMETHEUS_PORT}",
    ]
    if conf.verbosity != logging.INFO:
        level = _PROMETHEUS_LOG_LEVELS.get(conf.verbosity, "info")
        args.append(f"--log.level={level}")

    volumes = [
        Volume(
            host_path=conf.config_path,
            mount_path="/etc/prometheus/prometheus.yaml",
            read_only=True,
        ),
        Volume(
            host_path=conf.admin_cert_path,
            mount_path="/etc/kubernetes/pki/admin.crt",
            read_only=True,
        ),
        Volume(
            host_path=conf.admin_key_path,
            mount_path="/etc/kubernetes/pki/admin.key",
            read_only=True,
        ),
    ]

    ports = []
    if conf.port:
        ports.append(Port(port=PROMETHEUS_PORT, host_port=conf.port))

    return Component(
        name=COMPONENT_PROMETHEUS,
        version=conf.version,
        image=conf.image,
        command=["prometheus"],
        args=args,
        volumes=volumes,
        ports=ports,
        metric=ComponentMetric(
            scheme="http",
            host=f"{LOCAL_ADDRESS}:{PROMETHEUS_PORT}",
            path="/metrics",
        ),
        links=[
            COMPONENT_ETCD,
            COMPONENT_KUBE_APISERVER,
            COMPONENT_KUBE_CONTROLLER_MANAGER,
            COMPONENT_KUBE_SCHEDULER,
            COMPONENT_KWOK_CONTROLLER,
        ],
    )


@dataclass
class JaegerConfig:
    image: str
    version: str
    port: int = 0


def build_jaeger_component(conf: JaegerConfig) -> Component:
    args = [
        "--collector.otlp.enabled=true",
        f"--query.http-server.host-port={PUBLIC_ADDRESS}:{JAEGER_PORT}",
    ]
    ports = []
    if conf.port:
        ports.append(Port(port=JAEGER_PORT, host_port=conf.port))

    return Component(
        name=COMPONENT_JAEGER,
        version=conf.version,
        image=conf.image,
        args=args,
        ports=ports,
        metric=ComponentMetric(
            scheme="http",
            host=f"{LOCAL_ADDRESS}:{JAEGER_ADMIN_PORT}",
            path="/metrics",
        ),
        links=[COMPONENT_KUBE_APISERVER],
    )


def build_control_plane_component(
    name: str,
    host: str,
    cert_path: str,
    key_path: str,
) -> Component:
    """Describe a control-plane component that kind runs itself.

    Only the metrics descriptor matters: kind owns the static pod.
    """
    return Component(
        name=name,
        metric=ComponentMetric(
            scheme="https",
            host=host,
            path="/metrics",
            cert_path=cert_path,
            key_path=key_path,
            insecure_skip_verify=True,
        ),
    )
