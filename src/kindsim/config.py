"""Cluster configuration management.

Handles the options a cluster is created with and the resolved
configuration persisted in the cluster working directory.
Supports environment variable overrides.
"""

from __future__ import annotations

import dataclasses
import os
import platform
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .components.model import Component, ComponentPatch
from .errors import ConfigurationInvalid
from .shared.paths import CACHE_DIR
from .version import parse_version

# Default values
DEFAULT_RUNTIME = "docker"
DEFAULT_KUBE_VERSION = "v1.29.2"
DEFAULT_KIND_VERSION = "v0.22.0"
DEFAULT_KWOK_CONTROLLER_IMAGE = "registry.k8s.io/kwok/kwok:v0.5.1"
DEFAULT_DASHBOARD_IMAGE = "docker.io/kubernetesui/dashboard:v2.7.0"
DEFAULT_PROMETHEUS_IMAGE = "docker.io/prom/prometheus:v2.49.1"
DEFAULT_JAEGER_IMAGE = "docker.io/jaegertracing/all-in-one:1.53.0"
DEFAULT_BIND_ADDRESS = "0.0.0.0"

SUPPORTED_RUNTIMES = ("docker", "podman", "nerdctl")

ENV_PREFIX = "KINDSIM_"

_ARCH_ALIASES = {"x86_64": "amd64", "amd64": "amd64", "aarch64": "arm64", "arm64": "arm64"}


@dataclass
class ClusterOptions:
    """Options a cluster is created with.

    Ports set to 0 disable the matching component or port mapping.
    Empty image/binary fields are derived from ``kube_version``.
    """

    runtime: str = DEFAULT_RUNTIME
    kube_version: str = DEFAULT_KUBE_VERSION
    kind_node_image: str = ""
    kwok_controller_image: str = DEFAULT_KWOK_CONTROLLER_IMAGE
    dashboard_image: str = DEFAULT_DASHBOARD_IMAGE
    prometheus_image: str = DEFAULT_PROMETHEUS_IMAGE
    jaeger_image: str = DEFAULT_JAEGER_IMAGE
    kind_binary: str = ""
    kubectl_binary: str = ""
    bin_suffix: str = ""

    bind_address: str = DEFAULT_BIND_ADDRESS
    kube_apiserver_port: int = 0
    etcd_port: int = 0
    kwok_controller_port: int = 0
    dashboard_port: int = 0
    prometheus_port: int = 0
    jaeger_port: int = 0

    kube_feature_gates: str = ""
    kube_runtime_config: str = ""
    kube_audit_policy: str = ""
    kube_scheduler_config: str = ""
    kube_apiserver_cert_sans: list[str] = field(default_factory=list)
    disable_kube_scheduler: bool = False
    disable_kube_controller_manager: bool = False
    disable_qps_limits: bool = False
    enable_crds: list[str] = field(default_factory=list)

    cache_dir: str = str(CACHE_DIR)
    quiet_pull: bool = False


@dataclass
class ClusterConfig:
    """Resolved configuration of one cluster."""

    options: ClusterOptions = field(default_factory=ClusterOptions)
    components: list[Component] = field(default_factory=list)
    component_patches: list[ComponentPatch] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "options": dataclasses.asdict(self.options),
            "components": [c.to_dict() for c in self.components],
            "component_patches": [p.to_dict() for p in self.component_patches],
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ClusterConfig:
        options_data = data.get("options") or {}
        known = {f.name for f in dataclasses.fields(ClusterOptions)}
        unknown = set(options_data) - known
        if unknown:
            raise ConfigurationInvalid(f"unknown options: {', '.join(sorted(unknown))}")
        try:
            return cls(
                options=ClusterOptions(**options_data),
                components=[Component.from_dict(c) for c in data.get("components") or []],
                component_patches=[
                    ComponentPatch.from_dict(p) for p in data.get("component_patches") or []
                ],
            )
        except (KeyError, TypeError) as e:
            raise ConfigurationInvalid(f"malformed configuration: {e}") from e


def _platform() -> tuple[str, str]:
    system = platform.system().lower()
    machine = platform.machine().lower()
    return system, _ARCH_ALIASES.get(machine, machine)


def finalize_options(options: ClusterOptions) -> ClusterOptions:
    """Fill options derived from the kube version and the host platform."""
    system, arch = _platform()
    if not options.kind_node_image:
        options.kind_node_image = f"docker.io/kindest/node:{options.kube_version}"
    if not options.kind_binary:
        options.kind_binary = (
            "https://github.com/kubernetes-sigs/kind/releases/download/"
            f"{DEFAULT_KIND_VERSION}/kind-{system}-{arch}"
        )
    if not options.kubectl_binary:
        options.kubectl_binary = (
            f"https://dl.k8s.io/release/{options.kube_version}/bin/{system}/{arch}/kubectl"
        )
    if system == "windows" and not options.bin_suffix:
        options.bin_suffix = ".exe"
    return options


def apply_env_overrides(options: ClusterOptions) -> ClusterOptions:
    """Override options from ``KINDSIM_<OPTION>`` environment variables."""
    for f in dataclasses.fields(ClusterOptions):
        raw = os.environ.get(ENV_PREFIX + f.name.upper())
        if raw is None or raw == "":
            continue
        current = getattr(options, f.name)
        try:
            if isinstance(current, bool):
                value: Any = raw.strip().lower() in ("1", "true", "yes", "on")
            elif isinstance(current, int):
                value = int(raw)
            elif isinstance(current, list):
                value = [item.strip() for item in raw.split(",") if item.strip()]
            else:
                value = raw
        except ValueError as e:
            raise ConfigurationInvalid(f"invalid value for {ENV_PREFIX}{f.name.upper()}: {raw!r}") from e
        setattr(options, f.name, value)
    return options


def parse_feature_gates(value: str) -> dict[str, bool]:
    """Parse ``A=true,B=false`` into a mapping."""
    gates: dict[str, bool] = {}
    for item in filter(None, (part.strip() for part in value.split(","))):
        key, sep, raw = item.partition("=")
        if not sep or raw.lower() not in ("true", "false"):
            raise ConfigurationInvalid(f"invalid feature gate {item!r}")
        gates[key.strip()] = raw.lower() == "true"
    return gates


def parse_runtime_config(value: str) -> dict[str, str]:
    """Parse ``api/all=true,batch/v1=false`` into a mapping."""
    config: dict[str, str] = {}
    for item in filter(None, (part.strip() for part in value.split(","))):
        key, sep, raw = item.partition("=")
        if not sep:
            raise ConfigurationInvalid(f"invalid runtime config {item!r}")
        config[key.strip()] = raw.strip()
    return config


def validate_options(options: ClusterOptions) -> None:
    """Fail fast on configuration that would break before any external call.

    Raises:
        ConfigurationInvalid: First problem found.
    """
    if options.runtime not in SUPPORTED_RUNTIMES:
        raise ConfigurationInvalid(
            f"unsupported runtime {options.runtime!r}, expected one of {', '.join(SUPPORTED_RUNTIMES)}"
        )
    parse_version(options.kube_version)
    parse_feature_gates(options.kube_feature_gates)
    parse_runtime_config(options.kube_runtime_config)
    if options.kube_audit_policy and not Path(options.kube_audit_policy).is_file():
        raise ConfigurationInvalid(f"audit policy {options.kube_audit_policy} does not exist")
    if options.kube_scheduler_config and not Path(options.kube_scheduler_config).is_file():
        raise ConfigurationInvalid(
            f"scheduler config {options.kube_scheduler_config} does not exist"
        )
    for name in (
        "kube_apiserver_port",
        "etcd_port",
        "kwok_controller_port",
        "dashboard_port",
        "prometheus_port",
        "jaeger_port",
    ):
        port = getattr(options, name)
        if not 0 <= port <= 65535:
            raise ConfigurationInvalid(f"{name} out of range: {port}")


def load_config(path: Path | None = None) -> ClusterConfig:
    """Load cluster configuration.

    Precedence (highest to lowest):
    1. Environment variables
    2. Config file
    3. Defaults

    Args:
        path: Optional YAML file with ``options`` and ``component_patches``.

    Returns:
        ClusterConfig with derived defaults filled in.
    """
    data: dict[str, Any] = {}
    if path is not None and path.exists():
        try:
            with open(path) as f:
                data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationInvalid(f"failed to parse {path}: {e}") from e
        if not isinstance(data, dict):
            raise ConfigurationInvalid(f"{path} must contain a mapping")

    config = ClusterConfig.from_dict(data)
    apply_env_overrides(config.options)
    finalize_options(config.options)
    return config


def save_config(path: Path, config: ClusterConfig) -> None:
    """Write the resolved configuration to ``path``."""
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w") as f:
        yaml.safe_dump(config.to_dict(), f, default_flow_style=False, sort_keys=False)
