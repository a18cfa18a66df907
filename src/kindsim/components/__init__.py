"""Component model, builders and derived configuration."""

from .model import (
    Component,
    ComponentMetric,
    ComponentPatch,
    Env,
    ExtraArg,
    Port,
    Volume,
    apply_patch,
    convert_to_pod,
    expand_volume_host_paths,
    get_component_patch,
)
from .prometheus import build_prometheus_config

__all__ = [
    "Component",
    "ComponentMetric",
    "ComponentPatch",
    "Env",
    "ExtraArg",
    "Port",
    "Volume",
    "apply_patch",
    "build_prometheus_config",
    "convert_to_pod",
    "expand_volume_host_paths",
    "get_component_patch",
]
