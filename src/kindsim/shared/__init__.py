"""Shared modules for kindsim.

This module provides functionality used across the cluster runtime
and the CLI:
- Paths (~/.kindsim layout and working directory entries)
- Logging (structlog setup)
"""

from .logging import configure_logging, current_verbosity, get_logger
from .paths import (
    CACHE_DIR,
    CLUSTERS_DIR,
    KINDSIM_DIR,
    cluster_workdir,
    ensure_dirs,
)

__all__ = [
    # Paths
    "KINDSIM_DIR",
    "CLUSTERS_DIR",
    "CACHE_DIR",
    "cluster_workdir",
    "ensure_dirs",
    # Logging
    "configure_logging",
    "current_verbosity",
    "get_logger",
]
