"""Path management for kindsim.

Manages the ~/.kindsim/ directory structure and the layout of a cluster
working directory.
"""

from pathlib import Path

# Base directory for all kindsim data
KINDSIM_DIR = Path.home() / ".kindsim"

# One working directory per cluster
CLUSTERS_DIR = KINDSIM_DIR / "clusters"

# Shared download and image archive cache
CACHE_DIR = KINDSIM_DIR / "cache"

# Entries inside a cluster working directory
PKI_NAME = "pki"
MANIFESTS_NAME = "manifests"
LOGS_NAME = "logs"
BIN_NAME = "bin"
CONFIG_NAME = "kindsim.yaml"
KIND_CONFIG_NAME = "kind.yaml"
IN_HOST_KUBECONFIG_NAME = "kubeconfig.yaml"
AUDIT_POLICY_NAME = "audit.yaml"
AUDIT_LOG_NAME = "audit.log"
SCHEDULER_CONFIG_NAME = "scheduler.yaml"
PROMETHEUS_CONFIG_NAME = "prometheus.yaml"
APISERVER_TRACING_CONFIG_NAME = "apiserver-tracing-config.yaml"

# Inside the cache directory
IMAGE_ARCHIVE_NAME = "image-archive"


def ensure_dirs() -> None:
    """Create directory structure if missing.

    Called once on CLI startup. Creates:
    - ~/.kindsim/ (mode 0o700 - user-only access)
    - ~/.kindsim/clusters/
    - ~/.kindsim/cache/
    """
    KINDSIM_DIR.mkdir(mode=0o700, exist_ok=True)
    CLUSTERS_DIR.mkdir(exist_ok=True)
    CACHE_DIR.mkdir(exist_ok=True)


def cluster_workdir(name: str) -> Path:
    """Get the default working directory of a cluster.

    Args:
        name: Cluster name

    Returns:
        Path to ~/.kindsim/clusters/<name>
    """
    return CLUSTERS_DIR / name
