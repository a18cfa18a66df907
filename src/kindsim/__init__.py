"""kindsim - simulated Kubernetes clusters on kind."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("kindsim")
except PackageNotFoundError:
    __version__ = "0.0.0.dev0"  # Fallback for editable installs without metadata

__all__ = ["__version__"]
