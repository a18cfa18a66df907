"""Process execution and polling primitives."""

from .executor import Executor
from .wait import poll

__all__ = ["Executor", "poll"]
