"""Test doubles for kindsim.

- FakeExecutor: records commands instead of spawning processes
"""

from .fake_executor import FakeExecutor, command_failed

__all__ = ["FakeExecutor", "command_failed"]
