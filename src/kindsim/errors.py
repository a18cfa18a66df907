"""Error taxonomy for kindsim.

Every failure that crosses a module boundary is one of the classes below.
Collaborators that only report failures as text (kubectl, kind, the
container runtime) are classified through ``is_not_found`` and
``is_already_exists`` so that the matching policy lives in one place.
"""

from __future__ import annotations

from dataclasses import dataclass, field

# Upper bound on the captured stderr kept on ExternalCommandFailed
STDERR_TAIL_BYTES = 4096

NOT_FOUND_MARKERS = ("NotFound", "doesn't have a resource type")
ALREADY_EXISTS_MARKER = "AlreadyExists"


@dataclass
class KindsimError(Exception):
    """Base error class for kindsim errors."""

    message: str

    def __str__(self) -> str:
        return self.message


@dataclass
class ExternalCommandFailed(KindsimError):
    """A spawned process exited nonzero or could not start."""

    message: str = ""
    command: list[str] = field(default_factory=list)
    exit_code: int | None = None
    stderr_tail: str = ""

    def __post_init__(self) -> None:
        if not self.message:
            cmd = " ".join(self.command)
            if self.exit_code is None:
                self.message = f"failed to start `{cmd}`: {self.stderr_tail}"
            else:
                self.message = f"`{cmd}` exited with code {self.exit_code}: {self.stderr_tail}"


@dataclass
class ResourceNotFound(KindsimError):
    """The requested resource does not exist."""

    message: str = "resource not found"
    kind: str = ""
    name: str = ""


@dataclass
class ResourceConflict(KindsimError):
    """The resource being created already exists."""

    message: str = "resource already exists"
    kind: str = ""
    name: str = ""


@dataclass
class WaitTimeoutError(KindsimError):
    """A poll deadline elapsed before its condition succeeded."""

    message: str = "timed out waiting for the condition"
    timeout: float | None = None
    last_error: BaseException | None = None


@dataclass
class DownloadFailed(KindsimError):
    """A binary could not be downloaded."""

    message: str = "download failed"
    url: str = ""


@dataclass
class ConfigurationInvalid(KindsimError):
    """Configuration is malformed or references missing paths."""

    message: str = "invalid configuration"


def is_not_found(text: str | bytes) -> bool:
    """Check collaborator output for a not-found indicator.

    kubectl only reports a missing object as text
    (``Error from server (NotFound): ...``), and an unserved resource type
    as ``the server doesn't have a resource type``. Any other failure cause that
    happens to print the marker is classified the same way.
    """
    if isinstance(text, bytes):
        text = text.decode(errors="replace")
    return any(marker in text for marker in NOT_FOUND_MARKERS)


def is_already_exists(text: str | bytes) -> bool:
    """Check collaborator output for a create-conflict indicator."""
    if isinstance(text, bytes):
        text = text.decode(errors="replace")
    return ALREADY_EXISTS_MARKER in text


def annotate(exc: BaseException, operation: str, component: str | None = None) -> BaseException:
    """Attach operation/component context to an exception and return it."""
    note = f"while running {operation}"
    if component:
        note += f" for component {component!r}"
    exc.add_note(note)
    return exc
