"""Version parsing helpers."""

from __future__ import annotations

import re

from packaging.version import InvalidVersion, Version

from .errors import ConfigurationInvalid

_VERSION_IN_TEXT = re.compile(r"v?(\d+\.\d+(?:\.\d+)?(?:[-+.][0-9A-Za-z.-]+)?)")


def parse_version(value: str) -> Version:
    """Parse a version string such as ``v1.29.2`` or ``0.5.1``.

    Raises:
        ConfigurationInvalid: The string is not a version.
    """
    try:
        return Version(value.strip())
    except InvalidVersion as e:
        raise ConfigurationInvalid(f"invalid version {value!r}") from e


def image_tag(image: str) -> str:
    """Return the tag of an image reference, or "" when it has none."""
    name = image.split("@", 1)[0]
    last = name.rsplit("/", 1)[-1]
    if ":" not in last:
        return ""
    return last.rsplit(":", 1)[1]


def version_from_image_tag(image: str) -> str | None:
    """Resolve a version from the image tag, None when the tag is not a version."""
    tag = image_tag(image)
    if not tag or tag == "latest":
        return None
    try:
        return str(Version(tag))
    except InvalidVersion:
        return None


def version_from_output(output: str) -> str:
    """Extract the first version found in a ``--version`` output.

    Raises:
        ConfigurationInvalid: No version could be found.
    """
    for match in _VERSION_IN_TEXT.finditer(output):
        try:
            return str(Version(match.group(1)))
        except InvalidVersion:
            continue
    raise ConfigurationInvalid(f"no version found in output {output.strip()!r}")
