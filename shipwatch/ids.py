"""Container and image identifiers, and discovery of the ID of the container we run in."""

from __future__ import annotations

import os
import re
from pathlib import Path

_DOCKER_CONTAINER_PATTERN = re.compile(r"[0-9]+:.*:/docker/([a-f|0-9]{64})")
_SHORT_LENGTH = 12
_DEFAULT_ALGORITHM = "sha256"


def short_id(identifier: str) -> str:
    """Shorten a container or image ID to 12 characters.

    A ``sha256:`` prefix is dropped; any other prefix is kept in front of
    the shortened ID.
    """
    prefix, sep, digest = identifier.partition(":")
    if not sep:
        return identifier[:_SHORT_LENGTH]
    if prefix == _DEFAULT_ALGORITHM:
        return digest[:_SHORT_LENGTH]
    return f"{prefix}:{digest[:_SHORT_LENGTH]}"


def running_container_id_from_string(text: str) -> str:
    """Extract the Docker container ID from cgroup data, or an empty string."""
    match = _DOCKER_CONTAINER_PATTERN.search(text)
    if match is None:
        return ""
    return match.group(1)


def get_running_container_id() -> str:
    """Resolve the ID of the container this process runs in from its cgroup file.

    Raises OSError when the cgroup information cannot be read.
    """
    cgroup_file = Path("/proc") / str(os.getpid()) / "cgroup"
    return running_container_id_from_string(cgroup_file.read_text())