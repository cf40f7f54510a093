"""Small collection helpers, random container names and version metadata."""

from __future__ import annotations

import random
import string
from collections.abc import Iterable, Mapping, Sequence
from typing import Any, TypeVar

VERSION = "v0.0.0-unknown"
USER_AGENT = f"Watchtower/{VERSION}"

_NAME_LETTERS = string.ascii_lowercase + string.ascii_uppercase
_NAME_LENGTH = 32

V = TypeVar("V")


def slice_equal(s1: Sequence[str] | None, s2: Sequence[str] | None) -> bool:
    """Return True when both sequences hold the same items in the same order."""
    return list(s1 or ()) == list(s2 or ())


def slice_subtract(a1: Iterable[str] | None, a2: Iterable[str] | None) -> list[str]:
    """Return the items of ``a1`` that do not appear in ``a2``, keeping order."""
    removed = set(a2 or ())
    return [item for item in (a1 or ()) if item not in removed]


def string_map_subtract(
    m1: Mapping[str, str] | None, m2: Mapping[str, str] | None
) -> dict[str, str]:
    """Return the entries of ``m1`` that are missing from ``m2`` or differ in value."""
    other = m2 or {}
    return {
        key: value
        for key, value in (m1 or {}).items()
        if key not in other or other[key] != value
    }


def struct_map_subtract(
    m1: Mapping[str, V] | None, m2: Mapping[str, Any] | None
) -> dict[str, V]:
    """Return the entries of ``m1`` whose keys are not present in ``m2``."""
    other = m2 or {}
    return {key: value for key, value in (m1 or {}).items() if key not in other}


def rand_name() -> str:
    """Generate a random, 32 letter, Docker compatible container name."""
    return "".join(random.choice(_NAME_LETTERS) for _ in range(_NAME_LENGTH))