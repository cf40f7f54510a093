"""Predicates that choose which containers are watched."""

from __future__ import annotations

import re
from collections.abc import Callable, Sequence
from typing import Any

Filter = Callable[[Any], bool]

_NO_CONDITIONS: tuple[Filter, ...] = ()


def watchtower_containers_filter(container: Any) -> bool:
    """Keep only watchtower containers."""
    return container.is_watchtower()


def no_filter(container: Any) -> bool:
    """Keep every container: a filter with no conditions accepts anything."""
    return all(condition(container) for condition in _NO_CONDITIONS)


def _name_matches(pattern: str, container_name: str) -> bool:
    if pattern == container_name or pattern == container_name[1:]:
        return True
    try:
        compiled = re.compile(pattern)
    except re.error:
        return False
    match = compiled.search(container_name)
    if match is None:
        return False
    return match.start() <= 1 and match.end() >= len(container_name) - 1


def filter_by_names(names: Sequence[str] | None, base_filter: Filter | None) -> Filter | None:
    """Keep containers whose name equals, or fully matches as a regex, one of ``names``."""
    if not names:
        return base_filter
    wanted = list(names)

    def matches(container: Any) -> bool:
        container_name = container.name()
        if any(_name_matches(name, container_name) for name in wanted):
            return base_filter(container)
        return False

    return matches


def filter_by_enable_label(base_filter: Filter) -> Filter:
    """Keep only containers on which the enable label is set."""

    def matches(container: Any) -> bool:
        if container.enabled() is None:
            return False
        return base_filter(container)

    return matches


def filter_by_disabled_label(base_filter: Filter) -> Filter:
    """Drop containers whose enable label is explicitly false."""

    def matches(container: Any) -> bool:
        if container.enabled() is False:
            return False
        return base_filter(container)

    return matches


def filter_by_scope(scope: str, base_filter: Filter) -> Filter:
    """Keep only containers labelled with the given scope."""
    if not scope:
        return base_filter

    def matches(container: Any) -> bool:
        if container.scope() == scope:
            return base_filter(container)
        return False

    return matches


def filter_by_image(images: Sequence[str] | None, base_filter: Filter) -> Filter:
    """Keep containers whose image name, without tag, is one of ``images``."""
    if images is None:
        return base_filter
    wanted = set(images)

    def matches(container: Any) -> bool:
        image = container.image_name().split(":")[0]
        if image in wanted:
            return base_filter(container)
        return False

    return matches


def build_filter(
    names: Sequence[str] | None, enable_label: bool, scope: str
) -> tuple[Filter, str]:
    """Combine the configured filters and describe them in one sentence."""
    names = list(names or [])
    parts: list[str] = []
    filter_fn = filter_by_names(names, no_filter)

    if names:
        parts.append('which name matches "' + '" or "'.join(names) + '"')
    if enable_label:
        filter_fn = filter_by_enable_label(filter_fn)
        parts.append("using enable label")
    if scope:
        filter_fn = filter_by_scope(scope, filter_fn)
        parts.append(f'in scope "{scope}"')
    filter_fn = filter_by_disabled_label(filter_fn)

    if parts:
        description = "Only checking containers " + ", ".join(parts)
    else:
        description = "Checking all containers (except explicitly disabled with label)"
    return filter_fn, description