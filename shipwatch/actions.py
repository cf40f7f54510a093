"""Sanity checks before a run, duplicate instance cleanup and implicit restarts."""

from __future__ import annotations

import logging
import re
from collections.abc import Iterable, Sequence
from datetime import datetime, timedelta, timezone
from typing import Protocol

from .container import Container
from .filters import Filter, filter_by_scope, watchtower_containers_filter

log = logging.getLogger(__name__)

WATCHTOWER_STOP_TIMEOUT = timedelta(minutes=10)

_TIMESTAMP = re.compile(
    r"^(?P<base>\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})"
    r"(?:\.(?P<fraction>\d+))?"
    r"(?P<zone>Z|[+-]\d{2}:\d{2})?$"
)


class ActionError(Exception):
    """An action could not be completed."""


class ContainerClient(Protocol):
    """The part of the Docker client the actions rely on."""

    def list_containers(self, filter_fn: Filter) -> list[Container]:
        """Return the containers accepted by ``filter_fn``."""

    def stop_container(self, container: Container, timeout: timedelta) -> None:
        """Stop and remove a container, raising on failure."""

    def remove_image_by_id(self, image_id: str) -> None:
        """Remove an image, raising on failure."""


def _created_at(container: Container) -> datetime:
    raw = str((container.container_info or {}).get("Created") or "")
    match = _TIMESTAMP.match(raw)
    if match is None:
        return datetime.now(timezone.utc)
    fraction = (match.group("fraction") or "")[:6].ljust(6, "0")
    zone = match.group("zone") or "Z"
    if zone == "Z":
        zone = "+00:00"
    try:
        return datetime.fromisoformat(f"{match.group('base')}.{fraction}{zone}")
    except ValueError:
        return datetime.now(timezone.utc)


def check_for_sanity(client: ContainerClient, filter_fn: Filter, rolling_restarts: bool) -> None:
    """Make sure the configuration is workable before starting.

    Raises ActionError when rolling restarts are requested while a
    watched container depends on another one.
    """
    log.debug("Making sure everything is sane before starting")
    if not rolling_restarts:
        return
    for container in client.list_containers(filter_fn):
        if container.links():
            raise ActionError(
                f'"{container.name()}" is depending on at least one other container. '
                "This is not compatible with rolling restarts"
            )


def check_for_multiple_watchtower_instances(
    client: ContainerClient, cleanup: bool, scope: str
) -> None:
    """Stop all watchtower instances in the scope except the most recently created one.

    Raises ActionError when some of the older instances could not be stopped.
    """
    containers = client.list_containers(filter_by_scope(scope, watchtower_containers_filter))
    if len(containers) <= 1:
        log.debug("There are no additional watchtower containers")
        return
    log.info("Found multiple running watchtower instances. Cleaning up.")
    _cleanup_excess_watchtowers(containers, client, cleanup)


def _cleanup_excess_watchtowers(
    containers: Iterable[Container], client: ContainerClient, cleanup: bool
) -> None:
    ordered = sorted(containers, key=_created_at)
    stop_errors = 0
    for container in ordered[:-1]:
        try:
            client.stop_container(container, WATCHTOWER_STOP_TIMEOUT)
        except Exception as error:
            log.error("Could not stop a previous watchtower instance: %s", error)
            stop_errors += 1
            continue
        if cleanup:
            try:
                client.remove_image_by_id(container.image_id())
            except Exception as error:
                log.warning(
                    "Could not cleanup watchtower images, possibly because of other "
                    "watchtowers instances in other scopes: %s",
                    error,
                )
    if stop_errors:
        raise ActionError(f"{stop_errors} errors while stopping watchtower containers")


def _linked_container_marked_for_restart(
    links: Iterable[str], containers: Sequence[Container]
) -> str:
    for link in links:
        link_name = link if link.startswith("/") else "/" + link
        if any(c.name() == link_name and c.to_restart() for c in containers):
            return link_name
    return ""


def update_implicit_restart(containers: Sequence[Container]) -> None:
    """Mark containers linked to a container that will restart as restarting too."""
    for container in containers:
        if container.to_restart():
            continue
        link = _linked_container_marked_for_restart(container.links(), containers)
        if link:
            log.debug("container %s is linked to restarting %s", container.name(), link)
            container.linked_to_restarting = True