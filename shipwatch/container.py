"""Containers described by Docker inspect data, and the labels that steer updates."""

from __future__ import annotations

import copy
import re
from dataclasses import dataclass
from typing import Any

from .util import slice_equal, slice_subtract, string_map_subtract, struct_map_subtract

WATCHTOWER_LABEL = "com.centurylinklabs.watchtower"
SIGNAL_LABEL = "com.centurylinklabs.watchtower.stop-signal"
ENABLE_LABEL = "com.centurylinklabs.watchtower.enable"
MONITOR_ONLY_LABEL = "com.centurylinklabs.watchtower.monitor-only"
DEPENDS_ON_LABEL = "com.centurylinklabs.watchtower.depends-on"
ZODIAC_LABEL = "com.centurylinklabs.zodiac.original-image"
SCOPE_LABEL = "com.centurylinklabs.watchtower.scope"
PRE_CHECK_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-check"
POST_CHECK_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-check"
PRE_UPDATE_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-update"
POST_UPDATE_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-update"
PRE_UPDATE_TIMEOUT_LABEL = "com.centurylinklabs.watchtower.lifecycle.pre-update-timeout"
POST_UPDATE_TIMEOUT_LABEL = "com.centurylinklabs.watchtower.lifecycle.post-update-timeout"

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})
_INTEGER = re.compile(r"[+-]?[0-9]+")
_DEFAULT_HOOK_TIMEOUT = 1


class ContainerConfigError(Exception):
    """The container cannot be recreated from the information available."""


class NoImageInfoError(ContainerConfigError):
    """No image inspect data is available for the container."""

    def __init__(self, message: str = "no available image info") -> None:
        super().__init__(message)


class NoContainerInfoError(ContainerConfigError):
    """No container inspect data is available."""

    def __init__(self, message: str = "no available container info") -> None:
        super().__init__(message)


class InvalidConfigError(ContainerConfigError):
    """The container or host configuration is missing."""

    def __init__(self, message: str = "container configuration missing or invalid") -> None:
        super().__init__(message)


def _parse_bool(raw: str) -> bool | None:
    if raw in _TRUE_VALUES:
        return True
    if raw in _FALSE_VALUES:
        return False
    return None


def _image_name_from(labels: dict[str, str], configured_image: str) -> str:
    image_name = labels.get(ZODIAC_LABEL, configured_image)
    if ":" not in image_name:
        image_name = f"{image_name}:latest"
    return image_name


def contains_watchtower_label(labels: dict[str, str] | None) -> bool:
    """Tell whether the labels mark a container as a watchtower instance."""
    return (labels or {}).get(WATCHTOWER_LABEL) == "true"


@dataclass
class Container:
    """A Docker container, backed by its inspect data and that of its image."""

    container_info: dict[str, Any] | None
    image_info: dict[str, Any] | None = None
    linked_to_restarting: bool = False
    stale: bool = False

    @property
    def _info(self) -> dict[str, Any]:
        if self.container_info is None:
            raise NoContainerInfoError()
        return self.container_info

    @property
    def _labels(self) -> dict[str, str]:
        if self.container_info is None:
            return {}
        config = self.container_info.get("Config") or {}
        return config.get("Labels") or {}

    def _label(self, label: str) -> str:
        return self._labels.get(label, "")

    def _timeout_label(self, label: str) -> int:
        value = self._label(label)
        if not _INTEGER.fullmatch(value):
            return _DEFAULT_HOOK_TIMEOUT
        return int(value)

    def id(self) -> str:
        """The Docker container ID."""
        return self._info["Id"]

    def is_running(self) -> bool:
        """Whether the container state reports it as running."""
        return bool((self._info.get("State") or {}).get("Running", False))

    def is_restarting(self) -> bool:
        """Whether the container state reports it as restarting."""
        return bool((self._info.get("State") or {}).get("Restarting", False))

    def name(self) -> str:
        """The Docker container name."""
        return self._info["Name"]

    def image_id(self) -> str:
        """The ID of the image the container was started from."""
        if self.image_info is None:
            raise NoImageInfoError()
        return self.image_info["Id"]

    def safe_image_id(self) -> str:
        """The image ID, or an empty string when no image data is available."""
        if self.image_info is None:
            return ""
        return self.image_info.get("Id", "")

    def image_name(self) -> str:
        """The image name the container uses, with ``latest`` assumed as tag."""
        config = self._info.get("Config") or {}
        return _image_name_from(self._labels, config.get("Image", ""))

    def enabled(self) -> bool | None:
        """The value of the enable label, or None when unset or unparsable."""
        raw = self._labels.get(ENABLE_LABEL)
        if raw is None:
            return None
        return _parse_bool(raw)

    def is_monitor_only(self) -> bool:
        """Whether the monitor-only label is set to a true value."""
        raw = self._labels.get(MONITOR_ONLY_LABEL)
        return raw is not None and _parse_bool(raw) is True

    def scope(self) -> str | None:
        """The scope label value, or None when not set."""
        return self._labels.get(SCOPE_LABEL)

    def links(self) -> list[str]:
        """Names of the containers this container depends on."""
        depends_on = self._label(DEPENDS_ON_LABEL)
        if depends_on:
            return depends_on.split(",")
        if self.container_info is None:
            return []
        host_config = self.container_info.get("HostConfig") or {}
        return [link.split(":")[0] for link in host_config.get("Links") or []]

    def to_restart(self) -> bool:
        """Whether the container is stale or linked to a restarting one."""
        return self.stale or self.linked_to_restarting

    def is_watchtower(self) -> bool:
        """Whether the container is a watchtower instance itself."""
        return contains_watchtower_label(self._labels)

    def pre_update_timeout(self) -> int:
        """Minutes the pre-update command may run; 0 means no limit."""
        return self._timeout_label(PRE_UPDATE_TIMEOUT_LABEL)

    def post_update_timeout(self) -> int:
        """Minutes the post-update command may run; 0 means no limit."""
        return self._timeout_label(POST_UPDATE_TIMEOUT_LABEL)

    def stop_signal(self) -> str:
        """The custom stop signal from the labels, or an empty string."""
        return self._label(SIGNAL_LABEL)

    def lifecycle_pre_check_command(self) -> str:
        return self._label(PRE_CHECK_LABEL)

    def lifecycle_post_check_command(self) -> str:
        return self._label(POST_CHECK_LABEL)

    def lifecycle_pre_update_command(self) -> str:
        return self._label(PRE_UPDATE_LABEL)

    def lifecycle_post_update_command(self) -> str:
        return self._label(POST_UPDATE_LABEL)

    def runtime_config(self) -> dict[str, Any]:
        """The container config reduced to the options overridden at run time.

        Values equal to the image defaults are dropped so that a recreated
        container picks up the defaults of a newer image.
        """
        if self.image_info is None:
            raise NoImageInfoError()
        info = self._info
        config = copy.deepcopy(info.get("Config") or {})
        host_config = info.get("HostConfig") or {}
        image_config = self.image_info.get("Config") or {}

        if config.get("WorkingDir", "") == image_config.get("WorkingDir", ""):
            config["WorkingDir"] = ""
        if config.get("User", "") == image_config.get("User", ""):
            config["User"] = ""
        if str(host_config.get("NetworkMode") or "").startswith("container:"):
            config["Hostname"] = ""

        if slice_equal(config.get("Entrypoint"), image_config.get("Entrypoint")):
            config["Entrypoint"] = None
            if slice_equal(config.get("Cmd"), image_config.get("Cmd")):
                config["Cmd"] = None

        config["Env"] = slice_subtract(config.get("Env"), image_config.get("Env"))
        config["Labels"] = string_map_subtract(config.get("Labels"), image_config.get("Labels"))
        config["Volumes"] = struct_map_subtract(config.get("Volumes"), image_config.get("Volumes"))

        image_ports = image_config.get("ExposedPorts") or {}
        exposed = {
            port: value
            for port, value in (config.get("ExposedPorts") or {}).items()
            if port not in image_ports
        }
        for port in host_config.get("PortBindings") or {}:
            exposed[port] = {}
        config["ExposedPorts"] = exposed

        config["Image"] = _image_name_from(config["Labels"], config.get("Image", ""))
        return config

    def host_config(self) -> dict[str, Any]:
        """The host config with links rewritten for the create API."""
        host_config = copy.deepcopy(self._info.get("HostConfig") or {})
        links = host_config.get("Links")
        if links:
            host_config["Links"] = [
                f"{link[:link.index(':')]}:{link[link.rfind('/'):]}" for link in links
            ]
        return host_config

    def has_image_info(self) -> bool:
        """Whether image information could be retrieved for the container."""
        return self.image_info is not None

    def verify_configuration(self) -> None:
        """Check that the container can be recreated once removed.

        A missing set of exposed ports alongside port bindings is repaired
        in place with an empty mapping.
        """
        if self.image_info is None:
            raise NoImageInfoError()
        if self.container_info is None:
            raise NoContainerInfoError()
        config = self.container_info.get("Config")
        if config is None:
            raise InvalidConfigError()
        host_config = self.container_info.get("HostConfig")
        if host_config is None:
            raise InvalidConfigError()
        if host_config.get("PortBindings") and config.get("ExposedPorts") is None:
            config["ExposedPorts"] = {}