"""Reading, checking and rewriting the parsed command-line flags."""

from __future__ import annotations

import logging
import os
from datetime import timedelta
from pathlib import Path
from typing import NamedTuple

from .flagset import DEFAULT_INTERVAL, FlagError, FlagSet

log = logging.getLogger(__name__)

SUPPORTED_PORCELAIN = "v1"

SECRET_FLAGS = (
    "notification-email-server-password",
    "notification-slack-hook-url",
    "notification-msteams-hook",
    "notification-gotify-token",
    "notification-url",
)

_SLICE_KINDS = frozenset({"string_slice", "string_array"})


class CommonFlags(NamedTuple):
    """The flags used throughout the main program flow."""

    cleanup: bool
    no_restart: bool
    monitor_only: bool
    timeout: timedelta


def _set_env_option(key: str, value: str) -> None:
    if value == "" or value == os.environ.get(key, ""):
        return
    os.environ[key] = value


def env_config(flags: FlagSet) -> None:
    """Export the Docker client options as environment variables.

    Raises FlagError when the Docker flags are not defined.
    """
    host = flags.get("host")
    tls_verify = flags.get("tlsverify")
    version = flags.get("api-version")

    _set_env_option("DOCKER_HOST", host)
    if tls_verify:
        _set_env_option("DOCKER_TLS_VERIFY", "1")
    _set_env_option("DOCKER_API_VERSION", version)


def read_flags(flags: FlagSet) -> CommonFlags:
    """Read cleanup, no-restart, monitor-only and the stop timeout."""
    return CommonFlags(
        cleanup=flags.get("cleanup"),
        no_restart=flags.get("no-restart"),
        monitor_only=flags.get("monitor-only"),
        timeout=flags.get("stop-timeout"),
    )


def is_file(path: str) -> bool:
    """Tell whether ``path`` names something on disk.

    Strings with a colon anywhere but in the second position (as in a
    drive letter) are taken to be something else, such as a URL.
    """
    first_colon = path.find(":")
    if first_colon not in (1, -1):
        return False
    try:
        os.stat(path)
    except FileNotFoundError:
        return False
    except (OSError, ValueError):
        return True
    return True


def _read_secret_file(path: str) -> str:
    try:
        return Path(path).read_text()
    except OSError as error:
        raise FlagError(f"failed to read secret file {path!r}: {error}") from error


def _secret_from_file(flags: FlagSet, name: str) -> None:
    flag = flags.lookup(name)
    if flag is None:
        raise FlagError(f"flag accessed but not defined: {name}")

    if flag.kind in _SLICE_KINDS:
        values: list[str] = []
        for value in flag.value:
            if value and is_file(value):
                values.extend(line for line in _read_secret_file(value).splitlines() if line)
            else:
                values.append(value)
        flag.value = values
        return

    value = str(flag.value)
    if value and is_file(value):
        flags.set(name, _read_secret_file(value).strip())


def get_secrets_from_files(flags: FlagSet) -> None:
    """Replace secret flag values that name a file with that file's contents.

    List flags get one entry for every non-empty line of such a file.
    """
    for name in SECRET_FLAGS:
        _secret_from_file(flags, name)


def _set_if_default(flags: FlagSet, name: str, value: str) -> None:
    if flags.changed(name):
        return
    try:
        flags.set(name, value)
    except FlagError as error:
        log.error("Failed to set flag: %s", error)


def process_flag_aliases(flags: FlagSet) -> None:
    """Apply the flags that set other flags: porcelain, interval, debug and trace.

    Raises FlagError for an unknown porcelain version or when both a
    schedule and an interval are given.
    """
    porcelain = flags.get("porcelain")
    if porcelain:
        if porcelain != SUPPORTED_PORCELAIN:
            raise FlagError(
                f'Unknown porcelain version "{porcelain}". Supported values: "v1"'
            )
        try:
            flags.append("notification-url", "logger://")
        except FlagError as error:
            log.error("Failed to set flag: %s", error)
        _set_if_default(flags, "notification-log-stdout", "true")
        _set_if_default(flags, "notification-report", "true")
        _set_if_default(flags, "notification-template", f"porcelain.{porcelain}.summary-no-log")

    # Defaults come from the environment, so a non-default value counts as set.
    schedule_changed = flags.changed("schedule") or flags.get("schedule") != ""
    interval_changed = flags.changed("interval") or flags.get("interval") != DEFAULT_INTERVAL

    if interval_changed and schedule_changed:
        raise FlagError("Only schedule or interval can be defined, not both.")

    if interval_changed or not schedule_changed:
        flags.set("schedule", f"@every {flags.get('interval')}s")

    if flags.get("debug"):
        flags.set("log-level", "debug")
    if flags.get("trace"):
        flags.set("log-level", "trace")