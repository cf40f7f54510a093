"""Command-line flags whose defaults come from the environment."""

from __future__ import annotations

import copy
import csv
import os
import re
from collections import deque
from collections.abc import Iterable, Mapping
from dataclasses import dataclass, field
from datetime import timedelta
from fractions import Fraction
from typing import Any, NamedTuple

DOCKER_API_MIN_VERSION = "1.25"
DEFAULT_INTERVAL = int(timedelta(hours=24).total_seconds())

KINDS = frozenset({"string", "bool", "int", "duration", "string_slice", "string_array"})
_SLICE_KINDS = frozenset({"string_slice", "string_array"})

_TRUE_VALUES = frozenset({"1", "t", "T", "TRUE", "true", "True"})
_FALSE_VALUES = frozenset({"0", "f", "F", "FALSE", "false", "False"})

_DURATION_PART = re.compile(r"([0-9]*\.?[0-9]*)(ns|us|µs|μs|ms|s|m|h)")
_UNIT_NANOSECONDS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,
    "μs": 1_000,
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60_000_000_000,
    "h": 3_600_000_000_000,
}

_DEFAULTS: dict[str, Any] = {
    "DOCKER_HOST": "unix:///var/run/docker.sock",
    "DOCKER_API_VERSION": DOCKER_API_MIN_VERSION,
    "WATCHTOWER_POLL_INTERVAL": DEFAULT_INTERVAL,
    "WATCHTOWER_TIMEOUT": timedelta(seconds=10),
    "WATCHTOWER_NOTIFICATIONS": [],
    "WATCHTOWER_NOTIFICATIONS_LEVEL": "info",
    "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PORT": 25,
    "WATCHTOWER_NOTIFICATION_EMAIL_SUBJECTTAG": "",
    "WATCHTOWER_NOTIFICATION_SLACK_IDENTIFIER": "watchtower",
    "WATCHTOWER_LOG_LEVEL": "info",
}


class FlagError(Exception):
    """A flag is unknown, misused or given an invalid value."""


def _parse_bool(text: str) -> bool:
    if text in _TRUE_VALUES:
        return True
    if text in _FALSE_VALUES:
        return False
    raise ValueError(f"invalid boolean {text!r}")


def _parse_duration(text: str) -> timedelta:
    """Parse a duration such as ``1h30m``, ``10s`` or ``1.5h``."""
    rest = text
    negative = False
    if rest[:1] in ("+", "-"):
        negative = rest[0] == "-"
        rest = rest[1:]
    if rest == "0":
        return timedelta(0)
    if not rest:
        raise ValueError(f"invalid duration {text!r}")
    total = Fraction(0)
    position = 0
    while position < len(rest):
        match = _DURATION_PART.match(rest, position)
        if match is None or match.group(1) in ("", "."):
            raise ValueError(f"invalid duration {text!r}")
        total += Fraction(match.group(1)) * _UNIT_NANOSECONDS[match.group(2)]
        position = match.end()
    microseconds = int(total / 1000)
    return timedelta(microseconds=-microseconds if negative else microseconds)


def _parse_scalar(kind: str, text: str) -> Any:
    try:
        if kind == "bool":
            return _parse_bool(text)
        if kind == "int":
            return int(text, 0)
        if kind == "duration":
            return _parse_duration(text)
    except ValueError as error:
        raise FlagError(f"invalid {kind} value {text!r}: {error}") from error
    return text


def _split_slice(kind: str, text: str) -> list[str]:
    if kind == "string_array":
        return [text]
    if text == "":
        return []
    try:
        return next(csv.reader([text]))
    except csv.Error as error:
        raise FlagError(f"invalid list value {text!r}: {error}") from error


def _normalize(kind: str, value: Any) -> Any:
    if kind in _SLICE_KINDS:
        return [str(item) for item in (value or [])]
    if kind == "bool":
        return bool(value)
    if kind == "int":
        return int(value or 0)
    if kind == "duration":
        if isinstance(value, timedelta):
            return value
        return timedelta(seconds=value or 0)
    return "" if value is None else str(value)


@dataclass
class Flag:
    """A single named option with its default and current value."""

    name: str
    kind: str
    default: Any
    help: str = ""
    shorthand: str = ""
    value: Any = field(init=False)
    changed: bool = field(init=False, default=False)

    def __post_init__(self) -> None:
        self.value = copy.copy(self.default)


class FlagSet:
    """A set of long and short flags that can be parsed from arguments."""

    def __init__(self) -> None:
        self._flags: dict[str, Flag] = {}
        self._shorthands: dict[str, Flag] = {}

    def add(self, name: str, kind: str, default: Any, help: str = "", shorthand: str = "") -> Flag:
        """Define a flag; ``kind`` is one of the names in ``KINDS``."""
        if kind not in KINDS:
            raise FlagError(f"unknown flag kind {kind!r}")
        if name in self._flags:
            raise FlagError(f"flag redefined: {name}")
        if shorthand:
            if len(shorthand) != 1:
                raise FlagError(f"shorthand {shorthand!r} for {name} must be one character")
            if shorthand in self._shorthands:
                raise FlagError(f"shorthand {shorthand!r} for {name} is already in use")
        flag = Flag(name, kind, _normalize(kind, default), help, shorthand)
        self._flags[name] = flag
        if shorthand:
            self._shorthands[shorthand] = flag
        return flag

    def _require(self, name: str) -> Flag:
        flag = self._flags.get(name)
        if flag is None:
            raise FlagError(f"flag accessed but not defined: {name}")
        return flag

    def lookup(self, name: str) -> Flag | None:
        """The flag with that name, or None."""
        return self._flags.get(name)

    def get(self, name: str) -> Any:
        """The current value of a flag, typed by its kind."""
        flag = self._require(name)
        return list(flag.value) if flag.kind in _SLICE_KINDS else flag.value

    def changed(self, name: str) -> bool:
        """Whether the flag was set since it was defined."""
        flag = self._flags.get(name)
        return flag is not None and flag.changed

    def set(self, name: str, value: Any) -> None:
        """Set a flag from text; list flags replace their default first, then append."""
        flag = self._require(name)
        if flag.kind in _SLICE_KINDS:
            if isinstance(value, str):
                items = _split_slice(flag.kind, value)
            else:
                items = _normalize(flag.kind, value)
            flag.value = flag.value + items if flag.changed else items
        elif isinstance(value, str):
            flag.value = _parse_scalar(flag.kind, value)
        else:
            flag.value = _normalize(flag.kind, value)
        flag.changed = True

    def append(self, name: str, value: str) -> None:
        """Add an item to a list flag without marking it changed."""
        flag = self.lookup(name)
        if flag is None:
            raise FlagError(f"invalid flag name {name!r}")
        if flag.kind not in _SLICE_KINDS:
            raise FlagError(f"the value for flag {name!r} is not a slice value")
        flag.value = flag.value + [value]

    def parse(self, args: Iterable[str]) -> list[str]:
        """Apply the flags found in ``args`` and return the remaining arguments."""
        queue = deque(args)
        positional: list[str] = []
        while queue:
            arg = queue.popleft()
            if arg == "--":
                positional.extend(queue)
                break
            if arg.startswith("--"):
                self._parse_long(arg[2:], queue)
            elif arg.startswith("-") and len(arg) > 1:
                self._parse_short(arg[1:], queue)
            else:
                positional.append(arg)
        return positional

    def _parse_long(self, body: str, queue: deque[str]) -> None:
        name, sep, inline = body.partition("=")
        flag = self._flags.get(name)
        if flag is None:
            raise FlagError(f"unknown flag: --{name}")
        if sep:
            self.set(name, inline)
        elif flag.kind == "bool":
            self.set(name, "true")
        elif queue:
            self.set(name, queue.popleft())
        else:
            raise FlagError(f"flag needs an argument: --{name}")

    def _parse_short(self, body: str, queue: deque[str]) -> None:
        while body:
            letter, rest = body[0], body[1:]
            flag = self._shorthands.get(letter)
            if flag is None:
                raise FlagError(f"unknown shorthand flag: {letter!r} in -{body}")
            if rest.startswith("="):
                self.set(flag.name, rest[1:])
                return
            if flag.kind == "bool":
                self.set(flag.name, "true")
                body = rest
                continue
            if rest:
                self.set(flag.name, rest)
            elif queue:
                self.set(flag.name, queue.popleft())
            else:
                raise FlagError(f"flag needs an argument: -{letter}")
            return


def environment_defaults(environ: Mapping[str, str] | None = None) -> dict[str, Any]:
    """Built-in defaults overlaid with the non-empty variables of ``environ``."""
    source = os.environ if environ is None else environ
    values = {key: copy.copy(value) for key, value in _DEFAULTS.items()}
    values.update({key: value for key, value in source.items() if value != ""})
    return values


def _env_string(env: Mapping[str, Any], key: str) -> str:
    value = env.get(key)
    return "" if value is None else str(value)


def _env_bool(env: Mapping[str, Any], key: str) -> bool:
    value = env.get(key)
    if isinstance(value, str):
        try:
            return _parse_bool(value)
        except ValueError:
            return False
    return bool(value)


def _env_int(env: Mapping[str, Any], key: str) -> int:
    value = env.get(key)
    if isinstance(value, str):
        try:
            return int(value.strip(), 0)
        except ValueError:
            return 0
    return int(value or 0)


def _env_duration(env: Mapping[str, Any], key: str) -> timedelta:
    value = env.get(key)
    if isinstance(value, timedelta):
        return value
    if isinstance(value, str):
        text = value if any(unit in value for unit in "nsuµmh") else value + "ns"
        try:
            return _parse_duration(text)
        except ValueError:
            return timedelta(0)
    if isinstance(value, int):
        return timedelta(microseconds=value // 1000)
    return timedelta(0)


def _env_slice(env: Mapping[str, Any], key: str) -> list[str]:
    value = env.get(key)
    if value is None:
        return []
    if isinstance(value, str):
        return value.split()
    return [str(item) for item in value]


_ENV_READERS = {
    "string": _env_string,
    "bool": _env_bool,
    "int": _env_int,
    "duration": _env_duration,
    "string_slice": _env_slice,
    "string_array": _env_slice,
}


class _Spec(NamedTuple):
    name: str
    shorthand: str
    kind: str
    env_key: str
    help: str


def _register(flags: FlagSet, env: Mapping[str, Any] | None, specs: Iterable[_Spec]) -> None:
    values = environment_defaults() if env is None else env
    for spec in specs:
        default = _ENV_READERS[spec.kind](values, spec.env_key)
        flags.add(spec.name, spec.kind, default, spec.help, spec.shorthand)


_DOCKER_FLAGS = (
    _Spec("host", "H", "string", "DOCKER_HOST", "daemon socket to connect to"),
    _Spec("tlsverify", "v", "bool", "DOCKER_TLS_VERIFY", "use TLS and verify the remote"),
    _Spec("api-version", "a", "string", "DOCKER_API_VERSION", "api version to use by docker client"),
)

_SYSTEM_FLAGS = (
    _Spec("interval", "i", "int", "WATCHTOWER_POLL_INTERVAL", "Poll interval (in seconds)"),
    _Spec("schedule", "s", "string", "WATCHTOWER_SCHEDULE",
          "The cron expression which defines when to update"),
    _Spec("stop-timeout", "t", "duration", "WATCHTOWER_TIMEOUT",
          "Timeout before a container is forcefully stopped"),
    _Spec("no-pull", "", "bool", "WATCHTOWER_NO_PULL", "Do not pull any new images"),
    _Spec("no-restart", "", "bool", "WATCHTOWER_NO_RESTART", "Do not restart any containers"),
    _Spec("no-startup-message", "", "bool", "WATCHTOWER_NO_STARTUP_MESSAGE",
          "Prevents watchtower from sending a startup message"),
    _Spec("cleanup", "c", "bool", "WATCHTOWER_CLEANUP",
          "Remove previously used images after updating"),
    _Spec("remove-volumes", "", "bool", "WATCHTOWER_REMOVE_VOLUMES",
          "Remove attached volumes before updating"),
    _Spec("label-enable", "e", "bool", "WATCHTOWER_LABEL_ENABLE",
          "Watch containers where the com.centurylinklabs.watchtower.enable label is true"),
    _Spec("debug", "d", "bool", "WATCHTOWER_DEBUG", "Enable debug mode with verbose logging"),
    _Spec("trace", "", "bool", "WATCHTOWER_TRACE",
          "Enable trace mode with very verbose logging - caution, exposes credentials"),
    _Spec("monitor-only", "m", "bool", "WATCHTOWER_MONITOR_ONLY",
          "Will only monitor for new images, not update the containers"),
    _Spec("run-once", "R", "bool", "WATCHTOWER_RUN_ONCE", "Run once now and exit"),
    _Spec("include-restarting", "", "bool", "WATCHTOWER_INCLUDE_RESTARTING",
          "Will also include restarting containers"),
    _Spec("include-stopped", "S", "bool", "WATCHTOWER_INCLUDE_STOPPED",
          "Will also include created and exited containers"),
    _Spec("revive-stopped", "", "bool", "WATCHTOWER_REVIVE_STOPPED",
          "Will also start stopped containers that were updated, if include-stopped is active"),
    _Spec("enable-lifecycle-hooks", "", "bool", "WATCHTOWER_LIFECYCLE_HOOKS",
          "Enable the execution of commands triggered by pre- and post-update lifecycle hooks"),
    _Spec("rolling-restart", "", "bool", "WATCHTOWER_ROLLING_RESTART",
          "Restart containers one at a time"),
    _Spec("http-api-update", "", "bool", "WATCHTOWER_HTTP_API_UPDATE",
          "Runs Watchtower in HTTP API mode, so that image updates must be triggered by a request"),
    _Spec("http-api-metrics", "", "bool", "WATCHTOWER_HTTP_API_METRICS",
          "Runs Watchtower with the Prometheus metrics API enabled"),
    _Spec("http-api-token", "", "string", "WATCHTOWER_HTTP_API_TOKEN",
          "Sets an authentication token to HTTP API requests."),
    _Spec("http-api-periodic-polls", "", "bool", "WATCHTOWER_HTTP_API_PERIODIC_POLLS",
          "Also run periodic updates (specified with --interval and --schedule) "
          "if HTTP API is enabled"),
    _Spec("scope", "", "string", "WATCHTOWER_SCOPE",
          "Defines a monitoring scope for the Watchtower instance."),
    _Spec("porcelain", "P", "string", "WATCHTOWER_PORCELAIN",
          'Write session results to stdout using a stable versioned format. Supported values: "v1"'),
    _Spec("log-level", "", "string", "WATCHTOWER_LOG_LEVEL",
          "The maximum log level that will be written to STDERR. "
          "Possible values: panic, fatal, error, warn, info, debug or trace"),
)

_NOTIFICATION_FLAGS = (
    _Spec("notifications", "n", "string_slice", "WATCHTOWER_NOTIFICATIONS",
          "Notification types to send (valid: email, slack, msteams, gotify, shoutrrr)"),
    _Spec("notifications-level", "", "string", "WATCHTOWER_NOTIFICATIONS_LEVEL",
          "The log level used for sending notifications. "
          "Possible values: panic, fatal, error, warn, info or debug"),
    _Spec("notifications-delay", "", "int", "WATCHTOWER_NOTIFICATIONS_DELAY",
          "Delay before sending notifications, expressed in seconds"),
    _Spec("notifications-hostname", "", "string", "WATCHTOWER_NOTIFICATIONS_HOSTNAME",
          "Custom hostname for notification titles"),
    _Spec("notification-email-from", "", "string", "WATCHTOWER_NOTIFICATION_EMAIL_FROM",
          "Address to send notification emails from"),
    _Spec("notification-email-to", "", "string", "WATCHTOWER_NOTIFICATION_EMAIL_TO",
          "Address to send notification emails to"),
    _Spec("notification-email-delay", "", "int", "WATCHTOWER_NOTIFICATION_EMAIL_DELAY",
          "Delay before sending notifications, expressed in seconds"),
    _Spec("notification-email-server", "", "string", "WATCHTOWER_NOTIFICATION_EMAIL_SERVER",
          "SMTP server to send notification emails through"),
    _Spec("notification-email-server-port", "", "int",
          "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PORT",
          "SMTP server port to send notification emails through"),
    _Spec("notification-email-server-tls-skip-verify", "", "bool",
          "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_TLS_SKIP_VERIFY",
          "Controls whether watchtower verifies the SMTP server's certificate chain and host name. "
          "Should only be used for testing."),
    _Spec("notification-email-server-user", "", "string",
          "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_USER",
          "SMTP server user for sending notifications"),
    _Spec("notification-email-server-password", "", "string",
          "WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PASSWORD",
          "SMTP server password for sending notifications"),
    _Spec("notification-email-subjecttag", "", "string",
          "WATCHTOWER_NOTIFICATION_EMAIL_SUBJECTTAG",
          "Subject prefix tag for notifications via mail"),
    _Spec("notification-slack-hook-url", "", "string", "WATCHTOWER_NOTIFICATION_SLACK_HOOK_URL",
          "The Slack Hook URL to send notifications to"),
    _Spec("notification-slack-identifier", "", "string",
          "WATCHTOWER_NOTIFICATION_SLACK_IDENTIFIER",
          "A string which will be used to identify the messages coming from this instance"),
    _Spec("notification-slack-channel", "", "string", "WATCHTOWER_NOTIFICATION_SLACK_CHANNEL",
          "A string which overrides the webhook's default channel. Example: #my-custom-channel"),
    _Spec("notification-slack-icon-emoji", "", "string",
          "WATCHTOWER_NOTIFICATION_SLACK_ICON_EMOJI",
          "An emoji code string to use in place of the default icon"),
    _Spec("notification-slack-icon-url", "", "string", "WATCHTOWER_NOTIFICATION_SLACK_ICON_URL",
          "An icon image URL string to use in place of the default icon"),
    _Spec("notification-msteams-hook", "", "string", "WATCHTOWER_NOTIFICATION_MSTEAMS_HOOK_URL",
          "The MSTeams WebHook URL to send notifications to"),
    _Spec("notification-msteams-data", "", "bool",
          "WATCHTOWER_NOTIFICATION_MSTEAMS_USE_LOG_DATA",
          "The MSTeams notifier will try to extract log entry fields as MSTeams message facts"),
    _Spec("notification-gotify-url", "", "string", "WATCHTOWER_NOTIFICATION_GOTIFY_URL",
          "The Gotify URL to send notifications to"),
    _Spec("notification-gotify-token", "", "string", "WATCHTOWER_NOTIFICATION_GOTIFY_TOKEN",
          "The Gotify Application required to query the Gotify API"),
    _Spec("notification-gotify-tls-skip-verify", "", "bool",
          "WATCHTOWER_NOTIFICATION_GOTIFY_TLS_SKIP_VERIFY",
          "Controls whether watchtower verifies the Gotify server's certificate chain and "
          "host name. Should only be used for testing."),
    _Spec("notification-template", "", "string", "WATCHTOWER_NOTIFICATION_TEMPLATE",
          "The shoutrrr text/template for the messages"),
    _Spec("notification-url", "", "string_array", "WATCHTOWER_NOTIFICATION_URL",
          "The shoutrrr URL to send notifications to"),
    _Spec("notification-report", "", "bool", "WATCHTOWER_NOTIFICATION_REPORT",
          "Use the session report as the notification template data"),
    _Spec("notification-title-tag", "", "string", "WATCHTOWER_NOTIFICATION_TITLE_TAG",
          "Title prefix tag for notifications"),
    _Spec("notification-skip-title", "", "bool", "WATCHTOWER_NOTIFICATION_SKIP_TITLE",
          "Do not pass the title param to notifications"),
    _Spec("warn-on-head-failure", "", "string", "WATCHTOWER_WARN_ON_HEAD_FAILURE",
          "When to warn about HEAD pull requests failing. Possible values: always, auto or never"),
    _Spec("notification-log-stdout", "", "bool", "WATCHTOWER_NOTIFICATION_LOG_STDOUT",
          "Write notification logs to stdout instead of logging (to stderr)"),
)


def register_docker_flags(flags: FlagSet, env: Mapping[str, Any] | None = None) -> None:
    """Define the flags that configure the Docker API client."""
    _register(flags, env, _DOCKER_FLAGS)


def register_system_flags(flags: FlagSet, env: Mapping[str, Any] | None = None) -> None:
    """Define the flags that steer the program flow."""
    values = environment_defaults() if env is None else env
    _register(flags, values, _SYSTEM_FLAGS)
    flags.add(
        "no-color",
        "bool",
        "NO_COLOR" in values,
        "Disable ANSI color escape codes in log output",
    )


def register_notification_flags(flags: FlagSet, env: Mapping[str, Any] | None = None) -> None:
    """Define the flags that configure notifications."""
    _register(flags, env, _NOTIFICATION_FLAGS)