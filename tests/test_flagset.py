from datetime import timedelta

import pytest

from shipwatch.flagset import (
    DEFAULT_INTERVAL,
    FlagError,
    FlagSet,
    environment_defaults,
    register_docker_flags,
    register_notification_flags,
    register_system_flags,
)


def make_flags(environ=None):
    env = environment_defaults(environ or {})
    flags = FlagSet()
    register_docker_flags(flags, env)
    register_system_flags(flags, env)
    register_notification_flags(flags, env)
    return flags


def test_docker_flag_defaults():
    flags = make_flags()
    assert flags.get("host") == "unix:///var/run/docker.sock"
    assert flags.get("tlsverify") is False
    assert flags.get("api-version") == "1.25"


def test_docker_flags_custom():
    flags = make_flags()
    rest = flags.parse(
        ["--host", "some-custom-docker-host", "--tlsverify", "--api-version", "1.99"]
    )
    assert rest == []
    assert flags.get("host") == "some-custom-docker-host"
    assert flags.get("tlsverify") is True
    assert flags.get("api-version") == "1.99"


def test_http_api_periodic_polls_flag():
    flags = make_flags()
    flags.parse(["--http-api-periodic-polls"])
    assert flags.get("http-api-periodic-polls") is True


def test_string_default_from_environment():
    flags = make_flags({"WATCHTOWER_NOTIFICATION_EMAIL_SERVER_PASSWORD": "secret"})
    assert flags.get("notification-email-server-password") == "secret"


def test_builtin_defaults():
    flags = make_flags()
    assert flags.get("interval") == DEFAULT_INTERVAL == 86400
    assert flags.get("stop-timeout") == timedelta(seconds=10)
    assert flags.get("notifications") == []
    assert flags.get("notifications-level") == "info"
    assert flags.get("notification-email-server-port") == 25
    assert flags.get("notification-slack-identifier") == "watchtower"
    assert flags.get("log-level") == "info"
    assert flags.get("schedule") == ""


def test_environment_overrides_defaults():
    env = environment_defaults({"DOCKER_HOST": "tcp://localhost:2375", "WATCHTOWER_SCOPE": ""})
    assert env["DOCKER_HOST"] == "tcp://localhost:2375"
    assert "WATCHTOWER_SCOPE" not in env


def test_typed_environment_values():
    flags = make_flags(
        {
            "WATCHTOWER_POLL_INTERVAL": "30",
            "WATCHTOWER_TIMEOUT": "1m30s",
            "WATCHTOWER_DEBUG": "true",
            "WATCHTOWER_CLEANUP": "nonsense",
            "WATCHTOWER_NOTIFICATIONS": "email slack",
            "NO_COLOR": "1",
        }
    )
    assert flags.get("interval") == 30
    assert flags.get("stop-timeout") == timedelta(seconds=90)
    assert flags.get("debug") is True
    assert flags.get("cleanup") is False
    assert flags.get("notifications") == ["email", "slack"]
    assert flags.get("no-color") is True


def test_no_color_off_without_variable():
    assert make_flags().get("no-color") is False


def test_duration_flag_parsing():
    flags = make_flags()
    flags.parse(["--stop-timeout", "1.5h"])
    assert flags.get("stop-timeout") == timedelta(hours=1, minutes=30)
    flags.parse(["--stop-timeout=250ms"])
    assert flags.get("stop-timeout") == timedelta(milliseconds=250)


def test_invalid_duration_raises():
    flags = make_flags()
    with pytest.raises(FlagError):
        flags.parse(["--stop-timeout", "ten"])


def test_string_array_first_set_replaces_default_then_appends():
    flags = make_flags({"WATCHTOWER_NOTIFICATION_URL": "logger://"})
    assert flags.get("notification-url") == ["logger://"]
    flags.parse(["--notification-url", "entry1", "--notification-url", "a,b"])
    assert flags.get("notification-url") == ["entry1", "a,b"]


def test_string_slice_splits_on_commas():
    flags = make_flags()
    flags.parse(["-n", "email,slack", "--notifications", "gotify"])
    assert flags.get("notifications") == ["email", "slack", "gotify"]


def test_shorthands_and_positional_arguments():
    flags = make_flags()
    rest = flags.parse(["-i", "10", "nginx", "-R", "-dm", "redis", "--", "--cleanup"])
    assert rest == ["nginx", "redis", "--cleanup"]
    assert flags.get("interval") == 10
    assert flags.get("run-once") is True
    assert flags.get("debug") is True
    assert flags.get("monitor-only") is True
    assert flags.get("cleanup") is False


def test_attached_shorthand_value():
    flags = make_flags()
    flags.parse(["-i20"])
    assert flags.get("interval") == 20


def test_bool_flag_with_explicit_value():
    flags = make_flags({"WATCHTOWER_CLEANUP": "true"})
    flags.parse(["--cleanup=false"])
    assert flags.get("cleanup") is False


def test_unknown_flag_raises():
    with pytest.raises(FlagError):
        make_flags().parse(["--does-not-exist"])


def test_missing_value_raises():
    with pytest.raises(FlagError):
        make_flags().parse(["--schedule"])


def test_invalid_int_raises():
    with pytest.raises(FlagError):
        make_flags().parse(["--interval", "often"])


def test_set_marks_changed():
    flags = make_flags()
    assert flags.changed("schedule") is False
    flags.set("schedule", "@every 10s")
    assert flags.changed("schedule") is True
    assert flags.get("schedule") == "@every 10s"


def test_changed_for_unknown_flag_is_false():
    assert make_flags().changed("nope") is False


def test_lookup():
    flags = make_flags()
    assert flags.lookup("nope") is None
    flag = flags.lookup("host")
    assert (flag.name, flag.shorthand, flag.kind) == ("host", "H", "string")


def test_append_to_slice_flag():
    flags = make_flags()
    flags.append("notification-url", "logger://")
    assert flags.get("notification-url") == ["logger://"]
    assert flags.changed("notification-url") is False


def test_append_to_scalar_flag_raises():
    with pytest.raises(FlagError):
        make_flags().append("schedule", "x")


def test_append_to_unknown_flag_raises():
    with pytest.raises(FlagError):
        make_flags().append("nope", "x")


def test_duplicate_flag_raises():
    flags = FlagSet()
    flags.add("one", "string", "")
    with pytest.raises(FlagError):
        flags.add("one", "bool", False)


def test_unknown_kind_raises():
    with pytest.raises(FlagError):
        FlagSet().add("one", "float", 0.0)


def test_get_undefined_flag_raises():
    with pytest.raises(FlagError):
        FlagSet().get("missing")