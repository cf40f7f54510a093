import pytest

from shipwatch.filters import (
    build_filter,
    filter_by_disabled_label,
    filter_by_enable_label,
    filter_by_image,
    filter_by_names,
    filter_by_scope,
    no_filter,
    watchtower_containers_filter,
)


class FakeContainer:
    """Answers only the questions it was configured for and records every call."""

    def __init__(self, **answers):
        self._answers = answers
        self.calls = []

    def _answer(self, key):
        self.calls.append(key)
        if key not in self._answers:
            raise AssertionError(f"unexpected call to {key}")
        return self._answers[key]

    def name(self):
        return self._answer("name")

    def enabled(self):
        return self._answer("enabled")

    def scope(self):
        return self._answer("scope")

    def image_name(self):
        return self._answer("image_name")

    def is_watchtower(self):
        return self._answer("is_watchtower")


def test_watchtower_containers_filter():
    container = FakeContainer(is_watchtower=True)
    assert watchtower_containers_filter(container) is True
    assert container.calls == ["is_watchtower"]


def test_no_filter():
    container = FakeContainer()
    assert no_filter(container) is True
    assert container.calls == []


def test_filter_by_names():
    assert filter_by_names([], None) is None

    name_filter = filter_by_names(["test"], no_filter)
    assert name_filter(FakeContainer(name="test")) is True
    assert name_filter(FakeContainer(name="NoTest")) is False


def test_filter_by_names_ignores_leading_slash():
    name_filter = filter_by_names(["test"], no_filter)
    assert name_filter(FakeContainer(name="/test")) is True


@pytest.mark.parametrize(
    ("name", "expected"),
    [("balloon", True), ("spoon", False), ("baboonious", False)],
)
def test_filter_by_names_regex(name, expected):
    name_filter = filter_by_names([r"ba(b|ll)oon"], no_filter)
    assert name_filter(FakeContainer(name=name)) is expected


def test_filter_by_names_invalid_regex_does_not_match():
    name_filter = filter_by_names(["(unclosed"], no_filter)
    assert name_filter(FakeContainer(name="unclosed")) is False


@pytest.mark.parametrize(("enabled", "expected"), [(True, True), (False, True), (None, False)])
def test_filter_by_enable_label(enabled, expected):
    label_filter = filter_by_enable_label(no_filter)
    assert label_filter(FakeContainer(enabled=enabled)) is expected


@pytest.mark.parametrize(
    ("scope", "expected"),
    [("testscope", True), ("nottestscope", False), (None, False)],
)
def test_filter_by_scope(scope, expected):
    scope_filter = filter_by_scope("testscope", no_filter)
    assert scope_filter(FakeContainer(scope=scope)) is expected


def test_filter_by_empty_scope_returns_base():
    assert filter_by_scope("", no_filter) is no_filter


@pytest.mark.parametrize(("enabled", "expected"), [(True, True), (False, False), (None, True)])
def test_filter_by_disabled_label(enabled, expected):
    label_filter = filter_by_disabled_label(no_filter)
    assert label_filter(FakeContainer(enabled=enabled)) is expected


@pytest.mark.parametrize(
    ("image", "single", "multiple"),
    [
        ("registry:2", True, True),
        ("registry:latest", True, True),
        ("abcdef1234", False, False),
        ("bla:latest", False, True),
    ],
)
def test_filter_by_image(image, single, multiple):
    filter_empty = filter_by_image(None, no_filter)
    filter_single = filter_by_image(["registry"], no_filter)
    filter_multiple = filter_by_image(["registry", "bla"], no_filter)

    assert filter_empty(FakeContainer(image_name=image)) is True
    assert filter_single(FakeContainer(image_name=image)) is single
    assert filter_multiple(FakeContainer(image_name=image)) is multiple


def test_build_filter():
    name_filter, description = build_filter(["test", "valid"], False, "")
    assert description == 'Only checking containers which name matches "test" or "valid"'

    assert name_filter(FakeContainer(name="Invalid", enabled=None)) is False
    assert name_filter(FakeContainer(name="test", enabled=None)) is True
    assert name_filter(FakeContainer(name="Invalid", enabled=True)) is False
    assert name_filter(FakeContainer(name="test", enabled=True)) is True

    disabled = FakeContainer(enabled=False)
    assert name_filter(disabled) is False
    assert disabled.calls == ["enabled"]


def test_build_filter_enable_label():
    label_filter, description = build_filter(["test"], True, "")
    assert "using enable label" in description

    unlabelled = FakeContainer(enabled=None)
    assert label_filter(unlabelled) is False
    assert "name" not in unlabelled.calls

    invalid = FakeContainer(name="Invalid", enabled=True)
    assert label_filter(invalid) is False
    assert invalid.calls.count("enabled") == 2

    valid = FakeContainer(name="test", enabled=True)
    assert label_filter(valid) is True
    assert valid.calls.count("enabled") == 2

    assert label_filter(FakeContainer(enabled=False)) is False


def test_build_filter_without_options():
    all_filter, description = build_filter([], False, "")
    assert description == "Checking all containers (except explicitly disabled with label)"
    assert all_filter(FakeContainer(enabled=None)) is True


def test_build_filter_with_scope():
    scope_filter, description = build_filter(None, False, "prod")
    assert description == 'Only checking containers in scope "prod"'
    assert scope_filter(FakeContainer(enabled=None, scope="prod")) is True
    assert scope_filter(FakeContainer(enabled=None, scope="dev")) is False