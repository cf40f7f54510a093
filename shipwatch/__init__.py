"""Container metadata, filters, option handling, restart propagation and an update trigger API for Docker hosts."""

__version__ = "0.1.0"

__all__ = [
    "actions",
    "api",
    "container",
    "durations",
    "filters",
    "flags",
    "flagset",
    "ids",
    "util",
]