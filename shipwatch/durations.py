"""Human readable rendering of time spans for startup messages."""

from __future__ import annotations

import math
from datetime import timedelta


def _plural(count: int, unit: str) -> str:
    if count == 1:
        return f"1 {unit}"
    return f"{count} {unit}s"


def format_duration(delta: timedelta) -> str:
    """Render ``delta`` as hours, minutes and seconds, e.g. ``1 hour, 5 seconds``.

    Parts that are zero are left out; a span shorter than a second
    renders as ``0 seconds``. Fractions of a second are dropped.
    """
    total_seconds = delta.total_seconds()
    hours = int(total_seconds / 3600)
    minutes = int(math.fmod(total_seconds / 60, 60))
    seconds = int(math.fmod(total_seconds, 60))

    text = ""
    if hours != 0:
        text += _plural(hours, "hour")
    if hours != 0 and (seconds != 0 or minutes != 0):
        text += ", "

    if minutes != 0:
        text += _plural(minutes, "minute")
    if minutes != 0 and seconds != 0:
        text += ", "

    if seconds != 0 or (hours == 0 and minutes == 0):
        text += _plural(seconds, "second")

    return text