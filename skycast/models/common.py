"""Common types and helpers shared across models."""

import time
from typing import Callable, TypeAlias

EpochMillis: TypeAlias = int
Clock: TypeAlias = Callable[[], EpochMillis]

MINUTE_MILLIS = 60 * 1000


def epoch_millis_now() -> EpochMillis:
    return time.time_ns() // 1_000_000


def minutes_to_millis(minutes: int | float) -> EpochMillis:
    return int(minutes * MINUTE_MILLIS)


def format_coordinates(lat: float, lon: float) -> str:
    """Render a coordinate pair as the provider's "lat,lon" query string."""
    return f"{lat},{lon}"
