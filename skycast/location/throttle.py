"""Minimum-interval gate for continuous location updates."""

from skycast.models.common import EpochMillis, minutes_to_millis

DEFAULT_MIN_INTERVAL_MINUTES = 5


class LocationUpdateThrottle:
    """Decides whether a location fix warrants a new weather fetch.

    The caller records an accepted fix with ``mark_accepted`` before fetching;
    a fetch that then fails still counts as accepted.
    """

    def __init__(self, min_interval_minutes: int = DEFAULT_MIN_INTERVAL_MINUTES):
        self.min_interval_millis = minutes_to_millis(min_interval_minutes)
        self.last_accepted_millis: EpochMillis = 0

    def should_accept(self, now: EpochMillis) -> bool:
        return now - self.last_accepted_millis >= self.min_interval_millis

    def mark_accepted(self, now: EpochMillis) -> None:
        self.last_accepted_millis = now
