"""Location provider boundary and an in-process implementation."""

import asyncio
import logging
from abc import ABC, abstractmethod
from collections.abc import AsyncIterator

from skycast.models.common import epoch_millis_now
from skycast.models.weather import LocationFix

logger = logging.getLogger(__name__)


class LocationError(Exception):
    """Raised when permissions are missing, positioning is off, or the provider fails."""


class LocationProvider(ABC):
    """Source of device location fixes."""

    @abstractmethod
    async def get_last_known_location(self) -> LocationFix | None:
        """Return the most recent fix, or None when none is available yet."""

    @abstractmethod
    def location_updates(self) -> AsyncIterator[LocationFix]:
        """Stream fixes until closed.

        Implementations are async generators: the provider registration is
        taken on first iteration and released when the generator is closed.
        Not restartable; each call registers anew.
        """


class QueueLocationProvider(LocationProvider):
    """Provider fed by ``push``; used by the CLI and in tests.

    ``active_registrations`` counts update streams that are currently open.
    """

    def __init__(
        self,
        last_known: LocationFix | None = None,
        permission_granted: bool = True,
        positioning_enabled: bool = True,
    ):
        self.last_known = last_known
        self.permission_granted = permission_granted
        self.positioning_enabled = positioning_enabled
        self.active_registrations = 0
        self._queue: asyncio.Queue[LocationFix | Exception] = asyncio.Queue()

    def push(self, latitude: float, longitude: float, timestamp_millis: int | None = None) -> None:
        fix = LocationFix(
            latitude=latitude,
            longitude=longitude,
            timestamp_millis=epoch_millis_now() if timestamp_millis is None else timestamp_millis,
        )
        self.last_known = fix
        self._queue.put_nowait(fix)

    def fail(self, error: Exception) -> None:
        """Make the open update stream raise error on its next read."""
        self._queue.put_nowait(error)

    def _check_access(self) -> None:
        if not self.permission_granted:
            raise LocationError("Missing location permissions")
        if not self.positioning_enabled:
            raise LocationError("GPS is disabled")

    async def get_last_known_location(self) -> LocationFix | None:
        self._check_access()
        return self.last_known

    async def location_updates(self) -> AsyncIterator[LocationFix]:
        self._check_access()
        self.active_registrations += 1
        logger.debug("Location updates registered")
        try:
            while True:
                item = await self._queue.get()
                if isinstance(item, LocationError):
                    raise item
                if isinstance(item, Exception):
                    raise LocationError(str(item)) from item
                yield item
        finally:
            self.active_registrations -= 1
            logger.debug("Location updates released")
