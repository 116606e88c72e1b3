"""Application state controller: wires location, throttle and synchronizer to UI state."""

import asyncio
import logging

from skycast.config.schema import AppConfig
from skycast.ingest.weatherapi_client import RemoteError
from skycast.location.provider import LocationError, LocationProvider
from skycast.location.throttle import LocationUpdateThrottle
from skycast.models.common import Clock, epoch_millis_now
from skycast.models.weather import LocationFix, LocationSuggestion, WeatherDocument
from skycast.state.observable import ObservableValue
from skycast.sync.synchronizer import WeatherSynchronizer

logger = logging.getLogger(__name__)

WAITING_FOR_LOCATION = "Waiting for location..."
PERMISSION_REQUIRED = (
    "Location permission is required to show weather for your current location"
)
MIN_SEARCH_LENGTH = 3


class WeatherController:
    """Exposes reactive UI state and the callbacks the UI invokes.

    ``current_weather`` is written only by the cache-stream task; fetches
    update the cache and the stream carries the result. The task starts as
    soon as the controller is constructed inside a running event loop. A
    controller built outside a loop starts on its first callback, on
    ``start()`` or on ``async with``. Call ``aclose()`` (or leave the
    ``async with`` block) to stop it.
    """

    def __init__(
        self,
        config: AppConfig,
        synchronizer: WeatherSynchronizer,
        location_provider: LocationProvider,
        throttle: LocationUpdateThrottle | None = None,
        clock: Clock = epoch_millis_now,
    ):
        self.config = config
        self.synchronizer = synchronizer
        self.location_provider = location_provider
        self.throttle = throttle or LocationUpdateThrottle(
            config.location.min_update_interval_minutes
        )
        self.clock = clock

        self.search_query: ObservableValue[str] = ObservableValue("")
        self.suggestions: ObservableValue[list[LocationSuggestion]] = ObservableValue([])
        self.current_weather: ObservableValue[WeatherDocument | None] = ObservableValue(None)
        self.is_loading: ObservableValue[bool] = ObservableValue(True)
        self.error: ObservableValue[str | None] = ObservableValue(None)

        self._cache_task: asyncio.Task | None = None
        self._updates_task: asyncio.Task | None = None
        self._unsubscribe_errors = None
        self._sync_warning: str | None = None
        self._closed = False

        self._ensure_started()

    async def __aenter__(self) -> "WeatherController":
        self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    def start(self) -> None:
        """Begin following the cached current-location weather."""
        self._closed = False
        if self._cache_task is not None:
            return
        self._unsubscribe_errors = self.synchronizer.errors.subscribe(self._on_sync_error)
        self._cache_task = asyncio.create_task(
            self._observe_cache(), name="skycast-cache-stream"
        )

    def _ensure_started(self) -> None:
        if self._closed:
            return
        try:
            asyncio.get_running_loop()
        except RuntimeError:
            # No loop yet; the first callback made inside one starts the stream
            return
        self.start()

    async def aclose(self) -> None:
        """Cancel background tasks, releasing the location update registration."""
        self._closed = True
        tasks = [t for t in (self._cache_task, self._updates_task) if t is not None]
        for task in tasks:
            task.cancel()
        results = await asyncio.gather(*tasks, return_exceptions=True)
        for task, result in zip(tasks, results):
            if isinstance(result, Exception):
                logger.error(
                    "Background task %s failed: %r", task.get_name(), result,
                    exc_info=result,
                )
        self._cache_task = None
        self._updates_task = None
        if self._unsubscribe_errors is not None:
            self._unsubscribe_errors()
            self._unsubscribe_errors = None

    # --- Permission callbacks ---

    async def on_location_permission_granted(self) -> None:
        self._ensure_started()
        logger.info("Location permission granted, fetching initial location")
        self.is_loading.set(True)
        try:
            fix = await self.location_provider.get_last_known_location()
        except LocationError as e:
            logger.error("Error getting initial location: %s", e)
            self.error.set(f"Unable to get location: {e}")
            self.is_loading.set(False)
            return

        if fix is not None:
            logger.info("Initial location available: %s", fix.query)
            # The startup fetch bypasses the throttle but still restarts its window
            self.throttle.mark_accepted(self.clock())
            await self._fetch_for_current_location(fix)
        else:
            logger.info("No initial location available, waiting for location updates")
            self.error.set(WAITING_FOR_LOCATION)
            self.is_loading.set(False)

        self._start_location_updates()

    def on_location_permission_denied(self) -> None:
        self._ensure_started()
        logger.info("Location permission denied")
        self.error.set(PERMISSION_REQUIRED)
        self.is_loading.set(False)

    # --- Search ---

    async def search_locations(self, query: str) -> None:
        self._ensure_started()
        self.search_query.set(query)
        if len(query) < MIN_SEARCH_LENGTH:
            self.suggestions.set([])
            return
        try:
            results = await self.synchronizer.search_locations(query)
        except RemoteError as e:
            logger.error("Error searching locations for %r: %s", query, e)
            self.error.set(str(e))
            return
        # Drop results for a query the user has already moved past
        if self.search_query.value == query:
            self.suggestions.set(results)

    async def select_location(self, suggestion: LocationSuggestion) -> None:
        self._ensure_started()
        logger.info("Selecting location %s (%s)", suggestion.name, suggestion.query)
        self.is_loading.set(True)
        try:
            self._sync_warning = None
            await self.synchronizer.fetch_weather(
                suggestion.query, is_current_location=False
            )
        except RemoteError as e:
            logger.error("Error selecting location %s: %s", suggestion.name, e)
            self.error.set(str(e))
        else:
            self.error.set(self._sync_warning)
            self.search_query.set("")
            self.suggestions.set([])
        finally:
            self.is_loading.set(False)

    def clear_error(self) -> None:
        self.error.set(None)

    # --- Background work ---

    async def _observe_cache(self) -> None:
        async for weather in self.synchronizer.observe_current_location_weather():
            logger.debug(
                "Weather update from cache: %s",
                weather.location.name if weather is not None else None,
            )
            self.current_weather.set(weather)
            if weather is not None:
                self.is_loading.set(False)
                self.error.set(None)

    def _start_location_updates(self) -> None:
        if self._updates_task is not None and not self._updates_task.done():
            return
        self._updates_task = asyncio.create_task(
            self._follow_location_updates(), name="skycast-location-updates"
        )

    async def _follow_location_updates(self) -> None:
        updates = self.location_provider.location_updates()
        try:
            async for fix in updates:
                now = self.clock()
                if not self.throttle.should_accept(now):
                    logger.debug("Skipping weather update for %s, too soon", fix.query)
                    continue
                self.throttle.mark_accepted(now)
                await self._fetch_for_current_location(fix)
        except LocationError as e:
            logger.error("Error getting location updates: %s", e)
            self.error.set(str(e))
            self.is_loading.set(False)
        finally:
            await updates.aclose()

    async def _fetch_for_current_location(self, fix: LocationFix) -> None:
        self.is_loading.set(True)
        try:
            query = fix.query
            if self.config.location.resolve_place_names:
                query = await self.synchronizer.resolve_location_name(
                    fix.latitude, fix.longitude
                )
            self._sync_warning = None
            await self.synchronizer.fetch_weather(query, is_current_location=True)
            self.error.set(self._sync_warning)
        except RemoteError as e:
            logger.error("Error fetching current location weather: %s", e)
            self.error.set(str(e))
        finally:
            self.is_loading.set(False)

    def _on_sync_error(self, message: str | None) -> None:
        # A successful fetch clears error unless it raised a warning of its own
        self._sync_warning = message
        if message is not None:
            self.error.set(message)
