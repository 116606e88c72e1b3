"""Weather synchronizer: remote fetch, cache write and the cached read path.

The read path is decoupled from the write path. ``fetch_weather`` persists
what it fetched and returns it to the immediate caller, but UI-visible
weather must come from ``observe_current_location_weather``, which follows
the cache. A fetch and its visible effect may therefore arrive at different
times; the cache stays the single source of truth.
"""

import logging
from collections.abc import AsyncIterator

from skycast.config.schema import AppConfig
from skycast.ingest.weatherapi_client import WeatherApiClient
from skycast.models.common import Clock, epoch_millis_now, format_coordinates, minutes_to_millis
from skycast.models.weather import (
    PAYLOAD_ERRORS,
    LocationSuggestion,
    WeatherDocument,
    WeatherSnapshot,
)
from skycast.state.observable import ObservableValue
from skycast.storage.cache_store import CacheStore
from skycast.storage.database import StorageError

logger = logging.getLogger(__name__)


def retention_cutoff(config: AppConfig, now: int) -> int:
    """Epoch millis before which cached snapshots are stale."""
    return now - minutes_to_millis(config.cache.retention_minutes)


class WeatherSynchronizer:
    def __init__(
        self,
        config: AppConfig,
        api: WeatherApiClient,
        store: CacheStore,
        clock: Clock = epoch_millis_now,
    ):
        self.config = config
        self.api = api
        self.store = store
        self.clock = clock
        # Recoverable problems that do not fail the call that hit them
        self.errors: ObservableValue[str | None] = ObservableValue(None)

    async def observe_current_location_weather(self) -> AsyncIterator[WeatherDocument | None]:
        """Follow the cached current-location document.

        Undecodable payloads and read failures are published on ``errors``
        and skipped; the stream keeps running.
        """
        stream = self.store.read_current()
        try:
            while True:
                try:
                    snapshot = await anext(stream)
                except StorageError as e:
                    logger.error("Reading current location weather failed: %s", e)
                    self.errors.set(str(e))
                    # Resubscribe once the store has changed again
                    await self.store.wait_for_change()
                    stream = self.store.read_current()
                    continue

                if snapshot is None:
                    logger.debug("No current location weather cached")
                    yield None
                    continue

                try:
                    document = snapshot.document()
                except PAYLOAD_ERRORS as e:
                    logger.error(
                        "Cached payload for %s is unreadable: %r", snapshot.location_key, e
                    )
                    self.errors.set(
                        f"Cached weather for {snapshot.location_key} is unreadable"
                    )
                    continue

                logger.debug("Current location weather from cache: %s", snapshot.location_key)
                yield document
        finally:
            await stream.aclose()

    async def fetch_weather(
        self, location_query: str, is_current_location: bool = False
    ) -> WeatherDocument:
        """Fetch a forecast and cache it under its resolved place name.

        RemoteError propagates. A storage failure is reported on ``errors``
        and the fetched document is returned anyway.
        """
        logger.info(
            "Fetching weather for %s (current=%s)", location_query, is_current_location
        )
        document = await self.api.fetch_forecast(
            location_query, days=self.config.api.forecast_days
        )
        logger.info("Fetched weather for %s", document.location.name)

        snapshot = WeatherSnapshot.from_document(
            document, self.clock(), is_current_location=is_current_location
        )
        try:
            if is_current_location:
                self.store.clear_current_flag()
            self.store.write(snapshot)
        except StorageError as e:
            logger.exception("Failed to cache weather for %s", snapshot.location_key)
            self.errors.set(f"Weather for {snapshot.location_key} could not be saved: {e}")
        return document

    async def search_locations(self, query: str) -> list[LocationSuggestion]:
        results = await self.api.search(query)
        logger.info("Found %d locations for %r", len(results), query)
        return results

    async def resolve_location_name(self, lat: float, lon: float) -> str:
        """Reverse-lookup a place name, falling back to the "lat,lon" string."""
        query = format_coordinates(lat, lon)
        try:
            document = await self.api.fetch_current_by_coordinates(query)
        except Exception as e:
            logger.warning("Could not resolve a place name for %s: %s", query, e)
            return query
        return document.location.name

    def clear_current_location_flag(self) -> None:
        self.store.clear_current_flag()

    def purge_stale_entries(self) -> int:
        """Delete snapshots older than the retention window. Returns rows removed."""
        removed = self.store.delete_older_than(retention_cutoff(self.config, self.clock()))
        if removed:
            logger.info("Purged %d stale weather snapshot(s)", removed)
        return removed
