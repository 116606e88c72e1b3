"""Tests for the weather synchronizer with a mocked API client."""

import asyncio
from unittest.mock import AsyncMock, MagicMock

import pytest
from conftest import FakeClock, make_document

from skycast.config.schema import AppConfig
from skycast.ingest.weatherapi_client import RemoteError, WeatherApiClient
from skycast.models.weather import LocationSuggestion, WeatherSnapshot
from skycast.storage.cache_store import CacheStore
from skycast.storage.database import StorageError
from skycast.sync.synchronizer import WeatherSynchronizer


@pytest.fixture
def api() -> AsyncMock:
    mock = AsyncMock(spec=WeatherApiClient)
    mock.fetch_forecast.return_value = make_document("London")
    return mock


@pytest.fixture
def sync(default_config: AppConfig, api: AsyncMock, store: CacheStore, clock: FakeClock):
    return WeatherSynchronizer(default_config, api, store, clock=clock)


def _current_keys(store: CacheStore) -> list[str]:
    return [s.location_key for s in store.read_all() if s.is_current_location]


@pytest.mark.asyncio
class TestFetchWeather:
    async def test_non_current_fetch_stores_one_unflagged_row(
        self, sync: WeatherSynchronizer, store: CacheStore, api: AsyncMock, clock: FakeClock
    ):
        doc = await sync.fetch_weather("London", is_current_location=False)

        assert doc.location.name == "London"
        api.fetch_forecast.assert_awaited_once_with("London", days=5)
        rows = store.read_all()
        assert len(rows) == 1
        assert rows[0].location_key == "London"
        assert rows[0].is_current_location is False
        assert rows[0].fetched_at_epoch_millis == clock.now
        assert rows[0].document() == doc

    async def test_current_fetch_replaces_current_row(
        self, sync: WeatherSynchronizer, store: CacheStore, api: AsyncMock
    ):
        store.write(
            WeatherSnapshot.from_document(make_document("Paris"), 1, is_current_location=True)
        )
        api.fetch_forecast.return_value = make_document("London")

        await sync.fetch_weather("51.5,-0.12", is_current_location=True)

        assert _current_keys(store) == ["London"]
        assert store.read_by_key("Paris").is_current_location is False

    async def test_clears_flag_before_write(
        self, default_config: AppConfig, api: AsyncMock, clock: FakeClock
    ):
        store = MagicMock(spec=CacheStore)
        sync = WeatherSynchronizer(default_config, api, store, clock=clock)

        await sync.fetch_weather("London", is_current_location=True)

        names = [c[0] for c in store.method_calls]
        assert names == ["clear_current_flag", "write"]
        assert store.write.call_args.args[0].is_current_location is True

    async def test_non_current_fetch_leaves_flag_alone(
        self, default_config: AppConfig, api: AsyncMock, clock: FakeClock
    ):
        store = MagicMock(spec=CacheStore)
        sync = WeatherSynchronizer(default_config, api, store, clock=clock)

        await sync.fetch_weather("London", is_current_location=False)

        store.clear_current_flag.assert_not_called()

    async def test_remote_error_propagates_without_writing(
        self, sync: WeatherSynchronizer, store: CacheStore, api: AsyncMock
    ):
        api.fetch_forecast.side_effect = RemoteError("HTTP 500: boom", 500)
        with pytest.raises(RemoteError):
            await sync.fetch_weather("London", is_current_location=True)
        assert store.read_all() == []

    async def test_storage_error_returns_document_and_warns(
        self, default_config: AppConfig, api: AsyncMock, clock: FakeClock
    ):
        store = MagicMock(spec=CacheStore)
        store.write.side_effect = StorageError("disk full")
        sync = WeatherSynchronizer(default_config, api, store, clock=clock)

        doc = await sync.fetch_weather("London")

        assert doc.location.name == "London"
        assert "disk full" in sync.errors.value
        assert "London" in sync.errors.value


@pytest.mark.asyncio
class TestSearchAndResolve:
    async def test_search_delegates(self, sync: WeatherSynchronizer, api: AsyncMock):
        suggestion = LocationSuggestion(1, "London", "", "UK", 51.5, -0.12)
        api.search.return_value = [suggestion]
        assert await sync.search_locations("Lon") == [suggestion]
        api.search.assert_awaited_once_with("Lon")

    async def test_search_propagates_remote_error(self, sync: WeatherSynchronizer, api: AsyncMock):
        api.search.side_effect = RemoteError("down")
        with pytest.raises(RemoteError):
            await sync.search_locations("Lon")

    async def test_resolve_location_name(self, sync: WeatherSynchronizer, api: AsyncMock):
        api.fetch_current_by_coordinates.return_value = make_document("Westminster")
        assert await sync.resolve_location_name(51.5, -0.12) == "Westminster"
        api.fetch_current_by_coordinates.assert_awaited_once_with("51.5,-0.12")

    async def test_resolve_falls_back_to_coordinates(self, sync: WeatherSynchronizer, api: AsyncMock):
        api.fetch_current_by_coordinates.side_effect = RemoteError("HTTP 403: key disabled", 403)
        assert await sync.resolve_location_name(51.5, -0.12) == "51.5,-0.12"


class TestMaintenance:
    def test_clear_current_location_flag(self, sync: WeatherSynchronizer, store: CacheStore):
        store.write(WeatherSnapshot.from_document(make_document("Oslo"), 1, True))
        sync.clear_current_location_flag()
        assert _current_keys(store) == []

    def test_purge_stale_entries(self, sync: WeatherSynchronizer, store: CacheStore, clock: FakeClock):
        hour = 60 * 60 * 1000
        store.write(WeatherSnapshot.from_document(make_document("Old"), clock.now - hour - 1, False))
        store.write(WeatherSnapshot.from_document(make_document("New"), clock.now - hour + 1, False))

        assert sync.purge_stale_entries() == 1
        assert [s.location_key for s in store.read_all()] == ["New"]


@pytest.mark.asyncio
class TestObserveCurrentLocationWeather:
    async def test_projects_documents_from_cache(self, sync: WeatherSynchronizer):
        stream = sync.observe_current_location_weather()
        assert await anext(stream) is None

        await sync.fetch_weather("London", is_current_location=True)
        doc = await asyncio.wait_for(anext(stream), 1)
        assert doc == make_document("London")
        await stream.aclose()

    async def test_non_current_fetch_is_not_observed(self, sync: WeatherSynchronizer):
        stream = sync.observe_current_location_weather()
        assert await anext(stream) is None

        await sync.fetch_weather("London", is_current_location=False)
        with pytest.raises(asyncio.TimeoutError):
            await asyncio.wait_for(anext(stream), 0.05)
        await stream.aclose()

    async def test_corrupt_payload_reported_and_skipped(
        self, sync: WeatherSynchronizer, store: CacheStore
    ):
        stream = sync.observe_current_location_weather()
        assert await anext(stream) is None

        pending = asyncio.create_task(anext(stream))
        store.write(WeatherSnapshot("Broken", 1, "{not json", is_current_location=True))
        await asyncio.sleep(0.01)
        assert not pending.done()
        assert "Broken" in sync.errors.value

        store.write(WeatherSnapshot.from_document(make_document("Oslo"), 2, True))
        doc = await asyncio.wait_for(pending, 1)
        assert doc.location.name == "Oslo"
        await stream.aclose()
