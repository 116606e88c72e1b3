"""Shared test fixtures."""

import json
from pathlib import Path

import pytest

from skycast.config.schema import ApiConfig, AppConfig
from skycast.models.weather import WeatherDocument
from skycast.storage.cache_store import CacheStore

FIXTURE_DIR = Path(__file__).parent / "fixtures"
TEST_BASE_URL = "https://test-weatherapi.example.com/"


def load_fixture(name: str):
    with open(FIXTURE_DIR / name) as f:
        return json.load(f)


def make_document(name: str = "London", temp_c: float = 14.2) -> WeatherDocument:
    """Forecast fixture document, renamed and re-tempered for the test at hand."""
    raw = load_fixture("forecast_london.json")
    raw["location"]["name"] = name
    raw["current"]["temp_c"] = temp_c
    return WeatherDocument.from_api(raw)


class FakeClock:
    """Manually advanced epoch-millis clock."""

    def __init__(self, now: int = 1_760_000_000_000):
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance_minutes(self, minutes: float) -> None:
        self.now += int(minutes * 60_000)


@pytest.fixture
def fixtures_dir() -> Path:
    """Return the path to the test fixtures directory."""
    return FIXTURE_DIR


@pytest.fixture
def default_config(tmp_path: Path) -> AppConfig:
    """Default config pointed at a test API host and a temp database."""
    return AppConfig(
        api=ApiConfig(api_key="test-key", base_url=TEST_BASE_URL, timeout_seconds=5),
        cache={"db_path": str(tmp_path / "skycast.db")},
    )


@pytest.fixture
def store(tmp_path: Path):
    cache = CacheStore.open(tmp_path / "test.db")
    yield cache
    cache.close()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def london_raw() -> dict:
    return load_fixture("forecast_london.json")
