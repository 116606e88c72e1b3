"""weatherapi.com client for forecast, location search and reverse lookup."""

import logging

import httpx

from skycast.config.schema import ApiConfig
from skycast.models.weather import PAYLOAD_ERRORS, LocationSuggestion, WeatherDocument

logger = logging.getLogger(__name__)

FORECAST_PATH = "v1/forecast.json"
SEARCH_PATH = "v1/search.json"
CURRENT_PATH = "v1/current.json"
DEFAULT_FORECAST_DAYS = 5


class RemoteError(Exception):
    """Raised on network, HTTP or parse failure talking to the weather API."""

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class WeatherApiClient:
    """Stateless read-only client. No retries and no caching at this layer.

    Query strings are either a place name or a "lat,lon" pair.
    """

    def __init__(self, config: ApiConfig, http: httpx.AsyncClient | None = None):
        self.config = config
        self._http = http or httpx.AsyncClient(timeout=config.timeout_seconds)

    async def __aenter__(self) -> "WeatherApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def fetch_forecast(
        self, query: str, days: int = DEFAULT_FORECAST_DAYS
    ) -> WeatherDocument:
        raw = await self._get(
            FORECAST_PATH,
            {"q": query, "days": days, "aqi": "yes" if self.config.aqi else "no"},
        )
        return _parse(WeatherDocument.from_api, raw, FORECAST_PATH)

    async def search(self, query: str) -> list[LocationSuggestion]:
        raw = await self._get(SEARCH_PATH, {"q": query})
        if not isinstance(raw, list):
            raise RemoteError(f"{SEARCH_PATH}: expected a list, got {type(raw).__name__}")
        return [_parse(LocationSuggestion.from_api, r, SEARCH_PATH) for r in raw]

    async def fetch_current_by_coordinates(self, query: str) -> WeatherDocument:
        """Fetch current conditions; callers use it to resolve a place name."""
        raw = await self._get(CURRENT_PATH, {"q": query})
        return _parse(WeatherDocument.from_api, raw, CURRENT_PATH)

    async def _get(self, path: str, params: dict) -> dict | list:
        url = httpx.URL(self.config.base_url).join(path)
        params = {"key": self.config.api_key, **params}
        try:
            resp = await self._http.get(
                url, params=params, timeout=self.config.timeout_seconds
            )
        except httpx.RequestError as e:
            logger.error("weatherapi request failed: %s q=%s -> %s", path, params["q"], e)
            raise RemoteError(f"Request failed: {e}") from e

        if resp.status_code >= 400:
            message = _error_message(resp)
            logger.error(
                "weatherapi %d: %s q=%s -> %s", resp.status_code, path, params["q"], message
            )
            raise RemoteError(f"HTTP {resp.status_code}: {message}", resp.status_code)

        try:
            return resp.json()
        except ValueError as e:
            raise RemoteError(f"{path}: invalid JSON response") from e


def _parse(factory, raw, path: str):
    try:
        return factory(raw)
    except PAYLOAD_ERRORS as e:
        raise RemoteError(f"{path}: unexpected response shape ({e!r})") from e


def _error_message(resp: httpx.Response) -> str:
    """Pull the provider's ``{"error": {"message": ...}}`` text, else the body."""
    try:
        return resp.json()["error"]["message"]
    except (ValueError, KeyError, TypeError):
        return resp.text or resp.reason_phrase
