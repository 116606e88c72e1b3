"""CLI entry point for the skycast weather core."""

import argparse
import asyncio
import logging
from datetime import UTC, datetime

from skycast.config.loader import get_config_value, load_config
from skycast.config.schema import AppConfig
from skycast.ingest.weatherapi_client import RemoteError, WeatherApiClient
from skycast.location.provider import QueueLocationProvider
from skycast.models.common import epoch_millis_now
from skycast.models.weather import WeatherDocument, WeatherSnapshot
from skycast.state.controller import MIN_SEARCH_LENGTH, WeatherController
from skycast.storage.cache_store import CacheStore
from skycast.storage.database import StorageError
from skycast.sync.synchronizer import WeatherSynchronizer, retention_cutoff

DEFAULT_CONFIG = "skycast.yaml"

logger = logging.getLogger(__name__)


def main(argv: list[str] | None = None) -> int:
    parser = argparse.ArgumentParser(
        prog="skycast",
        description="Weather lookup with a local snapshot cache",
    )
    parser.add_argument(
        "--config", default=DEFAULT_CONFIG, help="Config YAML path"
    )
    parser.add_argument("--db", default=None, help="SQLite DB path (overrides config)")
    parser.add_argument("-v", "--verbose", action="store_true", help="Debug logging")

    sub = parser.add_subparsers(dest="command")

    # fetch
    fetch_p = sub.add_parser("fetch", help="Fetch and cache weather for a place")
    fetch_p.add_argument("query", help='Place name or "lat,lon"')
    fetch_p.add_argument(
        "--current", action="store_true", help="Store as the current location"
    )

    # search
    search_p = sub.add_parser("search", help="Search for locations")
    search_p.add_argument("query")

    # locate
    locate_p = sub.add_parser("locate", help="Fetch weather for a device position")
    locate_p.add_argument("lat", type=float)
    locate_p.add_argument("lon", type=float)

    # show / cache / purge
    show_p = sub.add_parser("show", help="Show cached weather")
    show_p.add_argument("key", nargs="?", help="Location key (default: current)")
    sub.add_parser("cache", help="List cached snapshots")
    sub.add_parser("purge", help="Delete snapshots past the retention window")

    # config show / config get
    config_p = sub.add_parser("config", help="Config operations")
    config_sub = config_p.add_subparsers(dest="config_command")
    config_sub.add_parser("show", help="Display current config")
    get_p = config_sub.add_parser("get", help="Get a config value")
    get_p.add_argument("key", help="Dotted key, e.g. cache.retention_minutes")

    args = parser.parse_args(argv)

    if args.command is None:
        parser.print_help()
        return 1

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    config = load_config(args.config)
    if args.db:
        config = config.model_copy(
            update={"cache": config.cache.model_copy(update={"db_path": args.db})}
        )

    try:
        if args.command == "fetch":
            return asyncio.run(_cmd_fetch(config, args))
        elif args.command == "search":
            return asyncio.run(_cmd_search(config, args))
        elif args.command == "locate":
            return asyncio.run(_cmd_locate(config, args))
        elif args.command == "show":
            return _cmd_show(config, args)
        elif args.command == "cache":
            return _cmd_cache(config)
        elif args.command == "purge":
            return _cmd_purge(config)
        elif args.command == "config":
            return _cmd_config(config, args)
        else:
            parser.print_help()
            return 1
    except (RemoteError, StorageError) as e:
        print(f"Error: {e}")
        return 1


def _synchronizer(config: AppConfig, store: CacheStore) -> WeatherSynchronizer:
    return WeatherSynchronizer(config, WeatherApiClient(config.api), store)


async def _cmd_fetch(config: AppConfig, args) -> int:
    store = CacheStore.open(config.cache.db_path)
    sync = _synchronizer(config, store)
    try:
        document = await sync.fetch_weather(args.query, is_current_location=args.current)
    finally:
        await sync.api.aclose()
        store.close()
    print(format_document(document))
    if sync.errors.value:
        print(f"Warning: {sync.errors.value}")
    return 0


async def _cmd_search(config: AppConfig, args) -> int:
    if len(args.query) < MIN_SEARCH_LENGTH:
        return 0
    async with WeatherApiClient(config.api) as api:
        suggestions = await api.search(args.query)
    for s in suggestions:
        print(f"{s.name}, {s.region}, {s.country}  ({s.query})")
    return 0


async def _cmd_locate(config: AppConfig, args) -> int:
    """Run the permission-granted flow once for a fixed device position."""
    store = CacheStore.open(config.cache.db_path)
    sync = _synchronizer(config, store)
    provider = QueueLocationProvider()
    provider.push(args.lat, args.lon)
    try:
        async with WeatherController(config, sync, provider) as controller:
            await controller.on_location_permission_granted()
            # The fetched weather reaches the UI state through the cache stream
            if controller.error.value is None:
                await _wait_for_weather(controller, store)
            weather = controller.current_weather.value
            error = controller.error.value
    finally:
        await sync.api.aclose()
        store.close()

    if error is not None:
        print(f"Error: {error}")
        return 1
    if weather is None:
        print("No weather available")
        return 1
    print(format_document(weather))
    return 0


async def _wait_for_weather(
    controller: WeatherController, store: CacheStore, timeout: float = 5.0
) -> None:
    """Wait until the controller shows the cached current-location row."""
    cached = next((s for s in store.read_all() if s.is_current_location), None)
    if cached is None:
        return
    expected = cached.document()

    async def _caught_up() -> None:
        while controller.current_weather.value != expected:
            await controller.current_weather.changed()

    try:
        await asyncio.wait_for(_caught_up(), timeout)
    except TimeoutError:
        logger.warning("No current location weather after %.1fs", timeout)


def _cmd_show(config: AppConfig, args) -> int:
    store = CacheStore.open(config.cache.db_path)
    try:
        if args.key:
            snapshot = store.read_by_key(args.key)
        else:
            snapshot = next(
                (s for s in store.read_all() if s.is_current_location), None
            )
    finally:
        store.close()

    if snapshot is None:
        print("Nothing cached")
        return 1
    print(format_document(snapshot.document()))
    print(f"  (cached {_fetched_label(snapshot)})")
    return 0


def _cmd_cache(config: AppConfig) -> int:
    store = CacheStore.open(config.cache.db_path)
    try:
        snapshots = store.read_all()
    finally:
        store.close()

    print(f"Cached snapshots: {len(snapshots)}")
    for s in snapshots:
        marker = "*" if s.is_current_location else " "
        print(f" {marker} {s.location_key}: {_fetched_label(s)}")
    return 0


def _cmd_purge(config: AppConfig) -> int:
    cutoff = retention_cutoff(config, epoch_millis_now())
    store = CacheStore.open(config.cache.db_path)
    try:
        removed = store.delete_older_than(cutoff)
    finally:
        store.close()
    print(f"Purged {removed} snapshot(s)")
    return 0


def _cmd_config(config: AppConfig, args) -> int:
    if args.config_command == "show":
        print(config.model_dump_json(indent=2))
        return 0
    elif args.config_command == "get":
        try:
            print(get_config_value(config, args.key))
        except KeyError as e:
            print(f"Error: {e}")
            return 1
        return 0
    else:
        print("Usage: skycast config {show,get}")
        return 1


def format_document(document: WeatherDocument) -> str:
    loc = document.location
    cur = document.current
    lines = [
        f"{loc.name}, {loc.region}, {loc.country} ({loc.local_time})",
        f"  {cur.temp_c:.1f}°C / {cur.temp_f:.1f}°F, {cur.condition.text}",
        f"  Feels like {cur.feels_like_c:.1f}°C | Humidity {cur.humidity}% "
        f"| Wind {cur.wind_kph:.1f} km/h {cur.wind_dir}",
    ]
    for day in document.forecast:
        lines.append(
            f"  {day.date}: {day.day.min_temp_c:.0f}–{day.day.max_temp_c:.0f}°C "
            f"{day.day.condition.text}, rain {day.day.chance_of_rain}%"
        )
    return "\n".join(lines)


def _fetched_label(snapshot: WeatherSnapshot) -> str:
    fetched = datetime.fromtimestamp(snapshot.fetched_at_epoch_millis / 1000, UTC)
    return fetched.isoformat(timespec="seconds")
