"""Durable snapshot cache with a reactive view of the current-location row."""

import logging
import sqlite3
from collections.abc import AsyncIterator
from pathlib import Path

from skycast.models.weather import WeatherSnapshot
from skycast.state.observable import ObservableValue
from skycast.storage import snapshot_repo
from skycast.storage.database import StorageError, connect, run_migrations

logger = logging.getLogger(__name__)


class CacheStore:
    """Owns the weather_snapshots table.

    Every mutating call bumps an internal version cell after it commits.
    ``read_current`` observes that cell rather than being called from the
    write path, so readers see changes through their own subscription only.
    """

    def __init__(self, conn: sqlite3.Connection):
        self.conn = conn
        self._version: ObservableValue[int] = ObservableValue(0)

    @classmethod
    def open(cls, db_path: str | Path) -> "CacheStore":
        """Connect to db_path and apply pending migrations."""
        conn = connect(db_path)
        try:
            applied = run_migrations(conn)
        except sqlite3.Error as e:
            conn.close()
            raise StorageError(f"Migration failed for {db_path}: {e}") from e
        if applied:
            logger.info("Applied migrations %s to %s", applied, db_path)
        return cls(conn)

    def close(self) -> None:
        self.conn.close()

    # --- Reads ---

    async def read_current(self) -> AsyncIterator[WeatherSnapshot | None]:
        """Yield the current-location snapshot now and whenever it changes.

        Each call is an independent subscription. Consecutive equal values
        are not repeated.
        """
        last: WeatherSnapshot | None = None
        first = True
        changes = self._version.values()
        try:
            async for _ in changes:
                snapshot = self._query(snapshot_repo.get_current)
                if first or snapshot != last:
                    first = False
                    last = snapshot
                    yield snapshot
        finally:
            await changes.aclose()

    async def wait_for_change(self) -> None:
        """Block until the next committed mutation."""
        await self._version.changed()

    def read_by_key(self, location_key: str) -> WeatherSnapshot | None:
        return self._query(snapshot_repo.get_by_key, location_key)

    def read_all(self) -> list[WeatherSnapshot]:
        return self._query(snapshot_repo.get_all)

    # --- Writes ---

    def write(self, snapshot: WeatherSnapshot) -> None:
        self._mutate(snapshot_repo.upsert, snapshot)
        logger.debug(
            "Stored snapshot for %s (current=%s)",
            snapshot.location_key, snapshot.is_current_location,
        )

    def clear_current_flag(self) -> None:
        self._mutate(snapshot_repo.clear_current_flag)

    def delete_older_than(self, epoch_millis: int) -> int:
        return self._mutate(snapshot_repo.delete_older_than, epoch_millis)

    def delete(self, location_key: str) -> int:
        return self._mutate(snapshot_repo.delete, location_key)

    def _query(self, fn, *args):
        try:
            return fn(self.conn, *args)
        except sqlite3.Error as e:
            raise StorageError(f"{fn.__name__} failed: {e}") from e

    def _mutate(self, fn, *args):
        try:
            result = fn(self.conn, *args)
        except sqlite3.Error as e:
            raise StorageError(f"{fn.__name__} failed: {e}") from e
        self._version.set(self._version.value + 1)
        return result
