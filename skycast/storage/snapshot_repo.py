"""Repository for cached weather snapshots."""

import sqlite3

from skycast.models.weather import WeatherSnapshot


def _to_snapshot(row: sqlite3.Row) -> WeatherSnapshot:
    return WeatherSnapshot(
        location_key=row["location_key"],
        fetched_at_epoch_millis=row["fetched_at_epoch_millis"],
        payload=row["payload"],
        is_current_location=bool(row["is_current_location"]),
    )


def get_current(conn: sqlite3.Connection) -> WeatherSnapshot | None:
    """Get the snapshot flagged as the current location, if any."""
    row = conn.execute(
        "SELECT * FROM weather_snapshots WHERE is_current_location = 1 LIMIT 1"
    ).fetchone()
    if row is None:
        return None
    return _to_snapshot(row)


def get_by_key(conn: sqlite3.Connection, location_key: str) -> WeatherSnapshot | None:
    row = conn.execute(
        "SELECT * FROM weather_snapshots WHERE location_key = ?", (location_key,)
    ).fetchone()
    if row is None:
        return None
    return _to_snapshot(row)


def get_all(conn: sqlite3.Connection) -> list[WeatherSnapshot]:
    """Get every cached snapshot, newest first."""
    rows = conn.execute(
        "SELECT * FROM weather_snapshots ORDER BY fetched_at_epoch_millis DESC"
    ).fetchall()
    return [_to_snapshot(r) for r in rows]


def upsert(conn: sqlite3.Connection, snapshot: WeatherSnapshot) -> None:
    """Insert or fully replace the snapshot keyed by location_key.

    A snapshot flagged current takes the flag from whichever row held it.
    """
    with conn:
        if snapshot.is_current_location:
            conn.execute(
                "UPDATE weather_snapshots SET is_current_location = 0 "
                "WHERE is_current_location = 1 AND location_key != ?",
                (snapshot.location_key,),
            )
        conn.execute(
            "INSERT OR REPLACE INTO weather_snapshots "
            "(location_key, fetched_at_epoch_millis, payload, is_current_location) "
            "VALUES (?, ?, ?, ?)",
            (
                snapshot.location_key,
                snapshot.fetched_at_epoch_millis,
                snapshot.payload,
                int(snapshot.is_current_location),
            ),
        )


def clear_current_flag(conn: sqlite3.Connection) -> int:
    """Unflag the current-location row. Returns the number of rows changed."""
    cursor = conn.execute(
        "UPDATE weather_snapshots SET is_current_location = 0 "
        "WHERE is_current_location = 1"
    )
    conn.commit()
    return cursor.rowcount


def delete_older_than(conn: sqlite3.Connection, epoch_millis: int) -> int:
    """Delete snapshots fetched strictly before epoch_millis. Returns rows deleted."""
    cursor = conn.execute(
        "DELETE FROM weather_snapshots WHERE fetched_at_epoch_millis < ?",
        (epoch_millis,),
    )
    conn.commit()
    return cursor.rowcount


def delete(conn: sqlite3.Connection, location_key: str) -> int:
    cursor = conn.execute(
        "DELETE FROM weather_snapshots WHERE location_key = ?", (location_key,)
    )
    conn.commit()
    return cursor.rowcount
