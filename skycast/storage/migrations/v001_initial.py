"""Initial schema: the weather snapshot cache."""

import sqlite3

DDL = [
    # One row per location; payload is the serialized WeatherDocument
    """
    CREATE TABLE IF NOT EXISTS weather_snapshots (
        location_key TEXT PRIMARY KEY,
        fetched_at_epoch_millis INTEGER NOT NULL,
        payload TEXT NOT NULL,
        is_current_location INTEGER NOT NULL DEFAULT 0
    )
    """,
    # At most one row may carry the current-location flag
    (
        "CREATE UNIQUE INDEX IF NOT EXISTS idx_weather_snapshots_current "
        "ON weather_snapshots(is_current_location) WHERE is_current_location = 1"
    ),
    (
        "CREATE INDEX IF NOT EXISTS idx_weather_snapshots_fetched_at "
        "ON weather_snapshots(fetched_at_epoch_millis)"
    ),
]


def up(conn: sqlite3.Connection) -> None:
    for stmt in DDL:
        conn.execute(stmt)
    conn.commit()
