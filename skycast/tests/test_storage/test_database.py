"""Tests for database connection, WAL mode, and migrations."""

import sqlite3
from pathlib import Path

import pytest

from skycast.storage.cache_store import CacheStore
from skycast.storage.database import StorageError, connect, run_migrations


class TestConnect:
    def test_wal_mode(self, tmp_path: Path):
        db = connect(tmp_path / "test.db")
        mode = db.execute("PRAGMA journal_mode").fetchone()[0]
        assert mode == "wal"
        db.close()

    def test_creates_parent_directory(self, tmp_path: Path):
        db = connect(tmp_path / "nested" / "dir" / "test.db")
        assert (tmp_path / "nested" / "dir").is_dir()
        db.close()

    def test_row_factory(self, tmp_path: Path):
        db = connect(tmp_path / "test.db")
        db.execute("CREATE TABLE t (x TEXT)")
        db.execute("INSERT INTO t VALUES ('hello')")
        row = db.execute("SELECT x FROM t").fetchone()
        assert row["x"] == "hello"
        db.close()

    def test_unusable_parent_raises_storage_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError):
            connect(blocker / "skycast.db")

    def test_open_store_under_file_raises_storage_error(self, tmp_path: Path):
        blocker = tmp_path / "blocker"
        blocker.write_text("not a directory")
        with pytest.raises(StorageError) as exc_info:
            CacheStore.open(blocker / "skycast.db")
        assert isinstance(exc_info.value.__cause__, OSError)


class TestMigrations:
    def test_creates_snapshot_table(self, tmp_path: Path):
        db = connect(tmp_path / "test.db")
        applied = run_migrations(db)
        assert "v001_initial" in applied

        tables = {
            row[0]
            for row in db.execute(
                "SELECT name FROM sqlite_master WHERE type='table'"
            ).fetchall()
        }
        assert {"schema_versions", "weather_snapshots"}.issubset(tables)
        db.close()

    def test_idempotent(self, tmp_path: Path):
        db = connect(tmp_path / "test.db")
        applied1 = run_migrations(db)
        applied2 = run_migrations(db)
        assert len(applied1) > 0
        assert len(applied2) == 0
        db.close()

    def test_schema_rejects_second_current_row(self, tmp_path: Path):
        db = connect(tmp_path / "test.db")
        run_migrations(db)
        db.execute(
            "INSERT INTO weather_snapshots VALUES ('London', 1, '{}', 1)"
        )
        with pytest.raises(sqlite3.IntegrityError):
            db.execute(
                "INSERT INTO weather_snapshots VALUES ('Paris', 1, '{}', 1)"
            )
        db.close()
