from __future__ import annotations

import logging
from pathlib import Path

from attendance_tracker.data import ATTENDANCE, CLASSES, COLLECTIONS, Database, LocalStore


def _store(tmp_path: Path) -> LocalStore:
    store = LocalStore(Database(tmp_path / "attendance.db"))
    store.initialize()
    return store


def test_initialize_creates_tables(tmp_path: Path) -> None:
    database = Database(tmp_path / "attendance.db")
    database.initialize()
    database.initialize()

    with database.connect() as connection:
        tables = {
            row[0]
            for row in connection.execute("SELECT name FROM sqlite_master WHERE type='table'")
        }
        applied = connection.execute("SELECT COUNT(*) FROM schema_migrations").fetchone()[0]

    assert {"collections", "schema_migrations"}.issubset(tables)
    assert applied == 1


def test_missing_collection_reads_empty(tmp_path: Path) -> None:
    store = _store(tmp_path)
    assert store.read_collection(CLASSES) == []


def test_write_then_read_round_trips_nested_schedule(tmp_path: Path) -> None:
    store = _store(tmp_path)
    item = {"id": "1", "name": "1º Ano A", "schedule": {"Segunda": ["Matemática", "Português"]}}

    result = store.write_collection(CLASSES, [item])

    assert result.ok
    assert result.affected == 1
    assert store.read_collection(CLASSES) == [item]

    # Stored flat, with the schedule embedded as a JSON string.
    raw = store._database.fetch_payload(CLASSES)
    assert '"schedule": "{' in raw


def test_dates_are_canonicalized_on_write(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.write_collection(
        ATTENDANCE,
        [{"studentId": "1", "date": "2026-03-10T00:00:00Z", "lessonIndex": 0, "status": "P"}],
    )

    assert store.read_collection(ATTENDANCE)[0]["date"] == "2026-03-10"


def test_corrupt_collection_reads_empty_and_logs(tmp_path: Path, caplog) -> None:
    store = _store(tmp_path)
    store._database.store_payload(CLASSES, "{not json")

    with caplog.at_level(logging.ERROR):
        assert store.read_collection(CLASSES) == []

    assert "school_classes" in caplog.text


def test_non_list_payload_reads_empty(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store._database.store_payload(CLASSES, '{"id": "1"}')
    assert store.read_collection(CLASSES) == []


def test_write_failure_is_reported_not_raised(tmp_path: Path) -> None:
    store = LocalStore(Database(tmp_path / "attendance.db"))
    # No migrations applied, so the collections table is missing.
    result = store.write_collection(CLASSES, [{"id": "1"}])

    assert not result
    assert result.error is not None


def test_upsert_replaces_matching_item(tmp_path: Path) -> None:
    store = _store(tmp_path)
    match = lambda item: item["id"] == "1"  # noqa: E731

    store.upsert(CLASSES, {"id": "1", "name": "A"}, match)
    store.upsert(CLASSES, {"id": "1", "name": "B"}, match)
    store.upsert(CLASSES, {"id": "2", "name": "C"}, lambda item: item["id"] == "2")

    assert store.read_collection(CLASSES) == [{"id": "1", "name": "B"}, {"id": "2", "name": "C"}]


def test_remove_where_reports_affected_rows(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.write_collection(CLASSES, [{"id": "1"}, {"id": "2"}, {"id": "3"}])

    result = store.remove_where(CLASSES, lambda item: item["id"] != "2")
    nothing = store.remove_where(CLASSES, lambda item: item["id"] == "9")

    assert result.affected == 2
    assert nothing.ok and nothing.affected == 0
    assert store.read_collection(CLASSES) == [{"id": "2"}]


def test_collection_names_lists_written_keys(tmp_path: Path) -> None:
    store = _store(tmp_path)
    store.write_collection(CLASSES, [])
    store.clear(ATTENDANCE)

    names = store.collection_names()

    assert names == sorted([ATTENDANCE, CLASSES])
    assert set(names).issubset(COLLECTIONS)
