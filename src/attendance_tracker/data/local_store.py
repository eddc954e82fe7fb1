from __future__ import annotations

import json
import logging
import sqlite3
from dataclasses import dataclass
from typing import Any, Callable, Iterable

from attendance_tracker.data.database import Database
from attendance_tracker.utils.dates import soft_canonical_date
from attendance_tracker.utils.serialization import decode_json_field, encode_json_fields

_LOGGER = logging.getLogger(__name__)

CLASSES = "school_classes"
STUDENTS = "school_students"
ATTENDANCE = "school_attendance"
BIMESTERS = "school_bimesters"
HOLIDAYS = "school_holidays"
SYNC_QUEUE = "school_sync_queue"

COLLECTIONS: tuple[str, ...] = (CLASSES, STUDENTS, ATTENDANCE, BIMESTERS, HOLIDAYS, SYNC_QUEUE)

# Fields holding calendar dates, canonicalized on every write.
DATE_FIELDS: dict[str, tuple[str, ...]] = {
    ATTENDANCE: ("date",),
    BIMESTERS: ("start", "end"),
    HOLIDAYS: ("date",),
}

# Nested structures kept as embedded JSON strings so every stored row stays flat.
EMBEDDED_FIELDS: dict[str, tuple[str, ...]] = {
    CLASSES: ("schedule",),
}

Item = dict[str, Any]
Predicate = Callable[[Item], bool]


class StorageError(Exception):
    """Base class for local persistence failures."""


class ParseError(StorageError):
    """A stored collection could not be decoded."""


class WriteError(StorageError):
    """A collection could not be written."""


@dataclass(frozen=True, slots=True)
class StoreResult:
    ok: bool
    error: StorageError | None = None
    affected: int = 0

    def __bool__(self) -> bool:
        return self.ok


class LocalStore:
    """Durable, synchronous storage of named record collections.

    Read and write failures never propagate: a corrupt collection reads as
    empty and a failed write is reported through :class:`StoreResult`, so
    call sites that ignore the result keep working on stale data.
    """

    def __init__(self, database: Database) -> None:
        self._database = database

    def initialize(self) -> None:
        self._database.initialize()

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------
    def read_collection(self, name: str) -> list[Item]:
        try:
            payload = self._database.fetch_payload(name)
        except sqlite3.Error as exc:
            _LOGGER.error("Error loading %s from storage: %s", name, exc)
            return []

        if not payload:
            return []

        try:
            items = json.loads(payload)
            if not isinstance(items, list):
                raise ParseError(f"{name} does not hold a list")
        except (ValueError, ParseError) as exc:
            _LOGGER.error("Error loading %s from storage: %s", name, exc)
            return []

        embedded = EMBEDDED_FIELDS.get(name, ())
        decoded: list[Item] = []
        for item in items:
            if not isinstance(item, dict):
                _LOGGER.warning("Skipping malformed row in %s: %r", name, item)
                continue
            for field_name in embedded:
                if field_name in item:
                    item[field_name] = decode_json_field(item[field_name])
            decoded.append(item)
        return decoded

    def write_collection(self, name: str, items: Iterable[Item]) -> StoreResult:
        rows = [self._prepare(name, item) for item in items]
        try:
            payload = json.dumps(rows, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            _LOGGER.error("Error saving %s to storage: %s", name, exc)
            return StoreResult(ok=False, error=WriteError(str(exc)))

        try:
            self._database.store_payload(name, payload)
        except sqlite3.Error as exc:
            _LOGGER.error("Error saving %s to storage: %s", name, exc)
            return StoreResult(ok=False, error=WriteError(str(exc)))
        return StoreResult(ok=True, affected=len(rows))

    def upsert(self, name: str, item: Item, match: Predicate) -> StoreResult:
        items = self.read_collection(name)
        for index, existing in enumerate(items):
            if match(existing):
                items[index] = item
                break
        else:
            items.append(item)
        return self.write_collection(name, items)

    def remove_where(self, name: str, predicate: Predicate) -> StoreResult:
        items = self.read_collection(name)
        kept = [item for item in items if not predicate(item)]
        removed = len(items) - len(kept)
        if removed == 0:
            return StoreResult(ok=True)
        result = self.write_collection(name, kept)
        return StoreResult(ok=result.ok, error=result.error, affected=removed if result.ok else 0)

    def clear(self, name: str) -> StoreResult:
        return self.write_collection(name, [])

    def collection_names(self) -> list[str]:
        try:
            return self._database.payload_names()
        except sqlite3.Error as exc:
            _LOGGER.error("Error listing stored collections: %s", exc)
            return []

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _prepare(name: str, item: Item) -> Item:
        row = encode_json_fields(item, EMBEDDED_FIELDS.get(name, ()))
        for field_name in DATE_FIELDS.get(name, ()):
            if row.get(field_name):
                row[field_name] = soft_canonical_date(row[field_name])
        return row
