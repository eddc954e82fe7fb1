from __future__ import annotations

import logging
import threading
from typing import Any, Callable, Mapping

from attendance_tracker.data.repository import SchoolRepository
from attendance_tracker.models import (
    AttendanceRecord,
    Bimester,
    ClassGroup,
    Holiday,
    Student,
    ValidationError,
)
from attendance_tracker.remote import RemoteSnapshot

_LOGGER = logging.getLogger(__name__)

Observer = Callable[["DataContext"], None]

_FACTORIES: dict[str, Callable[[dict], Any]] = {
    "classes": ClassGroup.from_dict,
    "students": Student.from_dict,
    "attendance": AttendanceRecord.from_dict,
    "bimesters": Bimester.from_dict,
    "holidays": Holiday.from_dict,
}


class DataContext:
    """In-memory cache of every collection, read by presentation code.

    The cache is not invalidated automatically: call :meth:`refresh` after
    any mutation. Observers registered with :meth:`subscribe` are called
    after every refresh or hydration.
    """

    def __init__(self, repository: SchoolRepository) -> None:
        self._repository = repository
        self._observers: list[Observer] = []
        self._lock = threading.RLock()
        self.classes: list[ClassGroup] = []
        self.students: list[Student] = []
        self.attendance: list[AttendanceRecord] = []
        self.bimesters: list[Bimester] = []
        self.holidays: list[Holiday] = []
        self.is_loading = True

    # ------------------------------------------------------------------
    # Observers
    # ------------------------------------------------------------------
    def subscribe(self, observer: Observer) -> Callable[[], None]:
        self._observers.append(observer)

        def unsubscribe() -> None:
            if observer in self._observers:
                self._observers.remove(observer)

        return unsubscribe

    # ------------------------------------------------------------------
    # Loading
    # ------------------------------------------------------------------
    def refresh(self) -> None:
        with self._lock:
            self.classes = self._repository.list_classes()
            self.students = self._repository.list_students()
            self.attendance = self._repository.list_attendance()
            self.bimesters = self._repository.list_bimesters()
            self.holidays = self._repository.list_holidays()
            self.is_loading = False
        self._notify()

    def hydrate_from_cloud(self, snapshot: RemoteSnapshot | Mapping[str, Any]) -> dict[str, int]:
        """Overwrite local collections with the ones present in ``snapshot``.

        Dates are canonicalized and ids normalized before anything is stored;
        rows that cannot be parsed are skipped. Returns the number of rows
        stored per collection.
        """
        data = snapshot.as_dict() if isinstance(snapshot, RemoteSnapshot) else snapshot
        stored: dict[str, int] = {}

        with self._lock:
            for key, factory in _FACTORIES.items():
                items = data.get(key)
                if items is None:
                    continue
                entities = self._parse(key, items, factory)
                result = self._repository.replace_collection(key, [entity.to_dict() for entity in entities])
                if not result.ok:
                    _LOGGER.error("Failed to store hydrated %s: %s", key, result.error)
                if key == "bimesters" and not entities:
                    entities = self._repository.list_bimesters()
                setattr(self, key, entities)
                stored[key] = len(entities)
            self.is_loading = False

        _LOGGER.info("Hydrated local data from cloud: %s", stored)
        self._notify()
        return stored

    # ------------------------------------------------------------------
    # Lookups
    # ------------------------------------------------------------------
    def class_by_id(self, class_id: str) -> ClassGroup | None:
        return next((item for item in self.classes if item.id == str(class_id)), None)

    def student_by_id(self, student_id: str) -> Student | None:
        return next((item for item in self.students if item.id == str(student_id)), None)

    def students_in_class(self, class_id: str) -> list[Student]:
        return [student for student in self.students if student.class_id == str(class_id)]

    def bimester_by_id(self, bimester_id: int) -> Bimester | None:
        return next((item for item in self.bimesters if item.id == int(bimester_id)), None)

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    @staticmethod
    def _parse(key: str, items, factory) -> list:
        entities = []
        for item in items:
            try:
                entities.append(factory(dict(item)))
            except (ValidationError, TypeError, ValueError) as exc:
                _LOGGER.warning("Skipping unreadable %s row from cloud: %s", key, exc)
        return entities

    def _notify(self) -> None:
        for observer in list(self._observers):
            try:
                observer(self)
            except Exception:  # pragma: no cover - one bad view must not break the rest
                _LOGGER.exception("Data observer failed")
