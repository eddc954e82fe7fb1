from __future__ import annotations

import logging
from datetime import date
from typing import Callable, Iterable, TypeVar

from attendance_tracker.data.local_store import (
    ATTENDANCE,
    BIMESTERS,
    CLASSES,
    HOLIDAYS,
    STUDENTS,
    LocalStore,
    StoreResult,
)
from attendance_tracker.models import (
    AttendanceRecord,
    Bimester,
    ClassGroup,
    Holiday,
    Period,
    Situation,
    Student,
    ValidationError,
    default_bimesters,
)
from attendance_tracker.utils.dates import canonical_date, month_prefix, soft_canonical_date
from attendance_tracker.utils.serialization import coerce_int, coerce_str_id

_LOGGER = logging.getLogger(__name__)

T = TypeVar("T")

SNAPSHOT_COLLECTIONS: dict[str, str] = {
    "classes": CLASSES,
    "students": STUDENTS,
    "attendance": ATTENDANCE,
    "bimesters": BIMESTERS,
    "holidays": HOLIDAYS,
}


def _same_id(left, right) -> bool:
    return coerce_str_id(left) == coerce_str_id(right)


def _item_date(item: dict):
    return soft_canonical_date(item.get("date") or "")


def _matches_key(record: AttendanceRecord) -> Callable[[dict], bool]:
    def match(item: dict) -> bool:
        return (
            _same_id(item.get("studentId"), record.student_id)
            and _item_date(item) == record.date
            and coerce_int(item.get("lessonIndex")) == record.lesson_index
        )

    return match


class SchoolRepository:
    """Typed CRUD over the local collections, including cascading deletes."""

    def __init__(self, store: LocalStore, *, academic_year: int | None = None) -> None:
        self._store = store
        self._academic_year = academic_year or date.today().year

    @property
    def store(self) -> LocalStore:
        return self._store

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------
    def list_classes(self) -> list[ClassGroup]:
        return self._load(CLASSES, ClassGroup.from_dict)

    def get_class(self, class_id: str) -> ClassGroup | None:
        return next((item for item in self.list_classes() if _same_id(item.id, class_id)), None)

    def save_class(self, class_group: ClassGroup) -> StoreResult:
        class_group.validate()
        return self._store.upsert(
            CLASSES,
            class_group.to_dict(),
            lambda item: _same_id(item.get("id"), class_group.id),
        )

    def delete_class(self, class_id: str) -> StoreResult:
        student_ids = {
            coerce_str_id(item.get("id"))
            for item in self._store.read_collection(STUDENTS)
            if _same_id(item.get("classId"), class_id)
        }

        result = self._store.remove_where(CLASSES, lambda item: _same_id(item.get("id"), class_id))
        self._store.remove_where(STUDENTS, lambda item: _same_id(item.get("classId"), class_id))
        if student_ids:
            self._store.remove_where(
                ATTENDANCE,
                lambda item: coerce_str_id(item.get("studentId")) in student_ids,
            )
        _LOGGER.info("Deleted class %s with %d students", class_id, len(student_ids))
        return result

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------
    def list_students(
        self,
        *,
        class_id: str | None = None,
        situation: Situation | None = None,
    ) -> list[Student]:
        students = self._load(STUDENTS, Student.from_dict)
        if class_id is not None:
            students = [student for student in students if _same_id(student.class_id, class_id)]
        if situation is not None:
            students = [student for student in students if student.situation is situation]
        return students

    def get_student(self, student_id: str) -> Student | None:
        return next(
            (item for item in self.list_students() if _same_id(item.id, student_id)),
            None,
        )

    def save_student(self, student: Student) -> StoreResult:
        student.validate()
        return self._store.upsert(
            STUDENTS,
            student.to_dict(),
            lambda item: _same_id(item.get("id"), student.id),
        )

    def save_students(self, students: Iterable[Student]) -> StoreResult:
        incoming = list(students)
        for student in incoming:
            student.validate()
        items = self._store.read_collection(STUDENTS)
        positions = {coerce_str_id(item.get("id")): index for index, item in enumerate(items)}
        for student in incoming:
            if student.id in positions:
                items[positions[student.id]] = student.to_dict()
            else:
                positions[student.id] = len(items)
                items.append(student.to_dict())
        return self._store.write_collection(STUDENTS, items)

    def delete_student(self, student_id: str) -> StoreResult:
        result = self._store.remove_where(STUDENTS, lambda item: _same_id(item.get("id"), student_id))
        self._store.remove_where(ATTENDANCE, lambda item: _same_id(item.get("studentId"), student_id))
        return result

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------
    def list_attendance(self) -> list[AttendanceRecord]:
        return self._load(ATTENDANCE, AttendanceRecord.from_dict)

    def attendance_by_date(self, day: str) -> list[AttendanceRecord]:
        target = canonical_date(day)
        return [record for record in self.list_attendance() if record.date == target]

    def attendance_by_student(self, student_id: str) -> list[AttendanceRecord]:
        return [record for record in self.list_attendance() if _same_id(record.student_id, student_id)]

    def attendance_for_student_month(self, student_id: str, year: int, month: int) -> list[AttendanceRecord]:
        prefix = month_prefix(year, month)
        return [
            record
            for record in self.attendance_by_student(student_id)
            if record.date.startswith(prefix)
        ]

    def save_attendance(self, record: AttendanceRecord) -> StoreResult:
        return self._store.upsert(ATTENDANCE, record.to_dict(), _matches_key(record))

    def save_attendance_batch(self, records: Iterable[AttendanceRecord]) -> StoreResult:
        items = self._store.read_collection(ATTENDANCE)
        positions = {
            (coerce_str_id(item.get("studentId")), _item_date(item), coerce_int(item.get("lessonIndex"))): index
            for index, item in enumerate(items)
        }
        for record in records:
            index = positions.get(record.key)
            if index is None:
                positions[record.key] = len(items)
                items.append(record.to_dict())
            else:
                items[index] = record.to_dict()
        return self._store.write_collection(ATTENDANCE, items)

    def delete_attendance(self, student_id: str, day: str, lesson_index: int | None = None) -> StoreResult:
        target = canonical_date(day)

        def predicate(item: dict) -> bool:
            return (
                _same_id(item.get("studentId"), student_id)
                and _item_date(item) == target
                and (lesson_index is None or coerce_int(item.get("lessonIndex")) == lesson_index)
            )

        return self._store.remove_where(ATTENDANCE, predicate)

    # ------------------------------------------------------------------
    # Bimesters
    # ------------------------------------------------------------------
    def list_bimesters(self) -> list[Bimester]:
        bimesters = self._load(BIMESTERS, Bimester.from_dict)
        if not bimesters:
            return default_bimesters(self._academic_year)
        return sorted(bimesters, key=lambda item: item.id)

    def get_bimester(self, bimester_id: int) -> Bimester | None:
        return next((item for item in self.list_bimesters() if item.id == int(bimester_id)), None)

    def ensure_default_bimesters(self) -> bool:
        """Persist the four default bimesters when none are stored yet."""
        if self._store.read_collection(BIMESTERS):
            return False
        self.save_bimesters(default_bimesters(self._academic_year))
        return True

    def save_bimesters(self, bimesters: Iterable[Bimester]) -> StoreResult:
        items = list(bimesters)
        for bimester in items:
            bimester.validate()
        return self._store.write_collection(BIMESTERS, [item.to_dict() for item in items])

    # ------------------------------------------------------------------
    # Holidays
    # ------------------------------------------------------------------
    def list_holidays(self) -> list[Holiday]:
        return sorted(self._load(HOLIDAYS, Holiday.from_dict), key=lambda item: item.date)

    def holiday_on(self, day: str) -> Holiday | None:
        target = canonical_date(day)
        return next((item for item in self.list_holidays() if item.date == target), None)

    def save_holiday(self, holiday: Holiday) -> StoreResult:
        if not holiday.description.strip():
            raise ValidationError("Holiday description is required.")
        return self._store.upsert(
            HOLIDAYS,
            holiday.to_dict(),
            lambda item: _same_id(item.get("id"), holiday.id),
        )

    def delete_holiday(self, holiday_id: str) -> StoreResult:
        return self._store.remove_where(HOLIDAYS, lambda item: _same_id(item.get("id"), holiday_id))

    # ------------------------------------------------------------------
    # Snapshots
    # ------------------------------------------------------------------
    def snapshot(self) -> dict[str, list[dict]]:
        return {
            "classes": [item.to_dict() for item in self.list_classes()],
            "students": [item.to_dict() for item in self.list_students()],
            "attendance": [item.to_dict() for item in self.list_attendance()],
            "bimesters": [item.to_dict() for item in self.list_bimesters()],
            "holidays": [item.to_dict() for item in self.list_holidays()],
        }

    def replace_collection(self, key: str, items: Iterable[dict]) -> StoreResult:
        return self._store.write_collection(SNAPSHOT_COLLECTIONS[key], items)

    def seed_sample_data(self) -> bool:
        if self.list_classes():
            _LOGGER.debug("Data already exists, skipping sample initialization.")
            return False

        _LOGGER.info("Initializing sample data...")
        year = str(self._academic_year)
        self.save_class(
            ClassGroup(id="1", name="1º Ano A", year=year, period=Period.MORNING, lessons_per_day=1)
        )
        self.save_students(
            Student(id=str(index), name=name, registration=f"{year}{index:03d}", class_id="1")
            for index, name in enumerate(("Ana Silva", "Bruno Santos", "Carla Oliveira"), start=1)
        )
        return True

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _load(self, name: str, factory: Callable[[dict], T]) -> list[T]:
        entities: list[T] = []
        for item in self._store.read_collection(name):
            try:
                entities.append(factory(item))
            except ValidationError as exc:
                _LOGGER.warning("Skipping invalid row in %s: %s", name, exc)
        return entities
