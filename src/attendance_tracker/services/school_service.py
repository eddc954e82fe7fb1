from __future__ import annotations

import logging
import random
import uuid
from datetime import date
from typing import Any, Callable, Iterable

from attendance_tracker.data.repository import SchoolRepository
from attendance_tracker.models import (
    AttendanceRecord,
    AttendanceStatus,
    Bimester,
    ClassGroup,
    Holiday,
    HolidayType,
    Period,
    Situation,
    Student,
    ValidationError,
    parse_enum,
)
from attendance_tracker.remote import RemoteError
from attendance_tracker.services.sync_coordinator import SyncCoordinator, SyncQueuedError

_LOGGER = logging.getLogger(__name__)


class UnknownClassError(LookupError):
    """Raised when an operation references a class that does not exist."""


class UnknownStudentError(LookupError):
    """Raised when an operation references a student that does not exist."""


def new_id() -> str:
    return uuid.uuid4().hex


def generate_registration(year: int | None = None, rng: random.Random | None = None) -> str:
    """Registration codes are the year followed by four random digits."""
    chooser = rng or random
    return f"{year or date.today().year}{chooser.randint(1000, 9999)}"


def split_names(text: str) -> list[str]:
    return [line.strip() for line in text.splitlines() if line.strip()]


class SchoolService:
    """Mutations from the presentation layer: store locally, then sync.

    Structural edits (classes, students, bimesters, holidays) trigger an
    opportunistic full-snapshot push whose failure is only logged. Attendance
    saves push the saved records and let :class:`SyncQueuedError` reach the
    caller, unless pushes run in the background.
    """

    def __init__(
        self,
        repository: SchoolRepository,
        coordinator: SyncCoordinator | None = None,
        *,
        background: bool = False,
        rng: random.Random | None = None,
    ) -> None:
        self._repository = repository
        self._coordinator = coordinator
        self._background = background
        self._rng = rng or random.Random()

    @property
    def repository(self) -> SchoolRepository:
        return self._repository

    @property
    def sync_enabled(self) -> bool:
        return self._coordinator is not None

    # ------------------------------------------------------------------
    # Classes
    # ------------------------------------------------------------------
    def create_class(
        self,
        name: str,
        year: str | int,
        period: Period | str = Period.MORNING,
        *,
        lessons_per_day: int | None = None,
    ) -> ClassGroup:
        class_group = ClassGroup(
            id=new_id(),
            name=name.strip(),
            year=str(year).strip(),
            period=parse_enum(Period, period),
            lessons_per_day=lessons_per_day,
        )
        self._repository.save_class(class_group)
        self._sync_structure()
        return class_group

    def update_class(self, class_group: ClassGroup) -> ClassGroup:
        existing = self._require_class(class_group.id)
        class_group.created_at = existing.created_at
        self._repository.save_class(class_group)
        self._sync_structure()
        return class_group

    def set_schedule(self, class_id: str, schedule: dict[str, list[str]]) -> ClassGroup:
        class_group = self._require_class(class_id)
        class_group.schedule = {
            day: [str(subject or "").strip() for subject in subjects]
            for day, subjects in schedule.items()
        }
        self._repository.save_class(class_group)
        self._sync_structure()
        return class_group

    def delete_class(self, class_id: str) -> None:
        self._repository.delete_class(class_id)
        self._sync_structure()

    # ------------------------------------------------------------------
    # Students
    # ------------------------------------------------------------------
    def create_student(
        self,
        name: str,
        class_id: str,
        *,
        registration: str | None = None,
        situation: Situation | str = Situation.ENROLLED,
        photo_url: str | None = None,
    ) -> Student:
        self._require_class(class_id)
        student = Student(
            id=new_id(),
            name=name.strip(),
            registration=(registration or "").strip() or generate_registration(rng=self._rng),
            class_id=str(class_id),
            situation=parse_enum(Situation, situation),
            photo_url=photo_url,
        )
        self._repository.save_student(student)
        self._sync_structure()
        return student

    def import_students(
        self,
        names: str | Iterable[str],
        class_id: str,
        *,
        situation: Situation | str = Situation.ENROLLED,
    ) -> list[Student]:
        """Create one student per non-blank name, each with a fresh registration code."""
        self._require_class(class_id)
        cleaned = split_names(names) if isinstance(names, str) else [n.strip() for n in names if n.strip()]
        if not cleaned:
            raise ValidationError("No student names to import.")

        students = [
            Student(
                id=new_id(),
                name=name,
                registration=generate_registration(rng=self._rng),
                class_id=str(class_id),
                situation=parse_enum(Situation, situation),
            )
            for name in cleaned
        ]
        self._repository.save_students(students)
        _LOGGER.info("Imported %d students into class %s", len(students), class_id)
        self._sync_structure()
        return students

    def update_student(self, student: Student) -> Student:
        existing = self._require_student(student.id)
        student.created_at = existing.created_at
        if not student.registration:
            student.registration = existing.registration or generate_registration(rng=self._rng)
        self._repository.save_student(student)
        self._sync_structure()
        return student

    def delete_student(self, student_id: str) -> None:
        self._repository.delete_student(student_id)
        self._sync_structure()

    # ------------------------------------------------------------------
    # Attendance
    # ------------------------------------------------------------------
    def record_attendance(
        self,
        student_id: str,
        day: str,
        lesson_index: int,
        status: AttendanceStatus | str,
        *,
        subject: str | None = None,
        notes: str | None = None,
    ) -> AttendanceRecord:
        record = AttendanceRecord(
            student_id=student_id,
            date=day,
            lesson_index=lesson_index,
            status=status,
            subject=subject,
            notes=notes,
        )
        self._repository.save_attendance(record)
        self._dispatch(self._coordinator.push_record if self._coordinator else None, record, propagate=True)
        return record

    def record_attendance_batch(self, records: Iterable[AttendanceRecord]) -> list[AttendanceRecord]:
        batch = list(records)
        if not batch:
            return batch
        self._repository.save_attendance_batch(batch)
        self._dispatch(self._coordinator.push_attendance if self._coordinator else None, batch, propagate=True)
        return batch

    def clear_attendance(self, student_id: str, day: str, lesson_index: int | None = None) -> int:
        """Delete local records for a student and day; returns how many went.

        The remote copy is left in place, see :meth:`AttendanceSheet.clear`.
        """
        result = self._repository.delete_attendance(student_id, day, lesson_index)
        if result.affected:
            self._sync_structure()
        return result.affected

    # ------------------------------------------------------------------
    # Bimesters and holidays
    # ------------------------------------------------------------------
    def update_bimesters(self, bimesters: Iterable[Bimester]) -> list[Bimester]:
        items = sorted(bimesters, key=lambda item: item.id)
        self._repository.save_bimesters(items)
        self._sync_structure()
        return items

    def create_holiday(
        self,
        day: str,
        description: str,
        holiday_type: HolidayType | str = HolidayType.HOLIDAY,
    ) -> Holiday:
        holiday = Holiday(id=new_id(), date=day, description=description.strip(), type=holiday_type)
        self._repository.save_holiday(holiday)
        self._sync_structure()
        return holiday

    def update_holiday(self, holiday: Holiday) -> Holiday:
        self._repository.save_holiday(holiday)
        self._sync_structure()
        return holiday

    def delete_holiday(self, holiday_id: str) -> None:
        self._repository.delete_holiday(holiday_id)
        self._sync_structure()

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _require_class(self, class_id: str) -> ClassGroup:
        class_group = self._repository.get_class(class_id)
        if class_group is None:
            raise UnknownClassError(f"Class {class_id} does not exist.")
        return class_group

    def _require_student(self, student_id: str) -> Student:
        student = self._repository.get_student(student_id)
        if student is None:
            raise UnknownStudentError(f"Student {student_id} does not exist.")
        return student

    def _sync_structure(self) -> None:
        self._dispatch(self._coordinator.push_snapshot if self._coordinator else None, propagate=False)

    def _dispatch(self, push: Callable[..., Any] | None, *args: Any, propagate: bool) -> None:
        if push is None:
            return
        if self._background:
            self._coordinator.submit(push, *args)
            return
        try:
            push(*args)
        except SyncQueuedError:
            if propagate:
                raise
            _LOGGER.info("Snapshot sync queued until the remote store is reachable")
        except RemoteError as exc:
            if propagate:
                raise
            _LOGGER.error("Snapshot sync failed: %s", exc)
