from __future__ import annotations

from dataclasses import dataclass

from attendance_tracker.models import (
    AttendanceRecord,
    AttendanceStatus,
    ClassGroup,
    Holiday,
    Situation,
    Student,
)
from attendance_tracker.services.school_service import SchoolService
from attendance_tracker.utils.dates import canonical_date, weekday_name

MAX_LESSONS_PER_DAY = 9


@dataclass(frozen=True, slots=True)
class SheetCounts:
    present: int
    absent: int
    justified: int
    no_lesson: int
    total: int


class AttendanceSheet:
    """Student by lesson grid for marking one class on one date.

    Cells without a stored record show a default status (present, or no
    lesson on holidays) until they are marked or the whole sheet is saved.
    """

    def __init__(
        self,
        service: SchoolService,
        class_group: ClassGroup,
        day: str,
        *,
        situation: Situation | None = Situation.ENROLLED,
        lessons_per_day: int | None = None,
    ) -> None:
        self._service = service
        self._class = class_group
        self._day = canonical_date(day)
        self._situation = situation
        self._requested_lessons = lessons_per_day
        self._records: dict[tuple[str, int], AttendanceRecord] = {}
        self.students: list[Student] = []
        self.holiday: Holiday | None = None
        self.lessons_per_day = 1
        self.reload()

    @property
    def day(self) -> str:
        return self._day

    @property
    def weekday(self) -> str:
        return weekday_name(self._day)

    @property
    def default_status(self) -> AttendanceStatus:
        return AttendanceStatus.NO_LESSON if self.holiday else AttendanceStatus.PRESENT

    def reload(self) -> None:
        repository = self._service.repository
        self.students = sorted(
            repository.list_students(class_id=self._class.id, situation=self._situation),
            key=lambda student: student.name.lower(),
        )
        class_member_ids = {student.id for student in repository.list_students(class_id=self._class.id)}
        self._records = {
            (record.student_id, record.lesson_index): record
            for record in repository.attendance_by_date(self._day)
            if record.student_id in class_member_ids
        }
        self.holiday = repository.holiday_on(self._day)
        self.lessons_per_day = self._resolve_lessons_per_day()

    def set_lessons_per_day(self, lessons: int) -> None:
        if not 1 <= lessons <= MAX_LESSONS_PER_DAY:
            raise ValueError(f"Lessons per day must be between 1 and {MAX_LESSONS_PER_DAY}.")
        self._requested_lessons = lessons
        self.lessons_per_day = lessons

    # ------------------------------------------------------------------
    # Cells
    # ------------------------------------------------------------------
    def status(self, student_id: str, lesson_index: int) -> AttendanceStatus:
        record = self._records.get((str(student_id), lesson_index))
        return record.status if record else self.default_status

    def is_recorded(self, student_id: str, lesson_index: int) -> bool:
        return (str(student_id), lesson_index) in self._records

    def subject_for(self, lesson_index: int) -> str | None:
        return self._class.subject_for(self.weekday, lesson_index)

    def mark(
        self,
        student_id: str,
        lesson_index: int,
        status: AttendanceStatus | str,
        *,
        notes: str | None = None,
    ) -> AttendanceRecord:
        self._check_cell(student_id, lesson_index)
        record = AttendanceRecord(
            student_id=student_id,
            date=self._day,
            lesson_index=lesson_index,
            status=status,
            subject=self.subject_for(lesson_index),
            notes=notes,
        )
        # Keep the grid in step even when the push ends up queued.
        self._records[(record.student_id, lesson_index)] = record
        return self._service.record_attendance(
            record.student_id,
            record.date,
            record.lesson_index,
            record.status,
            subject=record.subject,
            notes=record.notes,
        )

    def clear(self, student_id: str, lesson_index: int) -> bool:
        """Delete the stored record so the cell shows its default again.

        Only the local copy is removed. The remote store upserts attendance
        and has no delete action, so the record comes back on the next pull.
        """
        self._check_cell(student_id, lesson_index)
        removed = self._records.pop((str(student_id), lesson_index), None)
        if removed is None:
            return False
        self._service.clear_attendance(removed.student_id, self._day, lesson_index)
        return True

    def save_all(self) -> list[AttendanceRecord]:
        """Persist every visible cell, defaults included, as one batch."""
        records = [
            self._records.get((student.id, index))
            or AttendanceRecord(
                student_id=student.id,
                date=self._day,
                lesson_index=index,
                status=self.default_status,
                subject=self.subject_for(index),
            )
            for student in self.students
            for index in range(self.lessons_per_day)
        ]
        for record in records:
            self._records[(record.student_id, record.lesson_index)] = record
        return self._service.record_attendance_batch(records)

    def counts(self) -> SheetCounts:
        tallies = {status: 0 for status in AttendanceStatus}
        for student in self.students:
            for index in range(self.lessons_per_day):
                tallies[self.status(student.id, index)] += 1
        return SheetCounts(
            present=tallies[AttendanceStatus.PRESENT],
            absent=tallies[AttendanceStatus.ABSENT],
            justified=tallies[AttendanceStatus.JUSTIFIED],
            no_lesson=tallies[AttendanceStatus.NO_LESSON],
            total=len(self.students) * self.lessons_per_day,
        )

    # ------------------------------------------------------------------
    # Internal helpers
    # ------------------------------------------------------------------
    def _resolve_lessons_per_day(self) -> int:
        if self._requested_lessons:
            return self._requested_lessons
        recorded = max((index + 1 for _, index in self._records), default=0)
        return max(recorded, self._class.lessons_per_day or 1)

    def _check_cell(self, student_id: str, lesson_index: int) -> None:
        if not any(student.id == str(student_id) for student in self.students):
            raise KeyError(f"Student {student_id} is not on this sheet.")
        if not 0 <= lesson_index < self.lessons_per_day:
            raise IndexError(f"Lesson {lesson_index} is outside this sheet.")
