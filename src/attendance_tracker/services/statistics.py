from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Collection, Iterable

from attendance_tracker.models import AttendanceRecord, AttendanceStatus, Student
from attendance_tracker.utils.dates import canonical_date, in_range


@dataclass(frozen=True, slots=True)
class AttendanceStats:
    total_days: int = 0
    present: int = 0
    absent: int = 0
    justified: int = 0
    no_lesson: int = 0
    attendance_rate: float = 0.0

    @property
    def lessons_counted(self) -> int:
        return self.total_days - self.no_lesson

    def as_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True, slots=True)
class ClassDayStats:
    present: int = 0
    absent: int = 0
    justified: int = 0
    no_lesson: int = 0
    total: int = 0

    @property
    def unmarked(self) -> int:
        return self.total - (self.present + self.absent + self.justified + self.no_lesson)


def attendance_rate(present: int, justified: int, total_days: int, no_lesson: int) -> float:
    """Percentage of countable lessons attended; ``0.0`` when nothing is countable."""
    valid_days = total_days - no_lesson
    if valid_days <= 0:
        return 0.0
    return (present + justified) / valid_days * 100


def filter_records(
    records: Iterable[AttendanceRecord],
    *,
    student_id: str | None = None,
    start: str | None = None,
    end: str | None = None,
    student_ids: Collection[str] | None = None,
) -> list[AttendanceRecord]:
    start = canonical_date(start) if start else None
    end = canonical_date(end) if end else None
    selected = []
    for record in records:
        if student_id is not None and record.student_id != str(student_id):
            continue
        if student_ids is not None and record.student_id not in student_ids:
            continue
        if not in_range(record.date, start, end):
            continue
        selected.append(record)
    return selected


def tally(records: Iterable[AttendanceRecord]) -> AttendanceStats:
    counts = {status: 0 for status in AttendanceStatus}
    total = 0
    for record in records:
        counts[record.status] += 1
        total += 1

    present = counts[AttendanceStatus.PRESENT]
    justified = counts[AttendanceStatus.JUSTIFIED]
    no_lesson = counts[AttendanceStatus.NO_LESSON]
    return AttendanceStats(
        total_days=total,
        present=present,
        absent=counts[AttendanceStatus.ABSENT],
        justified=justified,
        no_lesson=no_lesson,
        attendance_rate=attendance_rate(present, justified, total, no_lesson),
    )


def compute_student_stats(
    records: Iterable[AttendanceRecord],
    student_id: str,
    start: str | None = None,
    end: str | None = None,
) -> AttendanceStats:
    return tally(filter_records(records, student_id=student_id, start=start, end=end))


def compute_class_day_stats(
    students: Iterable[Student],
    records: Iterable[AttendanceRecord],
    class_id: str,
    day: str,
    lesson_index: int | None = None,
) -> ClassDayStats:
    """Count statuses for one class on one date.

    ``total`` is the number of students in the class; students without a
    record for the date fall in no bucket.
    """
    target = canonical_date(day)
    class_students = [student for student in students if student.class_id == str(class_id)]

    by_student: dict[str, AttendanceRecord] = {}
    for record in records:
        if record.date != target:
            continue
        if lesson_index is not None and record.lesson_index != lesson_index:
            continue
        by_student.setdefault(record.student_id, record)

    counts = {status: 0 for status in AttendanceStatus}
    for student in class_students:
        record = by_student.get(student.id)
        if record is not None:
            counts[record.status] += 1

    return ClassDayStats(
        present=counts[AttendanceStatus.PRESENT],
        absent=counts[AttendanceStatus.ABSENT],
        justified=counts[AttendanceStatus.JUSTIFIED],
        no_lesson=counts[AttendanceStatus.NO_LESSON],
        total=len(class_students),
    )
