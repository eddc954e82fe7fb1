from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from enum import Enum
from typing import Iterable, Sequence

from attendance_tracker.models import AttendanceRecord, Bimester, ClassGroup, Situation, Student
from attendance_tracker.services.statistics import AttendanceStats, filter_records, tally

NO_CLASS_LABEL = "Sem turma"
EXCELLENT_THRESHOLD = 90.0
REGULAR_THRESHOLD = 75.0


class FrequencyLevel(str, Enum):
    EXCELLENT = "excelente"
    REGULAR = "regular"
    CRITICAL = "critico"


def frequency_level(rate: float) -> FrequencyLevel:
    if rate >= EXCELLENT_THRESHOLD:
        return FrequencyLevel.EXCELLENT
    if rate >= REGULAR_THRESHOLD:
        return FrequencyLevel.REGULAR
    return FrequencyLevel.CRITICAL


@dataclass(frozen=True, slots=True)
class StudentReportRow:
    student: Student
    class_name: str
    stats: AttendanceStats

    @property
    def level(self) -> FrequencyLevel:
        return frequency_level(self.stats.attendance_rate)


@dataclass(frozen=True, slots=True)
class ClassAverage:
    class_id: str
    class_name: str
    total_students: int
    students_with_records: int
    average_rate: float


@dataclass(frozen=True, slots=True)
class BimesterTrendPoint:
    bimester: Bimester
    students_counted: int
    average_rate: float


@dataclass(frozen=True, slots=True)
class DashboardSummary:
    total_classes: int
    total_students: int
    average_attendance: float
    total_records: int


def _group_by_student(records: Iterable[AttendanceRecord]) -> dict[str, list[AttendanceRecord]]:
    grouped: dict[str, list[AttendanceRecord]] = defaultdict(list)
    for record in records:
        grouped[record.student_id].append(record)
    return grouped


def _bounds(bimester: Bimester | None) -> tuple[str | None, str | None]:
    if bimester is None:
        return None, None
    return bimester.start, bimester.end


def _mean_rate(stats: Iterable[AttendanceStats]) -> tuple[int, float]:
    rates = [item.attendance_rate for item in stats if item.total_days > 0]
    if not rates:
        return 0, 0.0
    return len(rates), sum(rates) / len(rates)


def build_student_report(
    classes: Sequence[ClassGroup],
    students: Sequence[Student],
    records: Sequence[AttendanceRecord],
    *,
    class_id: str | None = None,
    bimester: Bimester | None = None,
    situation: Situation | None = Situation.ENROLLED,
    level: FrequencyLevel | None = None,
) -> list[StudentReportRow]:
    """Per-student stats for the selected filters, best attendance first."""
    start, end = _bounds(bimester)
    class_names = {item.id: item.name for item in classes}
    grouped = _group_by_student(records)

    rows = []
    for student in students:
        if class_id is not None and student.class_id != str(class_id):
            continue
        if situation is not None and student.situation is not situation:
            continue
        stats = tally(filter_records(grouped.get(student.id, ()), start=start, end=end))
        row = StudentReportRow(
            student=student,
            class_name=class_names.get(student.class_id, NO_CLASS_LABEL),
            stats=stats,
        )
        if level is not None and row.level is not level:
            continue
        rows.append(row)

    rows.sort(key=lambda row: row.stats.attendance_rate, reverse=True)
    return rows


def class_averages(
    classes: Sequence[ClassGroup],
    students: Sequence[Student],
    records: Sequence[AttendanceRecord],
    *,
    bimester: Bimester | None = None,
) -> list[ClassAverage]:
    start, end = _bounds(bimester)
    grouped = _group_by_student(records)

    averages = []
    for class_group in classes:
        members = [student for student in students if student.class_id == class_group.id]
        counted, mean = _mean_rate(
            tally(filter_records(grouped.get(student.id, ()), start=start, end=end))
            for student in members
        )
        averages.append(
            ClassAverage(
                class_id=class_group.id,
                class_name=class_group.name,
                total_students=len(members),
                students_with_records=counted,
                average_rate=mean,
            )
        )
    return averages


def bimester_trend(
    bimesters: Sequence[Bimester],
    students: Sequence[Student],
    records: Sequence[AttendanceRecord],
    *,
    class_id: str | None = None,
) -> list[BimesterTrendPoint]:
    grouped = _group_by_student(records)
    members = [
        student for student in students if class_id is None or student.class_id == str(class_id)
    ]

    trend = []
    for bimester in sorted(bimesters, key=lambda item: item.start):
        counted, mean = _mean_rate(
            tally(filter_records(grouped.get(student.id, ()), start=bimester.start, end=bimester.end))
            for student in members
        )
        trend.append(BimesterTrendPoint(bimester=bimester, students_counted=counted, average_rate=mean))
    return trend


def dashboard_summary(
    classes: Sequence[ClassGroup],
    students: Sequence[Student],
    records: Sequence[AttendanceRecord],
) -> DashboardSummary:
    grouped = _group_by_student(records)
    _, mean = _mean_rate(tally(grouped.get(student.id, ())) for student in students)
    return DashboardSummary(
        total_classes=len(classes),
        total_students=len(students),
        average_attendance=mean,
        total_records=len(records),
    )
