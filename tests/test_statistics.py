import pytest

from attendance_tracker.models import AttendanceRecord, Student
from attendance_tracker.services.statistics import (
    attendance_rate,
    compute_class_day_stats,
    compute_student_stats,
    filter_records,
)


def _record(student_id, day, status, lesson_index=0):
    return AttendanceRecord(student_id=student_id, date=day, lesson_index=lesson_index, status=status)


def test_rate_excludes_no_lesson_and_counts_justified():
    records = [
        _record("1", "2026-03-02", "P"),
        _record("1", "2026-03-03", "P"),
        _record("1", "2026-03-04", "F"),
        _record("1", "2026-03-05", "J"),
        _record("1", "2026-03-06", "-"),
    ]

    stats = compute_student_stats(records, "1")

    assert stats.total_days == 5
    assert stats.present == 2
    assert stats.absent == 1
    assert stats.justified == 1
    assert stats.no_lesson == 1
    assert stats.lessons_counted == 4
    assert stats.attendance_rate == pytest.approx(75.0)


def test_rate_is_zero_without_countable_lessons():
    assert compute_student_stats([], "1").attendance_rate == 0.0
    only_no_lesson = [_record("1", "2026-03-02", "-"), _record("1", "2026-03-03", "-")]
    assert compute_student_stats(only_no_lesson, "1").attendance_rate == 0.0
    assert attendance_rate(0, 0, 0, 0) == 0.0


def test_rate_of_lessons_in_a_day_counts_each_lesson():
    records = [_record("1", "2026-03-02", status, index) for index, status in enumerate("PPF")]
    assert compute_student_stats(records, "1").attendance_rate == pytest.approx(200 / 3)


def test_date_bounds_are_inclusive():
    records = [
        _record("1", "2026-02-04", "F"),
        _record("1", "2026-02-05", "P"),
        _record("1", "2026-04-23", "P"),
        _record("1", "2026-04-24", "F"),
        _record("2", "2026-03-01", "F"),
    ]

    stats = compute_student_stats(records, "1", "2026-02-05", "2026-04-23")

    assert stats.total_days == 2
    assert stats.attendance_rate == 100.0


def test_filter_records_by_student_set_and_timestamp_bounds():
    records = [_record("1", "2026-03-01", "P"), _record("2", "2026-03-02", "P"), _record("3", "2026-03-03", "P")]

    selected = filter_records(records, student_ids={"1", "3"}, end="2026-03-02T23:00:00Z")

    assert [record.student_id for record in selected] == ["1"]


def test_class_day_stats_counts_one_status_per_student():
    students = [
        Student(id="1", name="Ana", registration="", class_id="A"),
        Student(id="2", name="Bruno", registration="", class_id="A"),
        Student(id="3", name="Carla", registration="", class_id="A"),
        Student(id="4", name="Davi", registration="", class_id="B"),
    ]
    records = [
        _record("1", "2026-03-10", "P"),
        _record("2", "2026-03-10", "F"),
        _record("4", "2026-03-10", "F"),
        _record("1", "2026-03-11", "F"),
    ]

    stats = compute_class_day_stats(students, records, "A", "2026-03-10")

    assert stats.present == 1
    assert stats.absent == 1
    assert stats.justified == 0
    assert stats.total == 3
    assert stats.unmarked == 1


def test_class_day_stats_for_a_single_lesson():
    students = [Student(id="1", name="Ana", registration="", class_id="A")]
    records = [_record("1", "2026-03-10", "P", 0), _record("1", "2026-03-10", "J", 1)]

    stats = compute_class_day_stats(students, records, "A", "2026-03-10", lesson_index=1)

    assert stats.justified == 1
    assert stats.present == 0
