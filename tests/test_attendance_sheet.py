from __future__ import annotations

from pathlib import Path

import pytest

from attendance_tracker.data import Database, LocalStore, SchoolRepository
from attendance_tracker.models import AttendanceStatus, Situation
from attendance_tracker.services.attendance_sheet import AttendanceSheet
from attendance_tracker.services.school_service import SchoolService

MONDAY = "2026-03-09"


def _service(tmp_path: Path) -> SchoolService:
    store = LocalStore(Database(tmp_path / "attendance.db"))
    store.initialize()
    return SchoolService(SchoolRepository(store, academic_year=2026))


def _class_with_students(service: SchoolService, lessons_per_day: int = 2):
    class_group = service.create_class("1º Ano A", 2026, lessons_per_day=lessons_per_day)
    service.set_schedule(class_group.id, {"Segunda": ["Matemática", "Português"]})
    service.import_students("bruno Santos\nAna Silva", class_group.id)
    service.create_student("Carla Oliveira", class_group.id, situation=Situation.DROPPED)
    return service.repository.get_class(class_group.id)


def test_sheet_lists_enrolled_students_by_name(tmp_path: Path) -> None:
    service = _service(tmp_path)
    class_group = _class_with_students(service)

    sheet = AttendanceSheet(service, class_group, "2026-03-09T00:00:00Z")

    assert sheet.day == MONDAY
    assert sheet.weekday == "Segunda"
    assert [student.name for student in sheet.students] == ["Ana Silva", "bruno Santos"]
    assert sheet.lessons_per_day == 2
    assert sheet.subject_for(1) == "Português"


def test_unmarked_cells_default_to_present(tmp_path: Path) -> None:
    service = _service(tmp_path)
    sheet = AttendanceSheet(service, _class_with_students(service), MONDAY)
    student = sheet.students[0]

    assert sheet.status(student.id, 0) is AttendanceStatus.PRESENT
    assert not sheet.is_recorded(student.id, 0)
    assert sheet.counts().present == 4


def test_mark_saves_record_with_scheduled_subject(tmp_path: Path) -> None:
    service = _service(tmp_path)
    sheet = AttendanceSheet(service, _class_with_students(service), MONDAY)
    student = sheet.students[0]

    record = sheet.mark(student.id, 0, "F")

    assert record.subject == "Matemática"
    assert sheet.status(student.id, 0) is AttendanceStatus.ABSENT
    stored = service.repository.attendance_by_date(MONDAY)
    assert [(r.student_id, r.status.value) for r in stored] == [(student.id, "F")]
    counts = sheet.counts()
    assert (counts.present, counts.absent, counts.total) == (3, 1, 4)


def test_clear_restores_default(tmp_path: Path) -> None:
    service = _service(tmp_path)
    sheet = AttendanceSheet(service, _class_with_students(service), MONDAY)
    student = sheet.students[0]
    sheet.mark(student.id, 1, "J")

    assert sheet.clear(student.id, 1) is True
    assert sheet.clear(student.id, 1) is False
    assert sheet.status(student.id, 1) is AttendanceStatus.PRESENT
    assert service.repository.attendance_by_date(MONDAY) == []
    assert service.repository.snapshot()["attendance"] == []


def test_save_all_persists_defaults_and_marks(tmp_path: Path) -> None:
    service = _service(tmp_path)
    class_group = _class_with_students(service)
    sheet = AttendanceSheet(service, class_group, MONDAY)
    absent = sheet.students[1]
    sheet.mark(absent.id, 0, "F")

    saved = sheet.save_all()

    assert len(saved) == 4
    stored = {(r.student_id, r.lesson_index): r.status.value for r in service.repository.attendance_by_date(MONDAY)}
    assert stored[(absent.id, 0)] == "F"
    assert sorted(stored.values()) == ["F", "P", "P", "P"]

    reloaded = AttendanceSheet(service, class_group, MONDAY)
    assert all(reloaded.is_recorded(s.id, i) for s in reloaded.students for i in range(2))


def test_holiday_defaults_cells_to_no_lesson(tmp_path: Path) -> None:
    service = _service(tmp_path)
    class_group = _class_with_students(service)
    service.create_holiday(MONDAY, "Feriado municipal")

    sheet = AttendanceSheet(service, class_group, MONDAY)

    assert sheet.holiday is not None
    assert sheet.default_status is AttendanceStatus.NO_LESSON
    assert sheet.counts().no_lesson == 4


def test_lessons_per_day_grows_to_recorded_lessons(tmp_path: Path) -> None:
    service = _service(tmp_path)
    class_group = _class_with_students(service, lessons_per_day=1)
    student = service.repository.list_students(class_id=class_group.id)[0]
    service.record_attendance(student.id, MONDAY, 3, "P")

    sheet = AttendanceSheet(service, class_group, MONDAY)

    assert sheet.lessons_per_day == 4
    sheet.set_lessons_per_day(5)
    assert sheet.counts().total == 10
    with pytest.raises(ValueError):
        sheet.set_lessons_per_day(10)


def test_cells_outside_the_sheet_are_rejected(tmp_path: Path) -> None:
    service = _service(tmp_path)
    sheet = AttendanceSheet(service, _class_with_students(service), MONDAY)

    with pytest.raises(KeyError):
        sheet.mark("stranger", 0, "P")
    with pytest.raises(IndexError):
        sheet.mark(sheet.students[0].id, 2, "P")
