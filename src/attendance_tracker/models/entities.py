from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from attendance_tracker.utils.dates import (
    InvalidDate,
    canonical_date,
    utc_timestamp,
)
from attendance_tracker.utils.serialization import coerce_int, coerce_str_id, decode_json_field


class ValidationError(ValueError):
    """Raised when an entity carries values the tracker cannot store."""


class Period(str, Enum):
    MORNING = "Manhã"
    AFTERNOON = "Tarde"
    EVENING = "Noite"
    FULL_DAY = "Integral"


class Situation(str, Enum):
    ENROLLED = "Cursando"
    DROPPED = "Evasão"
    TRANSFERRED = "Transferência"


class AttendanceStatus(str, Enum):
    PRESENT = "P"
    ABSENT = "F"
    JUSTIFIED = "J"
    NO_LESSON = "-"


class HolidayType(str, Enum):
    HOLIDAY = "Feriado"
    RECESS = "Recesso"
    VACATION = "Férias"


def parse_enum(enum_cls, value, default=None):
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(str(value).strip())
    except ValueError:
        if default is not None:
            return default
        raise ValidationError(f"Invalid {enum_cls.__name__} value: {value!r}") from None


def _canonical(value: Any, field_name: str) -> str:
    try:
        return canonical_date(value)
    except InvalidDate as exc:
        raise ValidationError(f"Invalid {field_name}: {value!r}") from exc


def _optional_text(value: Any) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def attendance_record_id(student_id: str, date: str, lesson_index: int) -> str:
    return f"{student_id}-{canonical_date(date)}-{int(lesson_index)}"


@dataclass(slots=True)
class ClassGroup:
    id: str
    name: str
    year: str
    period: Period = Period.MORNING
    lessons_per_day: Optional[int] = None
    schedule: Optional[dict[str, list[str]]] = None
    created_at: str = field(default_factory=utc_timestamp)

    def validate(self) -> None:
        if not self.id:
            raise ValidationError("Class id is required.")
        if not self.name.strip():
            raise ValidationError("Class name is required.")
        if self.lessons_per_day is not None and self.lessons_per_day < 1:
            raise ValidationError("Lessons per day must be at least 1.")

    def subject_for(self, weekday: str, lesson_index: int) -> Optional[str]:
        """Return the scheduled subject for a weekday slot, if one was set."""
        if not self.schedule:
            return None
        slots = self.schedule.get(weekday) or []
        if 0 <= lesson_index < len(slots):
            return slots[lesson_index] or None
        return None

    @property
    def display_label(self) -> str:
        return f"{self.name} - {self.period.value}"

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "year": self.year,
            "period": self.period.value,
            "createdAt": self.created_at,
        }
        if self.lessons_per_day is not None:
            data["lessonsPerDay"] = self.lessons_per_day
        if self.schedule is not None:
            data["schedule"] = {day: list(slots) for day, slots in self.schedule.items()}
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "ClassGroup":
        schedule = decode_json_field(data.get("schedule"))
        lessons = data.get("lessonsPerDay")
        return cls(
            id=coerce_str_id(data.get("id")),
            name=str(data.get("name") or ""),
            year=coerce_str_id(data.get("year")),
            period=parse_enum(Period, data.get("period"), Period.MORNING),
            lessons_per_day=coerce_int(lessons) if lessons not in (None, "") else None,
            schedule=(
                {str(day): [str(slot or "") for slot in slots] for day, slots in schedule.items()}
                if isinstance(schedule, dict)
                else None
            ),
            created_at=str(data.get("createdAt") or utc_timestamp()),
        )


@dataclass(slots=True)
class Student:
    id: str
    name: str
    registration: str
    class_id: str
    situation: Situation = Situation.ENROLLED
    photo_url: Optional[str] = None
    created_at: str = field(default_factory=utc_timestamp)

    def validate(self) -> None:
        if not self.id:
            raise ValidationError("Student id is required.")
        if not self.name.strip():
            raise ValidationError("Student name is required.")

    @property
    def initials(self) -> str:
        return "".join(part[0] for part in self.name.split() if part).upper()[:2]

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "name": self.name,
            "registration": self.registration,
            "classId": self.class_id,
            "situation": self.situation.value,
            "createdAt": self.created_at,
        }
        if self.photo_url:
            data["photoUrl"] = self.photo_url
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Student":
        return cls(
            id=coerce_str_id(data.get("id")),
            name=str(data.get("name") or ""),
            registration=coerce_str_id(data.get("registration")),
            class_id=coerce_str_id(data.get("classId")),
            situation=parse_enum(Situation, data.get("situation"), Situation.ENROLLED),
            photo_url=_optional_text(data.get("photoUrl")),
            created_at=str(data.get("createdAt") or utc_timestamp()),
        )


@dataclass(slots=True)
class AttendanceRecord:
    student_id: str
    date: str
    lesson_index: int
    status: AttendanceStatus
    subject: Optional[str] = None
    notes: Optional[str] = None
    id: str = field(init=False, default="")

    def __post_init__(self) -> None:
        self.student_id = str(self.student_id)
        self.date = _canonical(self.date, "attendance date")
        self.lesson_index = int(self.lesson_index)
        if self.lesson_index < 0:
            raise ValidationError("Lesson index cannot be negative.")
        self.status = parse_enum(AttendanceStatus, self.status)
        # Derived from the identity triple so a re-save overwrites instead of duplicating.
        self.id = attendance_record_id(self.student_id, self.date, self.lesson_index)

    @property
    def key(self) -> tuple[str, str, int]:
        return (self.student_id, self.date, self.lesson_index)

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "id": self.id,
            "studentId": self.student_id,
            "date": self.date,
            "lessonIndex": self.lesson_index,
            "status": self.status.value,
        }
        if self.subject:
            data["subject"] = self.subject
        if self.notes:
            data["notes"] = self.notes
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "AttendanceRecord":
        return cls(
            student_id=coerce_str_id(data.get("studentId")),
            date=data.get("date") or "",
            lesson_index=coerce_int(data.get("lessonIndex")),
            status=data.get("status"),
            subject=_optional_text(data.get("subject")),
            notes=_optional_text(data.get("notes")),
        )


@dataclass(slots=True)
class Bimester:
    id: int
    name: str
    start: str
    end: str

    def __post_init__(self) -> None:
        self.id = int(self.id)
        self.start = _canonical(self.start, "bimester start")
        self.end = _canonical(self.end, "bimester end")

    def validate(self) -> None:
        if self.start > self.end:
            raise ValidationError(f"{self.name} ends before it starts.")

    def contains(self, date: str) -> bool:
        return self.start <= canonical_date(date) <= self.end

    def to_dict(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.name, "start": self.start, "end": self.end}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Bimester":
        return cls(
            id=coerce_int(data.get("id")),
            name=str(data.get("name") or ""),
            start=data.get("start") or "",
            end=data.get("end") or "",
        )


@dataclass(slots=True)
class Holiday:
    id: str
    date: str
    description: str
    type: HolidayType = HolidayType.HOLIDAY

    def __post_init__(self) -> None:
        self.date = _canonical(self.date, "holiday date")
        self.type = parse_enum(HolidayType, self.type, HolidayType.HOLIDAY)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "date": self.date,
            "description": self.description,
            "type": self.type.value,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Holiday":
        return cls(
            id=coerce_str_id(data.get("id")),
            date=data.get("date") or "",
            description=str(data.get("description") or ""),
            type=data.get("type") or HolidayType.HOLIDAY,
        )


BIMESTER_WINDOWS: tuple[tuple[str, str], ...] = (
    ("02-05", "04-23"),
    ("04-24", "07-23"),
    ("07-24", "10-05"),
    ("10-06", "12-18"),
)


def default_bimesters(year: int) -> list[Bimester]:
    return [
        Bimester(id=index, name=f"{index}º Bimestre", start=f"{year}-{start}", end=f"{year}-{end}")
        for index, (start, end) in enumerate(BIMESTER_WINDOWS, start=1)
    ]
