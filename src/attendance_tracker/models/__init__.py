from .entities import (
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
    attendance_record_id,
    default_bimesters,
    parse_enum,
)

__all__ = [
    "AttendanceRecord",
    "AttendanceStatus",
    "Bimester",
    "ClassGroup",
    "Holiday",
    "HolidayType",
    "Period",
    "Situation",
    "Student",
    "ValidationError",
    "attendance_record_id",
    "default_bimesters",
    "parse_enum",
]
