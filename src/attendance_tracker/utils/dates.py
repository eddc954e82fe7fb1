from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any

CANONICAL_DATE_LENGTH = 10

WEEKDAY_NAMES: tuple[str, ...] = (
    "Segunda",
    "Terça",
    "Quarta",
    "Quinta",
    "Sexta",
    "Sábado",
    "Domingo",
)


class InvalidDate(ValueError):
    pass


def canonical_date(value: date | datetime | str) -> str:
    """Return ``value`` as a ``YYYY-MM-DD`` string.

    Longer ISO timestamps (``2026-03-10T00:00:00Z``) are truncated rather than
    converted between time zones, matching what the spreadsheet side does.
    """

    if isinstance(value, datetime):
        return value.date().isoformat()
    if isinstance(value, date):
        return value.isoformat()
    if not isinstance(value, str):
        raise InvalidDate(f"Unsupported date value: {value!r}")

    candidate = value.strip()[:CANONICAL_DATE_LENGTH]
    try:
        datetime.strptime(candidate, "%Y-%m-%d")
    except ValueError as exc:
        raise InvalidDate(f"Unsupported date value: {value!r}") from exc
    return candidate


def canonical_date_or_none(value: date | datetime | str | None) -> str | None:
    if value is None or value == "":
        return None
    return canonical_date(value)


def soft_canonical_date(value: Any) -> Any:
    """Canonicalize when possible, otherwise hand the value back untouched."""

    try:
        return canonical_date(value)
    except InvalidDate:
        return value


def parse_date(value: date | datetime | str) -> date:
    return date.fromisoformat(canonical_date(value))


def today() -> str:
    return date.today().isoformat()


def weekday_name(value: date | datetime | str) -> str:
    return WEEKDAY_NAMES[parse_date(value).weekday()]


def month_prefix(year: int, month: int) -> str:
    if not 1 <= month <= 12:
        raise InvalidDate("Month must be between 1 and 12.")
    return f"{year:04d}-{month:02d}"


def in_range(value: str, start: str | None = None, end: str | None = None) -> bool:
    """Inclusive comparison on canonical date strings."""

    if start and value < start:
        return False
    if end and value > end:
        return False
    return True


def utc_timestamp() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%S.%f")[:-3] + "Z"
