from .dates import (
    InvalidDate,
    WEEKDAY_NAMES,
    canonical_date,
    canonical_date_or_none,
    in_range,
    month_prefix,
    today,
    weekday_name,
)
from .serialization import decode_json_field, decode_json_fields, encode_json_field

__all__ = [
    "WEEKDAY_NAMES",
    "InvalidDate",
    "canonical_date",
    "canonical_date_or_none",
    "in_range",
    "month_prefix",
    "today",
    "weekday_name",
    "decode_json_field",
    "decode_json_fields",
    "encode_json_field",
]
