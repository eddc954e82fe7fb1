from __future__ import annotations

import json
import logging
from typing import Any, Iterable

_LOGGER = logging.getLogger(__name__)


def decode_json_field(value: Any) -> Any:
    """Parse strings that look like a JSON object; pass everything else through."""

    if not isinstance(value, str):
        return value
    candidate = value.strip()
    if not candidate.startswith("{"):
        return value
    try:
        return json.loads(candidate)
    except ValueError:
        _LOGGER.debug("Leaving undecodable JSON-looking field as text: %.40s", candidate)
        return value


def decode_json_fields(item: dict[str, Any]) -> dict[str, Any]:
    return {key: decode_json_field(value) for key, value in item.items()}


def encode_json_field(value: Any) -> Any:
    if isinstance(value, (dict, list)):
        return json.dumps(value, ensure_ascii=False)
    return value


def encode_json_fields(item: dict[str, Any], fields: Iterable[str]) -> dict[str, Any]:
    encoded = dict(item)
    for name in fields:
        if name in encoded:
            encoded[name] = encode_json_field(encoded[name])
    return encoded


def coerce_str_id(value: Any) -> str:
    """Spreadsheet cells hand numeric ids back as numbers (``1`` or ``1.0``)."""

    if isinstance(value, float) and value.is_integer():
        return str(int(value))
    if value is None:
        return ""
    return str(value).strip()


def coerce_int(value: Any, default: int = 0) -> int:
    if value is None or value == "":
        return default
    try:
        return int(float(value))
    except (TypeError, ValueError):
        return default
