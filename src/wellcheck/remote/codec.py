"""
Firestore REST typed-value encoding.

The REST API does not take plain JSON: every value is wrapped in a
single-key object naming its type, e.g.

    {"stringValue": "김철수"}
    {"integerValue": "3"}            # int64 as a string
    {"timestampValue": "2025-01-15T07:30:00+09:00"}
    {"mapValue": {"fields": {...}}}

Two sentinels mirror the SDK's FieldValue helpers; they are not encodable
values but are turned into field transforms by FirestoreClient.update().
"""
import re
from datetime import date, datetime, timezone, tzinfo
from typing import Any, Dict, List, Optional


class _ServerTimestamp:
    def __repr__(self) -> str:
        return "SERVER_TIMESTAMP"


SERVER_TIMESTAMP = _ServerTimestamp()


class ArrayUnion:
    """Append elements to an array field unless already present."""

    def __init__(self, values: List[Any]):
        self.values = list(values)

    def __repr__(self) -> str:
        return f"ArrayUnion({self.values!r})"


# Firestore returns up to nanosecond precision; datetime takes microseconds
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")


def encode_value(value: Any, tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    """
    Encode a Python value. Naive datetimes are taken to be in `tz`
    (UTC if not given).
    """
    if value is None:
        return {"nullValue": None}
    if isinstance(value, bool):
        return {"booleanValue": value}
    if isinstance(value, int):
        return {"integerValue": str(value)}
    if isinstance(value, float):
        return {"doubleValue": value}
    if isinstance(value, str):
        return {"stringValue": value}
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=tz or timezone.utc)
        return {"timestampValue": value.isoformat()}
    if isinstance(value, date):
        return {"stringValue": value.isoformat()}
    if isinstance(value, dict):
        return {"mapValue": {"fields": encode_fields(value, tz)}}
    if isinstance(value, (list, tuple)):
        return {"arrayValue": {"values": [encode_value(v, tz) for v in value]}}
    raise TypeError(f"Cannot encode {type(value).__name__} for Firestore: {value!r}")


def encode_fields(fields: Dict[str, Any], tz: Optional[tzinfo] = None) -> Dict[str, Any]:
    return {k: encode_value(v, tz) for k, v in fields.items()}


def decode_value(encoded: Dict[str, Any]) -> Any:
    """Inverse of encode_value(). Timestamps come back timezone-aware."""
    if "nullValue" in encoded:
        return None
    if "booleanValue" in encoded:
        return encoded["booleanValue"]
    if "integerValue" in encoded:
        return int(encoded["integerValue"])
    if "doubleValue" in encoded:
        return float(encoded["doubleValue"])
    if "stringValue" in encoded:
        return encoded["stringValue"]
    if "timestampValue" in encoded:
        raw = _FRACTION_RE.sub(r".\1", encoded["timestampValue"]).replace("Z", "+00:00")
        return datetime.fromisoformat(raw)
    if "mapValue" in encoded:
        return decode_fields(encoded["mapValue"].get("fields", {}))
    if "arrayValue" in encoded:
        return [decode_value(v) for v in encoded["arrayValue"].get("values", [])]
    if "geoPointValue" in encoded:
        return dict(encoded["geoPointValue"])
    if "referenceValue" in encoded:
        return encoded["referenceValue"]
    raise ValueError(f"Unknown Firestore value type: {list(encoded)}")


def decode_fields(fields: Dict[str, Any]) -> Dict[str, Any]:
    return {k: decode_value(v) for k, v in fields.items()}


def nest_field_paths(flat: Dict[str, Any]) -> Dict[str, Any]:
    """{"a.b": 1, "c": 2} -> {"a": {"b": 1}, "c": 2}."""
    nested: Dict[str, Any] = {}
    for path, value in flat.items():
        parts = path.split(".")
        node = nested
        for part in parts[:-1]:
            node = node.setdefault(part, {})
        node[parts[-1]] = value
    return nested
