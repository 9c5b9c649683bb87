"""
Per-field profiling of a data source's records.
"""

from __future__ import annotations

import re
from collections import Counter
from datetime import datetime
from typing import Any, Dict, List, Optional

from .records import field_names, flatten_record

_INT_RE = re.compile(r"^[+-]?\d+$")
_FLOAT_RE = re.compile(r"^[+-]?(\d+\.\d*|\.\d+|\d+)([eE][+-]?\d+)?$")
_DATE_FORMATS = ("%Y-%m-%d", "%Y-%m-%dT%H:%M:%S", "%Y-%m-%d %H:%M:%S", "%m/%d/%Y")


def parse_date(value: Any) -> Optional[datetime]:
    """Parse ISO-8601 and a few common date formats, or return None."""
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str) or len(value) < 8:
        return None
    text = value.strip()
    try:
        return datetime.fromisoformat(text.replace("Z", "+00:00"))
    except ValueError:
        pass
    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt)
        except ValueError:
            continue
    return None


def infer_value_type(value: Any) -> str:
    if value is None or value == "":
        return "null"
    if isinstance(value, bool):
        return "boolean"
    if isinstance(value, int):
        return "integer"
    if isinstance(value, float):
        return "number"
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in ("true", "false"):
            return "boolean"
        if _INT_RE.match(text):
            return "integer"
        if _FLOAT_RE.match(text):
            return "number"
        if parse_date(text):
            return "date"
    return "string"


def _to_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    try:
        return float(str(value))
    except ValueError:
        return None


def _field_type(types: Counter) -> str:
    non_null = {t: c for t, c in types.items() if t != "null"}
    if not non_null:
        return "null"
    if len(non_null) == 1:
        return next(iter(non_null))
    # integers mixed with decimals are still numeric
    if set(non_null) == {"integer", "number"}:
        return "number"
    return "mixed"


def profile_field(name: str, values: List[Any]) -> Dict[str, Any]:
    """Profile one field given its value for every record (None if absent)."""
    total = len(values)
    types = Counter(infer_value_type(v) for v in values)
    present = [v for v in values if v is not None and v != ""]
    hashable = [repr(v) if isinstance(v, (list, dict)) else v for v in present]
    counts = Counter(hashable)
    null_count = total - len(present)
    field_type = _field_type(types)

    profile: Dict[str, Any] = {
        "name": name,
        "type": field_type,
        "type_counts": dict(types),
        "total_count": total,
        "null_count": null_count,
        "null_rate": round(null_count / total, 4) if total else 0.0,
        "unique_count": len(counts),
        "unique_rate": round(len(counts) / len(present), 4) if present else 0.0,
        "top_values": [
            {"value": value, "count": count} for value, count in counts.most_common(5)
        ],
        "sample_values": present[:5],
    }

    if field_type in ("integer", "number"):
        numbers = [n for n in (_to_number(v) for v in present) if n is not None]
        if numbers:
            profile["min"] = min(numbers)
            profile["max"] = max(numbers)
            profile["mean"] = round(sum(numbers) / len(numbers), 4)
    elif field_type in ("string", "date", "mixed"):
        lengths = [len(str(v)) for v in present]
        if lengths:
            profile["min_length"] = min(lengths)
            profile["max_length"] = max(lengths)
            profile["avg_length"] = round(sum(lengths) / len(lengths), 2)

    return profile


def profile_records(records: List[Dict[str, Any]]) -> Dict[str, Any]:
    """Profile every (flattened) field across a record list."""
    flat = [flatten_record(r) for r in records if isinstance(r, dict)]
    names = field_names(flat)
    fields = [profile_field(name, [r.get(name) for r in flat]) for name in names]

    complete = sum(1 for f in fields if f["null_count"] == 0)
    return {
        "record_count": len(flat),
        "field_count": len(fields),
        "fields": fields,
        "completeness": round(
            1 - (sum(f["null_count"] for f in fields) / (len(flat) * len(fields))), 4
        )
        if flat and fields
        else 0.0,
        "complete_fields": complete,
    }
