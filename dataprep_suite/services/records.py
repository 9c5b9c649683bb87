"""
Helpers for working with record lists: CSV parsing, flattening and field
discovery.
"""

from __future__ import annotations

import csv
import io
import json
from typing import Any, Dict, Iterable, List

from ..errors import ValidationFailedError


def parse_csv(text: str) -> List[Dict[str, Any]]:
    """Parse CSV text with a header row into a list of dicts.

    Empty cells become None; values stay strings.
    """
    if not text.strip():
        raise ValidationFailedError("CSV text is empty")
    reader = csv.DictReader(io.StringIO(text.strip()))
    if not reader.fieldnames:
        raise ValidationFailedError("CSV text has no header row")
    records = []
    for row in reader:
        records.append(
            {
                (key or "").strip(): (value if value not in ("", None) else None)
                for key, value in row.items()
                if key is not None
            }
        )
    return records


def flatten_record(record: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested dicts into dotted paths. Lists are kept as values."""
    flat: Dict[str, Any] = {}
    for key, value in record.items():
        path = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, dict):
            flat.update(flatten_record(value, path))
        else:
            flat[path] = value
    return flat


def field_names(records: Iterable[Dict[str, Any]], flatten: bool = False) -> List[str]:
    """Field names across all records, in first-seen order."""
    seen: Dict[str, None] = {}
    for record in records:
        if not isinstance(record, dict):
            continue
        keys = flatten_record(record).keys() if flatten else record.keys()
        for key in keys:
            seen.setdefault(key, None)
    return list(seen)


def collect_values(
    records: Iterable[Dict[str, Any]], path: str, limit: int = 100
) -> List[Any]:
    """Up to ``limit`` distinct non-empty values for a dotted field path."""
    values: List[Any] = []
    seen = set()
    for record in records:
        value = flatten_record(record).get(path)
        if value is None or value == "":
            continue
        marker = repr(value)
        if marker in seen:
            continue
        seen.add(marker)
        values.append(value)
        if len(values) >= limit:
            break
    return values


def records_to_csv(records: List[Dict[str, Any]]) -> str:
    """CSV text with a header of every field seen. Nested values are JSON-encoded."""
    headers = field_names(records)
    buffer = io.StringIO()
    writer = csv.DictWriter(buffer, fieldnames=headers, lineterminator="\n")
    writer.writeheader()
    for record in records:
        writer.writerow(
            {
                key: json.dumps(value) if isinstance(value, (dict, list)) else value
                for key, value in record.items()
            }
        )
    return buffer.getvalue()
