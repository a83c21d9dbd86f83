"""
Payload Flattening

Report payloads are arbitrarily nested dicts and lists. Tabular exports
need a single level of ``column -> value``; each format flattens a little
differently because of what its cells can hold:

- Excel keeps nested keys as ``parent.key``, joins lists of scalars with
  ``", "`` and writes lists of objects as one ``"k: v, k: v"`` line per
  entry (Excel cells are multi-line).
- CSV keeps nested keys as ``parent_key`` and stores any list as compact
  JSON.
"""

import calendar
import json
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel

Scalar = Any
FlatRow = Dict[str, Scalar]


def normalize_payload(value: Any) -> Any:
    """
    Reduce a payload to dicts, lists, scalars and datetimes.

    Pydantic models are dumped with their aliases, Decimals become floats,
    Enums their values and plain dates become midnight datetimes.
    """
    if isinstance(value, BaseModel):
        return normalize_payload(value.model_dump(by_alias=True))
    if isinstance(value, Mapping):
        return {str(key): normalize_payload(item) for key, item in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [normalize_payload(item) for item in value]
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, date) and not isinstance(value, datetime):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, datetime) and value.tzinfo is not None:
        # openpyxl cannot write aware datetimes
        return value.replace(tzinfo=None)
    return value


def format_month(value: date) -> str:
    """``Mon YYYY`` label used by the PDF export"""
    return f"{calendar.month_abbr[value.month]} {value.year}"


def scalar_text(value: Any) -> str:
    """Text form of a scalar inside a joined cell."""
    if value is None:
        return ""
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Mapping):
        return json.dumps(value, default=_json_default, separators=(",", ":"))
    return str(value)


def _json_default(value: Any) -> Any:
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, Enum):
        return value.value
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_compact_json(value: Any) -> str:
    """JSON without whitespace, e.g. ``[1,2]``."""
    return json.dumps(value, default=_json_default, separators=(",", ":"), ensure_ascii=False)


def flatten_for_excel(obj: Mapping, prefix: str = "") -> FlatRow:
    """Flatten one object for a spreadsheet row."""
    flat: FlatRow = {}
    for key, value in obj.items():
        name = f"{prefix}.{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_for_excel(value, name))
        elif isinstance(value, list):
            if all(isinstance(item, Mapping) for item in value):
                flat[name] = "\n".join(
                    ", ".join(f"{item_key}: {scalar_text(item_value)}" for item_key, item_value in item.items())
                    for item in value
                )
            else:
                flat[name] = ", ".join(scalar_text(item) for item in value)
        else:
            flat[name] = value
    return flat


def flatten_for_csv(obj: Mapping, prefix: str = "") -> FlatRow:
    """Flatten one object for a CSV row."""
    flat: FlatRow = {}
    for key, value in obj.items():
        name = f"{prefix}_{key}" if prefix else str(key)
        if isinstance(value, Mapping):
            flat.update(flatten_for_csv(value, name))
        elif isinstance(value, list):
            flat[name] = to_compact_json(value)
        else:
            flat[name] = value
    return flat


def union_columns(rows: List[FlatRow]) -> List[str]:
    """Column names across all rows, in first-seen order."""
    columns: Dict[str, None] = {}
    for row in rows:
        for key in row:
            columns.setdefault(key, None)
    return list(columns)
