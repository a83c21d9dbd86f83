"""CSV rendering of report payloads via polars."""

from datetime import datetime
from typing import Any, List, Optional

import polars as pl

from assist_analytics.export.flatten import FlatRow, flatten_for_csv, union_columns

# Spreadsheet applications need the BOM to read the file as UTF-8
BOM = "\ufeff"


def _csv_cell(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, datetime):
        return value.isoformat()
    return str(value)


def build_frame(payload: Any) -> pl.DataFrame:
    """Tabulate a normalized payload as a string-typed DataFrame."""
    if isinstance(payload, list):
        rows: List[FlatRow] = [
            flatten_for_csv(item) if isinstance(item, dict) else {"value": item}
            for item in payload
        ]
    else:
        rows = [{"metric": key, "value": value} for key, value in flatten_for_csv(payload).items()]

    columns = union_columns(rows)
    return pl.DataFrame(
        {column: [_csv_cell(row.get(column)) for row in rows] for column in columns},
        schema={column: pl.Utf8 for column in columns},
    )


def render_csv(payload: Any) -> str:
    frame = build_frame(payload)
    if frame.width == 0:
        return BOM
    return BOM + frame.write_csv()


def write_csv(payload: Any, path: str) -> None:
    """Write ``payload`` as UTF-8 CSV (with BOM) to ``path``."""
    with open(path, "w", encoding="utf-8", newline="") as fh:
        fh.write(render_csv(payload))
