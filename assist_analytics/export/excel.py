"""Excel (XLSX) rendering of report payloads."""

from typing import Any, List

from openpyxl import Workbook
from openpyxl.styles import Alignment, Font
from openpyxl.utils import get_column_letter

from assist_analytics.export.flatten import flatten_for_excel

MAX_COLUMN_WIDTH = 50


def _cell_value(value: Any) -> Any:
    if isinstance(value, (list, dict)):
        return str(value)
    return value


def build_rows(payload: Any) -> List[List[Any]]:
    """Header row followed by data rows for a normalized payload."""
    if isinstance(payload, list):
        if not payload:
            return []
        items = [flatten_for_excel(item) if isinstance(item, dict) else {"value": item} for item in payload]
        # The first item defines the columns
        columns = list(items[0])
        return [columns] + [[item.get(column) for column in columns] for item in items]

    flat = flatten_for_excel(payload)
    return [["Metric", "Value"]] + [[key, value] for key, value in flat.items()]


def write_excel(payload: Any, path: str) -> None:
    """Write ``payload`` to an XLSX workbook at ``path``."""
    wb = Workbook()
    ws = wb.active
    ws.title = "Report"

    rows = build_rows(payload)
    for row_idx, row in enumerate(rows, start=1):
        for col_idx, value in enumerate(row, start=1):
            cell = ws.cell(row=row_idx, column=col_idx, value=_cell_value(value))
            if row_idx == 1:
                cell.font = Font(bold=True)
            elif isinstance(value, str) and "\n" in value:
                cell.alignment = Alignment(wrap_text=True, vertical="top")

    for column in ws.columns:
        longest = max(
            (max((len(line) for line in str(cell.value).split("\n")), default=0)
             for cell in column if cell.value is not None),
            default=0,
        )
        ws.column_dimensions[get_column_letter(column[0].column)].width = min(longest + 2, MAX_COLUMN_WIDTH)

    wb.save(path)
