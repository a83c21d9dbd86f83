"""
PDF Rendering

Lays out a report payload on reportlab canvas pages:

- a title banner with generation time and a rule
- scalars as ``key: value`` lines
- nested objects as bold sub-headers with indented content
- lists of objects as tables (equal column widths, one bold header row,
  wrapped cells, page break before a row that would cross the bottom margin)
- lists of scalars as numbered lists

Positions are tracked as the distance from the top edge and converted to
reportlab's bottom-left origin when drawing.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Mapping, Optional, Sequence, Tuple

import structlog
from reportlab.lib import colors
from reportlab.lib.pagesizes import LETTER
from reportlab.lib.utils import simpleSplit
from reportlab.pdfgen import canvas

from assist_analytics.export.flatten import format_month

logger = structlog.get_logger(__name__)

REGULAR = "Helvetica"
BOLD = "Helvetica-Bold"
LINE_SPACING = 1.2
INDENT_STEP = 20
TABLE_FONT_SIZE = 10
CELL_PADDING = 4
ROW_GAP = 10


@dataclass
class TableLayout:
    """What was drawn for one table"""
    headers: List[str]
    header_rows: int = 0
    data_rows: int = 0
    page_breaks: int = 0
    column_width: float = 0.0


def display_value(value: Any) -> str:
    """Text of a value as it appears in the PDF."""
    if value is None:
        return "N/A"
    if isinstance(value, (datetime, date)):
        return format_month(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, Mapping):
        return ", ".join(f"{key}: {display_value(item)}" for key, item in value.items())
    if isinstance(value, list):
        return ", ".join(display_value(item) for item in value)
    return str(value)


class PdfReportRenderer:
    """Renders one report payload into a PDF file."""

    def __init__(
        self,
        path: str,
        title: str,
        margin: float = 50.0,
        pagesize: Tuple[float, float] = LETTER,
        generated_at: Optional[datetime] = None,
    ):
        self.path = path
        self.title = title
        self.margin = margin
        self.page_width, self.page_height = pagesize
        self.generated_at = generated_at or datetime.now()
        self.canvas = canvas.Canvas(path, pagesize=pagesize)
        self.canvas.setTitle(title)
        self.y = margin
        self.page_count = 1
        self.tables: List[TableLayout] = []

    # ------------------------------------------------------------------
    # Page primitives
    # ------------------------------------------------------------------

    @property
    def bottom(self) -> float:
        return self.page_height - self.margin

    def new_page(self) -> None:
        self.canvas.showPage()
        self.page_count += 1
        self.y = self.margin

    def ensure_space(self, needed: float) -> bool:
        """Start a new page if ``needed`` points do not fit; True if it did."""
        if self.y + needed > self.bottom and self.y > self.margin:
            self.new_page()
            return True
        return False

    def move_down(self, lines: float = 1.0, size: float = 12) -> None:
        self.y += size * LINE_SPACING * lines

    def draw_text(
        self,
        text: str,
        x: float,
        size: float,
        font: str = REGULAR,
        color=colors.black,
    ) -> None:
        """Draw one line with its top at the current position."""
        self.canvas.setFont(font, size)
        self.canvas.setFillColor(color)
        self.canvas.drawString(x, self.page_height - self.y - size, text)

    def write(
        self,
        text: str,
        size: float = 12,
        font: str = REGULAR,
        indent: float = 0,
        color=colors.black,
    ) -> None:
        """Write wrapped text at the left margin plus ``indent``."""
        x = self.margin + indent
        width = self.page_width - x - self.margin
        leading = size * LINE_SPACING
        for line in simpleSplit(text, font, size, width) or [""]:
            self.ensure_space(leading)
            self.draw_text(line, x, size, font, color)
            self.y += leading

    def rule(self, x_start: Optional[float] = None, x_end: Optional[float] = None) -> None:
        x_start = self.margin if x_start is None else x_start
        x_end = self.page_width - self.margin if x_end is None else x_end
        self.canvas.setStrokeColor(colors.black)
        self.canvas.line(x_start, self.page_height - self.y, x_end, self.page_height - self.y)

    # ------------------------------------------------------------------
    # Content
    # ------------------------------------------------------------------

    def render(self, payload: Any) -> None:
        """Render the banner and ``payload`` and save the file."""
        self.render_banner()

        if isinstance(payload, list):
            for index, item in enumerate(payload, start=1):
                self.write(f"Item {index}:", size=16, font=BOLD)
                self.rule(self.margin, self.margin + self.canvas.stringWidth(f"Item {index}:", BOLD, 16))
                self.move_down(0.5)
                if isinstance(item, Mapping):
                    self.render_mapping(item)
                else:
                    self.write(display_value(item))
                self.move_down()
        else:
            self.render_mapping(payload)

        self.canvas.save()
        logger.debug(
            "PDF rendered",
            path=self.path,
            pages=self.page_count,
            tables=len(self.tables),
        )

    def render_banner(self) -> None:
        center = self.page_width / 2
        self.canvas.setFont(BOLD, 22)
        self.canvas.drawCentredString(center, self.page_height - self.y - 22, f"{self.title} Report")
        self.y += 22 * LINE_SPACING
        self.move_down()

        self.canvas.setFont(REGULAR, 12)
        self.canvas.setFillColor(colors.gray)
        self.canvas.drawCentredString(
            center,
            self.page_height - self.y - 12,
            f"Generated on: {self.generated_at.strftime('%Y-%m-%d %H:%M:%S')}",
        )
        self.canvas.setFillColor(colors.black)
        self.y += 12 * LINE_SPACING
        self.move_down()
        self.rule()
        self.move_down(2)

    def render_mapping(self, obj: Mapping, depth: int = 0) -> None:
        indent = INDENT_STEP * depth
        header_size = max(14 - depth, 8)

        for key, value in obj.items():
            if isinstance(value, (datetime, date)):
                value = format_month(value)

            if value is None:
                self.write(f"{key}: N/A", indent=indent)
                self.move_down(0.5)
            elif isinstance(value, Mapping):
                self.write(f"{key}:", size=header_size, font=BOLD, indent=indent)
                self.move_down(0.5)
                self.render_mapping(value, depth + 1)
                self.move_down(0.5)
            elif isinstance(value, list):
                self.write(f"{key}:", size=header_size, font=BOLD, indent=indent)
                self.move_down(0.5)
                if not value:
                    self.write("No data", indent=indent + INDENT_STEP)
                elif isinstance(value[0], Mapping):
                    self.render_table(value, indent)
                else:
                    for number, item in enumerate(value, start=1):
                        self.write(f"{number}. {display_value(item)}", indent=indent + INDENT_STEP)
                self.move_down(0.5)
            else:
                self.write(f"{key}: {display_value(value)}", indent=indent)
                self.move_down(0.5)

    def _wrap_row(self, cells: Sequence[str], font: str, width: float) -> Tuple[List[List[str]], float]:
        wrapped = [simpleSplit(cell, font, TABLE_FONT_SIZE, width - CELL_PADDING) or [""] for cell in cells]
        height = max(len(lines) for lines in wrapped) * TABLE_FONT_SIZE * LINE_SPACING
        return wrapped, height

    def _draw_row(self, wrapped: List[List[str]], start_x: float, col_width: float, font: str) -> None:
        top = self.y
        for column, lines in enumerate(wrapped):
            self.y = top
            for line in lines:
                self.draw_text(line, start_x + column * col_width, TABLE_FONT_SIZE, font)
                self.y += TABLE_FONT_SIZE * LINE_SPACING
        self.y = top

    def render_table(self, rows: List[Mapping], indent: float = 0) -> TableLayout:
        """Draw a list of objects as a table keyed by the first row's fields."""
        headers = [str(key) for key in rows[0].keys()]
        start_x = self.margin + indent
        available = self.page_width - start_x - self.margin
        col_width = available / len(headers)
        layout = TableLayout(headers=headers, column_width=col_width)

        wrapped, height = self._wrap_row(headers, BOLD, col_width)
        if self.ensure_space(height + CELL_PADDING):
            layout.page_breaks += 1
        self._draw_row(wrapped, start_x, col_width, BOLD)
        self.y += height + CELL_PADDING
        self.rule(start_x, start_x + available)
        layout.header_rows += 1

        for row in rows:
            cells = [display_value(row.get(header)) for header in headers]
            wrapped, height = self._wrap_row(cells, REGULAR, col_width)
            if self.y + ROW_GAP + height > self.bottom:
                self.new_page()
                layout.page_breaks += 1
            self.y += ROW_GAP
            self._draw_row(wrapped, start_x, col_width, REGULAR)
            self.y += height
            layout.data_rows += 1

        self.tables.append(layout)
        self.move_down()
        return layout


def write_pdf(payload: Any, path: str, title: str, margin: float = 50.0) -> PdfReportRenderer:
    """Render ``payload`` to ``path`` and return the renderer for inspection."""
    renderer = PdfReportRenderer(path, title, margin=margin)
    renderer.render(payload)
    return renderer
