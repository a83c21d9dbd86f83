"""
Export Pipeline

Turns a report payload into a downloadable Excel, CSV or PDF file.

Each export is an ``ExportJob`` that moves through
``IDLE -> RENDERING -> WRITTEN -> STREAMED -> DELETED`` (or ``FAILED``).
Rendering runs in a worker thread under a timeout, and the temporary file
is removed when the response stream ends, fails or is abandoned.
"""

import asyncio
import os
import tempfile
from datetime import date
from enum import Enum
from typing import Any, AsyncIterator, List, Optional

import anyio
import structlog
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from assist_analytics.config import ExportSettings, get_settings
from assist_analytics.exceptions import ExportError, ExportTimeoutError, UnsupportedExportFormatError
from assist_analytics.export.csv_writer import write_csv
from assist_analytics.export.excel import write_excel
from assist_analytics.export.flatten import normalize_payload
from assist_analytics.export.pdf import write_pdf

logger = structlog.get_logger(__name__)

SUPPORTED_FORMATS = ("excel", "xlsx", "csv", "pdf")


class ExportFormat(str, Enum):
    """Supported export formats"""
    EXCEL = "excel"
    CSV = "csv"
    PDF = "pdf"

    @classmethod
    def parse(cls, value: str) -> "ExportFormat":
        """Accept ``excel``/``xlsx``, ``csv`` and ``pdf`` in any case."""
        normalized = (value or "").strip().lower()
        if normalized == "xlsx":
            normalized = "excel"
        try:
            return cls(normalized)
        except ValueError:
            raise UnsupportedExportFormatError(value, SUPPORTED_FORMATS) from None

    @property
    def extension(self) -> str:
        return {"excel": "xlsx", "csv": "csv", "pdf": "pdf"}[self.value]

    @property
    def media_type(self) -> str:
        return {
            "excel": "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
            "csv": "text/csv; charset=utf-8",
            "pdf": "application/pdf",
        }[self.value]


class ExportState(str, Enum):
    """Lifecycle of one export"""
    IDLE = "idle"
    RENDERING = "rendering"
    WRITTEN = "written"
    STREAMED = "streamed"
    DELETED = "deleted"
    FAILED = "failed"


_TRANSITIONS = {
    ExportState.IDLE: {ExportState.RENDERING},
    ExportState.RENDERING: {ExportState.WRITTEN, ExportState.FAILED},
    ExportState.WRITTEN: {ExportState.STREAMED, ExportState.DELETED},
    ExportState.STREAMED: {ExportState.DELETED},
    ExportState.DELETED: set(),
    ExportState.FAILED: set(),
}


def download_filename(report_name: str, export_format: ExportFormat, today: Optional[date] = None) -> str:
    """``<ReportName>_<YYYY-MM-DD>.<ext>``"""
    today = today or date.today()
    return f"{report_name}_{today.isoformat()}.{export_format.extension}"


class ExportJob:
    """One rendered report file and its lifecycle."""

    def __init__(
        self,
        report_name: str,
        export_format: ExportFormat,
        directory: Optional[str] = None,
        pdf_margin: float = 50.0,
    ):
        self.report_name = report_name
        self.format = export_format
        self.directory = directory
        self.pdf_margin = pdf_margin
        self.state = ExportState.IDLE
        self.path: Optional[str] = None
        self.history: List[ExportState] = [ExportState.IDLE]

    def _transition(self, new_state: ExportState) -> None:
        if new_state not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Invalid export transition {self.state.value} -> {new_state.value}")
        self.state = new_state
        self.history.append(new_state)
        logger.debug(
            "Export state changed",
            report=self.report_name,
            format=self.format.value,
            state=new_state.value,
        )

    def _remove_file(self) -> None:
        if self.path and os.path.exists(self.path):
            os.remove(self.path)

    def render(self, payload: Any) -> str:
        """Write the payload to a temporary file and return its path."""
        self._transition(ExportState.RENDERING)
        try:
            fd, self.path = tempfile.mkstemp(
                prefix=f"{self.report_name}_",
                suffix=f".{self.format.extension}",
                dir=self.directory,
            )
            os.close(fd)

            data = normalize_payload(payload)
            if self.format is ExportFormat.EXCEL:
                write_excel(data, self.path)
            elif self.format is ExportFormat.CSV:
                write_csv(data, self.path)
            else:
                write_pdf(data, self.path, self.report_name, margin=self.pdf_margin)
        except Exception as e:
            logger.error(
                "Export rendering failed",
                report=self.report_name,
                format=self.format.value,
                error=str(e),
                error_type=type(e).__name__,
            )
            self._remove_file()
            self._transition(ExportState.FAILED)
            raise ExportError(self.format.value) from e

        self._transition(ExportState.WRITTEN)
        logger.info(
            "Export written",
            report=self.report_name,
            format=self.format.value,
            bytes=os.path.getsize(self.path),
        )
        return self.path

    async def stream(self, chunk_size: int = 64 * 1024) -> AsyncIterator[bytes]:
        """Yield the file in chunks and delete it however the stream ends."""
        try:
            async with await anyio.open_file(self.path, "rb") as fh:
                while True:
                    chunk = await fh.read(chunk_size)
                    if not chunk:
                        break
                    yield chunk
            self._transition(ExportState.STREAMED)
        finally:
            self.cleanup()

    def cleanup(self) -> None:
        """Delete the rendered file (no-op unless it was written)."""
        if self.state not in (ExportState.WRITTEN, ExportState.STREAMED):
            return
        try:
            self._remove_file()
        except OSError as e:
            logger.warning("Could not delete export file", path=self.path, error=str(e))
            return
        self._transition(ExportState.DELETED)


def _render_to_temp(payload: Any, report_name: str, export_format: ExportFormat) -> str:
    settings = get_settings().export
    job = ExportJob(report_name, export_format, settings.temp_dir, settings.pdf_margin)
    return job.render(payload)


def export_to_excel(payload: Any, report_name: str) -> str:
    """Render an XLSX file; the caller owns (and must delete) the returned path."""
    return _render_to_temp(payload, report_name, ExportFormat.EXCEL)


def export_to_csv(payload: Any, report_name: str) -> str:
    """Render a CSV file; the caller owns (and must delete) the returned path."""
    return _render_to_temp(payload, report_name, ExportFormat.CSV)


def export_to_pdf(payload: Any, report_name: str) -> str:
    """Render a PDF file; the caller owns (and must delete) the returned path."""
    return _render_to_temp(payload, report_name, ExportFormat.PDF)


async def export_report(
    payload: Any,
    report_name: str,
    fmt: str,
    settings: Optional[ExportSettings] = None,
) -> StreamingResponse:
    """
    Render ``payload`` in the requested format and stream it as an attachment.

    Raises:
        UnsupportedExportFormatError: Unknown format
        ExportTimeoutError: Rendering exceeded the configured timeout
        ExportError: Rendering failed
    """
    settings = settings or get_settings().export
    export_format = ExportFormat.parse(fmt)
    job = ExportJob(report_name, export_format, settings.temp_dir, settings.pdf_margin)

    logger.info("Export requested", report=report_name, format=export_format.value)

    render_task = asyncio.ensure_future(asyncio.to_thread(job.render, payload))
    try:
        await asyncio.wait_for(asyncio.shield(render_task), timeout=settings.timeout_seconds)
    except asyncio.TimeoutError:
        logger.error(
            "Export timed out",
            report=report_name,
            format=export_format.value,
            timeout=settings.timeout_seconds,
        )
        render_task.add_done_callback(lambda task: _discard_late_render(task, job))
        raise ExportTimeoutError(export_format.value, settings.timeout_seconds) from None

    filename = download_filename(report_name, export_format)
    return StreamingResponse(
        job.stream(settings.chunk_size),
        media_type=export_format.media_type,
        headers={"Content-Disposition": f"attachment; filename={filename}"},
        # Covers a response that is dropped before its body is iterated
        background=BackgroundTask(job.cleanup),
    )


def _discard_late_render(task: "asyncio.Future", job: ExportJob) -> None:
    """Remove the file of a render that finished after its request gave up."""
    if task.cancelled():
        return
    if task.exception() is None:
        job.cleanup()
