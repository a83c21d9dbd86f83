"""
Unit Tests - Export Pipeline
"""
import asyncio
import os
import time
import pytest
from datetime import date, datetime

from openpyxl import load_workbook

from assist_analytics.exceptions import ExportError, ExportTimeoutError, UnsupportedExportFormatError
from assist_analytics.export import pipeline
from assist_analytics.export.pdf import display_value, write_pdf
from assist_analytics.export.pipeline import (
    ExportFormat,
    ExportJob,
    ExportState,
    download_filename,
    export_report,
)


async def read_body(response) -> bytes:
    chunks = []
    async for chunk in response.body_iterator:
        chunks.append(chunk)
    return b"".join(chunks)


class TestExportFormat:
    """Tests for format parsing"""

    @pytest.mark.parametrize("value, expected", [
        ("excel", ExportFormat.EXCEL),
        ("XLSX", ExportFormat.EXCEL),
        ("csv", ExportFormat.CSV),
        (" Pdf ", ExportFormat.PDF),
    ])
    def test_parse(self, value, expected):
        assert ExportFormat.parse(value) is expected

    def test_unsupported(self):
        with pytest.raises(UnsupportedExportFormatError) as exc_info:
            ExportFormat.parse("docx")

        assert "Unsupported export format: docx" in str(exc_info.value)
        assert "csv" in exc_info.value.supported

    def test_download_filename_uses_real_extension(self):
        name = download_filename("Sales_Report", ExportFormat.EXCEL, today=date(2026, 10, 17))

        assert name == "Sales_Report_2026-10-17.xlsx"


class TestExcelExport:
    """Tests for the XLSX writer"""

    def test_object_payload(self, tmp_path, sample_report):
        job = ExportJob("Sales_Report", ExportFormat.EXCEL, str(tmp_path))
        path = job.render(sample_report)

        ws = load_workbook(path).active
        rows = list(ws.iter_rows(values_only=True))

        assert ws.title == "Report"
        assert ws["A1"].font.bold
        assert rows[0] == ("Metric", "Value")
        assert rows[1] == ("totalSales", 3)
        assert rows[3][1] == (
            "deviceType: bracelet, salesCount: 2, revenue: 250.0\n"
            "deviceType: cane, salesCount: 1, revenue: 200.0"
        )

    def test_list_payload(self, tmp_path):
        job = ExportJob("Zones_Report", ExportFormat.EXCEL, str(tmp_path))
        path = job.render([{"type": "safe", "count": 2}, {"type": "danger", "count": 1}])

        rows = list(load_workbook(path).active.iter_rows(values_only=True))

        assert rows == [("type", "count"), ("safe", 2), ("danger", 1)]


class TestCsvExport:
    """Tests for the CSV writer"""

    def test_bom_and_rows(self, tmp_path, sample_report):
        job = ExportJob("Sales_Report", ExportFormat.CSV, str(tmp_path))
        path = job.render(sample_report)

        with open(path, "rb") as fh:
            content = fh.read()

        assert content.startswith(b"\xef\xbb\xbf")
        text = content.decode("utf-8-sig")
        assert text.splitlines()[0] == "metric,value"
        assert "totalSales,3" in text


class TestPdfExport:
    """Tests for the PDF renderer"""

    def test_two_row_table(self, tmp_path):
        """Two objects with the same keys give one header row and two data rows"""
        path = str(tmp_path / "table.pdf")
        payload = {"rows": [{"name": "a", "count": 1}, {"name": "b", "count": 2}]}

        renderer = write_pdf(payload, path, "Test")

        table = renderer.tables[0]
        assert table.headers == ["name", "count"]
        assert table.header_rows == 1
        assert table.data_rows == 2
        assert table.page_breaks == 0
        assert renderer.page_count == 1
        with open(path, "rb") as fh:
            assert fh.read(4) == b"%PDF"

    def test_long_table_breaks_pages(self, tmp_path):
        path = str(tmp_path / "long.pdf")
        payload = {"rows": [{"index": i, "label": f"row {i}"} for i in range(200)]}

        renderer = write_pdf(payload, path, "Test")

        table = renderer.tables[0]
        assert table.header_rows == 1
        assert table.data_rows == 200
        assert table.page_breaks >= 1
        assert renderer.page_count == 1 + table.page_breaks

    def test_column_width_splits_available_space(self, tmp_path):
        renderer = write_pdf({"rows": [{"a": 1, "b": 2, "c": 3, "d": 4}]}, str(tmp_path / "w.pdf"), "Test", margin=50)

        assert renderer.tables[0].column_width == pytest.approx((renderer.page_width - 100) / 4)

    def test_list_payload_and_mixed_values(self, tmp_path, sample_report):
        renderer = write_pdf(
            [sample_report, {"note": None, "tags": ["x", "y"], "empty": []}],
            str(tmp_path / "mixed.pdf"),
            "Sales",
        )

        assert len(renderer.tables) == 2
        assert renderer.page_count >= 1

    def test_display_values(self):
        assert display_value(datetime(2026, 9, 1)) == "Sep 2026"
        assert display_value(None) == "N/A"
        assert display_value(True) == "true"
        assert display_value({"a": 1}) == "a: 1"


class TestExportJob:
    """Tests for the export lifecycle"""

    def test_cleanup_after_render(self, tmp_path):
        job = ExportJob("Report", ExportFormat.CSV, str(tmp_path))
        path = job.render({"a": 1})

        assert job.state is ExportState.WRITTEN
        assert os.path.exists(path)

        job.cleanup()
        job.cleanup()

        assert job.state is ExportState.DELETED
        assert not os.path.exists(path)

    async def test_stream_then_delete(self, tmp_path):
        job = ExportJob("Report", ExportFormat.CSV, str(tmp_path))
        path = job.render({"a": 1})
        with open(path, "rb") as fh:
            expected = fh.read()

        chunks = [chunk async for chunk in job.stream(chunk_size=4)]

        assert b"".join(chunks) == expected
        assert job.history == [
            ExportState.IDLE,
            ExportState.RENDERING,
            ExportState.WRITTEN,
            ExportState.STREAMED,
            ExportState.DELETED,
        ]
        assert not os.path.exists(path)

    def test_failed_render_leaves_no_file(self, tmp_path):
        job = ExportJob("Report", ExportFormat.EXCEL, str(tmp_path))

        with pytest.raises(ExportError) as exc_info:
            job.render({"bad": object()})

        assert str(exc_info.value) == "Failed to export as excel"
        assert job.state is ExportState.FAILED
        assert list(tmp_path.iterdir()) == []

    @pytest.mark.parametrize("export, extension", [
        (pipeline.export_to_excel, ".xlsx"),
        (pipeline.export_to_csv, ".csv"),
        (pipeline.export_to_pdf, ".pdf"),
    ])
    def test_export_helpers_hand_over_the_file(self, export, extension, sample_report):
        path = export(sample_report, "Sales_Report")
        try:
            assert path.endswith(extension)
            assert os.path.getsize(path) > 0
        finally:
            os.remove(path)

    def test_render_twice_is_rejected(self, tmp_path):
        job = ExportJob("Report", ExportFormat.CSV, str(tmp_path))
        job.render({"a": 1})

        with pytest.raises(RuntimeError):
            job.render({"a": 1})


class TestExportReport:
    """Tests for the streaming export entry point"""

    async def test_streams_attachment_and_cleans_up(self, tmp_path, export_settings, sample_report):
        response = await export_report(sample_report, "Sales_Report", "xlsx", export_settings)

        assert response.media_type == ExportFormat.EXCEL.media_type
        disposition = response.headers["content-disposition"]
        assert disposition.startswith("attachment; filename=Sales_Report_")
        assert disposition.endswith(".xlsx")

        body = await read_body(response)

        assert body[:2] == b"PK"
        assert list(tmp_path.iterdir()) == []

    async def test_unsupported_format(self, tmp_path, export_settings):
        with pytest.raises(UnsupportedExportFormatError):
            await export_report({"a": 1}, "Sales_Report", "docx", export_settings)

        assert list(tmp_path.iterdir()) == []

    async def test_timeout_discards_late_file(self, tmp_path, export_settings, monkeypatch):
        real_write_csv = pipeline.write_csv

        def slow_write(payload, path):
            time.sleep(0.3)
            real_write_csv(payload, path)

        monkeypatch.setattr(pipeline, "write_csv", slow_write)
        export_settings.timeout_seconds = 0.05

        with pytest.raises(ExportTimeoutError):
            await export_report({"a": 1}, "Sales_Report", "csv", export_settings)

        await asyncio.sleep(0.6)
        assert list(tmp_path.iterdir()) == []
