"""
Service Exceptions

Typed failures raised by the KPI engine, the report aggregator and the
export pipeline. HTTP status mapping lives in the API layer.
"""

from typing import Iterable, Optional


class AnalyticsError(Exception):
    """Base class for all service failures"""


class KPIComputationError(AnalyticsError):
    """A KPI could not be computed because its data could not be read"""

    def __init__(self, kpi: str, cause: Optional[BaseException] = None):
        self.kpi = kpi
        self.cause = cause
        super().__init__(f"Failed to calculate {kpi}")


class ReportGenerationError(AnalyticsError):
    """A report payload could not be assembled"""

    def __init__(self, report: str, cause: Optional[BaseException] = None):
        self.report = report
        self.cause = cause
        super().__init__(f"Failed to generate {report}")


class UnsupportedExportFormatError(AnalyticsError):
    """Client asked for an export format the pipeline cannot render"""

    def __init__(self, fmt: str, supported: Iterable[str]):
        self.format = fmt
        self.supported = list(supported)
        super().__init__(
            f"Unsupported export format: {fmt}. Supported formats: {', '.join(self.supported)}"
        )


class ExportError(AnalyticsError):
    """Rendering or writing an export file failed"""

    def __init__(self, fmt: str, message: Optional[str] = None):
        self.format = fmt
        super().__init__(message or f"Failed to export as {fmt}")


class ExportTimeoutError(ExportError):
    """Rendering did not finish within the configured timeout"""

    def __init__(self, fmt: str, timeout: float):
        self.timeout = timeout
        super().__init__(fmt, f"Export as {fmt} timed out after {timeout:g}s")
