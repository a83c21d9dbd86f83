"""
Export Module
"""
from .flatten import flatten_for_csv, flatten_for_excel, normalize_payload
from .pipeline import (
    ExportFormat,
    ExportJob,
    ExportState,
    export_report,
    export_to_csv,
    export_to_excel,
    export_to_pdf,
)

__all__ = [
    "flatten_for_csv",
    "flatten_for_excel",
    "normalize_payload",
    "ExportFormat",
    "ExportJob",
    "ExportState",
    "export_report",
    "export_to_csv",
    "export_to_excel",
    "export_to_pdf",
]
