"""Report file helpers."""

from .report import ReportFormatError, load_batch_report, write_batch_report

__all__ = ["ReportFormatError", "load_batch_report", "write_batch_report"]
