"""
Report Export Module

Renders a visit as a downloadable report:
- PDF: tables per section, risk banner, synthetic ECG trace (reportlab)
- CSV: label/value rows in the same section order
"""
from .csv_export import export_csv, write_csv
from .pdf_report import VisitReportGenerator
from .sections import SECTION_ORDER, ReportSection, build_sections, report_filename

__all__ = [
    "export_csv",
    "write_csv",
    "VisitReportGenerator",
    "SECTION_ORDER",
    "ReportSection",
    "build_sections",
    "report_filename",
]
