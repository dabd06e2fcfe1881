"""
CSV export of a visit.

Two-column label/value rows grouped under section title rows, with a blank
row between sections. List sections (recommendations, alerts) put each
item in the value column.
"""
import csv
import io
import os
from datetime import datetime
from typing import Optional

from diagnostic_engine.models.visit import Visit
from diagnostic_engine.utils import ReportGenerationError, get_logger
from .sections import build_sections, report_filename

logger = get_logger(__name__)

REPORT_TITLE = "Healthcare Diagnostic Report"


def export_csv(visit: Visit, generated_at: Optional[datetime] = None) -> str:
    """Render the visit as CSV text."""
    try:
        buffer = io.StringIO()
        writer = csv.writer(buffer, quoting=csv.QUOTE_ALL, lineterminator="\n")
        writer.writerow([REPORT_TITLE])
        writer.writerow(["Generated on:", (generated_at or datetime.now()).strftime("%Y-%m-%d %H:%M:%S")])
        writer.writerow([])

        for section in build_sections(visit):
            writer.writerow([section.title])
            for label, value in section.rows:
                writer.writerow([label, value])
            for item in section.items:
                writer.writerow(["", item])
            writer.writerow([])

        return buffer.getvalue()
    except Exception as e:
        logger.warning(f"CSV export failed for visit {visit.id}: {e}")
        raise ReportGenerationError(f"CSV export failed: {e}", report_type="csv") from e


def write_csv(visit: Visit, output_dir: str = "reports") -> str:
    """Write the CSV report into ``output_dir`` and return its path."""
    content = export_csv(visit)
    try:
        os.makedirs(output_dir, exist_ok=True)
        filepath = os.path.join(output_dir, report_filename(visit, "csv"))
        with open(filepath, "w", newline="", encoding="utf-8") as fh:
            fh.write(content)
    except OSError as e:
        logger.warning(f"Could not write CSV report for visit {visit.id}: {e}")
        raise ReportGenerationError(f"Could not write CSV report: {e}", report_type="csv") from e
    logger.info(f"CSV report written: {filepath}")
    return filepath
