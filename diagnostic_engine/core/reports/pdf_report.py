"""
Visit PDF Report Generator

Renders a completed (or partially completed) visit as a one-document PDF:
- Patient information table
- Colour-coded overall risk banner with the summary narrative
- One table per recorded measurement section
- A line drawing of the synthesized ECG trace
- Recommendations and critical alerts
"""
import io
import os
from datetime import datetime
from typing import List, Optional
from xml.sax.saxutils import escape

import numpy as np
from reportlab.graphics.shapes import Drawing, Line, PolyLine, Rect, String
from reportlab.lib.colors import HexColor, white
from reportlab.lib.enums import TA_CENTER, TA_JUSTIFY
from reportlab.lib.pagesizes import A4
from reportlab.lib.styles import ParagraphStyle, getSampleStyleSheet
from reportlab.lib.units import inch
from reportlab.platypus import Flowable, KeepTogether, Paragraph, SimpleDocTemplate, Spacer, Table, TableStyle

from diagnostic_engine.core.clinical.base import RiskLevel
from diagnostic_engine.core.clinical.ecg import synthesize_waveform
from diagnostic_engine.models.visit import Visit
from diagnostic_engine.utils import ReportGenerationError, get_logger
from .sections import (
    CRITICAL_ALERTS,
    ECG_ANALYSIS,
    HEALTH_SUMMARY,
    RECOMMENDATIONS,
    ReportSection,
    build_sections,
    report_filename,
)

logger = get_logger(__name__)


RISK_COLORS = {
    RiskLevel.LOW: HexColor("#22C55E"),     # Green
    RiskLevel.MEDIUM: HexColor("#F59E0B"),  # Amber
    RiskLevel.HIGH: HexColor("#EF4444"),    # Red
}

RISK_LABELS = {
    RiskLevel.LOW: "Low Risk",
    RiskLevel.MEDIUM: "Medium Risk - Follow-up Advised",
    RiskLevel.HIGH: "High Risk - Prompt Review Required",
}

HEADER_COLOR = HexColor("#1E40AF")
GRID_COLOR = HexColor("#D1D5DB")
ALERT_COLOR = HexColor("#991B1B")
ECG_TRACE_COLOR = HexColor("#DC2626")
ECG_GRID_COLOR = HexColor("#FECACA")

ECG_PLOT_SECONDS = 3.0
ECG_PLOT_SEED = 0


class RiskBanner(Flowable):
    """Rounded colour block carrying the risk tier and score."""

    def __init__(self, risk_level: RiskLevel, score: int, width: float = 300, height: float = 40):
        Flowable.__init__(self)
        self.risk_level = risk_level
        self.score = score
        self.width = width
        self.height = height

    def draw(self):
        label = f"{RISK_LABELS.get(self.risk_level, self.risk_level.value)} ({self.score}/100)"
        self.canv.setFillColor(RISK_COLORS.get(self.risk_level, GRID_COLOR))
        self.canv.roundRect(0, 0, self.width, self.height, 8, fill=1, stroke=0)
        self.canv.setFillColor(white)
        self.canv.setFont("Helvetica-Bold", 13)
        text_width = self.canv.stringWidth(label, "Helvetica-Bold", 13)
        self.canv.drawString((self.width - text_width) / 2, self.height / 2.5, label)


def ecg_drawing(
    heart_rate: float,
    risk_level,
    width: float = 6.5 * inch,
    height: float = 1.6 * inch,
    seed: int = ECG_PLOT_SEED,
) -> Drawing:
    """Line drawing of a seeded synthetic trace scaled into ``width`` x ``height``."""
    waveform = synthesize_waveform(heart_rate, risk_level, seed=seed, duration_s=ECG_PLOT_SECONDS)
    samples = waveform.to_array()

    drawing = Drawing(width, height)
    drawing.add(Rect(0, 0, width, height, fillColor=HexColor("#FFF7F7"), strokeColor=ECG_GRID_COLOR))

    # 200 ms grid
    for t_ms in np.arange(0, ECG_PLOT_SECONDS * 1000 + 1, 200):
        x = width * t_ms / (ECG_PLOT_SECONDS * 1000)
        drawing.add(Line(x, 0, x, height, strokeColor=ECG_GRID_COLOR, strokeWidth=0.5))

    low, high = -0.8, 1.6
    if len(samples):
        low = min(low, float(samples.min()))
        high = max(high, float(samples.max()))
    span = high - low
    xs = np.linspace(0, width, num=len(samples)) if len(samples) else np.array([])
    ys = (samples - low) / span * height if len(samples) else np.array([])
    points: List[float] = []
    for x, y in zip(xs, ys):
        points.extend((float(x), float(y)))
    if points:
        drawing.add(PolyLine(points, strokeColor=ECG_TRACE_COLOR, strokeWidth=1))

    drawing.add(String(4, height - 12, f"Lead II (synthetic) - {heart_rate:g} bpm", fontSize=8))
    return drawing


class VisitReportGenerator:
    """
    Builds PDF reports for visits.

    ``generate_pdf`` returns bytes for streaming; ``write_pdf`` stores the
    document under ``output_dir`` with the standard report file name.
    """

    def __init__(self, output_dir: str = "reports"):
        self.output_dir = output_dir
        self._styles = getSampleStyleSheet()
        self._create_custom_styles()

    def _create_custom_styles(self):
        if "ReportTitle" not in self._styles:
            self._styles.add(ParagraphStyle(
                name="ReportTitle",
                parent=self._styles["Title"],
                fontSize=22,
                spaceAfter=12,
                textColor=HEADER_COLOR,
                alignment=TA_CENTER,
                fontName="Helvetica-Bold",
            ))
        if "SectionHeader" not in self._styles:
            self._styles.add(ParagraphStyle(
                name="SectionHeader",
                parent=self._styles["Heading2"],
                fontSize=14,
                spaceBefore=16,
                spaceAfter=8,
                textColor=HexColor("#1F2937"),
                fontName="Helvetica-Bold",
            ))
        if "ReportBody" not in self._styles:
            self._styles.add(ParagraphStyle(
                name="ReportBody",
                parent=self._styles["Normal"],
                fontSize=10,
                leading=14,
                spaceAfter=6,
                alignment=TA_JUSTIFY,
            ))
        if "AlertItem" not in self._styles:
            self._styles.add(ParagraphStyle(
                name="AlertItem",
                parent=self._styles["Normal"],
                fontSize=10,
                leading=14,
                textColor=ALERT_COLOR,
                fontName="Helvetica-Bold",
            ))
        if "Footer" not in self._styles:
            self._styles.add(ParagraphStyle(
                name="Footer",
                parent=self._styles["Normal"],
                fontSize=8,
                textColor=HexColor("#6B7280"),
                alignment=TA_CENTER,
            ))

    # ── Public API ───────────────────────────────────────────────────────────

    def generate_pdf(self, visit: Visit) -> bytes:
        try:
            buffer = io.BytesIO()
            doc = SimpleDocTemplate(
                buffer,
                pagesize=A4,
                rightMargin=0.75 * inch,
                leftMargin=0.75 * inch,
                topMargin=0.75 * inch,
                bottomMargin=0.75 * inch,
                title=f"Health Report - {visit.patient.full_name or visit.id}",
            )
            doc.build(self._story(visit))
            return buffer.getvalue()
        except Exception as e:
            logger.warning(f"PDF generation failed for visit {visit.id}: {e}")
            raise ReportGenerationError(f"PDF generation failed: {e}", report_type="pdf") from e

    def write_pdf(self, visit: Visit, output_dir: Optional[str] = None) -> str:
        content = self.generate_pdf(visit)
        directory = output_dir or self.output_dir
        try:
            os.makedirs(directory, exist_ok=True)
            filepath = os.path.join(directory, report_filename(visit, "pdf"))
            with open(filepath, "wb") as fh:
                fh.write(content)
        except OSError as e:
            logger.warning(f"Could not write PDF report for visit {visit.id}: {e}")
            raise ReportGenerationError(f"Could not write PDF report: {e}", report_type="pdf") from e
        logger.info(f"PDF report written: {filepath}")
        return filepath

    # ── Story assembly ───────────────────────────────────────────────────────

    def _story(self, visit: Visit) -> list:
        story = [
            Paragraph("Healthcare Diagnostic Report", self._styles["ReportTitle"]),
            Paragraph(
                f"Visit <b>{visit.id}</b> | Generated {datetime.now().strftime('%B %d, %Y at %I:%M %p')}",
                self._styles["Footer"],
            ),
            Spacer(1, 16),
        ]

        for section in build_sections(visit):
            story.append(Paragraph(section.title, self._styles["SectionHeader"]))
            if section.title == HEALTH_SUMMARY and visit.health_summary is not None:
                story.extend(self._summary_block(visit))
            elif section.title in (RECOMMENDATIONS, CRITICAL_ALERTS):
                style = self._styles["AlertItem"] if section.title == CRITICAL_ALERTS else self._styles["ReportBody"]
                for i, item in enumerate(section.items, 1):
                    story.append(Paragraph(f"{i}. {escape(item)}", style))
            else:
                story.append(self._table(section))
                for item in section.items:
                    story.append(Paragraph(f"\u2022 {escape(item)}", self._styles["ReportBody"]))
                if section.title == ECG_ANALYSIS and visit.ecg is not None and visit.ecg.heart_rate:
                    story.append(Spacer(1, 10))
                    story.append(ecg_drawing(visit.ecg.heart_rate, visit.ecg.risk_level))

        story.append(Spacer(1, 24))
        story.append(Paragraph(
            "<b>DISCLAIMER:</b> This report is produced by a rule-based screening tool using static "
            "reference ranges. It is not a medical diagnosis; findings must be reviewed by a "
            "qualified healthcare provider.",
            self._styles["Footer"],
        ))
        return story

    def _summary_block(self, visit: Visit) -> list:
        summary = visit.health_summary
        return [
            RiskBanner(summary.risk_level, summary.overall_risk_score),
            Spacer(1, 10),
            Paragraph(escape(summary.summary), self._styles["ReportBody"]),
        ]

    def _table(self, section: ReportSection):
        data = [["Measurement", "Value"]] + [
            [label, Paragraph(escape(value), self._styles["ReportBody"])] for label, value in section.rows
        ]
        table = Table(data, colWidths=[2.0 * inch, 4.5 * inch])
        table.setStyle(TableStyle([
            ("BACKGROUND", (0, 0), (-1, 0), HEADER_COLOR),
            ("TEXTCOLOR", (0, 0), (-1, 0), white),
            ("FONTNAME", (0, 0), (-1, 0), "Helvetica-Bold"),
            ("FONTSIZE", (0, 0), (-1, -1), 9),
            ("VALIGN", (0, 0), (-1, -1), "TOP"),
            ("GRID", (0, 0), (-1, -1), 0.5, GRID_COLOR),
            ("TOPPADDING", (0, 0), (-1, -1), 5),
            ("BOTTOMPADDING", (0, 0), (-1, -1), 5),
        ]))
        return KeepTogether([table])
