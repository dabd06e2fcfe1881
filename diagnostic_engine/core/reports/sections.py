"""
Report content shared by the PDF and CSV exporters.

Sections always come out in the same order: patient information, health
summary, vital signs, blood test results, BMI assessment, ECG analysis,
recommendations, critical alerts. Sections for records the visit does not
have are omitted; patient information is always present. The BMI section
carries its lifestyle guidance as items.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from typing import Any, List, Optional, Tuple

from diagnostic_engine.core.clinical.classifier import bmi_guidance, bmi_health_risks
from diagnostic_engine.models.visit import Visit

NOT_RECORDED = "Not recorded"

PATIENT_INFORMATION = "Patient Information"
HEALTH_SUMMARY = "Health Summary"
VITAL_SIGNS = "Vital Signs"
BLOOD_TEST_RESULTS = "Blood Test Results"
BMI_ASSESSMENT = "BMI Assessment"
ECG_ANALYSIS = "ECG Analysis"
RECOMMENDATIONS = "Recommendations"
CRITICAL_ALERTS = "Critical Alerts"

SECTION_ORDER = (
    PATIENT_INFORMATION,
    HEALTH_SUMMARY,
    VITAL_SIGNS,
    BLOOD_TEST_RESULTS,
    BMI_ASSESSMENT,
    ECG_ANALYSIS,
    RECOMMENDATIONS,
    CRITICAL_ALERTS,
)


@dataclass
class ReportSection:
    """A titled block of label/value rows, or of bullet items."""
    title: str
    rows: List[Tuple[str, str]] = field(default_factory=list)
    items: List[str] = field(default_factory=list)


def _fmt(value: Any, unit: str = "") -> str:
    if value is None or value == "":
        return NOT_RECORDED
    if hasattr(value, "value"):
        value = value.value
    if isinstance(value, float) and value.is_integer():
        value = int(value)
    return f"{value}{unit}"


def _bp(systolic: Optional[float], diastolic: Optional[float]) -> str:
    if systolic is None or diastolic is None:
        return NOT_RECORDED
    return f"{_fmt(systolic)}/{_fmt(diastolic)} mmHg"


def build_sections(visit: Visit) -> List[ReportSection]:
    patient = visit.patient
    sections = [ReportSection(PATIENT_INFORMATION, rows=[
        ("Name", _fmt(patient.full_name)),
        ("Age", f"{patient.age} years"),
        ("Gender", _fmt(patient.gender)),
        ("Patient ID", _fmt(patient.patient_id)),
        ("Contact", _fmt(patient.contact_info)),
        ("Address", _fmt(patient.address)),
        ("Visit Date", visit.created_at.strftime("%Y-%m-%d %H:%M")),
    ])]

    summary = visit.health_summary
    if summary is not None:
        sections.append(ReportSection(HEALTH_SUMMARY, rows=[
            ("Overall Risk Score", f"{summary.overall_risk_score}/100"),
            ("Risk Level", summary.risk_level.value),
            ("Summary", summary.summary),
        ]))

    vitals = visit.vitals
    if vitals is not None:
        sections.append(ReportSection(VITAL_SIGNS, rows=[
            ("Blood Pressure", _bp(vitals.systolic_bp, vitals.diastolic_bp)),
            ("Heart Rate", _fmt(vitals.heart_rate, " bpm")),
            ("Temperature", _fmt(vitals.temperature, " °C")),
            ("SpO2", _fmt(vitals.spo2, "%")),
        ]))

    blood = visit.blood_test
    if blood is not None:
        sections.append(ReportSection(BLOOD_TEST_RESULTS, rows=[
            ("Hemoglobin", _fmt(blood.hemoglobin, " g/dL")),
            ("Blood Sugar", _fmt(blood.blood_sugar, " mg/dL")),
            ("HDL Cholesterol", _fmt(blood.hdl, " mg/dL")),
            ("LDL Cholesterol", _fmt(blood.ldl, " mg/dL")),
            ("Total Cholesterol", _fmt(blood.total_cholesterol, " mg/dL")),
            ("Triglycerides", _fmt(blood.triglycerides, " mg/dL")),
        ]))

    bmi = visit.bmi
    if bmi is not None:
        sections.append(ReportSection(BMI_ASSESSMENT, rows=[
            ("Height", _fmt(bmi.height, " cm")),
            ("Weight", _fmt(bmi.weight, " kg")),
            ("BMI", _fmt(bmi.bmi)),
            ("Category", _fmt(bmi.category)),
            ("Health Risks", "; ".join(bmi_health_risks(bmi.category)) or NOT_RECORDED),
        ], items=bmi_guidance(bmi.category)))

    ecg = visit.ecg
    if ecg is not None:
        sections.append(ReportSection(ECG_ANALYSIS, rows=[
            ("Heart Rate", _fmt(ecg.heart_rate, " bpm")),
            ("QRS Duration", _fmt(ecg.qrs_duration, " ms")),
            ("QT Interval", _fmt(ecg.qt_interval, " ms")),
            ("QTc", _fmt(ecg.qtc, " ms")),
            ("Interpretation", _fmt(ecg.interpretation)),
            ("Risk Level", _fmt(ecg.risk_level)),
        ]))

    if summary is not None and summary.recommendations:
        sections.append(ReportSection(RECOMMENDATIONS, items=list(summary.recommendations)))
    if summary is not None and summary.critical_alerts:
        sections.append(ReportSection(CRITICAL_ALERTS, items=list(summary.critical_alerts)))

    return sections


def report_filename(visit: Visit, extension: str, on: Optional[date] = None) -> str:
    """``Health_Report_<Name_With_Underscores>_<YYYY-MM-DD>.<ext>``"""
    name = re.sub(r"[\s/\\]+", "_", visit.patient.full_name.strip()) or "Unnamed"
    day = (on or date.today()).isoformat()
    return f"Health_Report_{name}_{day}.{extension}"
