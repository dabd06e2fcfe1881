"""
Clinical Decision Layer

Rule-based classification of raw clinical values against reference
thresholds, ECG interpretation and waveform synthesis.

Usage:
    from diagnostic_engine.core.clinical import WHO_THRESHOLDS, classify_vitals

    readings = classify_vitals(systolic_bp=185, diastolic_bp=95, heart_rate=72)

The record-level dispatcher and the risk aggregator work on visit models and
are imported from their own modules:
    from diagnostic_engine.core.clinical.engine import DiagnosticEngine
    from diagnostic_engine.core.clinical.risk import aggregate
"""
from .base import BMICategory, ECGRiskLevel, Gender, Reading, RiskLevel, Status
from .thresholds import ThresholdTable, WHO_THRESHOLDS
from .classifier import (
    calculate_bmi,
    bmi_category,
    classify_blood_panel,
    classify_blood_pressure,
    classify_bmi,
    classify_vitals,
)
from .ecg import ECGWaveform, analyze_ecg, corrected_qt, interpret_ecg, synthesize_waveform

__all__ = [
    "BMICategory",
    "ECGRiskLevel",
    "Gender",
    "Reading",
    "RiskLevel",
    "Status",
    "ThresholdTable",
    "WHO_THRESHOLDS",
    "calculate_bmi",
    "bmi_category",
    "classify_blood_panel",
    "classify_blood_pressure",
    "classify_bmi",
    "classify_vitals",
    "ECGWaveform",
    "analyze_ecg",
    "corrected_qt",
    "interpret_ecg",
    "synthesize_waveform",
]
