"""
Diagnostic Engine

Central dispatcher. Takes a measurement record and returns a copy whose
derived fields (readings, BMI category, ECG interpretation) are consistent
with its raw inputs. Also fronts the risk aggregator.

Usage:
    from diagnostic_engine.core.clinical.engine import DiagnosticEngine, merge_record

    engine = DiagnosticEngine()
    vitals = merge_record(visit.vitals, Vitals, {"systolic_bp": 185})
    vitals = engine.recompute(vitals, patient=visit.patient)

Adding a new record type:
    1. Define the pydantic record in models/visit.py
    2. Implement recompute_<record>(record, thresholds, patient) -> record
    3. Register it in _RECOMPUTERS below.
"""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Mapping, Optional, Type, TypeVar

from pydantic import BaseModel

from diagnostic_engine.models.visit import (
    BloodTest,
    BMIData,
    ECGData,
    HealthSummary,
    Patient,
    UltrasoundData,
    Visit,
    Vitals,
)
from diagnostic_engine.utils import get_logger
from diagnostic_engine.utils.datetime_utils import utc_now
from .classifier import bmi_category, calculate_bmi, classify_blood_panel, classify_bmi, classify_vitals
from .ecg import analyze_ecg
from .risk import aggregate
from .thresholds import ThresholdTable, WHO_THRESHOLDS

logger = get_logger(__name__)

R = TypeVar("R", bound=BaseModel)


# ── Per-record recompute functions ───────────────────────────────────────────

def recompute_vitals(record: Vitals, thresholds: ThresholdTable, patient: Optional[Patient] = None) -> Vitals:
    readings = classify_vitals(
        systolic_bp=record.systolic_bp,
        diastolic_bp=record.diastolic_bp,
        heart_rate=record.heart_rate,
        temperature=record.temperature,
        spo2=record.spo2,
        thresholds=thresholds,
    )
    return record.model_copy(update={"readings": readings})


def recompute_blood_test(record: BloodTest, thresholds: ThresholdTable, patient: Optional[Patient] = None) -> BloodTest:
    readings = classify_blood_panel(
        hemoglobin=record.hemoglobin,
        blood_sugar=record.blood_sugar,
        hdl=record.hdl,
        ldl=record.ldl,
        total_cholesterol=record.total_cholesterol,
        triglycerides=record.triglycerides,
        gender=patient.gender if patient is not None else None,
        thresholds=thresholds,
    )
    return record.model_copy(update={"readings": readings})


def recompute_bmi(record: BMIData, thresholds: ThresholdTable, patient: Optional[Patient] = None) -> BMIData:
    bmi = calculate_bmi(record.height, record.weight)
    if bmi is None:
        return record.model_copy(update={"bmi": None, "category": None, "reading": None})
    return record.model_copy(update={
        "bmi": bmi,
        "category": bmi_category(bmi, thresholds),
        "reading": classify_bmi(bmi, thresholds),
    })


def recompute_ecg(record: ECGData, thresholds: ThresholdTable, patient: Optional[Patient] = None) -> ECGData:
    analysis = analyze_ecg(record.heart_rate, record.qrs_duration, record.qt_interval, thresholds)
    if analysis is None:
        return record.model_copy(update={"qtc": None, "interpretation": None, "risk_level": None})
    return record.model_copy(update={
        "qtc": analysis.qtc,
        "interpretation": analysis.interpretation,
        "risk_level": analysis.risk_level,
    })


def _no_derived_fields(record, thresholds, patient=None):
    return record


# ── Registry: record type → recompute function ───────────────────────────────
_RECOMPUTERS: Dict[Type[BaseModel], Callable[..., BaseModel]] = {
    Vitals: recompute_vitals,
    BloodTest: recompute_blood_test,
    BMIData: recompute_bmi,
    ECGData: recompute_ecg,
    UltrasoundData: _no_derived_fields,
    HealthSummary: _no_derived_fields,
}

# Fields the engine owns; caller-supplied values for these are dropped on merge
DERIVED_FIELDS: Dict[Type[BaseModel], frozenset] = {
    Vitals: frozenset({"readings"}),
    BloodTest: frozenset({"readings"}),
    BMIData: frozenset({"bmi", "category", "reading"}),
    ECGData: frozenset({"qtc", "interpretation", "risk_level"}),
}


def recompute(record: R, thresholds: ThresholdTable = WHO_THRESHOLDS, patient: Optional[Patient] = None) -> R:
    """
    Pure re-derivation: returns a copy of ``record`` whose derived fields
    match its raw inputs. Unknown record types are returned unchanged.
    """
    recomputer = _RECOMPUTERS.get(type(record))
    if recomputer is None:
        logger.debug(f"recompute: no recomputer registered for {type(record).__name__}")
        return record
    return recomputer(record, thresholds, patient)


def merge_record(existing: Optional[R], model_cls: Type[R], changes: Mapping[str, Any]) -> R:
    """
    Partial merge of ``changes`` into ``existing`` (or a fresh record),
    stamping the record with the current time. Derived fields are not
    recomputed here.
    """
    derived = DERIVED_FIELDS.get(model_cls, frozenset())
    ignored = derived.intersection(changes)
    if ignored:
        logger.debug(f"merge_record: ignoring engine-owned fields {sorted(ignored)} on {model_cls.__name__}")

    data = existing.model_dump() if existing is not None else {}
    data.update({k: v for k, v in changes.items() if k not in derived})
    if "timestamp" in model_cls.model_fields:
        data["timestamp"] = utc_now()
    return model_cls.model_validate(data)


class DiagnosticEngine:
    """
    Applies a threshold table to records and visits.

    Stateless apart from the table, safe to share between sessions.
    """

    def __init__(self, thresholds: ThresholdTable = WHO_THRESHOLDS):
        self.thresholds = thresholds

    def recompute(self, record: R, patient: Optional[Patient] = None) -> R:
        return recompute(record, self.thresholds, patient)

    def summarize(self, visit: Visit) -> HealthSummary:
        """Run the risk aggregator over the visit's current records."""
        summary = aggregate(visit, self.thresholds)
        logger.info(
            f"DiagnosticEngine: visit {visit.id} scored {summary.overall_risk_score}/100 "
            f"({summary.risk_level.value}), {len(summary.critical_alerts)} critical alert(s)"
        )
        return summary

    @staticmethod
    def registered_records() -> List[str]:
        """Record types with a registered recompute function."""
        return [cls.__name__ for cls in _RECOMPUTERS]
