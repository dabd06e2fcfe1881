"""
Reference Threshold Table

WHO-style static reference ranges consumed by the parameter classifier,
the ECG interpreter and the risk aggregator. Pure data: every classifier
receives a ``ThresholdTable`` argument, so a different table can be
swapped in without touching classification code.

Range tuples are ``(low, high)``.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, Tuple

Range = Tuple[float, float]


# ── Vitals ────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BloodPressureThresholds:
    normal: Range
    high: Range            # (stage-2 start, crisis)
    stage1: float          # AHA stage-1 cutoff


@dataclass(frozen=True)
class HeartRateThresholds:
    normal: Range = (60.0, 100.0)
    low: float = 60.0
    high: float = 100.0
    severe_low: float = 50.0
    severe_high: float = 120.0


@dataclass(frozen=True)
class TemperatureThresholds:
    normal: Range = (36.1, 37.2)
    fever: float = 38.0
    high_fever: float = 39.0


@dataclass(frozen=True)
class SpO2Thresholds:
    normal: float = 95.0
    low: float = 90.0


@dataclass(frozen=True)
class VitalThresholds:
    systolic_bp: BloodPressureThresholds = field(
        default_factory=lambda: BloodPressureThresholds(normal=(90.0, 120.0), high=(140.0, 180.0), stage1=130.0)
    )
    diastolic_bp: BloodPressureThresholds = field(
        default_factory=lambda: BloodPressureThresholds(normal=(60.0, 80.0), high=(90.0, 110.0), stage1=80.0)
    )
    heart_rate: HeartRateThresholds = field(default_factory=HeartRateThresholds)
    temperature: TemperatureThresholds = field(default_factory=TemperatureThresholds)
    spo2: SpO2Thresholds = field(default_factory=SpO2Thresholds)


# ── Blood chemistry ───────────────────────────────────────────────────────────

@dataclass(frozen=True)
class HemoglobinRange:
    normal: Range
    low: float


@dataclass(frozen=True)
class HemoglobinThresholds:
    male: HemoglobinRange = field(default_factory=lambda: HemoglobinRange(normal=(13.8, 17.2), low=13.8))
    female: HemoglobinRange = field(default_factory=lambda: HemoglobinRange(normal=(12.1, 15.1), low=12.1))


@dataclass(frozen=True)
class BloodSugarThresholds:
    normal: Range = (70.0, 100.0)
    prediabetic: Range = (100.0, 126.0)
    diabetic: float = 126.0


@dataclass(frozen=True)
class HDLThresholds:
    good: float = 40.0          # below this is low HDL
    borderline: float = 60.0    # at or above this is protective


@dataclass(frozen=True)
class LipidThresholds:
    """Shared shape for LDL / total cholesterol / triglycerides."""
    optimal: float
    borderline: Range
    high: float


@dataclass(frozen=True)
class CholesterolThresholds:
    hdl: HDLThresholds = field(default_factory=HDLThresholds)
    ldl: LipidThresholds = field(
        default_factory=lambda: LipidThresholds(optimal=100.0, borderline=(100.0, 130.0), high=160.0)
    )
    total: LipidThresholds = field(
        default_factory=lambda: LipidThresholds(optimal=200.0, borderline=(200.0, 240.0), high=240.0)
    )


@dataclass(frozen=True)
class BloodThresholds:
    hemoglobin: HemoglobinThresholds = field(default_factory=HemoglobinThresholds)
    blood_sugar: BloodSugarThresholds = field(default_factory=BloodSugarThresholds)
    cholesterol: CholesterolThresholds = field(default_factory=CholesterolThresholds)
    triglycerides: LipidThresholds = field(
        default_factory=lambda: LipidThresholds(optimal=150.0, borderline=(150.0, 200.0), high=200.0)
    )


# ── BMI ───────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class BMIThresholds:
    underweight: float = 18.5
    normal: Range = (18.5, 25.0)
    overweight: Range = (25.0, 30.0)
    obese: float = 30.0


# ── ECG ───────────────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class ECGThresholds:
    severe_bradycardia: float = 50.0
    bradycardia: float = 60.0
    tachycardia: float = 100.0
    severe_tachycardia: float = 120.0
    qrs_normal: Range = (80.0, 120.0)
    qtc_short: float = 350.0
    qtc_prolonged: float = 470.0


@dataclass(frozen=True)
class ThresholdTable:
    vitals: VitalThresholds = field(default_factory=VitalThresholds)
    blood: BloodThresholds = field(default_factory=BloodThresholds)
    bmi: BMIThresholds = field(default_factory=BMIThresholds)
    ecg: ECGThresholds = field(default_factory=ECGThresholds)

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


WHO_THRESHOLDS = ThresholdTable()
