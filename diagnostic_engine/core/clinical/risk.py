"""
Risk Aggregator

Combines every available measurement record of a visit into a single
HealthSummary.

Score contributions (independent, additive, clamped to 100):
    systolic >140 or diastolic >90   +15
    heart rate <60 or >100           +10
    temperature ≥38 °C               +10
    SpO2 <95 %                       +20
    blood sugar >126 mg/dL           +15
    HDL <40 mg/dL                    +10
    LDL >160 mg/dL                   +10
    BMI Obese / Overweight           +15 / +8
    ECG Critical / Abnormal          +25 / +15

Tier: Low <30 · Medium 30–59 · High ≥60.

Recommendations and critical alerts come from their own rule sets over the
same raw values; they are not derived from the narrative.
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import List

from diagnostic_engine.models.visit import HealthSummary, Visit
from .base import BMICategory, ECGRiskLevel, PARAMETER_LABELS, RiskLevel
from .thresholds import ThresholdTable, WHO_THRESHOLDS

MAX_SCORE = 100

POINTS_BLOOD_PRESSURE = 15
POINTS_HEART_RATE = 10
POINTS_FEVER = 10
POINTS_LOW_SPO2 = 20
POINTS_BLOOD_SUGAR = 15
POINTS_LOW_HDL = 10
POINTS_HIGH_LDL = 10
POINTS_OBESE = 15
POINTS_OVERWEIGHT = 8
POINTS_ECG_CRITICAL = 25
POINTS_ECG_ABNORMAL = 15

LOW_RISK_CEILING = 30
MEDIUM_RISK_CEILING = 60

# Milder excursions that only produce recommendations
RECOMMEND_SYSTOLIC_ABOVE = 130
RECOMMEND_LDL_FROM = 130


@dataclass(frozen=True)
class RiskContribution:
    """One condition that added points to the score."""
    factor: str
    points: int
    detail: str


def _gt(value, limit) -> bool:
    return value is not None and value > limit


def _lt(value, limit) -> bool:
    return value is not None and value < limit


# ── Scoring ───────────────────────────────────────────────────────────────────

def risk_contributions(visit: Visit, thresholds: ThresholdTable = WHO_THRESHOLDS) -> List[RiskContribution]:
    """Every scoring condition that fires for the visit, in table order."""
    found: List[RiskContribution] = []
    v = thresholds.vitals
    b = thresholds.blood

    vitals = visit.vitals
    if vitals is not None:
        if _gt(vitals.systolic_bp, v.systolic_bp.high[0]) or _gt(vitals.diastolic_bp, v.diastolic_bp.high[0]):
            found.append(RiskContribution(
                "blood_pressure", POINTS_BLOOD_PRESSURE,
                f"Blood pressure {vitals.systolic_bp}/{vitals.diastolic_bp} mmHg above normal range",
            ))
        if _lt(vitals.heart_rate, v.heart_rate.low) or _gt(vitals.heart_rate, v.heart_rate.high):
            found.append(RiskContribution(
                "heart_rate", POINTS_HEART_RATE,
                f"Heart rate {vitals.heart_rate} bpm outside normal range",
            ))
        if vitals.temperature is not None and vitals.temperature >= v.temperature.fever:
            found.append(RiskContribution(
                "temperature", POINTS_FEVER,
                f"Temperature {vitals.temperature} °C at or above fever threshold",
            ))
        if _lt(vitals.spo2, v.spo2.normal):
            found.append(RiskContribution(
                "spo2", POINTS_LOW_SPO2,
                f"Oxygen saturation {vitals.spo2}% below normal",
            ))

    blood = visit.blood_test
    if blood is not None:
        if _gt(blood.blood_sugar, b.blood_sugar.diabetic):
            found.append(RiskContribution(
                "blood_sugar", POINTS_BLOOD_SUGAR,
                f"Blood sugar {blood.blood_sugar} mg/dL in diabetic range",
            ))
        if _lt(blood.hdl, b.cholesterol.hdl.good):
            found.append(RiskContribution("hdl", POINTS_LOW_HDL, f"HDL {blood.hdl} mg/dL low"))
        if _gt(blood.ldl, b.cholesterol.ldl.high):
            found.append(RiskContribution("ldl", POINTS_HIGH_LDL, f"LDL {blood.ldl} mg/dL high"))

    bmi = visit.bmi
    if bmi is not None:
        if bmi.category == BMICategory.OBESE:
            found.append(RiskContribution("bmi", POINTS_OBESE, f"BMI {bmi.bmi} in obese range"))
        elif bmi.category == BMICategory.OVERWEIGHT:
            found.append(RiskContribution("bmi", POINTS_OVERWEIGHT, f"BMI {bmi.bmi} in overweight range"))

    ecg = visit.ecg
    if ecg is not None:
        if ecg.risk_level == ECGRiskLevel.CRITICAL:
            found.append(RiskContribution("ecg", POINTS_ECG_CRITICAL, "Critical ECG findings"))
        elif ecg.risk_level == ECGRiskLevel.ABNORMAL:
            found.append(RiskContribution("ecg", POINTS_ECG_ABNORMAL, "Abnormal ECG findings"))

    return found


def calculate_risk_score(visit: Visit, thresholds: ThresholdTable = WHO_THRESHOLDS) -> int:
    """Sum of contributions, clamped to [0, 100]."""
    total = sum(c.points for c in risk_contributions(visit, thresholds))
    return max(0, min(total, MAX_SCORE))


def risk_level_for_score(score: int) -> RiskLevel:
    if score < LOW_RISK_CEILING:
        return RiskLevel.LOW
    if score < MEDIUM_RISK_CEILING:
        return RiskLevel.MEDIUM
    return RiskLevel.HIGH


# ── Narrative ─────────────────────────────────────────────────────────────────

def _findings_clause(heading: str, readings) -> str:
    abnormal = [
        f"{PARAMETER_LABELS.get(name, name).lower()}: {r.message}"
        for name, r in readings.items()
        if r.is_abnormal
    ]
    if abnormal:
        return f"{heading} findings include " + "; ".join(abnormal) + "."
    return f"{heading} values are within normal ranges."


def generate_narrative(visit: Visit, score: int, level: RiskLevel) -> str:
    """Templated free-text summary: lead sentence, one clause per category, closing advice."""
    patient = visit.patient
    name = patient.full_name or "Unnamed patient"
    gender = patient.gender.value if patient.gender else "gender not recorded"

    parts = [
        f"Patient {name}, {patient.age} years old ({gender}), presents with an overall "
        f"health risk score of {score}/100 ({level.value} risk)."
    ]

    if visit.vitals is not None and visit.vitals.readings:
        parts.append(_findings_clause("Vital sign", visit.vitals.readings))

    if visit.blood_test is not None and visit.blood_test.readings:
        parts.append(_findings_clause("Blood test", visit.blood_test.readings))

    if visit.bmi is not None and visit.bmi.category is not None:
        if visit.bmi.category == BMICategory.NORMAL:
            parts.append(f"BMI of {visit.bmi.bmi} is within the healthy weight range.")
        else:
            parts.append(f"BMI of {visit.bmi.bmi} places the patient in the {visit.bmi.category.value} category.")

    if visit.ecg is not None and visit.ecg.risk_level is not None:
        if visit.ecg.risk_level == ECGRiskLevel.NORMAL:
            parts.append(f"ECG findings are within normal limits ({visit.ecg.interpretation}).")
        else:
            parts.append(
                f"ECG shows {visit.ecg.interpretation} with {visit.ecg.risk_level.value.lower()} rhythm risk."
            )

    if visit.ultrasound is not None and visit.ultrasound.observations:
        parts.append(f"Ultrasound notes: {visit.ultrasound.observations.strip()}")

    parts.append(
        "Continued monitoring and lifestyle modifications are advised as indicated by the "
        "diagnostic assessments, with a follow-up consultation to review these findings."
    )
    return " ".join(parts)


# ── Recommendations & alerts ─────────────────────────────────────────────────

def generate_recommendations(visit: Visit, thresholds: ThresholdTable = WHO_THRESHOLDS) -> List[str]:
    recs: List[str] = []
    vitals, blood, bmi, ecg = visit.vitals, visit.blood_test, visit.bmi, visit.ecg

    if vitals is not None and _gt(vitals.systolic_bp, RECOMMEND_SYSTOLIC_ABOVE):
        recs.append("Monitor blood pressure regularly")
    if bmi is not None and bmi.category in (BMICategory.OVERWEIGHT, BMICategory.OBESE):
        recs.append("Implement weight management program")
    if blood is not None and _gt(blood.blood_sugar, thresholds.blood.blood_sugar.normal[1]):
        recs.append("Follow up on glucose levels")
    if vitals is not None and _lt(vitals.spo2, thresholds.vitals.spo2.normal):
        recs.append("Evaluate respiratory function and oxygen saturation")
    if blood is not None and (
        _lt(blood.hdl, thresholds.blood.cholesterol.hdl.good)
        or (blood.ldl is not None and blood.ldl >= RECOMMEND_LDL_FROM)
    ):
        recs.append("Review lipid profile and dietary fat intake")
    if ecg is not None and ecg.risk_level in (ECGRiskLevel.ABNORMAL, ECGRiskLevel.CRITICAL):
        recs.append("Schedule cardiology follow-up for ECG findings")

    return recs


def generate_critical_alerts(visit: Visit, thresholds: ThresholdTable = WHO_THRESHOLDS) -> List[str]:
    alerts: List[str] = []
    if visit.vitals is not None and _gt(visit.vitals.systolic_bp, thresholds.vitals.systolic_bp.high[1]):
        alerts.append("Hypertensive crisis - immediate attention required")
    if visit.ecg is not None and visit.ecg.risk_level == ECGRiskLevel.CRITICAL:
        alerts.append("Critical ECG findings detected")
    return alerts


def aggregate(visit: Visit, thresholds: ThresholdTable = WHO_THRESHOLDS) -> HealthSummary:
    """Build the HealthSummary for a visit from whatever records it holds."""
    score = calculate_risk_score(visit, thresholds)
    level = risk_level_for_score(score)
    return HealthSummary(
        overall_risk_score=score,
        risk_level=level,
        summary=generate_narrative(visit, score, level),
        recommendations=generate_recommendations(visit, thresholds),
        critical_alerts=generate_critical_alerts(visit, thresholds),
    )
