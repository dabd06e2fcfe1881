"""
Parameter Classifier

Pure functions mapping raw measurements onto a ``Reading`` (value,
status, message) using a ``ThresholdTable``.

Rule ordering inside every classifier is most severe first, so a value
sitting exactly on a boundary resolves to the more urgent category:

    Blood pressure   crisis ≥180/110 → stage 2 ≥140/90 → stage 1 ≥130/80 → normal → low
    Heart rate       <50 / >120 critical → <60 / >100 warning → normal
    Temperature      ≥39 critical → ≥38 warning → normal range → elevated / low
    SpO2             <90 critical → <95 warning → normal
    Hemoglobin       < low critical → < normal low warning → normal → high
    Blood sugar      ≥126 critical → ≥100 warning → 70–100 normal → low
    Lipids           high critical → borderline warning → optimal normal

Missing inputs never raise: the classifier returns ``None`` (or leaves the
key out of the grouped dicts) until every required value is present.
"""
from __future__ import annotations

from typing import Dict, List, Optional, Union

from .base import BMICategory, Gender, Reading, Status
from .thresholds import ThresholdTable, WHO_THRESHOLDS

Number = Union[int, float]


# ── Vitals ────────────────────────────────────────────────────────────────────

def classify_blood_pressure(
    systolic: Optional[Number],
    diastolic: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    """
    Classify a systolic/diastolic pair. Either component alone is not
    enough to classify the pair.
    """
    if systolic is None or diastolic is None:
        return None

    sbp = thresholds.vitals.systolic_bp
    dbp = thresholds.vitals.diastolic_bp

    if systolic >= sbp.high[1] or diastolic >= dbp.high[1]:
        return Reading(systolic, Status.CRITICAL, "Hypertensive Crisis - Immediate attention required")
    if systolic >= sbp.high[0] or diastolic >= dbp.high[0]:
        return Reading(systolic, Status.WARNING, "High Blood Pressure (Stage 2)")
    if systolic >= sbp.stage1 or diastolic >= dbp.stage1:
        return Reading(systolic, Status.WARNING, "High Blood Pressure (Stage 1)")
    if systolic >= sbp.normal[0] and diastolic >= dbp.normal[0]:
        return Reading(systolic, Status.NORMAL, "Normal Blood Pressure")
    return Reading(systolic, Status.WARNING, "Low Blood Pressure")


def classify_heart_rate(
    heart_rate: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    if heart_rate is None:
        return None

    hr = thresholds.vitals.heart_rate
    if heart_rate < hr.severe_low:
        return Reading(heart_rate, Status.CRITICAL, "Severe Bradycardia")
    if heart_rate > hr.severe_high:
        return Reading(heart_rate, Status.CRITICAL, "Severe Tachycardia")
    if heart_rate < hr.low:
        return Reading(heart_rate, Status.WARNING, "Bradycardia")
    if heart_rate > hr.high:
        return Reading(heart_rate, Status.WARNING, "Tachycardia")
    return Reading(heart_rate, Status.NORMAL, "Normal Heart Rate")


def classify_temperature(
    temperature: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    """
    Body temperature in °C. Values between the top of the normal range
    and the fever cutoff are reported as elevated rather than low.
    """
    if temperature is None:
        return None

    t = thresholds.vitals.temperature
    if temperature >= t.high_fever:
        return Reading(temperature, Status.CRITICAL, "High Fever")
    if temperature >= t.fever:
        return Reading(temperature, Status.WARNING, "Fever")
    if t.normal[0] <= temperature <= t.normal[1]:
        return Reading(temperature, Status.NORMAL, "Normal Temperature")
    if temperature > t.normal[1]:
        return Reading(temperature, Status.WARNING, "Elevated Temperature")
    return Reading(temperature, Status.WARNING, "Low Temperature")


def classify_spo2(
    spo2: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    if spo2 is None:
        return None

    s = thresholds.vitals.spo2
    if spo2 < s.low:
        return Reading(spo2, Status.CRITICAL, "Severe Hypoxemia")
    if spo2 < s.normal:
        return Reading(spo2, Status.WARNING, "Mild Hypoxemia")
    return Reading(spo2, Status.NORMAL, "Normal Oxygen Saturation")


def classify_vitals(
    systolic_bp: Optional[Number] = None,
    diastolic_bp: Optional[Number] = None,
    heart_rate: Optional[Number] = None,
    temperature: Optional[Number] = None,
    spo2: Optional[Number] = None,
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Dict[str, Reading]:
    """Classify every vital whose inputs are present."""
    readings = {
        "blood_pressure": classify_blood_pressure(systolic_bp, diastolic_bp, thresholds),
        "heart_rate": classify_heart_rate(heart_rate, thresholds),
        "temperature": classify_temperature(temperature, thresholds),
        "spo2": classify_spo2(spo2, thresholds),
    }
    return {name: r for name, r in readings.items() if r is not None}


# ── Blood panel ───────────────────────────────────────────────────────────────

def _hemoglobin_range(gender: Optional[Union[Gender, str]], thresholds: ThresholdTable):
    # No recorded gender falls back to the male range; Female and Other use the female range
    if gender is None or gender == "":
        return thresholds.blood.hemoglobin.male
    value = gender.value if isinstance(gender, Gender) else str(gender)
    if value == Gender.MALE.value:
        return thresholds.blood.hemoglobin.male
    return thresholds.blood.hemoglobin.female


def classify_hemoglobin(
    hemoglobin: Optional[Number],
    gender: Optional[Union[Gender, str]] = None,
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    """Hemoglobin in g/dL against the gender-specific sub-table."""
    if hemoglobin is None:
        return None

    rng = _hemoglobin_range(gender, thresholds)
    if hemoglobin < rng.low:
        return Reading(hemoglobin, Status.CRITICAL, "Anemia detected")
    if hemoglobin < rng.normal[0]:
        return Reading(hemoglobin, Status.WARNING, "Low hemoglobin")
    if hemoglobin <= rng.normal[1]:
        return Reading(hemoglobin, Status.NORMAL, "Normal hemoglobin")
    return Reading(hemoglobin, Status.WARNING, "High hemoglobin")


def classify_blood_sugar(
    blood_sugar: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    """Fasting blood sugar in mg/dL."""
    if blood_sugar is None:
        return None

    bs = thresholds.blood.blood_sugar
    if blood_sugar >= bs.diabetic:
        return Reading(blood_sugar, Status.CRITICAL, "Diabetic range")
    if blood_sugar >= bs.prediabetic[0]:
        return Reading(blood_sugar, Status.WARNING, "Prediabetic range")
    if bs.normal[0] <= blood_sugar <= bs.normal[1]:
        return Reading(blood_sugar, Status.NORMAL, "Normal blood sugar")
    return Reading(blood_sugar, Status.WARNING, "Low blood sugar")


def classify_hdl(
    hdl: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    if hdl is None:
        return None

    h = thresholds.blood.cholesterol.hdl
    if hdl < h.good:
        return Reading(hdl, Status.CRITICAL, "Low HDL cholesterol")
    if hdl < h.borderline:
        return Reading(hdl, Status.WARNING, "Borderline HDL")
    return Reading(hdl, Status.NORMAL, "Good HDL cholesterol")


def _classify_lipid(value, limits, messages) -> Reading:
    critical, warning, normal = messages
    if value >= limits.high:
        return Reading(value, Status.CRITICAL, critical)
    if value >= limits.borderline[0]:
        return Reading(value, Status.WARNING, warning)
    return Reading(value, Status.NORMAL, normal)


def classify_ldl(
    ldl: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    if ldl is None:
        return None
    return _classify_lipid(
        ldl,
        thresholds.blood.cholesterol.ldl,
        ("High LDL cholesterol", "Borderline high LDL", "Optimal LDL cholesterol"),
    )


def classify_total_cholesterol(
    total: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    if total is None:
        return None
    return _classify_lipid(
        total,
        thresholds.blood.cholesterol.total,
        ("High total cholesterol", "Borderline high cholesterol", "Desirable cholesterol"),
    )


def classify_triglycerides(
    triglycerides: Optional[Number],
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Optional[Reading]:
    if triglycerides is None:
        return None
    return _classify_lipid(
        triglycerides,
        thresholds.blood.triglycerides,
        ("High triglycerides", "Borderline high triglycerides", "Normal triglycerides"),
    )


def classify_blood_panel(
    hemoglobin: Optional[Number] = None,
    blood_sugar: Optional[Number] = None,
    hdl: Optional[Number] = None,
    ldl: Optional[Number] = None,
    total_cholesterol: Optional[Number] = None,
    triglycerides: Optional[Number] = None,
    gender: Optional[Union[Gender, str]] = None,
    thresholds: ThresholdTable = WHO_THRESHOLDS,
) -> Dict[str, Reading]:
    """Classify every blood parameter whose input is present."""
    readings = {
        "hemoglobin": classify_hemoglobin(hemoglobin, gender, thresholds),
        "blood_sugar": classify_blood_sugar(blood_sugar, thresholds),
        "hdl": classify_hdl(hdl, thresholds),
        "ldl": classify_ldl(ldl, thresholds),
        "total_cholesterol": classify_total_cholesterol(total_cholesterol, thresholds),
        "triglycerides": classify_triglycerides(triglycerides, thresholds),
    }
    return {name: r for name, r in readings.items() if r is not None}


# ── BMI ───────────────────────────────────────────────────────────────────────

def calculate_bmi(height_cm: Optional[Number], weight_kg: Optional[Number]) -> Optional[float]:
    """
    Body-mass index rounded to one decimal place.

    A zero height or weight counts as "not entered yet", matching how the
    registration forms treat empty fields.
    """
    if not height_cm or not weight_kg:
        return None
    height_m = height_cm / 100
    return round(weight_kg / (height_m * height_m), 1)


def bmi_category(bmi: Number, thresholds: ThresholdTable = WHO_THRESHOLDS) -> BMICategory:
    """Half-open bands [low, high); the obese band is unbounded above."""
    b = thresholds.bmi
    if bmi < b.underweight:
        return BMICategory.UNDERWEIGHT
    if b.normal[0] <= bmi < b.normal[1]:
        return BMICategory.NORMAL
    if b.overweight[0] <= bmi < b.overweight[1]:
        return BMICategory.OVERWEIGHT
    return BMICategory.OBESE


_BMI_STATUS = {
    BMICategory.UNDERWEIGHT: (Status.WARNING, "Below normal weight range"),
    BMICategory.NORMAL: (Status.NORMAL, "Healthy weight range"),
    BMICategory.OVERWEIGHT: (Status.WARNING, "Above normal weight range"),
    BMICategory.OBESE: (Status.CRITICAL, "Significantly above normal range"),
}


def classify_bmi(bmi: Optional[Number], thresholds: ThresholdTable = WHO_THRESHOLDS) -> Optional[Reading]:
    if bmi is None:
        return None
    status, message = _BMI_STATUS[bmi_category(bmi, thresholds)]
    return Reading(bmi, status, message)


_BMI_HEALTH_RISKS: Dict[BMICategory, List[str]] = {
    BMICategory.UNDERWEIGHT: [
        "Increased risk of osteoporosis",
        "Weakened immune system",
        "Fertility issues",
        "Delayed wound healing",
    ],
    BMICategory.NORMAL: [
        "Lowest risk of weight-related diseases",
        "Optimal health benefits",
        "Better life expectancy",
    ],
    BMICategory.OVERWEIGHT: [
        "Increased risk of heart disease",
        "Higher blood pressure risk",
        "Type 2 diabetes risk",
        "Sleep apnea risk",
    ],
    BMICategory.OBESE: [
        "High risk of cardiovascular disease",
        "Increased diabetes risk",
        "Joint problems and arthritis",
        "Increased cancer risk",
        "Respiratory problems",
    ],
}

_BMI_GUIDANCE: Dict[BMICategory, List[str]] = {
    BMICategory.UNDERWEIGHT: [
        "Increase caloric intake with nutrient-dense foods",
        "Add strength training exercises",
        "Consult with a nutritionist",
        "Rule out underlying medical conditions",
    ],
    BMICategory.NORMAL: [
        "Maintain current healthy lifestyle",
        "Continue regular physical activity",
        "Follow balanced nutrition",
        "Regular health check-ups",
    ],
    BMICategory.OVERWEIGHT: [
        "Reduce caloric intake by 500-750 calories/day",
        "Increase physical activity to 150+ minutes/week",
        "Focus on whole foods and vegetables",
        "Monitor portion sizes",
    ],
    BMICategory.OBESE: [
        "Consult healthcare provider for weight management plan",
        "Consider structured weight loss program",
        "Gradual lifestyle changes",
        "Regular monitoring and support",
    ],
}


def bmi_health_risks(category: Optional[BMICategory]) -> List[str]:
    """Weight-related health risks associated with a BMI category."""
    if category is None:
        return []
    return list(_BMI_HEALTH_RISKS[BMICategory(category)])


def bmi_guidance(category: Optional[BMICategory]) -> List[str]:
    """Lifestyle guidance shown alongside the BMI assessment."""
    if category is None:
        return []
    return list(_BMI_GUIDANCE[BMICategory(category)])
