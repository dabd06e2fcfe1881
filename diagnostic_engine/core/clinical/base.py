"""
Clinical Decision Layer - Base Types

Defines the data contracts produced by the classifier, the ECG
interpreter and the risk aggregator. These are consumed by the visit
records, the HTTP layer and the report exporters.
"""
from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict


class Status(str, Enum):
    """
    Severity of a single classified measurement.

    NORMAL   – inside the reference range
    WARNING  – outside the range, follow-up advised
    CRITICAL – severe excursion, prompt attention
    """
    NORMAL   = "normal"
    WARNING  = "warning"
    CRITICAL = "critical"


class Gender(str, Enum):
    MALE   = "Male"
    FEMALE = "Female"
    OTHER  = "Other"


class BMICategory(str, Enum):
    UNDERWEIGHT = "Underweight"
    NORMAL      = "Normal"
    OVERWEIGHT  = "Overweight"
    OBESE       = "Obese"


class ECGRiskLevel(str, Enum):
    """Cardiac rhythm risk tier derived from HR / QRS / QTc."""
    NORMAL   = "Normal"
    ABNORMAL = "Abnormal"
    CRITICAL = "Critical"


class RiskLevel(str, Enum):
    """Overall visit risk tier derived from the 0-100 score."""
    LOW    = "Low"
    MEDIUM = "Medium"
    HIGH   = "High"


# Display names for reading keys
PARAMETER_LABELS: Dict[str, str] = {
    "blood_pressure": "Blood Pressure",
    "heart_rate": "Heart Rate",
    "temperature": "Temperature",
    "spo2": "Oxygen Saturation",
    "hemoglobin": "Hemoglobin",
    "blood_sugar": "Blood Sugar",
    "hdl": "HDL Cholesterol",
    "ldl": "LDL Cholesterol",
    "total_cholesterol": "Total Cholesterol",
    "triglycerides": "Triglycerides",
    "bmi": "BMI",
}


@dataclass(frozen=True)
class Reading:
    """
    One classified measurement.

    ``value`` is the raw number the status was derived from (systolic
    pressure for the blood-pressure pair, the computed index for BMI).
    """
    value: float
    status: Status
    message: str

    @property
    def is_abnormal(self) -> bool:
        return self.status != Status.NORMAL

    def to_dict(self) -> Dict[str, Any]:
        return {
            "value": self.value,
            "status": self.status.value,
            "message": self.message,
        }
