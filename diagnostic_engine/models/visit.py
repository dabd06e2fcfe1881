"""
Visit data model.

The Visit is the aggregate root: it owns its Patient and every
measurement record. Raw inputs on each record are optional so that
partially entered stages can be represented; derived fields are filled in
by ``core.clinical.engine.recompute`` and are never set by callers.

All models ignore unknown fields on load so older or newer stored visits
still parse.
"""
from __future__ import annotations

import time
import uuid
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from diagnostic_engine.core.clinical.base import (
    BMICategory,
    ECGRiskLevel,
    Gender,
    Reading,
    RiskLevel,
)
from diagnostic_engine.utils.datetime_utils import utc_now


class VisitStatus(str, Enum):
    IN_PROGRESS = "In Progress"
    COMPLETED = "Completed"
    DRAFT = "Draft"


class OperatorRole(str, Enum):
    DOCTOR = "Doctor"
    ADMIN = "Admin"
    PATIENT = "Patient"


class _Record(BaseModel):
    model_config = ConfigDict(extra="ignore")


def generate_patient_id() -> str:
    """``PAT-`` plus the last six digits of the millisecond clock."""
    return f"PAT-{str(int(time.time() * 1000))[-6:]}"


class Operator(_Record):
    """Authenticated operator principal supplied by the identity collaborator."""
    id: str
    name: str = ""
    role: OperatorRole = OperatorRole.DOCTOR
    department: Optional[str] = None
    license_number: Optional[str] = None


class Patient(_Record):
    id: str = ""
    full_name: str = ""
    age: int = Field(default=0, ge=0, le=150)
    gender: Optional[Gender] = None
    patient_id: str = ""
    contact_info: str = ""
    address: str = ""
    geo_code: str = ""
    family_history: List[str] = Field(default_factory=list)
    symptoms: List[str] = Field(default_factory=list)
    consent_given: bool = False
    created_at: datetime = Field(default_factory=utc_now)

    def is_complete(self) -> bool:
        """Whether every field the registration stage asks for has been filled in."""
        return bool(
            self.full_name
            and self.age
            and self.gender
            and self.patient_id
            and self.contact_info
            and self.consent_given
        )


class Vitals(_Record):
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    heart_rate: Optional[float] = None
    temperature: Optional[float] = None
    spo2: Optional[float] = None
    readings: Dict[str, Reading] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class BloodTest(_Record):
    hemoglobin: Optional[float] = None
    blood_sugar: Optional[float] = None
    hdl: Optional[float] = None
    ldl: Optional[float] = None
    total_cholesterol: Optional[float] = None
    triglycerides: Optional[float] = None
    readings: Dict[str, Reading] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=utc_now)


class BMIData(_Record):
    height: Optional[float] = None   # cm
    weight: Optional[float] = None   # kg
    bmi: Optional[float] = None
    category: Optional[BMICategory] = None
    reading: Optional[Reading] = None
    timestamp: datetime = Field(default_factory=utc_now)


class ECGData(_Record):
    heart_rate: Optional[float] = None
    qrs_duration: Optional[float] = None   # ms
    qt_interval: Optional[float] = None    # ms
    qtc: Optional[float] = None
    interpretation: Optional[str] = None
    risk_level: Optional[ECGRiskLevel] = None
    timestamp: datetime = Field(default_factory=utc_now)


class UltrasoundData(_Record):
    image_url: str = ""
    observations: str = ""
    timestamp: datetime = Field(default_factory=utc_now)


class HealthSummary(_Record):
    overall_risk_score: int = Field(default=0, ge=0, le=100)
    risk_level: RiskLevel = RiskLevel.LOW
    summary: str = ""
    recommendations: List[str] = Field(default_factory=list)
    critical_alerts: List[str] = Field(default_factory=list)
    timestamp: datetime = Field(default_factory=utc_now)


class Visit(_Record):
    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    patient_id: str = ""
    doctor_id: str = ""
    patient: Patient = Field(default_factory=Patient)
    vitals: Optional[Vitals] = None
    blood_test: Optional[BloodTest] = None
    bmi: Optional[BMIData] = None
    ecg: Optional[ECGData] = None
    ultrasound: Optional[UltrasoundData] = None
    health_summary: Optional[HealthSummary] = None
    status: VisitStatus = VisitStatus.IN_PROGRESS
    current_stage: int = Field(default=1, ge=1, le=7)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)

    def snapshot(self) -> "Visit":
        """Independent deep copy; stored and current visits never share records."""
        return self.model_copy(deep=True)

    def same_content(self, other: "Visit") -> bool:
        """Field-for-field equality ignoring the update timestamp."""
        exclude = {"updated_at"}
        return self.model_dump(exclude=exclude) == other.model_dump(exclude=exclude)
