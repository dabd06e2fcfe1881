"""
Request / response schemas for the HTTP API.

Update bodies mirror the raw-input fields of each record. Every field is
optional; only the fields a client sends are merged into the record.
"""
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field

from diagnostic_engine.core.clinical.base import Gender


class SectionUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    def changes(self) -> Dict[str, Any]:
        return self.model_dump(exclude_unset=True)


class PatientUpdate(SectionUpdate):
    full_name: Optional[str] = None
    age: Optional[int] = Field(default=None, ge=0, le=150)
    gender: Optional[Gender] = None
    patient_id: Optional[str] = None
    contact_info: Optional[str] = None
    address: Optional[str] = None
    geo_code: Optional[str] = None
    family_history: Optional[List[str]] = None
    symptoms: Optional[List[str]] = None
    consent_given: Optional[bool] = None


class VitalsUpdate(SectionUpdate):
    systolic_bp: Optional[float] = None
    diastolic_bp: Optional[float] = None
    heart_rate: Optional[float] = None
    temperature: Optional[float] = None
    spo2: Optional[float] = None


class BloodTestUpdate(SectionUpdate):
    hemoglobin: Optional[float] = None
    blood_sugar: Optional[float] = None
    hdl: Optional[float] = None
    ldl: Optional[float] = None
    total_cholesterol: Optional[float] = None
    triglycerides: Optional[float] = None


class BMIUpdate(SectionUpdate):
    height: Optional[float] = Field(default=None, description="Height in cm")
    weight: Optional[float] = Field(default=None, description="Weight in kg")


class ECGUpdate(SectionUpdate):
    heart_rate: Optional[float] = None
    qrs_duration: Optional[float] = Field(default=None, description="QRS duration in ms")
    qt_interval: Optional[float] = Field(default=None, description="QT interval in ms")


class UltrasoundUpdate(SectionUpdate):
    image_url: Optional[str] = None
    observations: Optional[str] = None


class HealthResponse(BaseModel):
    status: str
    version: str
    timestamp: str
    uptime_seconds: float


class StageInfo(BaseModel):
    number: int
    title: str


class WaveformResponse(BaseModel):
    heart_rate: float
    risk_level: str
    sampling_rate: int
    duration_s: float
    seed: Optional[int] = None
    time_ms: List[float]
    samples: List[float]
