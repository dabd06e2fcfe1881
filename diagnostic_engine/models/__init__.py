"""
Visit, patient, measurement-record and operator models.
"""
from .visit import (
    BloodTest,
    BMIData,
    ECGData,
    HealthSummary,
    Operator,
    OperatorRole,
    Patient,
    UltrasoundData,
    Visit,
    VisitStatus,
    Vitals,
    generate_patient_id,
)

__all__ = [
    "BloodTest",
    "BMIData",
    "ECGData",
    "HealthSummary",
    "Operator",
    "OperatorRole",
    "Patient",
    "UltrasoundData",
    "Visit",
    "VisitStatus",
    "Vitals",
    "generate_patient_id",
]
