"""
Pytest Configuration and Fixtures

Shared fixtures for diagnostic engine tests.
"""
import pytest
import numpy as np

from diagnostic_engine.config import Settings
from diagnostic_engine.core.clinical.engine import DiagnosticEngine
from diagnostic_engine.core.workflow import VisitSession
from diagnostic_engine.models import Operator, OperatorRole, Patient, Visit
from diagnostic_engine.storage import InMemoryVisitStore


@pytest.fixture
def test_settings(tmp_path) -> Settings:
    """Settings with auto-save off and all output under a temp directory."""
    return Settings(
        storage_path=str(tmp_path / "visits.json"),
        autosave_enabled=False,
        report_output_dir=str(tmp_path / "reports"),
    )


@pytest.fixture
def operator() -> Operator:
    return Operator(id="doc-001", name="Dr. Asha Rao", role=OperatorRole.DOCTOR, department="General Medicine")


@pytest.fixture
def store() -> InMemoryVisitStore:
    return InMemoryVisitStore()


@pytest.fixture
def engine() -> DiagnosticEngine:
    return DiagnosticEngine()


@pytest.fixture
def session(operator, store, test_settings) -> VisitSession:
    s = VisitSession(operator, store=store, settings=test_settings)
    yield s
    s.close()


@pytest.fixture
def patient() -> Patient:
    return Patient(
        full_name="Jane Doe",
        age=54,
        gender="Female",
        patient_id="PAT-123456",
        contact_info="+91 98765 43210",
        address="12 Lake Road",
        consent_given=True,
    )


@pytest.fixture
def blank_visit(patient) -> Visit:
    return Visit(doctor_id="doc-001", patient=patient, patient_id=patient.patient_id)


@pytest.fixture
def seeded_rng() -> np.random.Generator:
    return np.random.default_rng(1234)
