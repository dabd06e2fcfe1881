"""
Unit Tests for the seven-stage VisitSession
"""
import re
import threading
import time

import pytest
from pydantic import ValidationError

from diagnostic_engine.config import Settings
from diagnostic_engine.core.clinical import ECGRiskLevel, RiskLevel, Status
from diagnostic_engine.core.workflow import STAGE_TITLES, Stage, VisitSession
from diagnostic_engine.models import Operator, VisitStatus
from diagnostic_engine.storage import InMemoryVisitStore


class SlowInMemoryVisitStore(InMemoryVisitStore):
    """Widens the window between reading and writing the visit list."""

    def load_all(self):
        visits = super().load_all()
        time.sleep(0.05)
        return visits


def _fill_high_risk(session):
    session.update_patient(full_name="Jane Doe", age=54, gender="Female", patient_id="PAT-123456")
    session.update_vitals(systolic_bp=185, diastolic_bp=95, heart_rate=72, temperature=36.8, spo2=97)
    session.update_ecg(heart_rate=45, qrs_duration=90, qt_interval=400)


class TestStages:

    def test_titles(self):
        assert [s.title for s in Stage] == [
            "Patient Registration",
            "Vital Signs",
            "Blood Tests",
            "BMI Assessment",
            "ECG Analysis",
            "Ultrasound",
            "Health Summary",
        ]
        assert len(STAGE_TITLES) == 7


class TestNoCurrentVisit:

    def test_everything_is_a_no_op(self, session):
        assert session.current_visit is None
        assert session.current_stage is None
        assert session.advance() is None
        assert session.retreat() is None
        assert session.go_to(3) is None
        assert session.save() is None
        assert session.update_vitals(systolic_bp=120) is None
        assert session.update_patient(full_name="X") is None
        assert session.ecg_waveform() is None
        session.clear_summary()
        assert session.all_visits() == []


class TestNavigation:

    def test_new_visit_starts_at_registration(self, session, operator):
        visit = session.create_new_visit()
        assert visit.current_stage == 1
        assert visit.doctor_id == operator.id
        assert visit.status == VisitStatus.IN_PROGRESS
        assert session.all_visits() == []

    def test_advance_saves(self, session):
        session.create_new_visit()
        assert session.advance() == Stage.VITALS
        stored = session.all_visits()
        assert len(stored) == 1
        assert stored[0].current_stage == 2

    def test_retreat_does_not_save(self, session):
        session.create_new_visit()
        session.advance()
        session.advance()
        assert session.retreat() == Stage.VITALS
        assert session.all_visits()[0].current_stage == 3
        assert session.current_stage == Stage.VITALS

    def test_retreat_at_first_stage(self, session):
        session.create_new_visit()
        assert session.retreat() == Stage.REGISTRATION
        assert session.current_stage == Stage.REGISTRATION

    def test_advance_at_last_stage(self, session):
        session.create_new_visit()
        session.go_to(7)
        before = session.current_visit
        assert session.advance() == Stage.SUMMARY
        after = session.current_visit
        assert after.current_stage == 7
        assert after.same_content(before)

    @pytest.mark.parametrize("target", [0, 8, -1])
    def test_go_to_out_of_range(self, session, target):
        session.create_new_visit()
        session.go_to(4)
        assert session.go_to(target) == Stage.BMI

    @pytest.mark.parametrize("target", [3.5, "x", None, "3"])
    def test_go_to_non_integer_ignored(self, session, target):
        session.create_new_visit()
        session.go_to(4)
        assert session.go_to(target) == Stage.BMI
        assert session.current_stage == Stage.BMI

    def test_go_to_integral_float(self, session):
        session.create_new_visit()
        assert session.go_to(3.0) == Stage.BLOOD_TESTS

    def test_stage_always_in_bounds(self, session):
        session.create_new_visit()
        for _ in range(10):
            session.advance()
        assert session.current_stage == Stage.SUMMARY
        for _ in range(10):
            session.retreat()
        assert session.current_stage == Stage.REGISTRATION


class TestPersistence:

    def test_save_then_load_round_trip(self, session, store, operator, test_settings):
        session.create_new_visit()
        _fill_high_risk(session)
        saved = session.save()

        other = VisitSession(operator, store=store, settings=test_settings)
        loaded = other.load_visit(saved.id)
        assert loaded.same_content(saved)
        assert loaded == saved

    def test_save_refreshes_updated_at(self, session):
        first = session.create_new_visit()
        saved = session.save()
        assert saved.updated_at >= first.updated_at
        assert saved.same_content(first)

    def test_save_upserts(self, session):
        session.create_new_visit()
        session.save()
        session.update_vitals(heart_rate=80)
        session.save()
        stored = session.all_visits()
        assert len(stored) == 1
        assert stored[0].vitals.heart_rate == 80

    def test_unknown_id_load_keeps_current(self, session):
        current = session.create_new_visit()
        result = session.load_visit("does-not-exist")
        assert result.id == current.id
        assert session.current_visit.id == current.id

    def test_current_visit_is_a_copy(self, session):
        session.create_new_visit()
        session.update_vitals(systolic_bp=120)
        snapshot = session.current_visit
        snapshot.vitals.systolic_bp = 999
        assert session.current_visit.vitals.systolic_bp == 120

    def test_create_discards_unsaved(self, session):
        first = session.create_new_visit()
        second = session.create_new_visit()
        assert first.id != second.id
        assert session.all_visits() == []

    def test_close_drops_visit(self, session):
        session.create_new_visit()
        session.close()
        assert session.current_visit is None


class TestEdits:

    def test_vitals_classified_on_edit(self, session):
        session.create_new_visit()
        vitals = session.update_vitals(systolic_bp=185, diastolic_bp=95)
        assert vitals.readings["blood_pressure"].status == Status.CRITICAL
        vitals = session.update_vitals(systolic_bp=118, diastolic_bp=76)
        assert vitals.readings["blood_pressure"].status == Status.NORMAL

    def test_partial_edits_merge(self, session):
        session.create_new_visit()
        session.update_vitals(systolic_bp=120, diastolic_bp=80)
        session.update_vitals(spo2=97)
        vitals = session.current_visit.vitals
        assert (vitals.systolic_bp, vitals.diastolic_bp, vitals.spo2) == (120, 80, 97)

    def test_bmi_derived(self, session):
        session.create_new_visit()
        bmi = session.update_bmi(height=170, weight=70)
        assert bmi.bmi == 24.2
        bmi = session.update_bmi(weight=None)
        assert bmi.bmi is None

    def test_patient_id_synced(self, session):
        session.create_new_visit()
        session.update_patient(patient_id="PAT-000042")
        assert session.current_visit.patient_id == "PAT-000042"

    def test_incomplete_registration_does_not_block(self, session, patient):
        session.create_new_visit()
        assert not session.current_visit.patient.is_complete()
        assert session.advance() == Stage.VITALS
        assert patient.is_complete()

    def test_assign_patient_id(self, session):
        session.create_new_visit()
        patient = session.assign_patient_id()
        assert re.fullmatch(r"PAT-\d{6}", patient.patient_id)
        assert session.current_visit.patient_id == patient.patient_id

    def test_patient_gender_reclassifies_hemoglobin(self, session):
        session.create_new_visit()
        session.update_blood_test(hemoglobin=13.0)
        assert session.current_visit.blood_test.readings["hemoglobin"].message == "Anemia detected"
        session.update_patient(gender="Female")
        assert session.current_visit.blood_test.readings["hemoglobin"].status == Status.NORMAL

    def test_invalid_age_rejected(self, session):
        session.create_new_visit()
        with pytest.raises(ValidationError):
            session.update_patient(age=151)
        assert session.current_visit.patient.age == 0

    def test_health_summary_score_clamped(self, session):
        session.create_new_visit()
        summary = session.update_health_summary(overall_risk_score=140)
        assert summary.overall_risk_score == 100


class TestSummary:

    def test_generated_on_reaching_summary_stage(self, session):
        session.create_new_visit()
        _fill_high_risk(session)
        session.go_to(6)
        session.advance()
        visit = session.current_visit
        assert visit.status == VisitStatus.COMPLETED
        summary = visit.health_summary
        assert summary.overall_risk_score == 40
        assert summary.risk_level == RiskLevel.MEDIUM
        assert "Critical ECG findings detected" in summary.critical_alerts
        assert session.all_visits()[0].health_summary == summary

    def test_summary_frozen_after_generation(self, session):
        session.create_new_visit()
        _fill_high_risk(session)
        session.go_to(7)
        first = session.current_visit.health_summary
        session.update_vitals(systolic_bp=118, diastolic_bp=76)
        session.retreat()
        session.advance()
        assert session.current_visit.health_summary == first

    def test_clear_summary_regenerates(self, session):
        session.create_new_visit()
        _fill_high_risk(session)
        session.go_to(7)
        session.update_vitals(systolic_bp=118, diastolic_bp=76)
        session.clear_summary()
        visit = session.current_visit
        assert visit.health_summary is None
        assert visit.status == VisitStatus.IN_PROGRESS
        session.go_to(7)
        assert session.current_visit.health_summary.overall_risk_score == 25

    def test_recompute_on_edit_setting(self, operator, store, tmp_path):
        settings = Settings(
            storage_path=str(tmp_path / "visits.json"),
            autosave_enabled=False,
            recompute_summary_on_edit=True,
        )
        session = VisitSession(operator, store=store, settings=settings)
        session.create_new_visit()
        _fill_high_risk(session)
        session.go_to(7)
        assert session.current_visit.health_summary is not None
        session.update_vitals(systolic_bp=118)
        assert session.current_visit.health_summary is None
        assert session.current_visit.status == VisitStatus.IN_PROGRESS
        session.close()


class TestWaveform:

    def test_requires_heart_rate(self, session):
        session.create_new_visit()
        assert session.ecg_waveform() is None
        session.update_ecg(qrs_duration=90)
        assert session.ecg_waveform() is None

    def test_uses_ecg_record(self, session):
        session.create_new_visit()
        session.update_ecg(heart_rate=45, qrs_duration=90, qt_interval=400)
        waveform = session.ecg_waveform(seed=5, duration_s=2.0)
        assert waveform.heart_rate == 45
        assert waveform.risk_level == ECGRiskLevel.CRITICAL
        assert len(waveform) == 500


class TestAutoSaveWiring:

    def test_disabled_by_settings(self, session):
        session.create_new_visit()
        assert session.autosave_running is False

    def test_started_and_stopped(self, operator, store, tmp_path):
        settings = Settings(storage_path=str(tmp_path / "visits.json"), autosave_interval_seconds=30)
        session = VisitSession(operator, store=store, settings=settings)
        session.create_new_visit()
        assert session.autosave_running is True
        session.close()
        assert session.autosave_running is False

    def test_tick_writes_store_without_explicit_save(self, operator, store, tmp_path):
        settings = Settings(storage_path=str(tmp_path / "visits.json"), autosave_interval_seconds=0.05)
        session = VisitSession(operator, store=store, settings=settings)
        visit = session.create_new_visit()
        try:
            deadline = time.monotonic() + 2.0
            while not store.load_all() and time.monotonic() < deadline:
                time.sleep(0.01)
            stored = store.load_all()
            assert [v.id for v in stored] == [visit.id]
            assert stored[0].doctor_id == operator.id
        finally:
            session.close()


class TestSharedStore:

    def test_concurrent_saves_from_two_sessions_keep_both(self, test_settings):
        slow = SlowInMemoryVisitStore()
        first = VisitSession(Operator(id="doc-001", name="A"), store=slow, settings=test_settings)
        second = VisitSession(Operator(id="doc-002", name="B"), store=slow, settings=test_settings)
        ids = {first.create_new_visit().id, second.create_new_visit().id}

        threads = [threading.Thread(target=s.save) for s in (first, second)]
        for t in threads:
            t.start()
        for t in threads:
            t.join(timeout=5)

        assert {v.id for v in slow.load_all()} == ids
        first.close()
        second.close()
