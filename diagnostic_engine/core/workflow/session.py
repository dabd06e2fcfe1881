"""
Visit Session - the seven-stage workflow state machine.

One VisitSession per operator. It owns at most one current visit, moves it
through the stages, merges partial edits into its records, asks the
DiagnosticEngine to re-derive classified fields after every merge, and
persists full snapshots through a VisitRepository.

Usage:
    session = VisitSession(operator, store=JsonFileVisitStore("data/visits.json"))
    session.create_new_visit()
    session.update_patient(full_name="Jane Doe", age=54, gender="Female")
    session.update_vitals(systolic_bp=185, diastolic_bp=95)
    session.advance()
    ...
    session.close()

Every operation is a no-op when there is no current visit. Navigation is
bounded to stages 1..7 and never raises.
"""
import threading
from enum import IntEnum
from typing import Any, Dict, List, Optional, Type

from pydantic import BaseModel

from diagnostic_engine.config import Settings, get_settings
from diagnostic_engine.core.clinical.ecg import ECGWaveform, synthesize_waveform
from diagnostic_engine.core.clinical.engine import DiagnosticEngine, merge_record
from diagnostic_engine.core.clinical.thresholds import ThresholdTable
from diagnostic_engine.models.visit import (
    BloodTest,
    BMIData,
    ECGData,
    HealthSummary,
    Operator,
    Patient,
    UltrasoundData,
    Visit,
    VisitStatus,
    Vitals,
    generate_patient_id,
)
from diagnostic_engine.storage.visit_store import InMemoryVisitStore, VisitRepository, VisitStore
from diagnostic_engine.utils import get_logger
from diagnostic_engine.utils.datetime_utils import utc_now
from .autosave import AutoSaveTask

logger = get_logger(__name__)


class Stage(IntEnum):
    REGISTRATION = 1
    VITALS = 2
    BLOOD_TESTS = 3
    BMI = 4
    ECG = 5
    ULTRASOUND = 6
    SUMMARY = 7

    @property
    def title(self) -> str:
        return STAGE_TITLES[self]


STAGE_TITLES: Dict[Stage, str] = {
    Stage.REGISTRATION: "Patient Registration",
    Stage.VITALS: "Vital Signs",
    Stage.BLOOD_TESTS: "Blood Tests",
    Stage.BMI: "BMI Assessment",
    Stage.ECG: "ECG Analysis",
    Stage.ULTRASOUND: "Ultrasound",
    Stage.SUMMARY: "Health Summary",
}

FIRST_STAGE = Stage.REGISTRATION
LAST_STAGE = Stage.SUMMARY


class VisitSession:
    """
    Explicit replacement for a process-wide "current visit".

    The auto-save thread and the caller share the session, so every read or
    write of the current visit happens under ``_lock``. The visit itself is
    treated as immutable: each change swaps in a new copy.
    """

    def __init__(
        self,
        operator: Operator,
        store: Optional[VisitStore] = None,
        engine: Optional[DiagnosticEngine] = None,
        settings: Optional[Settings] = None,
        thresholds: Optional[ThresholdTable] = None,
    ):
        self.operator = operator
        self.settings = settings or get_settings()
        self.repository = VisitRepository(store if store is not None else InMemoryVisitStore())
        if engine is None:
            engine = DiagnosticEngine(thresholds) if thresholds is not None else DiagnosticEngine()
        self.engine = engine
        self._visit: Optional[Visit] = None
        self._lock = threading.RLock()
        self._autosave: Optional[AutoSaveTask] = None

    # ── State access ─────────────────────────────────────────────────────────

    @property
    def current_visit(self) -> Optional[Visit]:
        """Deep copy of the current visit, or None."""
        with self._lock:
            return self._visit.snapshot() if self._visit is not None else None

    @property
    def current_stage(self) -> Optional[Stage]:
        with self._lock:
            return Stage(self._visit.current_stage) if self._visit is not None else None

    @property
    def autosave_running(self) -> bool:
        return self._autosave is not None and self._autosave.running

    def all_visits(self) -> List[Visit]:
        return self.repository.list()

    # ── Lifecycle ────────────────────────────────────────────────────────────

    def create_new_visit(self) -> Visit:
        """Discard the current visit (unsaved) and start a fresh one at stage 1."""
        with self._lock:
            self._visit = Visit(doctor_id=self.operator.id, current_stage=int(FIRST_STAGE))
            visit_id = self._visit.id
        logger.info(f"VisitSession: created visit {visit_id}", extra={"visit_id": visit_id, "operator_id": self.operator.id})
        self._start_autosave()
        return self.current_visit

    def load_visit(self, visit_id: str) -> Optional[Visit]:
        """Replace the current visit with a stored one. Unknown ids change nothing."""
        stored = self.repository.get(visit_id)
        if stored is None:
            logger.debug(f"VisitSession[{self.operator.id}]: no stored visit {visit_id}, load ignored")
            return self.current_visit
        with self._lock:
            self._visit = stored
        logger.info(
            f"VisitSession: loaded visit {visit_id} at stage {stored.current_stage}",
            extra={"visit_id": visit_id, "operator_id": self.operator.id},
        )
        self._start_autosave()
        return self.current_visit

    def save(self) -> Optional[Visit]:
        """Upsert a snapshot of the current visit into the store."""
        with self._lock:
            if self._visit is None:
                return None
            self._visit = self._visit.model_copy(update={"updated_at": utc_now()})
            self.repository.upsert(self._visit)
            visit_id = self._visit.id
        logger.info(f"VisitSession: saved visit {visit_id}", extra={"visit_id": visit_id, "operator_id": self.operator.id})
        return self.current_visit

    def close(self) -> None:
        """Stop auto-saving and drop the current visit without saving."""
        self._stop_autosave()
        with self._lock:
            self._visit = None
        logger.debug(f"VisitSession[{self.operator.id}]: closed")

    # ── Navigation ───────────────────────────────────────────────────────────

    def advance(self) -> Optional[Stage]:
        """Move forward one stage and save. No-op at the last stage."""
        with self._lock:
            if self._visit is None:
                return None
            stage = self._visit.current_stage
            if stage >= LAST_STAGE:
                logger.debug(f"VisitSession[{self.operator.id}]: advance at stage {stage} ignored")
                return Stage(stage)
            if stage == Stage.REGISTRATION and not self._visit.patient.is_complete():
                logger.info(f"VisitSession[{self.operator.id}]: leaving registration with incomplete patient details")
            self._move_to(Stage(stage + 1))
            self.save()
            return self.current_stage

    def retreat(self) -> Optional[Stage]:
        """Move back one stage. No-op at the first stage; does not save."""
        with self._lock:
            if self._visit is None:
                return None
            stage = self._visit.current_stage
            if stage <= FIRST_STAGE:
                logger.debug(f"VisitSession[{self.operator.id}]: retreat at stage {stage} ignored")
                return Stage(stage)
            self._move_to(Stage(stage - 1))
            return self.current_stage

    def go_to(self, stage: int) -> Optional[Stage]:
        """Jump to any stage in range; out-of-range targets are ignored."""
        with self._lock:
            if self._visit is None:
                return None
            # range membership also rejects fractional and non-numeric targets
            if stage not in range(FIRST_STAGE, LAST_STAGE + 1):
                logger.debug(f"VisitSession[{self.operator.id}]: go_to({stage!r}) out of range, ignored")
                return Stage(self._visit.current_stage)
            self._move_to(Stage(int(stage)))
            return self.current_stage

    def _move_to(self, stage: Stage) -> None:
        self._visit = self._visit.model_copy(update={"current_stage": int(stage), "updated_at": utc_now()})
        if stage == Stage.SUMMARY:
            self._ensure_summary()

    def _ensure_summary(self) -> None:
        # The summary is generated once; later edits do not refresh it.
        if self._visit.health_summary is not None:
            return
        summary = self.engine.summarize(self._visit)
        self._visit = self._visit.model_copy(update={
            "health_summary": summary,
            "status": VisitStatus.COMPLETED,
        })

    def clear_summary(self) -> None:
        """Drop the summary so the next arrival at the summary stage regenerates it."""
        with self._lock:
            if self._visit is None or self._visit.health_summary is None:
                return
            self._visit = self._visit.model_copy(update={
                "health_summary": None,
                "status": VisitStatus.IN_PROGRESS,
                "updated_at": utc_now(),
            })
            visit_id = self._visit.id
        logger.info(f"VisitSession[{self.operator.id}]: summary cleared for visit {visit_id}")

    # ── Edits ────────────────────────────────────────────────────────────────

    def update_patient(self, **changes: Any) -> Optional[Patient]:
        with self._lock:
            if self._visit is None:
                return None
            patient = merge_record(self._visit.patient, Patient, changes)
            update: Dict[str, Any] = {
                "patient": patient,
                "patient_id": patient.patient_id,
                "updated_at": utc_now(),
            }
            # Hemoglobin ranges depend on gender
            if self._visit.blood_test is not None:
                update["blood_test"] = self.engine.recompute(self._visit.blood_test, patient=patient)
            self._apply(update)
            return patient.model_copy(deep=True)

    def assign_patient_id(self) -> Optional[Patient]:
        """Give the current patient a freshly generated ``PAT-`` identifier."""
        return self.update_patient(patient_id=generate_patient_id())

    def update_vitals(self, **changes: Any) -> Optional[Vitals]:
        return self._update_record("vitals", Vitals, changes)

    def update_blood_test(self, **changes: Any) -> Optional[BloodTest]:
        return self._update_record("blood_test", BloodTest, changes)

    def update_bmi(self, **changes: Any) -> Optional[BMIData]:
        return self._update_record("bmi", BMIData, changes)

    def update_ecg(self, **changes: Any) -> Optional[ECGData]:
        return self._update_record("ecg", ECGData, changes)

    def update_ultrasound(self, **changes: Any) -> Optional[UltrasoundData]:
        return self._update_record("ultrasound", UltrasoundData, changes)

    def update_health_summary(self, **changes: Any) -> Optional[HealthSummary]:
        if "overall_risk_score" in changes and changes["overall_risk_score"] is not None:
            changes["overall_risk_score"] = max(0, min(int(changes["overall_risk_score"]), 100))
        return self._update_record("health_summary", HealthSummary, changes)

    def _update_record(self, attr: str, model_cls: Type[BaseModel], changes: Dict[str, Any]):
        with self._lock:
            if self._visit is None:
                logger.debug(f"VisitSession[{self.operator.id}]: no current visit, {attr} update ignored")
                return None
            record = merge_record(getattr(self._visit, attr), model_cls, changes)
            record = self.engine.recompute(record, patient=self._visit.patient)
            self._apply({attr: record, "updated_at": utc_now()})
            logger.debug(f"VisitSession[{self.operator.id}]: {attr} updated ({sorted(changes)})")
            return record.model_copy(deep=True)

    def _apply(self, update: Dict[str, Any]) -> None:
        if (
            self.settings.recompute_summary_on_edit
            and "health_summary" not in update
            and self._visit.health_summary is not None
        ):
            update["health_summary"] = None
            update["status"] = VisitStatus.IN_PROGRESS
            logger.debug(f"VisitSession[{self.operator.id}]: edit invalidated health summary")
        self._visit = self._visit.model_copy(update=update)

    # ── ECG display ──────────────────────────────────────────────────────────

    def ecg_waveform(self, seed: Optional[int] = None, duration_s: float = 3.0) -> Optional[ECGWaveform]:
        """Synthesized trace for the current ECG record, or None without a heart rate."""
        with self._lock:
            ecg = self._visit.ecg if self._visit is not None else None
        if ecg is None or ecg.heart_rate is None:
            return None
        return synthesize_waveform(ecg.heart_rate, ecg.risk_level, seed=seed, duration_s=duration_s)

    # ── Auto-save ────────────────────────────────────────────────────────────

    def _start_autosave(self) -> None:
        if not self.settings.autosave_enabled or self.autosave_running:
            return
        self._autosave = AutoSaveTask(
            self.settings.autosave_interval_seconds,
            self.save,
            name=f"autosave-{self.operator.id}",
        )
        self._autosave.start()

    def _stop_autosave(self) -> None:
        if self._autosave is not None:
            self._autosave.cancel()
            self._autosave = None
