"""
Diagnostic Assessment Engine - FastAPI Application

HTTP surface over the visit workflow:
- Reference data (threshold table, stage list)
- Visit lifecycle and navigation for the calling operator
- Section edits with server-side classification
- Synthetic ECG waveform samples
- PDF / CSV report export

The operator is identified by the X-Operator-Id / X-Operator-Name /
X-Operator-Role headers supplied by the upstream identity layer. Each
operator gets one VisitSession.
"""
import threading
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Tuple, Type

from fastapi import Depends, FastAPI, Header, HTTPException, Query, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from diagnostic_engine.config import Settings, get_settings
from diagnostic_engine.core.clinical.thresholds import WHO_THRESHOLDS
from diagnostic_engine.core.reports import VisitReportGenerator, export_csv, report_filename
from diagnostic_engine.core.workflow import Stage, VisitSession
from diagnostic_engine.models.api import (
    BloodTestUpdate,
    BMIUpdate,
    ECGUpdate,
    HealthResponse,
    PatientUpdate,
    StageInfo,
    UltrasoundUpdate,
    VitalsUpdate,
    WaveformResponse,
    SectionUpdate,
)
from diagnostic_engine.models.visit import Operator, OperatorRole, Visit
from diagnostic_engine.storage.visit_store import JsonFileVisitStore, VisitStore
from diagnostic_engine.utils import DiagnosticEngineError, ReportGenerationError, get_logger, setup_logging
from diagnostic_engine.utils.datetime_utils import format_iso, utc_now

logger = get_logger(__name__)

START_TIME = datetime.now()


# ---- Session registry ----

class SessionRegistry:
    """One VisitSession per operator id, all sharing the same store."""

    def __init__(self, store: VisitStore, settings: Settings):
        self.store = store
        self.settings = settings
        self._sessions: Dict[str, VisitSession] = {}
        self._lock = threading.Lock()

    def get(self, operator: Operator) -> VisitSession:
        with self._lock:
            session = self._sessions.get(operator.id)
            if session is None:
                session = VisitSession(operator, store=self.store, settings=self.settings)
                self._sessions[operator.id] = session
                logger.info(f"SessionRegistry: opened session for operator {operator.id}")
            return session

    def close_all(self) -> None:
        with self._lock:
            sessions = list(self._sessions.values())
            self._sessions.clear()
        for session in sessions:
            session.close()
        logger.info(f"SessionRegistry: closed {len(sessions)} session(s)")

    def __len__(self) -> int:
        return len(self._sessions)


# Section name → (update body schema, session method name)
_SECTIONS: Dict[str, Tuple[Type[SectionUpdate], str]] = {
    "patient": (PatientUpdate, "update_patient"),
    "vitals": (VitalsUpdate, "update_vitals"),
    "blood-test": (BloodTestUpdate, "update_blood_test"),
    "bmi": (BMIUpdate, "update_bmi"),
    "ecg": (ECGUpdate, "update_ecg"),
    "ultrasound": (UltrasoundUpdate, "update_ultrasound"),
}


def create_app(settings: Optional[Settings] = None, store: Optional[VisitStore] = None) -> FastAPI:
    settings = settings or get_settings()
    registry = SessionRegistry(
        store if store is not None else JsonFileVisitStore(settings.storage_path),
        settings,
    )
    report_generator = VisitReportGenerator(output_dir=settings.report_output_dir)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        setup_logging(settings.log_level, settings.log_file)
        logger.info("Diagnostic Assessment Engine API ready to accept requests")
        yield
        registry.close_all()
        logger.info("Diagnostic Assessment Engine API shut down.")

    app = FastAPI(
        title=settings.api_title,
        description="Rule-based clinical classification, risk scoring and visit workflow",
        version=settings.api_version,
        docs_url="/docs",
        redoc_url="/redoc",
        lifespan=lifespan,
    )
    app.state.settings = settings
    app.state.sessions = registry

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(DiagnosticEngineError)
    async def engine_error_handler(request: Request, exc: DiagnosticEngineError):
        logger.error(f"{request.method} {request.url.path} failed: {exc}")
        return JSONResponse(status_code=500, content={"detail": exc.message, **exc.to_dict()})

    # ---- Dependencies ----

    def current_operator(
        x_operator_id: str = Header(..., min_length=1),
        x_operator_name: str = Header(""),
        x_operator_role: str = Header(OperatorRole.DOCTOR.value),
    ) -> Operator:
        try:
            role = OperatorRole(x_operator_role)
        except ValueError:
            raise HTTPException(
                status_code=400,
                detail=f"Unknown operator role: {x_operator_role}. Valid: {[r.value for r in OperatorRole]}",
            )
        return Operator(id=x_operator_id, name=x_operator_name, role=role)

    def operator_session(operator: Operator = Depends(current_operator)) -> VisitSession:
        return registry.get(operator)

    def _require_current(session: VisitSession) -> Visit:
        visit = session.current_visit
        if visit is None:
            raise HTTPException(status_code=404, detail="No current visit")
        return visit

    def _find_visit(session: VisitSession, visit_id: str) -> Visit:
        current = session.current_visit
        if current is not None and current.id == visit_id:
            return current
        visit = session.repository.get(visit_id)
        if visit is None:
            raise HTTPException(status_code=404, detail="Visit not found")
        return visit

    def _health() -> HealthResponse:
        return HealthResponse(
            status="healthy",
            version=settings.api_version,
            timestamp=format_iso(utc_now()),
            uptime_seconds=(datetime.now() - START_TIME).total_seconds(),
        )

    # ---- Health ----

    @app.get("/", response_model=HealthResponse, tags=["Health"])
    async def root():
        """API root - health check."""
        return _health()

    @app.get("/health", response_model=HealthResponse, tags=["Health"])
    async def health_check():
        return _health()

    # ---- Reference ----

    @app.get("/api/v1/thresholds", tags=["Reference"])
    async def get_thresholds() -> Dict[str, Any]:
        """Reference ranges used by every classifier."""
        return WHO_THRESHOLDS.to_dict()

    @app.get("/api/v1/stages", response_model=List[StageInfo], tags=["Reference"])
    async def list_stages():
        return [StageInfo(number=int(stage), title=stage.title) for stage in Stage]

    # ---- Visits ----

    @app.post("/api/v1/visits", response_model=Visit, status_code=201, tags=["Visits"])
    def create_visit(session: VisitSession = Depends(operator_session)):
        return session.create_new_visit()

    @app.get("/api/v1/visits", response_model=List[Visit], tags=["Visits"])
    def list_visits(session: VisitSession = Depends(operator_session)):
        return session.all_visits()

    @app.get("/api/v1/visits/current", response_model=Visit, tags=["Visits"])
    def get_current_visit(session: VisitSession = Depends(operator_session)):
        return _require_current(session)

    @app.post("/api/v1/visits/{visit_id}/load", response_model=Visit, tags=["Visits"])
    def load_visit(visit_id: str, session: VisitSession = Depends(operator_session)):
        """Load a stored visit. An unknown id leaves the current visit in place."""
        session.load_visit(visit_id)
        return _require_current(session)

    @app.patch("/api/v1/visits/current/{section}", response_model=Visit, tags=["Visits"])
    def update_section(section: str, body: Dict[str, Any], session: VisitSession = Depends(operator_session)):
        """Merge a partial update into one section and re-derive its classifications."""
        if section not in _SECTIONS:
            raise HTTPException(
                status_code=404,
                detail=f"Unknown section: {section}. Valid: {sorted(_SECTIONS)}",
            )
        _require_current(session)
        schema, method = _SECTIONS[section]
        try:
            changes = schema.model_validate(body).changes()
            update: Callable[..., Any] = getattr(session, method)
            update(**changes)
        except ValidationError as e:
            raise HTTPException(status_code=422, detail=e.errors(include_url=False, include_context=False))
        return _require_current(session)

    @app.post("/api/v1/visits/current/patient-id", response_model=Visit, tags=["Visits"])
    def assign_patient_id(session: VisitSession = Depends(operator_session)):
        """Generate a PAT- identifier for the current patient."""
        _require_current(session)
        session.assign_patient_id()
        return _require_current(session)

    @app.post("/api/v1/visits/current/advance", response_model=Visit, tags=["Navigation"])
    def advance(session: VisitSession = Depends(operator_session)):
        _require_current(session)
        session.advance()
        return _require_current(session)

    @app.post("/api/v1/visits/current/retreat", response_model=Visit, tags=["Navigation"])
    def retreat(session: VisitSession = Depends(operator_session)):
        _require_current(session)
        session.retreat()
        return _require_current(session)

    @app.post("/api/v1/visits/current/save", response_model=Visit, tags=["Visits"])
    def save(session: VisitSession = Depends(operator_session)):
        _require_current(session)
        return session.save()

    @app.delete("/api/v1/visits/current/summary", response_model=Visit, tags=["Visits"])
    def clear_summary(session: VisitSession = Depends(operator_session)):
        _require_current(session)
        session.clear_summary()
        return _require_current(session)

    @app.get("/api/v1/visits/current/ecg/waveform", response_model=WaveformResponse, tags=["ECG"])
    def ecg_waveform(
        seed: Optional[int] = Query(None, ge=0),
        duration_s: float = Query(3.0, gt=0, le=30),
        session: VisitSession = Depends(operator_session),
    ):
        _require_current(session)
        waveform = session.ecg_waveform(seed=seed, duration_s=duration_s)
        if waveform is None:
            raise HTTPException(status_code=404, detail="No ECG heart rate recorded for the current visit")
        return WaveformResponse(
            heart_rate=waveform.heart_rate,
            risk_level=waveform.risk_level.value,
            sampling_rate=waveform.sampling_rate,
            duration_s=waveform.duration_s,
            seed=seed,
            time_ms=waveform.time_axis_ms().round(3).tolist(),
            samples=waveform.to_array().round(5).tolist(),
        )

    # ---- Reports ----

    @app.get("/api/v1/visits/{visit_id}/report.pdf", tags=["Reports"])
    def download_pdf(visit_id: str, session: VisitSession = Depends(operator_session)):
        visit = _find_visit(session, visit_id)
        try:
            content = report_generator.generate_pdf(visit)
        except ReportGenerationError as e:
            logger.warning(f"PDF export failed for visit {visit_id}: {e}")
            raise HTTPException(status_code=500, detail="Report generation failed")
        return Response(
            content=content,
            media_type="application/pdf",
            headers={"Content-Disposition": f'attachment; filename="{report_filename(visit, "pdf")}"'},
        )

    @app.get("/api/v1/visits/{visit_id}/report.csv", tags=["Reports"])
    def download_csv(visit_id: str, session: VisitSession = Depends(operator_session)):
        visit = _find_visit(session, visit_id)
        try:
            content = export_csv(visit)
        except ReportGenerationError as e:
            logger.warning(f"CSV export failed for visit {visit_id}: {e}")
            raise HTTPException(status_code=500, detail="Report generation failed")
        return Response(
            content=content,
            media_type="text/csv; charset=utf-8",
            headers={"Content-Disposition": f'attachment; filename="{report_filename(visit, "csv")}"'},
        )

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(app, host="0.0.0.0", port=8000)
