"""
Integration Tests for the FastAPI surface

Exercises the visit workflow end to end over ASGI with async httpx.
"""
import pytest
import httpx

from diagnostic_engine.config import Settings
from diagnostic_engine.main import create_app
from diagnostic_engine.storage import InMemoryVisitStore

DOCTOR = {"X-Operator-Id": "doc-001", "X-Operator-Name": "Dr. Asha Rao"}
OTHER_DOCTOR = {"X-Operator-Id": "doc-002"}


@pytest.fixture
def app(tmp_path):
    settings = Settings(
        storage_path=str(tmp_path / "visits.json"),
        autosave_enabled=False,
        report_output_dir=str(tmp_path / "reports"),
    )
    application = create_app(settings=settings, store=InMemoryVisitStore())
    yield application
    application.state.sessions.close_all()


@pytest.fixture
async def async_client(app):
    """Create async test client."""
    async with httpx.AsyncClient(
        transport=httpx.ASGITransport(app=app),
        base_url="http://test"
    ) as client:
        yield client


async def _fill_visit(client):
    await client.post("/api/v1/visits", headers=DOCTOR)
    await client.patch(
        "/api/v1/visits/current/patient",
        json={"full_name": "Jane Doe", "age": 54, "gender": "Female", "patient_id": "PAT-123456"},
        headers=DOCTOR,
    )
    await client.patch(
        "/api/v1/visits/current/vitals",
        json={"systolic_bp": 185, "diastolic_bp": 95, "heart_rate": 72},
        headers=DOCTOR,
    )
    await client.patch(
        "/api/v1/visits/current/ecg",
        json={"heart_rate": 45, "qrs_duration": 90, "qt_interval": 400},
        headers=DOCTOR,
    )


@pytest.mark.asyncio
class TestHealthEndpoints:

    async def test_root_endpoint(self, async_client):
        response = await async_client.get("/")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"

    async def test_health_endpoint(self, async_client):
        response = await async_client.get("/health")
        assert response.status_code == 200
        data = response.json()
        assert "uptime_seconds" in data
        assert data["timestamp"].endswith("Z")


@pytest.mark.asyncio
class TestReferenceEndpoints:

    async def test_thresholds(self, async_client):
        response = await async_client.get("/api/v1/thresholds")
        assert response.status_code == 200
        data = response.json()
        assert data["vitals"]["systolic_bp"]["high"] == [140, 180]
        assert data["bmi"]["obese"] == 30

    async def test_stages(self, async_client):
        response = await async_client.get("/api/v1/stages")
        stages = response.json()
        assert len(stages) == 7
        assert stages[0] == {"number": 1, "title": "Patient Registration"}
        assert stages[-1]["title"] == "Health Summary"


@pytest.mark.asyncio
class TestOperatorHeaders:

    async def test_missing_operator_rejected(self, async_client):
        response = await async_client.post("/api/v1/visits")
        assert response.status_code == 422

    async def test_unknown_role_rejected(self, async_client):
        response = await async_client.post("/api/v1/visits", headers={**DOCTOR, "X-Operator-Role": "Janitor"})
        assert response.status_code == 400

    async def test_sessions_are_per_operator(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.get("/api/v1/visits/current", headers=OTHER_DOCTOR)
        assert response.status_code == 404


@pytest.mark.asyncio
class TestVisitWorkflow:

    async def test_create_visit(self, async_client):
        response = await async_client.post("/api/v1/visits", headers=DOCTOR)
        assert response.status_code == 201
        visit = response.json()
        assert visit["current_stage"] == 1
        assert visit["doctor_id"] == "doc-001"
        assert visit["status"] == "In Progress"

    async def test_no_current_visit(self, async_client):
        response = await async_client.get("/api/v1/visits/current", headers=DOCTOR)
        assert response.status_code == 404
        response = await async_client.post("/api/v1/visits/current/advance", headers=DOCTOR)
        assert response.status_code == 404

    async def test_section_update_classifies(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.patch(
            "/api/v1/visits/current/vitals",
            json={"systolic_bp": 185, "diastolic_bp": 95},
            headers=DOCTOR,
        )
        assert response.status_code == 200
        reading = response.json()["vitals"]["readings"]["blood_pressure"]
        assert reading["status"] == "critical"
        assert reading["message"] == "Hypertensive Crisis - Immediate attention required"

    async def test_bmi_update(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.patch(
            "/api/v1/visits/current/bmi", json={"height": 170, "weight": 70}, headers=DOCTOR,
        )
        bmi = response.json()["bmi"]
        assert bmi["bmi"] == 24.2
        assert bmi["category"] == "Normal"

    async def test_assign_patient_id(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.post("/api/v1/visits/current/patient-id", headers=DOCTOR)
        visit = response.json()
        assert visit["patient"]["patient_id"].startswith("PAT-")
        assert visit["patient_id"] == visit["patient"]["patient_id"]

    async def test_unknown_section(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.patch("/api/v1/visits/current/xray", json={}, headers=DOCTOR)
        assert response.status_code == 404

    async def test_invalid_body(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.patch(
            "/api/v1/visits/current/patient", json={"age": 200}, headers=DOCTOR,
        )
        assert response.status_code == 422
        response = await async_client.patch(
            "/api/v1/visits/current/vitals", json={"bmi": 40}, headers=DOCTOR,
        )
        assert response.status_code == 422

    async def test_navigation_and_summary(self, async_client):
        await _fill_visit(async_client)
        for _ in range(6):
            response = await async_client.post("/api/v1/visits/current/advance", headers=DOCTOR)
        visit = response.json()
        assert visit["current_stage"] == 7
        assert visit["status"] == "Completed"
        summary = visit["health_summary"]
        assert summary["overall_risk_score"] == 40
        assert summary["risk_level"] == "Medium"
        assert "Hypertensive crisis - immediate attention required" in summary["critical_alerts"]

        response = await async_client.post("/api/v1/visits/current/advance", headers=DOCTOR)
        assert response.json()["current_stage"] == 7

        response = await async_client.post("/api/v1/visits/current/retreat", headers=DOCTOR)
        assert response.json()["current_stage"] == 6

    async def test_clear_summary(self, async_client):
        await _fill_visit(async_client)
        for _ in range(6):
            await async_client.post("/api/v1/visits/current/advance", headers=DOCTOR)
        response = await async_client.delete("/api/v1/visits/current/summary", headers=DOCTOR)
        visit = response.json()
        assert visit["health_summary"] is None
        assert visit["status"] == "In Progress"

    async def test_save_list_and_load(self, async_client):
        await _fill_visit(async_client)
        saved = (await async_client.post("/api/v1/visits/current/save", headers=DOCTOR)).json()

        listing = (await async_client.get("/api/v1/visits", headers=DOCTOR)).json()
        assert [v["id"] for v in listing] == [saved["id"]]

        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.post(f"/api/v1/visits/{saved['id']}/load", headers=DOCTOR)
        assert response.status_code == 200
        assert response.json()["patient"]["full_name"] == "Jane Doe"

    async def test_load_unknown_keeps_current(self, async_client):
        created = (await async_client.post("/api/v1/visits", headers=DOCTOR)).json()
        response = await async_client.post("/api/v1/visits/nope/load", headers=DOCTOR)
        assert response.status_code == 200
        assert response.json()["id"] == created["id"]


@pytest.mark.asyncio
class TestStorageFailure:

    async def test_corrupt_store_is_500(self, tmp_path):
        path = tmp_path / "visits.json"
        path.write_text("{broken", encoding="utf-8")
        settings = Settings(storage_path=str(path), autosave_enabled=False)
        application = create_app(settings=settings)
        async with httpx.AsyncClient(
            transport=httpx.ASGITransport(app=application),
            base_url="http://test"
        ) as client:
            response = await client.get("/api/v1/visits", headers=DOCTOR)
        assert response.status_code == 500
        body = response.json()
        assert body["error"] == "STORAGE_ERROR"
        assert "corrupt" in body["detail"]
        application.state.sessions.close_all()


@pytest.mark.asyncio
class TestWaveformEndpoint:

    async def test_requires_heart_rate(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.get("/api/v1/visits/current/ecg/waveform", headers=DOCTOR)
        assert response.status_code == 404

    async def test_seeded_samples(self, async_client):
        await _fill_visit(async_client)
        params = {"seed": 11, "duration_s": 2}
        first = (await async_client.get("/api/v1/visits/current/ecg/waveform", params=params, headers=DOCTOR)).json()
        second = (await async_client.get("/api/v1/visits/current/ecg/waveform", params=params, headers=DOCTOR)).json()
        assert first["risk_level"] == "Critical"
        assert len(first["samples"]) == 500
        assert len(first["time_ms"]) == 500
        assert first["samples"] == second["samples"]


@pytest.mark.asyncio
class TestReportEndpoints:

    async def test_pdf_download(self, async_client):
        await _fill_visit(async_client)
        visit_id = (await async_client.get("/api/v1/visits/current", headers=DOCTOR)).json()["id"]
        response = await async_client.get(f"/api/v1/visits/{visit_id}/report.pdf", headers=DOCTOR)
        assert response.status_code == 200
        assert response.headers["content-type"] == "application/pdf"
        assert "Health_Report_Jane_Doe_" in response.headers["content-disposition"]
        assert response.content.startswith(b"%PDF")

    async def test_csv_download(self, async_client):
        await _fill_visit(async_client)
        visit_id = (await async_client.get("/api/v1/visits/current", headers=DOCTOR)).json()["id"]
        response = await async_client.get(f"/api/v1/visits/{visit_id}/report.csv", headers=DOCTOR)
        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/csv")
        assert response.text.startswith('"Healthcare Diagnostic Report"')

    async def test_unknown_visit_report(self, async_client):
        await async_client.post("/api/v1/visits", headers=DOCTOR)
        response = await async_client.get("/api/v1/visits/missing/report.pdf", headers=DOCTOR)
        assert response.status_code == 404
