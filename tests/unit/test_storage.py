"""
Unit Tests for visit persistence
"""
import json

import pytest

from diagnostic_engine.core.clinical.engine import recompute
from diagnostic_engine.models import Vitals
from diagnostic_engine.storage import InMemoryVisitStore, JsonFileVisitStore, VisitRepository, VisitStore
from diagnostic_engine.utils import StorageError


@pytest.fixture
def json_store(tmp_path) -> JsonFileVisitStore:
    return JsonFileVisitStore(tmp_path / "data" / "visits.json")


@pytest.fixture
def classified_visit(blank_visit):
    vitals = recompute(Vitals(systolic_bp=185, diastolic_bp=95, spo2=97))
    return blank_visit.model_copy(update={"vitals": vitals})


class TestJsonFileVisitStore:

    def test_missing_file_is_empty(self, json_store):
        assert json_store.load_all() == []

    def test_round_trip(self, json_store, classified_visit):
        json_store.save_all([classified_visit])
        loaded = json_store.load_all()
        assert len(loaded) == 1
        assert loaded[0].same_content(classified_visit)
        assert loaded[0].vitals.readings["blood_pressure"].message == (
            "Hypertensive Crisis - Immediate attention required"
        )

    def test_file_is_json_array(self, json_store, classified_visit):
        json_store.save_all([classified_visit])
        data = json.loads(json_store.path.read_text(encoding="utf-8"))
        assert isinstance(data, list)
        assert data[0]["id"] == classified_visit.id
        assert data[0]["patient"]["gender"] == "Female"

    def test_no_temp_files_left(self, json_store, classified_visit):
        json_store.save_all([classified_visit])
        json_store.save_all([classified_visit, classified_visit.model_copy(update={"id": "v-2"})])
        assert [p.name for p in json_store.path.parent.iterdir()] == ["visits.json"]

    def test_corrupt_file_raises(self, json_store):
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text("{not json", encoding="utf-8")
        with pytest.raises(StorageError) as exc_info:
            json_store.load_all()
        assert exc_info.value.code == "STORAGE_ERROR"
        assert exc_info.value.path == str(json_store.path)

    def test_non_array_raises(self, json_store):
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text('{"id": "x"}', encoding="utf-8")
        with pytest.raises(StorageError):
            json_store.load_all()

    def test_invalid_record_raises(self, json_store):
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text('[{"current_stage": 12}]', encoding="utf-8")
        with pytest.raises(StorageError):
            json_store.load_all()

    def test_unknown_fields_ignored(self, json_store):
        json_store.path.parent.mkdir(parents=True)
        json_store.path.write_text('[{"id": "old-1", "legacy_flag": true}]', encoding="utf-8")
        assert json_store.load_all()[0].id == "old-1"

    def test_satisfies_protocol(self, json_store):
        assert isinstance(json_store, VisitStore)
        assert isinstance(InMemoryVisitStore(), VisitStore)


class TestInMemoryVisitStore:

    def test_snapshots_are_isolated(self, classified_visit):
        store = InMemoryVisitStore()
        store.save_all([classified_visit])
        loaded = store.load_all()[0]
        loaded.vitals.systolic_bp = 1
        assert store.load_all()[0].vitals.systolic_bp == 185


class TestVisitRepository:

    def test_upsert_appends_then_replaces(self, json_store, classified_visit):
        repo = VisitRepository(json_store)
        repo.upsert(classified_visit)
        repo.upsert(classified_visit.model_copy(update={"id": "v-2"}))
        assert [v.id for v in repo.list()] == [classified_visit.id, "v-2"]

        edited = classified_visit.model_copy(update={"current_stage": 5})
        repo.upsert(edited)
        visits = repo.list()
        assert len(visits) == 2
        assert visits[0].current_stage == 5

    def test_get(self, classified_visit):
        repo = VisitRepository(InMemoryVisitStore([classified_visit]))
        assert repo.get(classified_visit.id).same_content(classified_visit)
        assert repo.get("missing") is None

    def test_repositories_on_one_store_share_a_lock(self, json_store):
        assert VisitRepository(json_store)._lock is VisitRepository(json_store)._lock
        assert VisitRepository(json_store)._lock is not VisitRepository(InMemoryVisitStore())._lock
