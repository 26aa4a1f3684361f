import threading
import time
from types import SimpleNamespace

import pytest
from fastapi.testclient import TestClient

from api.app import create_app
from api.dependencies import get_service
from core.access import UserRecord
from core.config import _reset_settings_cache_for_tests, get_settings
from ingestion.executor import SAMPLE_ROWS, build_sample_workbook
from ingestion.service import IngestionService

XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("BET_DATA_DIR", str(tmp_path))
    monkeypatch.setenv("INGEST_USE_BACKGROUND", "0")
    monkeypatch.setenv("INGEST_SELF_CHECK", "0")
    _reset_settings_cache_for_tests()
    yield
    _reset_settings_cache_for_tests()


@pytest.fixture
def service():
    return IngestionService.from_settings(get_settings())


@pytest.fixture
def client(service):
    return TestClient(create_app(service=service))


def _upload(client, dataset_type, rows=SAMPLE_ROWS):
    return client.post(
        f"/datasets/{dataset_type}/upload",
        content=build_sample_workbook(rows),
        headers={"Content-Type": XLSX},
    )


def test_health(client):
    r = client.get("/health")
    assert r.status_code == 200
    body = r.json()
    assert body["status"] == "ok"
    assert body["background_ingest_enabled"] is False
    assert body["default_dataset_type"] == "closing"


def test_summary_empty(client):
    r = client.get("/datasets/summary")
    assert r.status_code == 200
    assert r.json() == {
        "has_closing": False,
        "has_opening": False,
        "closing_count": 0,
        "opening_count": 0,
        "active": "closing",
    }


def test_upload_and_read_active(client):
    r = _upload(client, "closing")
    assert r.status_code == 200
    assert r.json()["count"] == 2
    assert r.json()["empty"] is False

    r = client.get("/datasets/active")
    body = r.json()
    assert body["dataset_type"] == "closing"
    assert body["count"] == 2
    assert body["items"][0]["id"] == 1
    assert body["items"][0]["date"] == "15.03.23"

    r = client.get("/datasets/active", params={"offset": 1, "limit": 5})
    assert [item["id"] for item in r.json()["items"]] == [2]


def test_switch_active_dataset(client):
    _upload(client, "opening")
    r = client.put("/datasets/active/opening")
    assert r.status_code == 200
    assert r.json() == {"dataset_type": "opening", "count": 2}
    assert client.get("/datasets/summary").json()["active"] == "opening"


def test_unknown_dataset_type(client):
    assert client.put("/datasets/active/live").status_code == 400
    assert client.post("/datasets/live/upload", content=b"x").status_code == 400


def test_empty_body_rejected(client):
    assert client.post("/datasets/closing/upload", content=b"").status_code == 400


def test_bad_file_is_422(client):
    r = client.post("/datasets/closing/upload", content=b"not a spreadsheet")
    assert r.status_code == 422


def test_upload_while_busy_is_409(client, service):
    service._lock.acquire()
    try:
        assert _upload(client, "closing").status_code == 409
        assert client.delete("/datasets").status_code == 409
    finally:
        service._lock.release()


def test_header_only_upload_reports_empty(client):
    r = _upload(client, "opening", rows=[SAMPLE_ROWS[0]])
    assert r.status_code == 200
    assert r.json()["empty"] is True


def test_clear(client):
    _upload(client, "closing")
    r = client.delete("/datasets")
    assert r.status_code == 200
    assert r.json() == {"status": "cleared"}
    assert client.get("/datasets/summary").json()["has_closing"] is False


def test_metrics_snapshot_after_upload(client):
    assert client.get("/metrics").status_code == 404
    _upload(client, "closing")
    r = client.get("/metrics")
    assert r.status_code == 200
    assert r.json()["dataset_type"] == "closing"


def test_prometheus_endpoint(client):
    _upload(client, "closing")
    r = client.get("/metrics/prometheus")
    assert r.status_code == 200
    assert "odds_ingest_runs_total" in r.text


@pytest.mark.parametrize(
    "user, status",
    [
        (None, 401),
        (UserRecord(role="user"), 403),
        (UserRecord(role="vip"), 403),
        (UserRecord(role="admin"), 200),
    ],
)
def test_upload_access_gate(service, user, status):
    client = TestClient(create_app(service=service, identity=lambda request: user))
    assert _upload(client, "closing").status_code == status


def test_lifespan_creates_service_and_runs_self_check(monkeypatch):
    monkeypatch.setenv("INGEST_SELF_CHECK", "1")
    _reset_settings_cache_for_tests()
    app = create_app()
    with TestClient(app) as client:
        assert app.state.service is not None
        assert client.get("/datasets/summary").status_code == 200


def test_lazy_service_created_once_under_concurrency(monkeypatch):
    created = []

    def _slow_build(*args, **kwargs):
        time.sleep(0.05)
        svc = object()
        created.append(svc)
        return svc

    monkeypatch.setattr(IngestionService, "from_settings", _slow_build)
    request = SimpleNamespace(app=SimpleNamespace(state=SimpleNamespace(service=None)))
    results = []
    threads = [threading.Thread(target=lambda: results.append(get_service(request))) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert len(created) == 1
    assert all(r is created[0] for r in results)
