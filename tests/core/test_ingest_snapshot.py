import pytest

from core.config import _reset_settings_cache_for_tests
from core.metrics import last_ingest_path, read_ingest_snapshot, write_ingest_snapshot


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("BET_DATA_DIR", str(tmp_path))
    _reset_settings_cache_for_tests()
    yield
    _reset_settings_cache_for_tests()


def test_write_and_read(monkeypatch, tmp_path):
    monkeypatch.setenv("ENABLE_METRICS_FILE", "1")
    _reset_settings_cache_for_tests()
    path = write_ingest_snapshot({"count": 3, "dataset_type": "closing"})
    assert path == tmp_path / "metrics" / "last_ingest.json"
    assert read_ingest_snapshot() == {"count": 3, "dataset_type": "closing"}
    assert not path.with_suffix(".json.tmp").exists()


def test_disabled_does_not_write(monkeypatch):
    monkeypatch.setenv("ENABLE_METRICS_FILE", "0")
    _reset_settings_cache_for_tests()
    path = write_ingest_snapshot({"count": 1})
    assert not path.exists()
    assert read_ingest_snapshot() is None


def test_corrupted_snapshot_ignored():
    path = last_ingest_path()
    path.parent.mkdir(parents=True)
    path.write_text("{not json", encoding="utf-8")
    assert read_ingest_snapshot() is None
