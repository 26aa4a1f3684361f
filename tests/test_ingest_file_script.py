import pytest

from core.config import _reset_settings_cache_for_tests
from ingestion.executor import SAMPLE_ROWS, build_sample_workbook
from scripts.ingest_file import main
from storage.chunked_store import OPENING_KEY, open_store


@pytest.fixture(autouse=True)
def env(monkeypatch, tmp_path):
    monkeypatch.setenv("BET_DATA_DIR", str(tmp_path))
    _reset_settings_cache_for_tests()
    yield
    _reset_settings_cache_for_tests()


def test_ingest_file_cli(tmp_path, capsys):
    xlsx = tmp_path / "acilis.xlsx"
    xlsx.write_bytes(build_sample_workbook(SAMPLE_ROWS))
    assert main([str(xlsx), "--type", "opening", "--no-background"]) == 0
    assert "2 partite (opening, fallback)" in capsys.readouterr().out
    assert len(open_store().read_dataset(OPENING_KEY)) == 2


def test_ingest_file_cli_missing_file(tmp_path):
    assert main([str(tmp_path / "missing.xlsx")]) == 1


def test_ingest_file_cli_bad_file(tmp_path):
    bad = tmp_path / "bad.xlsx"
    bad.write_bytes(b"nope")
    assert main([str(bad), "--no-background"]) == 1
