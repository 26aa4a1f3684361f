import pytest

from core.exceptions import UnknownDatasetTypeError
from ingestion.column_map import (
    CLOSING_COLUMNS,
    COLUMN_TABLES,
    COMMON_COLUMNS,
    OPENING_COLUMNS,
    map_row,
    normalize_dataset_type,
)


def _full_row(width: int = 36):
    return {i: f"v{i}" for i in range(width)}


def test_common_prefix_identical_for_both_types():
    raw = _full_row()
    closing = map_row(raw, "closing")
    opening = map_row(raw, "opening")
    for _, name in COMMON_COLUMNS:
        assert closing[name] == opening[name]
    assert closing["date"] == "v0"
    assert closing["home_team"] == "v2"
    assert closing["kg_yok"] == "v13"


def test_closing_offsets():
    m = map_row(_full_row(), "closing")
    assert m["cs_1x"] == "v14"
    assert m["cs_2x"] == "v16"
    assert m["ms15_alt"] == "v19"
    assert m["ms25_ust"] == "v22"
    assert m["ms35_ust"] == "v24"
    assert m["tg_01"] == "v25"
    assert m["tg_6plus"] == "v28"
    assert "handicap_1" not in m
    assert "htft_11" not in m


def test_opening_offsets():
    m = map_row(_full_row(), "opening")
    assert m["handicap_1"] == "v14"
    assert m["handicap_0"] == "v15"
    assert m["handicap_2"] == "v16"
    assert m["iy15_alt"] == "v17"
    assert m["ms25_alt"] == "v19"
    assert m["ms35_ust"] == "v22"
    assert m["tg_01"] == "v23"
    assert m["tg_6plus"] == "v26"
    assert m["htft_11"] == "v27"
    assert m["htft_10"] == "v28"
    assert m["htft_22"] == "v35"
    assert "cs_1x" not in m
    assert "ms15_alt" not in m


def test_same_offset_different_field():
    m_c = map_row({25: "1.9"}, "closing")
    m_o = map_row({25: "1.9"}, "opening")
    assert m_c == {"tg_01": "1.9"}
    assert m_o == {"tg_45": "1.9"}


def test_tables_have_unique_offsets_and_fields():
    for table in COLUMN_TABLES.values():
        offsets = [o for o, _ in table]
        names = [n for _, n in table]
        assert len(offsets) == len(set(offsets))
        assert len(names) == len(set(names))
    assert [o for o, _ in CLOSING_COLUMNS] == list(range(14, 29))
    assert [o for o, _ in OPENING_COLUMNS] == list(range(14, 36))


def test_missing_and_empty_values_skipped():
    m = map_row({0: "01.01.23", 2: "A", 3: "", 6: None, 7: 0}, "closing")
    assert m == {"date": "01.01.23", "home_team": "A", "ms0": 0}


def test_normalize_dataset_type():
    assert normalize_dataset_type(None) == "closing"
    assert normalize_dataset_type("OPENING") == "opening"
    with pytest.raises(UnknownDatasetTypeError):
        normalize_dataset_type("live")
