from listings.program import (
    is_listable,
    load_program_matches,
    record_from_listing,
    save_program_selection,
)
from storage.chunked_store import PROGRAM_KEY, ChunkedStore


def _entry(home, away, ms1="2,10", league="TUR1"):
    entry = [None] * 27
    entry[1] = home
    entry[3] = away
    entry[7] = "19.10.26"
    entry[16] = ms1
    entry[17] = "3,20"
    entry[18] = 3.5
    entry[26] = league
    return entry


def test_record_from_listing():
    record = record_from_listing(_entry("Alpha", "Beta"))
    assert record == {
        "id": 1,
        "date": "19.10.26",
        "league": "TUR1",
        "home_team": "Alpha",
        "away_team": "Beta",
        "ms1": "2.10",
        "ms0": "3.20",
        "ms2": 3.5,
    }


def test_short_tuple_drops_missing_fields():
    record = record_from_listing(["x", "Alpha", "y", "Beta"])
    assert record == {"id": 1, "home_team": "Alpha", "away_team": "Beta"}


def test_is_listable():
    assert is_listable(_entry("A", "B"))
    assert not is_listable(_entry("A", None))
    assert not is_listable([])


def test_save_and_load_program_selection(tmp_path):
    store = ChunkedStore(tmp_path / "odds.sqlite3")
    saved = save_program_selection(store, [_entry("A", "B"), _entry(None, "X"), _entry("C", "D")])
    assert [r["id"] for r in saved] == [1, 2]
    assert load_program_matches(store) == saved
    assert store.read_meta(PROGRAM_KEY)["type"] == "program"
    assert store.is_loaded("program")
    assert not store.is_loaded("closing")
