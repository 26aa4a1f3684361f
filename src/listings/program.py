from __future__ import annotations

from typing import Any, Iterable, List, Sequence

from core.logging import get_logger
from core.models import MatchDataset, MatchRecord
from ingestion.scanner import normalize_decimal_comma
from storage.chunked_store import PROGRAM_KEY, ChunkedStore

logger = get_logger("listings.program")

# Indici della tupla del programma partite
IDX_HOME = 1
IDX_AWAY = 3
IDX_DATE = 7
IDX_MS1 = 16
IDX_MS0 = 17
IDX_MS2 = 18
IDX_LEAGUE = 26


def _at(entry: Sequence[Any], idx: int) -> Any:
    return entry[idx] if len(entry) > idx else None


def _odd(value: Any) -> Any:
    if value is None or value == "":
        return None
    return normalize_decimal_comma(str(value).strip()) if isinstance(value, str) else value


def is_listable(entry: Sequence[Any]) -> bool:
    return bool(_at(entry, IDX_HOME) and _at(entry, IDX_AWAY))


def record_from_listing(entry: Sequence[Any]) -> MatchRecord:
    """Tupla posizionale del programma -> record singolo (id sempre 1)."""
    raw = {
        "id": 1,
        "date": _at(entry, IDX_DATE),
        "league": _at(entry, IDX_LEAGUE),
        "home_team": _at(entry, IDX_HOME),
        "away_team": _at(entry, IDX_AWAY),
        "ms1": _odd(_at(entry, IDX_MS1)),
        "ms0": _odd(_at(entry, IDX_MS0)),
        "ms2": _odd(_at(entry, IDX_MS2)),
    }
    return {k: v for k, v in raw.items() if v is not None}  # type: ignore[return-value]


def save_program_selection(store: ChunkedStore, entries: Iterable[Sequence[Any]]) -> MatchDataset:
    """
    Salva le partite selezionate dal programma nello spazio chiavi legacy 'program_matches'.
    Le tuple senza squadre vengono ignorate.
    """
    records: List[MatchRecord] = []
    for entry in entries:
        if not is_listable(entry):
            continue
        record = record_from_listing(entry)
        record["id"] = len(records) + 1
        records.append(record)
    store.write_dataset(PROGRAM_KEY, records, "program")
    logger.info("program_selection_saved", extra={"count": len(records)})
    return records


def load_program_matches(store: ChunkedStore) -> MatchDataset:
    return store.read_dataset(PROGRAM_KEY)


__all__ = ["record_from_listing", "is_listable", "save_program_selection", "load_program_matches"]
