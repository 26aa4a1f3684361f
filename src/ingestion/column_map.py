from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

from core.exceptions import UnknownDatasetTypeError
from core.models import MatchRecord

# Ogni modifica alle tabelle cambia il significato dei dati già salvati:
# incrementare MAPPING_VERSION (viene scritta nei metadati di ogni dataset).
MAPPING_VERSION = 1

ColumnTable = Tuple[Tuple[int, str], ...]

COMMON_COLUMNS: ColumnTable = (
    (0, "date"),
    (1, "league"),
    (2, "home_team"),
    (3, "away_team"),
    (4, "score_ht"),
    (5, "score"),
    # Maç Sonucu 1/0/2
    (6, "ms1"),
    (7, "ms0"),
    (8, "ms2"),
    # İlk Yarı 1/0/2
    (9, "iy1"),
    (10, "iy0"),
    (11, "iy2"),
    # Karşılıklı Gol var/yok
    (12, "kg_var"),
    (13, "kg_yok"),
)

CLOSING_COLUMNS: ColumnTable = (
    (14, "cs_1x"),
    (15, "cs_12"),
    (16, "cs_2x"),
    (17, "iy15_alt"),
    (18, "iy15_ust"),
    (19, "ms15_alt"),
    (20, "ms15_ust"),
    (21, "ms25_alt"),
    (22, "ms25_ust"),
    (23, "ms35_alt"),
    (24, "ms35_ust"),
    (25, "tg_01"),
    (26, "tg_23"),
    (27, "tg_45"),
    (28, "tg_6plus"),
)

OPENING_COLUMNS: ColumnTable = (
    (14, "handicap_1"),
    (15, "handicap_0"),
    (16, "handicap_2"),
    (17, "iy15_alt"),
    (18, "iy15_ust"),
    (19, "ms25_alt"),
    (20, "ms25_ust"),
    (21, "ms35_alt"),
    (22, "ms35_ust"),
    (23, "tg_01"),
    (24, "tg_23"),
    (25, "tg_45"),
    (26, "tg_6plus"),
    # İY/MS 1/1 ... 2/2
    (27, "htft_11"),
    (28, "htft_10"),
    (29, "htft_12"),
    (30, "htft_01"),
    (31, "htft_00"),
    (32, "htft_02"),
    (33, "htft_21"),
    (34, "htft_20"),
    (35, "htft_22"),
)

COLUMN_TABLES: Dict[str, ColumnTable] = {
    "closing": COMMON_COLUMNS + CLOSING_COLUMNS,
    "opening": COMMON_COLUMNS + OPENING_COLUMNS,
}


def normalize_dataset_type(dataset_type: Optional[str]) -> str:
    """None / "" -> 'closing' (default storico). Valori ignoti -> UnknownDatasetTypeError."""
    if dataset_type is None or dataset_type == "":
        return "closing"
    value = str(dataset_type).strip().lower()
    if value not in COLUMN_TABLES:
        raise UnknownDatasetTypeError(f"Tipo dataset non supportato: {dataset_type!r}")
    return value


def column_table(dataset_type: Optional[str]) -> ColumnTable:
    return COLUMN_TABLES[normalize_dataset_type(dataset_type)]


def field_names(dataset_type: Optional[str]) -> Tuple[str, ...]:
    return tuple(name for _, name in column_table(dataset_type))


def map_row(raw: Mapping[int, Any], dataset_type: Optional[str]) -> MatchRecord:
    """
    Converte una riga posizionale sparsa ({colonna: valore}) in un record con campi nominati.
    Le colonne assenti non producono il campo.
    """
    record: Dict[str, Any] = {}
    for offset, name in column_table(dataset_type):
        value = raw.get(offset)
        if value is None or value == "":
            continue
        record[name] = value
    return record  # type: ignore[return-value]


__all__ = [
    "MAPPING_VERSION",
    "COLUMN_TABLES",
    "COMMON_COLUMNS",
    "CLOSING_COLUMNS",
    "OPENING_COLUMNS",
    "normalize_dataset_type",
    "column_table",
    "field_names",
    "map_row",
]
