from __future__ import annotations

import io
import re
import zipfile
from datetime import date, datetime, time, timedelta
from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence

from openpyxl import load_workbook
from openpyxl.utils.exceptions import InvalidFileException

from core.exceptions import SheetParseError
from core.logging import get_logger
from core.models import MatchDataset, MatchRecord
from .column_map import map_row, normalize_dataset_type

logger = get_logger("ingestion.scanner")

# Epoca 1900-01-01 con correzione di 2 giorni: riproduce il bug del 1900 bisestile
# dei fogli di calcolo (seriale 1 = 01.01.1900, seriale 60 = 29.02.1900 inesistente).
EXCEL_EPOCH = datetime(1900, 1, 1)
EXCEL_SERIAL_OFFSET_DAYS = 2

HEADER_MARKERS = ("Tarih", "TARİH")

_DECIMAL_COMMA_RE = re.compile(r"[0-9]+,[0-9]+")

RawRow = Dict[int, Any]


def excel_serial_to_date_string(serial: float) -> str:
    """Seriale data del foglio di calcolo -> 'DD.MM.YY'."""
    dt = EXCEL_EPOCH + timedelta(days=serial - EXCEL_SERIAL_OFFSET_DAYS)
    return dt.strftime("%d.%m.%y")


def duration_to_text(value: timedelta) -> str:
    """Durata -> testo come nel formato cella '[h]:mm:ss' (ore oltre le 24 non spezzate in giorni)."""
    seconds = int(round(value.total_seconds()))
    sign = "-" if seconds < 0 else ""
    hours, rest = divmod(abs(seconds), 3600)
    minutes, secs = divmod(rest, 60)
    return f"{sign}{hours}:{minutes:02d}:{secs:02d}"


def normalize_decimal_comma(value: Any) -> Any:
    if isinstance(value, str) and _DECIMAL_COMMA_RE.fullmatch(value):
        return value.replace(",", ".", 1)
    return value


def normalize_cell(col: int, value: Any) -> Any:
    """
    Normalizza un valore di cella prima della mappatura:
    - colonna 0 numerica -> data 'DD.MM.YY' da seriale
    - colonna 0 datetime/date (openpyxl converte le celle formattate come data) -> 'DD.MM.YY'
    - datetime/time altrove -> testo ISO (i record restano serializzabili JSON)
    - timedelta (celle durata) -> testo 'h:mm:ss'
    - stringhe "cifre,cifre" -> separatore decimale '.'
    """
    if col == 0 and isinstance(value, (int, float)) and not isinstance(value, bool):
        try:
            value = excel_serial_to_date_string(value)
        except (OverflowError, ValueError):
            logger.warning("Seriale data fuori intervallo: %r", value)
    elif isinstance(value, (datetime, date)):
        value = value.strftime("%d.%m.%y") if col == 0 else value.isoformat()
    elif isinstance(value, time):
        value = value.isoformat()
    elif isinstance(value, timedelta):
        value = duration_to_text(value)
    return normalize_decimal_comma(value)


def scan_rows(rows: Iterable[Sequence[Any]], first_col: int = 0) -> Iterator[RawRow]:
    """
    Scorre righe di valori (posizione i -> colonna first_col + i).
    Celle None / "" ignorate; righe senza valori scartate.
    """
    for row in rows:
        raw: RawRow = {}
        for i, value in enumerate(row):
            if value is None or value == "":
                continue
            col = first_col + i
            raw[col] = normalize_cell(col, value)
        if raw:
            yield raw


def scan_worksheet(ws) -> Iterator[RawRow]:
    """Scansione del range dichiarato del foglio (colonne assolute, base 0)."""
    if ws.max_row is None or ws.max_column is None:
        # foglio read-only senza tag <dimension>
        ws.calculate_dimension(force=True)
    if not ws.max_row or not ws.max_column:
        return
    min_row = ws.min_row or 1
    min_col = ws.min_column or 1
    rows = ws.iter_rows(
        min_row=min_row,
        max_row=ws.max_row,
        min_col=min_col,
        max_col=ws.max_column,
        values_only=True,
    )
    yield from scan_rows(rows, first_col=min_col - 1)


def is_header_row(raw: Mapping[int, Any]) -> bool:
    first = str(raw.get(0))
    return any(marker in first for marker in HEADER_MARKERS)


def is_data_row(raw: Mapping[int, Any], record: Mapping[str, Any]) -> bool:
    if is_header_row(raw):
        return False
    return bool(record.get("home_team") or raw.get(2))


def build_records(raw_rows: Iterable[Mapping[int, Any]], dataset_type: Optional[str]) -> MatchDataset:
    """
    Mappa + filtra le righe grezze. L'id sequenziale (1..N) viene assegnato
    dopo il filtro, nell'ordine di apparizione.
    """
    dtype = normalize_dataset_type(dataset_type)
    records: List[MatchRecord] = []
    for raw in raw_rows:
        mapped = map_row(raw, dtype)
        if not is_data_row(raw, mapped):
            continue
        record: MatchRecord = {"id": len(records) + 1}
        record.update(mapped)
        records.append(record)
    return records


def parse_workbook_bytes(data: bytes, dataset_type: Optional[str]) -> MatchDataset:
    """Legge il primo foglio del workbook e ritorna i record filtrati."""
    dtype = normalize_dataset_type(dataset_type)
    try:
        wb = load_workbook(io.BytesIO(data), read_only=True, data_only=True)
    except (zipfile.BadZipFile, InvalidFileException, KeyError, OSError, ValueError) as exc:
        raise SheetParseError(f"File non leggibile come foglio di calcolo: {exc}") from exc
    try:
        if not wb.worksheets:
            logger.warning("Workbook senza fogli, nessun record")
            return []
        return build_records(scan_worksheet(wb.worksheets[0]), dtype)
    finally:
        wb.close()


__all__ = [
    "excel_serial_to_date_string",
    "normalize_decimal_comma",
    "duration_to_text",
    "normalize_cell",
    "scan_rows",
    "scan_worksheet",
    "is_header_row",
    "is_data_row",
    "build_records",
    "parse_workbook_bytes",
]
