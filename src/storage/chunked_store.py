from __future__ import annotations

import json
import math
import os
import sqlite3
from contextlib import closing, contextmanager
from pathlib import Path
from typing import Any, Iterator, List, Optional, Sequence, Union

from core.exceptions import StorageError, StorageIntegrityError
from core.logging import get_logger
from core.models import DatasetMeta

logger = get_logger("storage.chunked_store")

# ---------------------------------------------------------------------------
# Layout chiavi
# ---------------------------------------------------------------------------
CHUNK_SIZE = 2000

CLOSING_KEY = "matches_closing"
OPENING_KEY = "matches_opening"
LEGACY_ARCHIVE_KEY = "matches"
PROGRAM_KEY = "program_matches"

DATASET_KEYS = {"closing": CLOSING_KEY, "opening": OPENING_KEY}


def meta_key(key: str) -> str:
    return f"{key}_meta"


def chunk_key(key: str, index: int) -> str:
    return f"{key}_{index}"


def loaded_flag_key(dataset_type: str) -> str:
    return f"loaded_{dataset_type}"


def chunk_count(total: int) -> int:
    return math.ceil(total / CHUNK_SIZE)


class ChunkedStore:
    """
    Store chiave/valore durevole (SQLite, valori JSON) con dataset suddivisi in chunk.

    Ogni operazione apre una propria connessione: lo stesso file viene usato
    sia dal processo principale sia dal worker di ingestione.
    """

    def __init__(self, path: Union[str, Path], timeout: float = 30.0):
        self.path = Path(path)
        self.timeout = timeout
        self._init_schema()

    # ------------------------------------------------------------------
    # Low level
    # ------------------------------------------------------------------

    def _connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        conn = sqlite3.connect(str(self.path), timeout=self.timeout)
        conn.execute(f"PRAGMA busy_timeout = {int(self.timeout * 1000)}")
        return conn

    @contextmanager
    def _transaction(self) -> Iterator[sqlite3.Connection]:
        """Commit solo se tutte le operazioni riescono, altrimenti rollback completo."""
        try:
            with closing(self._connect()) as conn:
                with conn:
                    yield conn
        except (sqlite3.Error, TypeError) as exc:
            # TypeError: record non serializzabile in JSON
            raise StorageError(f"Transazione fallita su {self.path}: {exc}") from exc

    def _init_schema(self) -> None:
        with self._transaction() as conn:
            conn.execute("CREATE TABLE IF NOT EXISTS entries (key TEXT PRIMARY KEY, value TEXT NOT NULL)")

    @staticmethod
    def _get(conn: sqlite3.Connection, key: str) -> Any:
        row = conn.execute("SELECT value FROM entries WHERE key = ?", (key,)).fetchone()
        if row is None:
            return None
        try:
            return json.loads(row[0])
        except ValueError as exc:
            raise StorageIntegrityError(f"Valore JSON corrotto per la chiave {key!r}") from exc

    @staticmethod
    def _put(conn: sqlite3.Connection, key: str, value: Any) -> None:
        conn.execute(
            "INSERT OR REPLACE INTO entries (key, value) VALUES (?, ?)",
            (key, json.dumps(value, ensure_ascii=False)),
        )

    @staticmethod
    def _delete_chunks(conn: sqlite3.Connection, key: str) -> int:
        # GLOB: '_' letterale, case-sensitive
        cur = conn.execute("DELETE FROM entries WHERE key GLOB ?", (f"{key}_[0-9]*",))
        return cur.rowcount

    # ------------------------------------------------------------------
    # Raw key/value
    # ------------------------------------------------------------------

    def get(self, key: str) -> Any:
        with self._transaction() as conn:
            return self._get(conn, key)

    def put(self, key: str, value: Any) -> None:
        with self._transaction() as conn:
            self._put(conn, key, value)

    def delete(self, key: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM entries WHERE key = ?", (key,))

    def keys(self) -> List[str]:
        with self._transaction() as conn:
            return [r[0] for r in conn.execute("SELECT key FROM entries ORDER BY key")]

    def clear(self) -> None:
        """Svuota l'intero store (entrambi i dataset, flag, chiavi legacy)."""
        with self._transaction() as conn:
            conn.execute("DELETE FROM entries")
        logger.info("Store svuotato")

    # ------------------------------------------------------------------
    # Dataset
    # ------------------------------------------------------------------

    def write_dataset(
        self,
        key: str,
        records: Sequence[Any],
        dataset_type: str,
        version: Optional[int] = None,
    ) -> DatasetMeta:
        """
        Scrive meta + chunk + flag in un'unica transazione (tutto o niente).
        I chunk di una scrittura precedente vengono rimossi prima.
        """
        total = len(records)
        chunks = chunk_count(total)
        meta: DatasetMeta = {"total": total, "chunks": chunks, "type": dataset_type, "version": version}
        with self._transaction() as conn:
            # blob singolo del vecchio formato
            conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            removed = self._delete_chunks(conn, key)
            self._put(conn, meta_key(key), meta)
            for i in range(chunks):
                self._put(conn, chunk_key(key, i), list(records[i * CHUNK_SIZE:(i + 1) * CHUNK_SIZE]))
            self._put(conn, loaded_flag_key(dataset_type), True)
        logger.info(
            "dataset_written",
            extra={"key": key, "count": total, "chunks": chunks, "dataset_type": dataset_type},
        )
        if removed > chunks:
            logger.debug("Rimossi %d chunk precedenti per %s", removed, key)
        return meta

    def read_meta(self, key: str) -> Optional[DatasetMeta]:
        meta = self.get(meta_key(key))
        if meta is None:
            return None
        if not isinstance(meta, dict) or not isinstance(meta.get("chunks"), int):
            raise StorageIntegrityError(f"Metadati non validi per {key!r}: {meta!r}")
        return meta  # type: ignore[return-value]

    def has_dataset(self, key: str) -> bool:
        return self.read_meta(key) is not None

    def is_loaded(self, dataset_type: str) -> bool:
        return bool(self.get(loaded_flag_key(dataset_type)))

    def read_dataset(self, key: str, expected_version: Optional[int] = None) -> List[Any]:
        """
        Legge tutti i chunk dichiarati nei metadati, in ordine di indice.
        - meta assente: blob legacy (lista sotto la chiave nuda) oppure [].
        - chunk mancante / totale incoerente / versione diversa -> StorageIntegrityError.
        """
        with self._transaction() as conn:
            meta = self._get(conn, meta_key(key))
            if meta is None:
                legacy = self._get(conn, key)
                if isinstance(legacy, list):
                    logger.info("Lettura formato legacy", extra={"key": key, "count": len(legacy)})
                    return legacy
                return []
            if not isinstance(meta, dict) or not isinstance(meta.get("chunks"), int):
                raise StorageIntegrityError(f"Metadati non validi per {key!r}: {meta!r}")
            stored_version = meta.get("version")
            if expected_version is not None and stored_version is not None and stored_version != expected_version:
                raise StorageIntegrityError(
                    f"Dataset {key!r} scritto con mappatura v{stored_version}, attesa v{expected_version}"
                )
            out: List[Any] = []
            for i in range(meta["chunks"]):
                chunk = self._get(conn, chunk_key(key, i))
                if not isinstance(chunk, list):
                    raise StorageIntegrityError(f"Chunk {i} mancante per {key!r} (attesi {meta['chunks']})")
                out.extend(chunk)
        total = meta.get("total")
        if isinstance(total, int) and total != len(out):
            raise StorageIntegrityError(f"Dataset {key!r}: attesi {total} record, letti {len(out)}")
        return out

    def delete_dataset(self, key: str) -> None:
        with self._transaction() as conn:
            conn.execute("DELETE FROM entries WHERE key = ?", (key,))
            conn.execute("DELETE FROM entries WHERE key = ?", (meta_key(key),))
            self._delete_chunks(conn, key)


def open_store(path: Optional[Union[str, Path]] = None) -> ChunkedStore:
    """Store nel path dato oppure in BET_DATA_DIR/ODDS_STORE_FILE."""
    if path is None:
        from core.config import get_settings

        path = get_settings().store_path
    return ChunkedStore(os.fspath(path))


__all__ = [
    "CHUNK_SIZE",
    "CLOSING_KEY",
    "OPENING_KEY",
    "LEGACY_ARCHIVE_KEY",
    "PROGRAM_KEY",
    "DATASET_KEYS",
    "ChunkedStore",
    "open_store",
    "chunk_count",
    "chunk_key",
    "meta_key",
    "loaded_flag_key",
]
