from __future__ import annotations

import io
import multiprocessing
import time
from concurrent.futures import ProcessPoolExecutor, TimeoutError as FuturesTimeoutError
from concurrent.futures.process import BrokenProcessPool
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence, Union

from openpyxl import Workbook

from core.exceptions import (
    BackgroundExecutionError,
    BufferConsumedError,
    IngestionError,
    IngestionTimeoutError,
    MappingConsistencyError,
)
from core.logging import get_logger
from core.models import MatchDataset
from storage.chunked_store import DATASET_KEYS, ChunkedStore
from .column_map import MAPPING_VERSION, normalize_dataset_type
from .scanner import parse_workbook_bytes

logger = get_logger("ingestion.executor")


# ---------------------------------------------------------------------------
# Pipeline (eseguita identica nel worker e nel fallback locale)
# ---------------------------------------------------------------------------


def run_pipeline(data: bytes, dataset_type: str, store_path: str) -> int:
    """scan -> map -> filtro -> scrittura transazionale. Ritorna il numero di record."""
    dtype = normalize_dataset_type(dataset_type)
    records = parse_workbook_bytes(data, dtype)
    ChunkedStore(store_path).write_dataset(DATASET_KEYS[dtype], records, dtype, version=MAPPING_VERSION)
    return len(records)


def _worker_ingest(data: bytes, dataset_type: str, store_path: str) -> Dict[str, Any]:
    # Entry point del processo worker: l'esito viene riportato come messaggio, non come eccezione
    try:
        count = run_pipeline(data, dataset_type, store_path)
    except Exception as exc:
        return {"success": False, "error": f"{type(exc).__name__}: {exc}"}
    return {"success": True, "count": count, "dataset_type": dataset_type}


def _worker_parse(data: bytes, dataset_type: str) -> MatchDataset:
    return parse_workbook_bytes(data, dataset_type)


# ---------------------------------------------------------------------------
# Buffer di input
# ---------------------------------------------------------------------------


class InputBuffer:
    """
    Proprietario dei byte del file.
    handoff(transfer=False) consegna una copia (il fallback può rileggere);
    handoff(transfer=True) cede i byte al worker e rilascia il riferimento locale.
    """

    def __init__(self, data: Union[bytes, bytearray, memoryview]):
        self._data: Optional[bytes] = bytes(data)
        self.size = len(self._data)

    @property
    def consumed(self) -> bool:
        return self._data is None

    def read(self) -> bytes:
        if self._data is None:
            raise BufferConsumedError(
                "Buffer di input già ceduto al worker in background: impossibile eseguire il fallback"
            )
        return self._data

    def handoff(self, transfer: bool = False) -> bytes:
        data = self.read()
        if transfer:
            self._data = None
        return data


# ---------------------------------------------------------------------------
# Executor
# ---------------------------------------------------------------------------


class ExecutionState(str, Enum):
    PENDING = "pending"
    BACKGROUND = "background"
    FALLBACK = "fallback"
    DONE = "done"
    FAILED = "failed"


@dataclass
class ExecutionOutcome:
    count: int
    dataset_type: str
    mode: str  # "background" | "fallback"
    duration_ms: float
    fallback_reason: Optional[str] = None


def _terminate_pool(pool: ProcessPoolExecutor) -> None:
    terminate = getattr(pool, "terminate_workers", None)
    if terminate is not None:  # Python >= 3.14
        terminate()
        return
    for proc in list((getattr(pool, "_processes", None) or {}).values()):
        proc.terminate()
    pool.shutdown(wait=False, cancel_futures=True)


class IngestionExecutor:
    """
    Esegue la pipeline in un processo separato (nessuno stato condiviso con il chiamante)
    con ripiego sul processo corrente se il worker non parte o riporta un errore.

    Stati: PENDING -> BACKGROUND -> DONE
                              \\-> FALLBACK -> DONE | FAILED
    Il timeout del worker è terminale (FAILED, nessun fallback).
    """

    def __init__(
        self,
        store_path: str,
        use_background: bool = True,
        transfer_buffer: bool = False,
        timeout: float = 300.0,
        start_method: str = "spawn",
    ):
        self.store_path = str(store_path)
        self.use_background = use_background
        self.transfer_buffer = transfer_buffer
        self.timeout = timeout
        self.start_method = start_method
        self.state = ExecutionState.PENDING

    @classmethod
    def from_settings(cls, settings) -> "IngestionExecutor":
        return cls(
            store_path=settings.store_path,
            use_background=settings.ingest_use_background,
            transfer_buffer=settings.ingest_transfer_buffer,
            timeout=settings.ingest_timeout_seconds,
            start_method=settings.ingest_start_method,
        )

    def _new_pool(self) -> ProcessPoolExecutor:
        return ProcessPoolExecutor(max_workers=1, mp_context=multiprocessing.get_context(self.start_method))

    def _submit_and_wait(self, fn, *args: Any) -> Any:
        """Avvia un worker dedicato, attende l'esito e lo chiude sempre."""
        pool = self._new_pool()
        timed_out = False
        try:
            future = pool.submit(fn, *args)
            return future.result(timeout=self.timeout)
        except FuturesTimeoutError:
            timed_out = True
            raise
        finally:
            if timed_out:
                _terminate_pool(pool)
            else:
                pool.shutdown(wait=True, cancel_futures=True)

    def execute(self, payload: Union[InputBuffer, bytes, bytearray], dataset_type: Optional[str]) -> ExecutionOutcome:
        dtype = normalize_dataset_type(dataset_type)
        buffer = payload if isinstance(payload, InputBuffer) else InputBuffer(payload)
        start = time.perf_counter()
        self.state = ExecutionState.PENDING

        if not self.use_background:
            return self._run_fallback(buffer, dtype, start, reason="background disabled")

        self.state = ExecutionState.BACKGROUND
        try:
            data = buffer.handoff(transfer=self.transfer_buffer)
            message = self._submit_and_wait(_worker_ingest, data, dtype, self.store_path)
            del data
        except FuturesTimeoutError as exc:
            self.state = ExecutionState.FAILED
            raise IngestionTimeoutError(
                f"Worker di ingestione senza risposta dopo {self.timeout:.0f}s"
            ) from exc
        except BrokenProcessPool as exc:
            logger.warning("Worker terminato in modo anomalo, fallback locale: %s", exc)
            return self._run_fallback(buffer, dtype, start, reason=f"worker crashed: {exc}")
        except (OSError, RuntimeError, ValueError) as exc:
            # avvio del processo fallito
            logger.warning("Avvio worker fallito, fallback locale: %s", exc)
            return self._run_fallback(buffer, dtype, start, reason=f"worker start failed: {exc}")

        if not message.get("success"):
            error = message.get("error") or "errore sconosciuto"
            logger.warning("Errore nel worker, fallback locale", extra={"error": error, "dataset_type": dtype})
            return self._run_fallback(buffer, dtype, start, reason=error)

        self.state = ExecutionState.DONE
        outcome = ExecutionOutcome(
            count=int(message["count"]),
            dataset_type=dtype,
            mode="background",
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
        )
        logger.info(
            "ingest_background_done",
            extra={"count": outcome.count, "dataset_type": dtype, "mode": outcome.mode, "duration_ms": outcome.duration_ms},
        )
        return outcome

    def _run_fallback(self, buffer: InputBuffer, dtype: str, start: float, reason: str) -> ExecutionOutcome:
        self.state = ExecutionState.FALLBACK
        try:
            data = buffer.read()
        except BufferConsumedError:
            self.state = ExecutionState.FAILED
            raise
        try:
            count = run_pipeline(data, dtype, self.store_path)
        except IngestionError:
            self.state = ExecutionState.FAILED
            raise
        except Exception as exc:
            self.state = ExecutionState.FAILED
            raise BackgroundExecutionError(f"File non processato: {exc}") from exc
        self.state = ExecutionState.DONE
        outcome = ExecutionOutcome(
            count=count,
            dataset_type=dtype,
            mode="fallback",
            duration_ms=round((time.perf_counter() - start) * 1000, 1),
            fallback_reason=reason,
        )
        logger.info(
            "ingest_fallback_done",
            extra={"count": count, "dataset_type": dtype, "mode": outcome.mode, "duration_ms": outcome.duration_ms},
        )
        return outcome

    # ------------------------------------------------------------------
    # Self-check
    # ------------------------------------------------------------------

    def self_check(self, sample_rows: Optional[Sequence[Sequence[Any]]] = None) -> None:
        """
        Confronta, per entrambi i tipi dataset, i record prodotti dal worker e dal
        processo corrente sullo stesso campione. Differenze -> MappingConsistencyError.
        """
        data = build_sample_workbook(sample_rows or SAMPLE_ROWS)
        for dtype in ("closing", "opening"):
            local = _worker_parse(data, dtype)
            if not self.use_background:
                continue
            try:
                remote = self._submit_and_wait(_worker_parse, data, dtype)
            except FuturesTimeoutError as exc:
                raise IngestionTimeoutError("Self-check: worker senza risposta") from exc
            except (BrokenProcessPool, OSError, RuntimeError) as exc:
                logger.warning("Self-check: worker non disponibile (%s), verrà usato il fallback", exc)
                return
            if remote != local:
                raise MappingConsistencyError(
                    f"Mappatura '{dtype}' diversa tra worker e fallback: {remote!r} != {local!r}"
                )
        logger.info("mapping_self_check_ok", extra={"count": len(sample_rows or SAMPLE_ROWS)})


# Campione fisso: intestazione, riga closing/opening completa, decimali con virgola, data seriale
SAMPLE_ROWS: List[List[Any]] = [
    ["Tarih", "Lig", "Ev", "Deplasman", "İY", "MS"] + [f"c{i}" for i in range(6, 36)],
    [45000, "TUR", "Alpha", "Beta", "0-0", "1-1"] + [f"{1 + i / 100:.2f}".replace(".", ",") for i in range(6, 36)],
    ["01.02.2023", "ENG", "Gamma", "Delta", "1-0", "2-0"] + [round(1.5 + i / 10, 2) for i in range(6, 36)],
]


def build_sample_workbook(rows: Sequence[Sequence[Any]]) -> bytes:
    wb = Workbook()
    ws = wb.active
    for row in rows:
        ws.append(list(row))
    buf = io.BytesIO()
    wb.save(buf)
    return buf.getvalue()


__all__ = [
    "IngestionExecutor",
    "ExecutionOutcome",
    "ExecutionState",
    "InputBuffer",
    "run_pipeline",
    "build_sample_workbook",
    "SAMPLE_ROWS",
]
