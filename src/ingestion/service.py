from __future__ import annotations

import threading
from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union

from core.config import Settings, get_settings
from core.exceptions import IngestionError, IngestionInProgressError
from core.logging import get_logger
from core.metrics import write_ingest_snapshot
from core.models import MatchDataset
from datasets.registry import DatasetRegistry, DatasetSummary
from monitoring.prometheus_exporter import record_ingest_failure, record_ingest_outcome, update_dataset_gauges
from storage.chunked_store import ChunkedStore
from .column_map import normalize_dataset_type
from .executor import IngestionExecutor, InputBuffer

logger = get_logger("ingestion.service")


@dataclass
class IngestResult:
    count: int
    dataset_type: str
    mode: str
    restored: bool
    duration_ms: float

    @property
    def empty(self) -> bool:
        # nessun record: caricamento riuscito ma niente da mostrare (NON un errore)
        return self.count == 0

    def to_dict(self) -> Dict[str, Any]:
        out = asdict(self)
        out["empty"] = self.empty
        return out


class IngestionService:
    """
    Punto di ingresso per i consumatori: ingest / dataset attivo / clear / riepilogo.
    Un solo caricamento alla volta per istanza.
    """

    def __init__(self, store: ChunkedStore, registry: DatasetRegistry, executor: IngestionExecutor):
        self.store = store
        self.registry = registry
        self.executor = executor
        self._lock = threading.Lock()

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, restore: bool = True) -> "IngestionService":
        settings = settings or get_settings()
        store = ChunkedStore(settings.store_path)
        registry = DatasetRegistry(store, settings.default_dataset_type)
        if restore:
            registry.restore()
        return cls(store, registry, IngestionExecutor.from_settings(settings))

    def ingest(self, data: Union[bytes, bytearray, InputBuffer], dataset_type: Optional[str]) -> IngestResult:
        dtype = normalize_dataset_type(dataset_type)
        if not self._lock.acquire(blocking=False):
            raise IngestionInProgressError("Un altro caricamento è già in corso")
        try:
            try:
                outcome = self.executor.execute(data, dtype)
            except IngestionError as exc:
                record_ingest_failure()
                logger.error("Ingestione fallita", extra={"dataset_type": dtype, "error": str(exc)})
                raise
            # restore solo dopo il commit della scrittura
            restored = self.registry.restore()
            if not restored:
                logger.warning("Dati salvati ma ripristino in memoria fallito", extra={"dataset_type": dtype})
            result = IngestResult(
                count=outcome.count,
                dataset_type=dtype,
                mode=outcome.mode,
                restored=restored,
                duration_ms=outcome.duration_ms,
            )
            record_ingest_outcome(result.mode)
            update_dataset_gauges(self.registry.summary())
            payload = result.to_dict()
            payload["finished_at"] = datetime.now(timezone.utc).isoformat()
            payload["fallback_reason"] = outcome.fallback_reason
            try:
                write_ingest_snapshot(payload)
            except OSError as exc:
                # dati già committati
                logger.warning("Snapshot ingestione non scritta: %s", exc, extra={"dataset_type": dtype})
        finally:
            self._lock.release()
        return result

    def get_active_dataset(self) -> MatchDataset:
        return self.registry.active()

    def set_active_dataset(self, dataset_type: str) -> MatchDataset:
        return self.registry.set_active(dataset_type)

    def dataset_summary(self) -> DatasetSummary:
        return self.registry.summary()

    def restore(self) -> bool:
        return self.registry.restore()

    def clear_all(self) -> None:
        if not self._lock.acquire(blocking=False):
            raise IngestionInProgressError("Impossibile svuotare lo store durante un caricamento")
        try:
            self.registry.clear()
        finally:
            self._lock.release()
        update_dataset_gauges(self.registry.summary())
        logger.info("datasets_cleared")


__all__ = ["IngestionService", "IngestResult"]
