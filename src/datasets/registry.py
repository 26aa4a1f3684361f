from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict, List, Optional

import pandas as pd

from core.exceptions import StorageError
from core.logging import get_logger
from core.models import MatchDataset
from ingestion.column_map import MAPPING_VERSION, field_names, normalize_dataset_type
from storage.chunked_store import (
    CLOSING_KEY,
    LEGACY_ARCHIVE_KEY,
    OPENING_KEY,
    ChunkedStore,
)

logger = get_logger("datasets.registry")


@dataclass
class DatasetSummary:
    has_closing: bool
    has_opening: bool
    closing_count: int
    opening_count: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


class DatasetRegistry:
    """
    Stato dei due dataset (closing / opening) e del dataset attivo.
    Lo store è la fonte di verità: le liste in memoria sono una cache ricostruita da restore().
    """

    def __init__(self, store: ChunkedStore, active_type: str = "closing"):
        self.store = store
        self._datasets: Dict[str, MatchDataset] = {"closing": [], "opening": []}
        self.active_type = normalize_dataset_type(active_type)

    @property
    def loaded(self) -> bool:
        return bool(self._datasets["closing"] or self._datasets["opening"])

    def dataset(self, dataset_type: str) -> MatchDataset:
        return self._datasets[normalize_dataset_type(dataset_type)]

    def active(self) -> MatchDataset:
        """Dataset attivo: è la lista stessa (vista), non una copia."""
        return self._datasets[self.active_type]

    def set_active(self, dataset_type: str) -> MatchDataset:
        self.active_type = normalize_dataset_type(dataset_type)
        current = self.active()
        logger.info("active_dataset_changed", extra={"dataset_type": self.active_type, "count": len(current)})
        return current

    def _load_closing(self) -> MatchDataset:
        if self.store.has_dataset(CLOSING_KEY):
            return self.store.read_dataset(CLOSING_KEY, expected_version=MAPPING_VERSION)
        # archivio del vecchio formato a schema unico
        return self.store.read_dataset(LEGACY_ARCHIVE_KEY)

    def restore(self) -> bool:
        """
        Rilegge entrambi i dataset dallo store sostituendo (non unendo) le liste in memoria.
        Errori: loggati, ritorna False e lo stato in memoria resta invariato.
        """
        try:
            closing = self._load_closing()
            opening = self.store.read_dataset(OPENING_KEY, expected_version=MAPPING_VERSION)
        except StorageError as exc:
            logger.error("Ripristino dataset fallito: %s", exc)
            return False
        self._datasets = {"closing": closing, "opening": opening}
        logger.info(
            "datasets_restored",
            extra={"count": len(closing) + len(opening), "dataset_type": self.active_type},
        )
        return True

    def summary(self) -> DatasetSummary:
        closing = self._datasets["closing"]
        opening = self._datasets["opening"]
        return DatasetSummary(
            has_closing=len(closing) > 0,
            has_opening=len(opening) > 0,
            closing_count=len(closing),
            opening_count=len(opening),
        )

    def active_frame(self) -> pd.DataFrame:
        columns: List[str] = ["id"] + list(field_names(self.active_type))
        return pd.DataFrame.from_records(self.active(), columns=columns)

    def clear(self) -> None:
        self._datasets = {"closing": [], "opening": []}
        self.store.clear()


def build_registry(store: ChunkedStore, active_type: Optional[str] = None, restore: bool = True) -> DatasetRegistry:
    registry = DatasetRegistry(store, active_type or "closing")
    if restore:
        registry.restore()
    return registry


__all__ = ["DatasetRegistry", "DatasetSummary", "build_registry"]
