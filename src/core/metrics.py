from __future__ import annotations

import json
import os
from pathlib import Path
from typing import Any, Dict, Optional

from core.config import get_settings
from core.logging import get_logger

logger = get_logger("core.metrics")

LAST_INGEST_FILE_NAME = "last_ingest.json"


def _ensure_dir(path: Path) -> None:
    path.mkdir(parents=True, exist_ok=True)


def last_ingest_path() -> Path:
    settings = get_settings()
    return Path(settings.bet_data_dir or "data") / settings.metrics_dir / LAST_INGEST_FILE_NAME


def write_ingest_snapshot(payload: Dict[str, Any]) -> Path:
    """
    Scrive 'last_ingest.json' nel METRICS_DIR se abilitato.
    Sovrascrive sempre. Ritorna il path (anche se disabilitato).
    """
    settings = get_settings()
    target = last_ingest_path()
    if not settings.enable_metrics_file:
        return target
    _ensure_dir(target.parent)
    tmp = target.with_suffix(".json.tmp")
    with tmp.open("w", encoding="utf-8") as f:
        json.dump(payload, f, ensure_ascii=False, indent=2)
    os.replace(tmp, target)
    return target


def read_ingest_snapshot() -> Optional[Dict[str, Any]]:
    target = last_ingest_path()
    if not target.exists():
        return None
    try:
        data = json.loads(target.read_text(encoding="utf-8"))
    except (OSError, ValueError) as exc:
        logger.warning("Snapshot ingestione non leggibile %s: %s", target, exc)
        return None
    return data if isinstance(data, dict) else None


__all__ = ["write_ingest_snapshot", "read_ingest_snapshot", "last_ingest_path"]
