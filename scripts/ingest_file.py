from __future__ import annotations

import argparse
import sys
from pathlib import Path

from core.config import get_settings
from core.exceptions import IngestionError
from core.logging import get_logger
from ingestion.service import IngestionService

logger = get_logger("scripts.ingest_file")


def main(argv=None) -> int:
    """
    Esempio di utilizzo:
      python -m scripts.ingest_file archivio_kapanis.xlsx --type closing
      python -m scripts.ingest_file archivio_acilis.xlsx --type opening
    """
    ap = argparse.ArgumentParser(description="Carica un export .xlsx di quote nello store locale")
    ap.add_argument("file", type=str)
    ap.add_argument("--type", dest="dataset_type", default=None, choices=["closing", "opening"])
    ap.add_argument("--no-background", action="store_true", help="esegue la pipeline nel processo corrente")
    args = ap.parse_args(argv)

    try:
        settings = get_settings()
    except ValueError as e:
        logger.error("Config non valida: %s", e)
        return 2

    fpath = Path(args.file)
    if not fpath.exists():
        logger.error("File non trovato: %s", fpath)
        return 1

    service = IngestionService.from_settings(settings)
    if args.no_background:
        service.executor.use_background = False

    try:
        result = service.ingest(fpath.read_bytes(), args.dataset_type or settings.default_dataset_type)
    except IngestionError as e:
        logger.error("Caricamento fallito: %s", e)
        return 1

    if result.empty:
        print(f"[ingest] {fpath.name}: nessuna partita trovata ({result.dataset_type})")
    else:
        print(f"[ingest] {fpath.name}: {result.count} partite ({result.dataset_type}, {result.mode})")
    return 0


if __name__ == "__main__":
    sys.exit(main())
