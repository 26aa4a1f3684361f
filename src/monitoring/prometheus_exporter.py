from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    generate_latest,
)
from core.logging import get_logger

logger = get_logger("monitoring.prometheus_exporter")

# Registry globale (semplice) – separato dal default di prometheus_client.
_REGISTRY = CollectorRegistry()

INGEST_RUNS_TOTAL = Counter("odds_ingest_runs_total", "Numero caricamenti completati", registry=_REGISTRY)
INGEST_BACKGROUND_TOTAL = Counter(
    "odds_ingest_background_total", "Caricamenti completati dal worker in background", registry=_REGISTRY
)
INGEST_FALLBACK_TOTAL = Counter(
    "odds_ingest_fallback_total", "Caricamenti completati con fallback locale", registry=_REGISTRY
)
INGEST_FAILURES_TOTAL = Counter("odds_ingest_failures_total", "Caricamenti falliti", registry=_REGISTRY)
CLOSING_RECORDS = Gauge("odds_dataset_closing_records", "Record nel dataset closing", registry=_REGISTRY)
OPENING_RECORDS = Gauge("odds_dataset_opening_records", "Record nel dataset opening", registry=_REGISTRY)


def record_ingest_outcome(mode: str) -> None:
    INGEST_RUNS_TOTAL.inc()
    if mode == "fallback":
        INGEST_FALLBACK_TOTAL.inc()
    else:
        INGEST_BACKGROUND_TOTAL.inc()


def record_ingest_failure() -> None:
    INGEST_FAILURES_TOTAL.inc()


def update_dataset_gauges(summary) -> None:
    CLOSING_RECORDS.set(summary.closing_count)
    OPENING_RECORDS.set(summary.opening_count)
    logger.debug("Prometheus metrics updated.")


def generate_prometheus_text() -> bytes:
    return generate_latest(_REGISTRY)


__all__ = [
    "record_ingest_outcome",
    "record_ingest_failure",
    "update_dataset_gauges",
    "generate_prometheus_text",
    "_REGISTRY",
]
