from __future__ import annotations

import time
from prometheus_client import start_http_server
from core.config import get_settings
from core.logging import get_logger
from datasets.registry import DatasetRegistry
from monitoring.prometheus_exporter import _REGISTRY, update_dataset_gauges
from storage.chunked_store import ChunkedStore

logger = get_logger("scripts.run_prometheus_exporter")


def main() -> None:
    try:
        settings = get_settings()
    except ValueError as e:
        logger.error("Config non valida: %s", e)
        return

    if not settings.enable_prometheus_exporter:
        logger.error("ENABLE_PROMETHEUS_EXPORTER=0: nulla da fare.")
        return

    port = settings.prometheus_port
    start_http_server(port, registry=_REGISTRY)
    logger.info("Prometheus exporter avviato su porta %d", port)

    registry = DatasetRegistry(ChunkedStore(settings.store_path), settings.default_dataset_type)
    # Loop semplice: rilegge lo store e aggiorna le metriche ogni 15s
    while True:
        if registry.restore():
            update_dataset_gauges(registry.summary())
        time.sleep(15)


if __name__ == "__main__":
    main()
