from __future__ import annotations

from fastapi import APIRouter, HTTPException
from fastapi.responses import Response
from prometheus_client import CONTENT_TYPE_LATEST

from core.metrics import read_ingest_snapshot
from core.logging import get_logger
from monitoring.prometheus_exporter import generate_prometheus_text

router = APIRouter(tags=["metrics"])
logger = get_logger("api.routes.metrics")


@router.get("/metrics", summary="Ultima snapshot ingestione")
def get_metrics():
    """
    Ritorna il contenuto di metrics/last_ingest.json.
    Se il file non esiste -> 404.
    """
    data = read_ingest_snapshot()
    if data is None:
        raise HTTPException(status_code=404, detail="metrics file not found")
    return data


@router.get("/metrics/prometheus", summary="Metriche formato Prometheus")
def get_prometheus_metrics():
    return Response(content=generate_prometheus_text(), media_type=CONTENT_TYPE_LATEST)
