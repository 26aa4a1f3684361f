from __future__ import annotations

from fastapi import APIRouter
from core.config import get_settings

router = APIRouter(tags=["health"])

@router.get("/health", summary="Health check")
def health():
    """
    Health endpoint minimale.
    """
    settings = get_settings()
    return {
        "status": "ok",
        "background_ingest_enabled": settings.ingest_use_background,
        "default_dataset_type": settings.default_dataset_type,
        "prometheus_enabled": settings.enable_prometheus_exporter,
    }
