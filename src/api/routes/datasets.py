from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from starlette.concurrency import run_in_threadpool

from core.exceptions import (
    IngestionError,
    IngestionInProgressError,
    SheetParseError,
    StorageError,
    UnknownDatasetTypeError,
)
from core.logging import get_logger
from ingestion.column_map import normalize_dataset_type
from ingestion.service import IngestionService
from api.dependencies import get_service, require_upload_access

router = APIRouter(prefix="/datasets", tags=["datasets"])
logger = get_logger("api.routes.datasets")


def _dataset_type_or_400(dataset_type: str) -> str:
    try:
        return normalize_dataset_type(dataset_type)
    except UnknownDatasetTypeError as exc:
        raise HTTPException(status_code=400, detail=str(exc))


@router.get("/summary", summary="Riepilogo dataset caricati")
def get_summary(service: IngestionService = Depends(get_service)):
    summary = service.dataset_summary().to_dict()
    summary["active"] = service.registry.active_type
    return summary


@router.get("/active", summary="Record del dataset attivo")
def get_active(
    offset: int = Query(0, ge=0),
    limit: Optional[int] = Query(None, ge=1),
    service: IngestionService = Depends(get_service),
):
    data = service.get_active_dataset()
    end = None if limit is None else offset + limit
    return {
        "dataset_type": service.registry.active_type,
        "count": len(data),
        "items": data[offset:end],
    }


@router.put("/active/{dataset_type}", summary="Cambia dataset attivo")
def put_active(dataset_type: str, service: IngestionService = Depends(get_service)):
    dtype = _dataset_type_or_400(dataset_type)
    data = service.set_active_dataset(dtype)
    return {"dataset_type": dtype, "count": len(data)}


@router.post(
    "/{dataset_type}/upload",
    summary="Carica un export .xlsx (body = byte del file)",
    dependencies=[Depends(require_upload_access)],
)
async def upload(dataset_type: str, request: Request, service: IngestionService = Depends(get_service)):
    dtype = _dataset_type_or_400(dataset_type)
    data = await request.body()
    if not data:
        raise HTTPException(status_code=400, detail="empty body")
    try:
        result = await run_in_threadpool(service.ingest, data, dtype)
    except IngestionInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except SheetParseError as exc:
        raise HTTPException(status_code=422, detail=str(exc))
    except IngestionError as exc:
        logger.error("Upload fallito: %s", exc)
        raise HTTPException(status_code=500, detail=str(exc))
    return result.to_dict()


@router.delete("", summary="Svuota entrambi i dataset e lo store")
def clear_all(service: IngestionService = Depends(get_service)):
    try:
        service.clear_all()
    except IngestionInProgressError as exc:
        raise HTTPException(status_code=409, detail=str(exc))
    except StorageError as exc:
        logger.error("Errore svuotamento store: %s", exc)
        raise HTTPException(status_code=500, detail="failed to clear store")
    return {"status": "cleared"}
