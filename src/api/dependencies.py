from __future__ import annotations

import threading

from fastapi import HTTPException, Request

from core.access import validate_access
from ingestion.service import IngestionService

_SERVICE_LOCK = threading.Lock()


def get_service(request: Request) -> IngestionService:
    """Servizio condiviso dall'app (creato al primo uso se non iniettato)."""
    service = getattr(request.app.state, "service", None)
    if service is not None:
        return service
    with _SERVICE_LOCK:
        # una sola istanza per app: il lock di ingestione vive nel servizio
        service = getattr(request.app.state, "service", None)
        if service is None:
            service = IngestionService.from_settings()
            request.app.state.service = service
    return service


def require_upload_access(request: Request) -> None:
    """
    Gate upload: attivo solo se l'app ha un identity provider
    (callable request -> UserRecord | None).
    """
    identity = getattr(request.app.state, "identity", None)
    if identity is None:
        return
    decision = validate_access(identity(request))
    if not decision.allowed:
        status = 401 if decision.reason == "guest" else 403
        raise HTTPException(status_code=status, detail={"reason": decision.reason, "message": decision.message})
