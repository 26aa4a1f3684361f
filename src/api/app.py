from __future__ import annotations

from contextlib import asynccontextmanager
from typing import Callable, Optional

from fastapi import FastAPI
from starlette.concurrency import run_in_threadpool

from core.access import UserRecord
from core.config import get_settings
from core.exceptions import MappingConsistencyError
from core.logging import get_logger
from ingestion.service import IngestionService

from api.routes.health import router as health_router
from api.routes.datasets import router as datasets_router
from api.routes.metrics import router as metrics_router

logger = get_logger("api.app")

IdentityProvider = Callable[..., Optional[UserRecord]]


@asynccontextmanager
async def _lifespan(app: FastAPI):
    """Avvio: crea il servizio (ripristino dataset) e verifica la mappatura worker/fallback."""
    settings = get_settings()
    if getattr(app.state, "service", None) is None:
        app.state.service = IngestionService.from_settings(settings)
    if settings.ingest_self_check:
        try:
            await run_in_threadpool(app.state.service.executor.self_check)
        except MappingConsistencyError as exc:
            logger.error("Self-check mappatura fallito: %s", exc)
            raise
    yield


def create_app(
    service: Optional[IngestionService] = None,
    identity: Optional[IdentityProvider] = None,
) -> FastAPI:
    app = FastAPI(title="Odds Archive API", version="0.1.0", lifespan=_lifespan)
    try:
        get_settings()
    except Exception as exc:  # pragma: no cover
        logger.error("Impossibile caricare settings: %s", exc)

    app.state.service = service
    app.state.identity = identity

    app.include_router(health_router)
    app.include_router(datasets_router)
    app.include_router(metrics_router)
    return app


app = create_app()


# Avvio rapido: python -m api.app
if __name__ == "__main__":
    import uvicorn

    uvicorn.run("api.app:app", host="0.0.0.0", port=8000, reload=False)
