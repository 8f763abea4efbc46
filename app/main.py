"""FastAPI application entry point."""

from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.responses import JSONResponse

from app.api import router as api_router
from app.core.logging import get_logger
from app.services.container import build_services

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    services = build_services()
    app.state.services = services

    services.snapshot_store.prune()
    services.sync_engine.rebuild_states()
    services.sync_engine.start()
    try:
        yield
    finally:
        await services.sync_engine.shutdown()


app = FastAPI(
    title="Tuon Engine",
    description="Assistant core for an AI-assisted document editor",
    version="0.1.0",
    lifespan=lifespan,
)


@app.get("/health")
async def health_check() -> JSONResponse:
    """Health check endpoint."""
    return JSONResponse(content={"status": "ok"}, status_code=200)


app.include_router(api_router, prefix="/v1", tags=["v1"])
