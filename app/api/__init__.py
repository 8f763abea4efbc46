"""API router for v1 endpoints."""

from fastapi import APIRouter

from app.api import artifacts, assistant

router = APIRouter()

router.include_router(assistant.router, tags=["assistant"])
router.include_router(artifacts.router, tags=["artifacts"])
