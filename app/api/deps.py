"""Shared FastAPI dependencies."""

from fastapi import HTTPException, Request

from app.services.container import Services


def get_services(request: Request) -> Services:
    """Services built in the app lifespan."""
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Services not initialized")
    return services
