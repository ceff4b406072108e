"""Unauthenticated liveness and metrics endpoints."""

from fastapi import APIRouter, Depends, Request
from fastapi.responses import Response

from gateway.api.deps import get_container
from gateway.core.metrics import get_metrics
from gateway.core.services import ServiceContainer
from gateway.models.entries import HealthResponse

router = APIRouter(tags=["system"])


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request, container: ServiceContainer = Depends(get_container)):
    """Health check endpoint."""
    return HealthResponse(
        status="healthy",
        version=container.settings.app_version,
        active_sessions=len(container.session_manager),
    )


@router.get("/metrics")
async def metrics_endpoint(request: Request, container: ServiceContainer = Depends(get_container)):
    """Prometheus metrics endpoint."""
    if not container.settings.metrics_enabled:
        return Response(status_code=404)
    return Response(content=get_metrics(), media_type="text/plain; version=0.0.4; charset=utf-8")
