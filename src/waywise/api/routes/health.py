"""Health endpoint."""

from __future__ import annotations

from fastapi import APIRouter, Depends, status
from fastapi.responses import JSONResponse

from ...container import Container
from ..deps import get_container

router = APIRouter(tags=["health"])


@router.get("/health", status_code=status.HTTP_200_OK)
def health(container: Container = Depends(get_container)) -> JSONResponse:
    """Report overall status plus a per-dependency breakdown."""
    services = container.service_health()
    healthy = all(state == "healthy" for state in services.values())
    body = {
        "status": "healthy" if healthy else "degraded",
        "version": container.settings.app_version,
        "timestamp": container.clock().isoformat(),
        "services": services,
    }
    return JSONResponse(
        status_code=status.HTTP_200_OK if healthy else status.HTTP_503_SERVICE_UNAVAILABLE,
        content=body,
    )
