"""Health check endpoints."""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel

from app import __version__
from app.dependencies import get_tool_bridge
from src.etabs_bridge import EtabsBridge

router = APIRouter()


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    version: str


class HealthDetailResponse(HealthResponse):
    """Detailed health check response with ETABS tooling status."""

    etabs_cli: str
    etabs_cli_version: Optional[str] = None


@router.get("/health", response_model=HealthResponse)
async def health_check() -> HealthResponse:
    """Basic health check."""
    return HealthResponse(status="ok", version=__version__)


@router.get("/health/ready", response_model=HealthDetailResponse)
def readiness_check(bridge: EtabsBridge = Depends(get_tool_bridge)) -> HealthDetailResponse:
    """Readiness check including ETABS sidecar availability."""
    info = bridge.cli_info()
    return HealthDetailResponse(
        status="ok" if info.available else "degraded",
        version=__version__,
        etabs_cli="available" if info.available else "unavailable",
        etabs_cli_version=info.version,
    )
