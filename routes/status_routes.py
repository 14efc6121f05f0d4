from fastapi import APIRouter, Request

from config.signaling_config import get_environment
from models.schemas import HealthResponse

router = APIRouter()

SERVICE_NAME = "WebRTC Signaling Relay"
SERVICE_VERSION = "1.0.0"

ENDPOINTS = {
    "signaling": "/ws",
    "health": "/health",
}


@router.get("/")
async def root():
    return {
        "message": SERVICE_NAME,
        "status": "running",
        "version": SERVICE_VERSION,
        "environment": get_environment(),
        "endpoints": ENDPOINTS,
    }


@router.get("/health", response_model=HealthResponse)
async def health_check(request: Request):
    return HealthResponse(
        status="healthy",
        active_sessions=request.app.state.registry.active_count(),
        environment=get_environment(),
    )
