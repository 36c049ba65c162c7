"""Health check endpoints."""

from fastapi import APIRouter

from frontier_api.core.config import get_settings
from frontier_api.domain.exceptions import InputValidationError

router = APIRouter()


@router.get("")
def health_check() -> dict:
    """Generic health check."""
    return {"status": "healthy"}


@router.get("/live")
def liveness() -> dict:
    """Liveness probe - is the process running?"""
    return {"status": "alive"}


@router.get("/ready")
def readiness() -> dict:
    """Readiness probe - can the service build its settings from the environment?"""
    try:
        get_settings()
    except InputValidationError as e:
        return {"status": "not_ready", "checks": {"settings_valid": False}, "detail": str(e)}
    return {"status": "ready", "checks": {"settings_valid": True}}
