"""Root endpoint."""

from fastapi import APIRouter

router = APIRouter(tags=["root"])


@router.get("/")
def read_root() -> dict:
    """Service identification endpoint."""
    return {"message": "Hello from Frontier API", "service": "frontier-api", "version": "0.1.0"}
