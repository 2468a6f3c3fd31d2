"""Health check endpoint."""

from fastapi import APIRouter

from nest.core.ws_manager import ws_manager

router = APIRouter(tags=["health"])


@router.get("/health")
def health() -> dict:
    """Return API health status and live socket count."""
    return {"status": "ok", "connections": ws_manager.total_connections}
