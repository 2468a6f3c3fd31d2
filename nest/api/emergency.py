"""Emergency alerts API (alerts raised over the socket, kept for 24h)."""

from typing import Any

from fastapi import APIRouter, Depends

from nest.core.deps import get_current_user
from nest.models.user import User
from nest.schemas.common import ApiResponse
from nest.services import kv_store

router = APIRouter(prefix="/emergency", tags=["emergency"])


@router.get("/alerts", response_model=ApiResponse[list[dict[str, Any]]])
async def active_alerts(current_user: User = Depends(get_current_user)):
    """Unexpired emergency alerts, newest first."""
    return ApiResponse(data=await kv_store.list_emergency_alerts())
