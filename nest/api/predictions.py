"""Predictions API."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from nest.core.deps import get_current_user, get_dispatcher, require_admin, require_staff
from nest.db.session import get_db
from nest.models.user import User
from nest.schemas.common import ApiResponse, PaginatedResponse, Pagination
from nest.schemas.prediction import GenerateResultOut, PredictionOut, PredictionStatusUpdate
from nest.services import prediction_service
from nest.services.notification_service import NotificationDispatcher

router = APIRouter(prefix="/predictions", tags=["predictions"])


@router.get("", response_model=PaginatedResponse[PredictionOut])
def list_all(
    type: str | None = None,
    status: str = "active",
    min_probability: float = Query(default=0.5, ge=0, le=1),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Predictions, most probable first."""
    items, total = prediction_service.list_predictions(db, type, status, min_probability, page, limit)
    return PaginatedResponse[PredictionOut](
        data=[PredictionOut.from_model(p) for p in items],
        pagination=Pagination.build(total, page, limit),
    )


@router.post("/generate", response_model=ApiResponse[GenerateResultOut])
def generate(
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(require_admin),
):
    """Build predictions from the last 90 days of reports. Admin only."""
    predictions = prediction_service.generate_predictions(db, dispatcher)
    return ApiResponse(
        data=GenerateResultOut(
            count=len(predictions),
            predictions=[PredictionOut.from_model(p) for p in predictions],
        )
    )


@router.put("/{prediction_id}/status", response_model=ApiResponse[PredictionOut])
def set_status(
    prediction_id: int,
    data: PredictionStatusUpdate,
    db: Session = Depends(get_db),
    current_user: User = Depends(require_staff),
):
    prediction = prediction_service.update_prediction_status(db, prediction_id, data.status)
    return ApiResponse(data=PredictionOut.from_model(prediction))
