"""Prediction service: recurring-issue forecasts built from report history."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from nest.core.errors import NotFoundError, ValidationError
from nest.core.report_policies import (
    PREDICTION_HORIZON_DAYS,
    PREDICTION_MIN_REPORTS,
    PREDICTION_RADIUS_M,
    PREDICTION_TYPE_BY_CATEGORY,
    PREDICTION_WINDOW_DAYS,
)
from nest.models.prediction import Prediction
from nest.models.report import Report
from nest.services.notification_service import NotificationDispatcher, RelatedTo, admin_audience

logger = logging.getLogger(__name__)

HISTORICAL_FACTORS = [
    {"name": "historical_reports", "weight": 0.8},
    {"name": "frequency", "weight": 0.6},
]


def score(report_count: int) -> tuple[float, str, float]:
    """Probability, severity and confidence for a group of `report_count` reports."""
    probability = round(min(0.5 + 0.1 * report_count, 0.95), 2)
    severity = "medium"
    if probability > 0.8:
        severity = "high"
    if probability > 0.9:
        severity = "critical"
    return probability, severity, round(probability - 0.1, 2)


def generate_predictions(
    db: Session,
    dispatcher: NotificationDispatcher,
    now: datetime | None = None,
) -> list[Prediction]:
    """Group the trailing window's reports by exact location and category.

    Every group with enough reports becomes an active prediction. Admins are
    told once per run when anything was generated.
    """
    now = now or datetime.now(timezone.utc)
    since = now - timedelta(days=PREDICTION_WINDOW_DAYS)

    reports = db.execute(
        select(Report).where(Report.created_at >= since).order_by(Report.id)
    ).scalars().all()

    groups: dict[tuple[float, float, str], list[Report]] = {}
    for report in reports:
        if report.category not in PREDICTION_TYPE_BY_CATEGORY:
            continue
        groups.setdefault((report.longitude, report.latitude, report.category), []).append(report)

    predictions: list[Prediction] = []
    for (lon, lat, category), members in groups.items():
        if len(members) < PREDICTION_MIN_REPORTS:
            continue
        probability, severity, confidence = score(len(members))
        prediction = Prediction(
            type=PREDICTION_TYPE_BY_CATEGORY[category],
            longitude=lon,
            latitude=lat,
            address=members[0].address,
            radius_m=PREDICTION_RADIUS_M,
            probability=probability,
            severity=severity,
            confidence=confidence,
            factors=[dict(f) for f in HISTORICAL_FACTORS],
            report_count=len(members),
            time_frame=f"last_{PREDICTION_WINDOW_DAYS}_days",
            pattern="recurring",
            predicted_start=now,
            predicted_end=now + timedelta(days=PREDICTION_HORIZON_DAYS),
            status="active",
            related_reports=list(members),
        )
        db.add(prediction)
        predictions.append(prediction)

    if not predictions:
        db.commit()
        return []

    db.flush()
    admins = admin_audience(db)
    dispatcher.notify_users(
        admins,
        type="prediction",
        title="New AI Predictions Generated",
        message=f"{len(predictions)} new predictions have been generated based on historical data.",
        related_to=RelatedTo(model="Prediction", id=predictions[0].id),
    )
    dispatcher.push_to_users(admins, "new_predictions", {"count": len(predictions)})
    if admins:
        for prediction in predictions:
            prediction.notification_sent = True

    db.commit()
    logger.info("Generated %s predictions from %s reports", len(predictions), len(reports))
    return predictions


def list_predictions(
    db: Session,
    type: str | None = None,
    status: str | None = "active",
    min_probability: float | None = 0.5,
    page: int = 1,
    limit: int = 10,
) -> tuple[list[Prediction], int]:
    conditions = []
    if status:
        conditions.append(Prediction.status == status)
    if type:
        conditions.append(Prediction.type == type)
    if min_probability is not None:
        conditions.append(Prediction.probability >= min_probability)

    total = db.execute(select(func.count()).select_from(Prediction).where(*conditions)).scalar_one()
    result = db.execute(
        select(Prediction)
        .where(*conditions)
        .options(selectinload(Prediction.related_reports))
        .order_by(Prediction.probability.desc(), Prediction.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def update_prediction_status(db: Session, prediction_id: int, status: str) -> Prediction:
    """Close out an active prediction. Closed predictions never change again."""
    prediction = db.get(Prediction, prediction_id)
    if not prediction:
        raise NotFoundError("Prediction not found")
    if prediction.status != "active":
        raise ValidationError(f"Prediction is already {prediction.status}")
    prediction.status = status
    db.commit()
    db.refresh(prediction)
    return prediction
