"""Prediction schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class PredictionFactor(BaseModel):
    name: str
    weight: float


class PredictionLocationOut(BaseModel):
    type: str = "Point"
    coordinates: list[float]
    address: str | None = None
    radius: float | None = None


class HistoricalDataOut(BaseModel):
    report_count: int
    time_frame: str | None = None
    pattern: str | None = None


class TimeFrameOut(BaseModel):
    start: datetime | None = None
    end: datetime | None = None


class RelatedReportOut(BaseModel):
    id: int
    title: str
    category: str
    status: str

    model_config = {"from_attributes": True}


class PredictionOut(BaseModel):
    id: int
    type: str
    location: PredictionLocationOut
    probability: float
    severity: str
    factors: list[PredictionFactor] = Field(default_factory=list)
    historical_data: HistoricalDataOut
    predicted_time_frame: TimeFrameOut
    confidence: float
    status: str
    related_reports: list[RelatedReportOut] = Field(default_factory=list)
    notification_sent: bool
    created_at: datetime

    @classmethod
    def from_model(cls, p) -> "PredictionOut":
        return cls(
            id=p.id,
            type=p.type,
            location=PredictionLocationOut(
                coordinates=[p.longitude, p.latitude],
                address=p.address,
                radius=p.radius_m,
            ),
            probability=p.probability,
            severity=p.severity,
            factors=[PredictionFactor(**f) for f in (p.factors or [])],
            historical_data=HistoricalDataOut(
                report_count=p.report_count,
                time_frame=p.time_frame,
                pattern=p.pattern,
            ),
            predicted_time_frame=TimeFrameOut(start=p.predicted_start, end=p.predicted_end),
            confidence=p.confidence,
            status=p.status,
            related_reports=[RelatedReportOut.model_validate(r) for r in p.related_reports],
            notification_sent=p.notification_sent,
            created_at=p.created_at,
        )


class PredictionStatusUpdate(BaseModel):
    status: Literal["verified", "resolved", "false_positive"]


class GenerateResultOut(BaseModel):
    count: int
    predictions: list[PredictionOut]
