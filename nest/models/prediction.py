"""Prediction model: forecast of a recurring issue at a location."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import JSON, Boolean, Column, DateTime, Float, ForeignKey, Integer, String, Table, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nest.db.base import Base

if TYPE_CHECKING:
    from nest.models.report import Report

prediction_reports = Table(
    "prediction_reports",
    Base.metadata,
    Column("prediction_id", ForeignKey("predictions.id", ondelete="CASCADE"), primary_key=True),
    Column("report_id", ForeignKey("reports.id", ondelete="CASCADE"), primary_key=True),
)


class Prediction(Base):
    __tablename__ = "predictions"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    type: Mapped[str] = mapped_column(String(20), nullable=False)  # outage | pothole | water_leak | noise | cleanliness
    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    radius_m: Mapped[float | None] = mapped_column(Float, nullable=True)
    probability: Mapped[float] = mapped_column(Float, nullable=False)
    severity: Mapped[str] = mapped_column(String(20), nullable=False)
    confidence: Mapped[float] = mapped_column(Float, nullable=False)
    factors: Mapped[list[dict]] = mapped_column(JSON, nullable=False, default=list)
    report_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    time_frame: Mapped[str | None] = mapped_column(String(30), nullable=True)  # e.g. last_90_days
    pattern: Mapped[str | None] = mapped_column(String(30), nullable=True)  # e.g. recurring
    predicted_start: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    predicted_end: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String(20), index=True, nullable=False, default="active")
    notification_sent: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    related_reports: Mapped[list["Report"]] = relationship(secondary=prediction_reports)
