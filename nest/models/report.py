"""Report model: a resident-filed neighborhood issue."""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import JSON, Boolean, DateTime, Float, ForeignKey, Index, Integer, String, Text, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from nest.db.base import Base

if TYPE_CHECKING:
    from nest.models.report_attachment import ReportAudio, ReportImage
    from nest.models.report_comment import ReportComment
    from nest.models.report_upvote import ReportUpvote
    from nest.models.user import User


class Report(Base):
    __tablename__ = "reports"
    __table_args__ = (
        Index("ix_reports_lon_lat", "longitude", "latitude"),
    )

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(100), nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(20), index=True, nullable=False)
    subcategory: Mapped[str | None] = mapped_column(String(30), nullable=True)
    severity: Mapped[str] = mapped_column(String(20), nullable=False, default="medium")  # low | medium | high | critical
    status: Mapped[str] = mapped_column(String(20), index=True, nullable=False, default="pending")

    longitude: Mapped[float] = mapped_column(Float, nullable=False)
    latitude: Mapped[float] = mapped_column(Float, nullable=False)
    address: Mapped[str] = mapped_column(String(255), nullable=False)

    reporter_id: Mapped[int] = mapped_column(ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    assigned_to_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)

    upvote_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    popular_notified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)

    # AI analysis annotation
    ai_confidence: Mapped[float | None] = mapped_column(Float, nullable=True)
    ai_tags: Mapped[list[str] | None] = mapped_column(JSON, nullable=True)
    ai_prediction: Mapped[str | None] = mapped_column(Text, nullable=True)
    ai_image_validation: Mapped[bool | None] = mapped_column(Boolean, nullable=True)

    # Resolution record
    resolved_by_id: Mapped[int | None] = mapped_column(ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    resolution_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    resolution_notes: Mapped[str | None] = mapped_column(Text, nullable=True)

    estimated_resolution_time: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        index=True,
        nullable=False,
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    reporter: Mapped["User"] = relationship("User", foreign_keys=[reporter_id])
    assigned_to: Mapped[Optional["User"]] = relationship("User", foreign_keys=[assigned_to_id])
    images: Mapped[list["ReportImage"]] = relationship(
        back_populates="report", cascade="all, delete-orphan", order_by="ReportImage.id"
    )
    audio: Mapped[list["ReportAudio"]] = relationship(
        back_populates="report", cascade="all, delete-orphan", order_by="ReportAudio.id"
    )
    comments: Mapped[list["ReportComment"]] = relationship(
        back_populates="report", cascade="all, delete-orphan", order_by="ReportComment.id"
    )
    upvotes: Mapped[list["ReportUpvote"]] = relationship(
        back_populates="report", cascade="all, delete-orphan", order_by="ReportUpvote.id"
    )
