"""SQLAlchemy models."""

from __future__ import annotations

from nest.models.notification import Notification
from nest.models.prediction import Prediction, prediction_reports
from nest.models.report import Report
from nest.models.report_attachment import ReportAudio, ReportImage
from nest.models.report_comment import ReportComment
from nest.models.report_upvote import ReportUpvote
from nest.models.user import User

__all__ = [
    "User",
    "Notification",
    "Prediction",
    "Report",
    "ReportAudio",
    "ReportComment",
    "ReportImage",
    "ReportUpvote",
    "prediction_reports",
]
