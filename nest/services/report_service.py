"""Report service: lifecycle rules and their notification side effects."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone

from sqlalchemy import delete, func, or_, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, selectinload

from nest.core.errors import AuthorizationError, NotFoundError, ValidationError
from nest.core.report_policies import (
    AI_ANALYZED_CATEGORIES,
    DEFAULT_NEARBY_DISTANCE_M,
    DEFAULT_NEARBY_LIMIT,
    OWNER_EDITABLE_FIELDS,
    POPULAR_REPORT_THRESHOLD,
    STAFF_EDITABLE_FIELDS,
    TERMINAL_STATUSES,
    can_transition,
    is_staff,
)
from nest.core.ws_manager import report_room
from nest.models.report import Report
from nest.models.report_attachment import ReportAudio, ReportImage
from nest.models.report_comment import ReportComment
from nest.models.report_upvote import ReportUpvote
from nest.models.user import User
from nest.schemas.report import ReportCreate, ReportUpdate
from nest.services import image_analysis, storage_service
from nest.services.geo_service import bounding_box, haversine_m
from nest.services.notification_service import NotificationDispatcher, RelatedTo, staff_audience

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = {
    "createdAt": Report.created_at,
    "created_at": Report.created_at,
    "updatedAt": Report.updated_at,
    "updated_at": Report.updated_at,
    "severity": Report.severity,
    "status": Report.status,
    "title": Report.title,
    "upvotes": Report.upvote_count,
    "upvote_count": Report.upvote_count,
}


@dataclass
class ReportFilters:
    category: str | None = None
    status: str | None = None
    severity: str | None = None
    reporter_id: int | None = None
    search: str | None = None


@dataclass
class UpvoteResult:
    upvoted: bool
    count: int
    upvoter_ids: list[int]


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _related(report: Report) -> RelatedTo:
    return RelatedTo(model="Report", id=report.id)


def _with_details():
    return (
        selectinload(Report.reporter),
        selectinload(Report.assigned_to),
        selectinload(Report.images),
        selectinload(Report.audio),
        selectinload(Report.comments).selectinload(ReportComment.author),
        selectinload(Report.upvotes),
    )


def get_report(db: Session, report_id: int) -> Report:
    """Load a report with its reporter, assignee, attachments and comments."""
    report = db.execute(
        select(Report).where(Report.id == report_id).options(*_with_details())
    ).scalar_one_or_none()
    if not report:
        raise NotFoundError("Report not found")
    return report


def _reload(db: Session, report: Report) -> Report:
    db.expire(report)
    return get_report(db, report.id)


def editable_fields(report: Report, caller: User) -> frozenset[str]:
    """Patch fields `caller` may touch on `report`."""
    if is_staff(caller.role):
        return STAFF_EDITABLE_FIELDS
    if report.reporter_id == caller.id:
        return OWNER_EDITABLE_FIELDS
    return frozenset()


def _require_content_access(report: Report, caller: User, action: str) -> None:
    if not editable_fields(report, caller):
        raise AuthorizationError(f"You are not authorized to {action} this report")


def _check_transition(report: Report, target: str) -> None:
    if not can_transition(report.status, target):
        raise ValidationError(f"Cannot change report status from '{report.status}' to '{target}'")


# ---------- Create ----------


def create_report(
    db: Session,
    dispatcher: NotificationDispatcher,
    data: ReportCreate,
    reporter_id: int,
) -> Report:
    """Persist a pending report and notify staff."""
    lon, lat = data.location.coordinates
    report = Report(
        title=data.title,
        description=data.description,
        category=data.category,
        subcategory=data.subcategory,
        severity=data.severity,
        status="pending",
        longitude=lon,
        latitude=lat,
        address=data.location.address,
        reporter_id=reporter_id,
        upvote_count=0,
    )
    db.add(report)
    db.flush()

    audience = staff_audience(db)
    dispatcher.notify_users(
        audience,
        type="report_status",
        title="New Report Submitted",
        message=f"A new {report.category} report has been submitted: {report.title}",
        related_to=_related(report),
        priority="high" if report.severity == "critical" else "normal",
    )
    dispatcher.push_to_users(
        audience,
        "new_report",
        {
            "reportId": report.id,
            "title": report.title,
            "category": report.category,
            "severity": report.severity,
        },
    )
    db.commit()
    logger.info("Report created: id=%s reporter=%s category=%s", report.id, reporter_id, report.category)
    return get_report(db, report.id)


# ---------- Update / status ----------


def _mark_resolved(
    dispatcher: NotificationDispatcher,
    report: Report,
    resolver_id: int,
    notes: str | None,
    title: str,
) -> None:
    report.status = "resolved"
    report.resolved_by_id = resolver_id
    report.resolution_date = _now()
    if notes is not None:
        report.resolution_notes = notes

    # Resolution reaches the reporter regardless of their app preference.
    dispatcher.notify_users(
        [report.reporter_id],
        type="resolution",
        title=title,
        message=f'Your report "{report.title}" has been resolved.',
        related_to=_related(report),
    )
    dispatcher.push_realtime(
        report.reporter_id,
        "report_resolved",
        {"reportId": report.id, "title": report.title, "resolutionNotes": report.resolution_notes},
    )


def _set_assignee(db: Session, dispatcher: NotificationDispatcher, report: Report, assignee_id: int) -> None:
    assignee = db.get(User, assignee_id)
    if not assignee:
        raise NotFoundError("User not found")
    report.assigned_to_id = assignee.id
    dispatcher.notify_users(
        [assignee.id],
        type="assignment",
        title="Report Assigned to You",
        message=f'You have been assigned to handle report "{report.title}".',
        related_to=_related(report),
        priority="high" if report.severity == "critical" else "normal",
    )
    dispatcher.push_realtime(
        assignee.id,
        "report_assigned",
        {"reportId": report.id, "title": report.title, "severity": report.severity},
    )


def _announce_status(dispatcher: NotificationDispatcher, report: Report) -> None:
    dispatcher.push_to_room(
        report_room(report.id),
        "report_status_changed",
        {"reportId": report.id, "status": report.status},
    )


def update_report(
    db: Session,
    dispatcher: NotificationDispatcher,
    report_id: int,
    patch: ReportUpdate,
    caller: User,
) -> Report:
    """Apply a patch after checking every field against the caller's allow-list."""
    report = get_report(db, report_id)
    changes = {k: v for k, v in patch.model_dump(exclude_unset=True).items() if v is not None}

    allowed = editable_fields(report, caller)
    if not allowed:
        raise AuthorizationError("You are not authorized to update this report")
    forbidden = sorted(set(changes) - allowed)
    if forbidden:
        raise AuthorizationError(f"You are not allowed to change: {', '.join(forbidden)}")

    target_status = changes.get("status")
    if target_status is not None and target_status != report.status:
        _check_transition(report, target_status)
    reassigning = "assigned_to" in changes and changes["assigned_to"] != report.assigned_to_id
    if reassigning and report.status in TERMINAL_STATUSES:
        raise ValidationError(f"Cannot assign a {report.status} report")

    for field in ("title", "description", "severity"):
        if field in changes:
            setattr(report, field, changes[field])

    if reassigning:
        _set_assignee(db, dispatcher, report, changes["assigned_to"])

    if target_status is not None and target_status != report.status:
        if target_status == "resolved":
            _mark_resolved(dispatcher, report, caller.id, None, "Report Resolved")
        else:
            report.status = target_status
        _announce_status(dispatcher, report)

    db.commit()
    return _reload(db, report)


def assign_report(
    db: Session,
    dispatcher: NotificationDispatcher,
    report_id: int,
    assignee_id: int,
    caller: User,
) -> Report:
    """Staff hand a report to a user; the report moves to in-progress."""
    if not is_staff(caller.role):
        raise AuthorizationError("You do not have permission to perform this action")
    report = get_report(db, report_id)
    if report.status in TERMINAL_STATUSES:
        raise ValidationError(f"Cannot assign a {report.status} report")

    _set_assignee(db, dispatcher, report, assignee_id)
    if report.status != "in-progress":
        report.status = "in-progress"
        _announce_status(dispatcher, report)

    db.commit()
    return _reload(db, report)


def resolve_report(
    db: Session,
    dispatcher: NotificationDispatcher,
    report_id: int,
    caller: User,
    notes: str | None = None,
) -> Report:
    """Staff close a report as resolved and tell the reporter."""
    if not is_staff(caller.role):
        raise AuthorizationError("You do not have permission to perform this action")
    report = get_report(db, report_id)
    _check_transition(report, "resolved")

    _mark_resolved(dispatcher, report, caller.id, notes, "Your Report Has Been Resolved")
    _announce_status(dispatcher, report)

    db.commit()
    return _reload(db, report)


# ---------- Delete ----------


def delete_report(db: Session, report_id: int, caller: User) -> list[str]:
    """Delete a report. Returns the attachment URLs that should be removed from storage."""
    report = get_report(db, report_id)
    _require_content_access(report, caller, "delete")

    urls = [img.url for img in report.images] + [a.url for a in report.audio]
    db.delete(report)
    db.commit()
    logger.info("Report deleted: id=%s by user=%s", report_id, caller.id)
    return urls


async def remove_attachments(urls: list[str]) -> None:
    """Best-effort storage cleanup after a delete."""
    for url in urls:
        try:
            await storage_service.delete_file(url)
        except Exception:  # noqa: BLE001 - orphaned objects are acceptable
            logger.warning("Could not delete stored attachment %s", url, exc_info=True)


# ---------- Upvotes ----------


def _upvoter_ids(db: Session, report_id: int) -> list[int]:
    result = db.execute(
        select(ReportUpvote.user_id).where(ReportUpvote.report_id == report_id).order_by(ReportUpvote.id)
    )
    return list(result.scalars().all())


def toggle_upvote(
    db: Session,
    dispatcher: NotificationDispatcher,
    report_id: int,
    user_id: int,
) -> UpvoteResult:
    """Add the user's vote, or remove it if already present.

    The counter moves through a single UPDATE ... RETURNING, and the popular
    notification is gated on that returned value reaching the threshold.
    """
    report = db.get(Report, report_id)
    if not report:
        raise NotFoundError("Report not found")

    removed = db.execute(
        delete(ReportUpvote).where(ReportUpvote.report_id == report_id, ReportUpvote.user_id == user_id)
    ).rowcount
    if removed:
        delta = -1
    else:
        db.add(ReportUpvote(report_id=report_id, user_id=user_id))
        try:
            db.flush()
        except IntegrityError:
            # A concurrent request recorded this vote first.
            db.rollback()
            count = db.execute(select(Report.upvote_count).where(Report.id == report_id)).scalar_one()
            return UpvoteResult(upvoted=True, count=count, upvoter_ids=_upvoter_ids(db, report_id))
        delta = 1

    new_count = db.execute(
        update(Report)
        .where(Report.id == report_id)
        .values(upvote_count=Report.upvote_count + delta)
        .returning(Report.upvote_count)
    ).scalar_one()

    if delta == 1 and new_count == POPULAR_REPORT_THRESHOLD:
        claimed = db.execute(
            update(Report)
            .where(Report.id == report_id, Report.popular_notified_at.is_(None))
            .values(popular_notified_at=_now())
            .returning(Report.id)
        ).scalar_one_or_none()
        if claimed is not None:
            _notify_popular(db, dispatcher, report, new_count)

    db.commit()
    return UpvoteResult(upvoted=delta == 1, count=new_count, upvoter_ids=_upvoter_ids(db, report_id))


def _notify_popular(db: Session, dispatcher: NotificationDispatcher, report: Report, count: int) -> None:
    audience = staff_audience(db)
    dispatcher.notify_users(
        audience,
        type="upvote",
        title="Popular Report",
        message=f'Report "{report.title}" has received {count} upvotes.',
        related_to=_related(report),
        priority="normal",
    )
    dispatcher.push_to_users(
        audience,
        "popular_report",
        {"reportId": report.id, "title": report.title, "upvotes": count},
    )


# ---------- Comments ----------


def add_comment(
    db: Session,
    dispatcher: NotificationDispatcher,
    report_id: int,
    author_id: int,
    text: str,
) -> ReportComment:
    """Append a comment; the reporter hears about comments from others."""
    report = db.get(Report, report_id)
    if not report:
        raise NotFoundError("Report not found")

    comment = ReportComment(report_id=report.id, author_id=author_id, text=text)
    db.add(comment)
    db.flush()

    if report.reporter_id != author_id:
        dispatcher.notify_users(
            [report.reporter_id],
            type="comment",
            title="New Comment on Your Report",
            message=f'Someone commented on your report "{report.title}".',
            related_to=_related(report),
        )
        dispatcher.push_realtime(
            report.reporter_id,
            "new_comment",
            {"reportId": report.id, "title": report.title, "comment": text},
        )

    db.commit()
    db.refresh(comment)
    return comment


# ---------- Queries ----------


def _order_by(sort: str | None):
    sort = (sort or "-createdAt").strip()
    descending = sort.startswith("-")
    column = SORTABLE_FIELDS.get(sort.lstrip("-+"))
    if column is None:
        raise ValidationError(f"Cannot sort by '{sort}'")
    return (column.desc(), Report.id.desc()) if descending else (column.asc(), Report.id.asc())


def query_reports(
    db: Session,
    filters: ReportFilters,
    page: int = 1,
    limit: int = 10,
    sort: str | None = None,
) -> tuple[list[Report], int]:
    """Filtered page of reports plus the total match count. Newest first by default."""
    conditions = []
    if filters.category:
        conditions.append(Report.category == filters.category)
    if filters.status:
        conditions.append(Report.status == filters.status)
    if filters.severity:
        conditions.append(Report.severity == filters.severity)
    if filters.reporter_id is not None:
        conditions.append(Report.reporter_id == filters.reporter_id)
    if filters.search:
        pattern = f"%{filters.search.strip()}%"
        conditions.append(or_(Report.title.ilike(pattern), Report.description.ilike(pattern)))

    order = _order_by(sort)
    total = db.execute(select(func.count()).select_from(Report).where(*conditions)).scalar_one()
    result = db.execute(
        select(Report)
        .where(*conditions)
        .options(*_with_details())
        .order_by(*order)
        .offset((page - 1) * limit)
        .limit(limit)
    )
    return list(result.scalars().all()), total


def query_nearby(
    db: Session,
    longitude: float | None,
    latitude: float | None,
    max_distance_m: float = DEFAULT_NEARBY_DISTANCE_M,
    limit: int = DEFAULT_NEARBY_LIMIT,
) -> list[tuple[Report, float]]:
    """Reports within `max_distance_m` of the point, nearest first, with their distance."""
    if longitude is None or latitude is None:
        raise ValidationError("Longitude and latitude are required")
    if not (-180 <= longitude <= 180 and -90 <= latitude <= 90):
        raise ValidationError("Longitude/latitude out of range")
    if max_distance_m < 0:
        raise ValidationError("maxDistance must not be negative")

    min_lat, max_lat, min_lon, max_lon = bounding_box(latitude, longitude, max_distance_m)
    conditions = [Report.latitude >= min_lat, Report.latitude <= max_lat]
    if min_lon >= -180 and max_lon <= 180:
        conditions += [Report.longitude >= min_lon, Report.longitude <= max_lon]

    candidates = db.execute(select(Report).where(*conditions).options(*_with_details())).scalars().all()

    within: list[tuple[Report, float]] = []
    for report in candidates:
        distance = haversine_m(latitude, longitude, report.latitude, report.longitude)
        if distance <= max_distance_m:
            within.append((report, distance))
    within.sort(key=lambda pair: (pair[1], pair[0].id))
    return within[:limit]


# ---------- Attachments ----------


async def attach_image(
    db: Session,
    report_id: int,
    caller: User,
    content: bytes,
    filename: str,
    content_type: str,
    caption: str = "",
) -> tuple[Report, str, bool]:
    """Upload an image and append it; pothole/cleanliness images are checked by AI.

    Returns (report, image URL, AI validation flag).
    """
    report = get_report(db, report_id)
    _require_content_access(report, caller, "upload images to")

    url = await storage_service.upload_file(content, filename, content_type, folder=f"reports/{report.id}/images")

    validation = False
    if report.category in AI_ANALYZED_CATEGORIES:
        analysis = await image_analysis.analyze_image(content, content_type, report.category)
        validation = analysis.is_valid
        report.ai_image_validation = analysis.is_valid
        report.ai_confidence = analysis.confidence
        report.ai_tags = analysis.tags
        report.ai_prediction = analysis.analysis

    db.add(ReportImage(report_id=report.id, url=url, caption=caption or ""))
    db.commit()
    return _reload(db, report), url, validation


async def attach_audio(
    db: Session,
    report_id: int,
    caller: User,
    content: bytes,
    filename: str,
    content_type: str,
    duration: float = 0,
) -> tuple[Report, str]:
    """Upload an audio clip and append it. Returns (report, audio URL)."""
    report = get_report(db, report_id)
    _require_content_access(report, caller, "upload audio to")

    url = await storage_service.upload_file(content, filename, content_type, folder=f"reports/{report.id}/audio")

    db.add(ReportAudio(report_id=report.id, url=url, duration=duration or 0))
    db.commit()
    return _reload(db, report), url
