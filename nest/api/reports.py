"""Reports API."""

from __future__ import annotations

from fastapi import APIRouter, BackgroundTasks, Depends, File, Form, Query, UploadFile, status
from sqlalchemy.orm import Session

from nest.core.config import settings
from nest.core.deps import get_current_user, get_dispatcher, require_staff
from nest.core.errors import ValidationError
from nest.core.report_policies import DEFAULT_NEARBY_DISTANCE_M, DEFAULT_NEARBY_LIMIT
from nest.db.session import get_db
from nest.models.report import Report
from nest.models.report_comment import ReportComment
from nest.models.user import User
from nest.schemas.common import ApiResponse, MessageResponse, PaginatedResponse, Pagination
from nest.schemas.report import (
    AIAnalysisOut,
    AssignRequest,
    AudioOut,
    AudioUploadOut,
    Category,
    CommentCreate,
    CommentOut,
    ImageOut,
    ImageUploadOut,
    LocationOut,
    NearbyReportOut,
    ReportCreate,
    ReportOut,
    ReportUpdate,
    ResolutionDetailsOut,
    ResolveRequest,
    Severity,
    Status,
    UpvoteResultOut,
    UserSummary,
)
from nest.services import report_service
from nest.services.notification_service import NotificationDispatcher
from nest.services.report_service import ReportFilters

router = APIRouter(prefix="/reports", tags=["reports"])


def _comment_out(comment: ReportComment) -> CommentOut:
    return CommentOut(
        id=comment.id,
        user=UserSummary.model_validate(comment.author),
        text=comment.text,
        created_at=comment.created_at,
    )


def _report_fields(report: Report) -> dict:
    """Shape a loaded report (with its summaries and attachments) for responses."""
    ai_analysis = None
    if report.ai_image_validation is not None or report.ai_confidence is not None:
        ai_analysis = AIAnalysisOut(
            confidence=report.ai_confidence,
            tags=list(report.ai_tags or []),
            prediction=report.ai_prediction,
            image_validation=report.ai_image_validation,
        )
    resolution = None
    if report.resolved_by_id is not None or report.resolution_date is not None:
        resolution = ResolutionDetailsOut(
            resolved_by=report.resolved_by_id,
            resolution_date=report.resolution_date,
            resolution_notes=report.resolution_notes,
        )
    return dict(
        id=report.id,
        title=report.title,
        description=report.description,
        category=report.category,
        subcategory=report.subcategory,
        severity=report.severity,
        status=report.status,
        location=LocationOut(coordinates=[report.longitude, report.latitude], address=report.address),
        reporter=UserSummary.model_validate(report.reporter),
        assigned_to=UserSummary.model_validate(report.assigned_to) if report.assigned_to else None,
        images=[ImageOut.model_validate(i) for i in report.images],
        audio=[AudioOut.model_validate(a) for a in report.audio],
        comments=[_comment_out(c) for c in report.comments],
        upvotes=[u.user_id for u in report.upvotes],
        upvote_count=report.upvote_count,
        ai_analysis=ai_analysis,
        resolution_details=resolution,
        estimated_resolution_time=report.estimated_resolution_time,
        created_at=report.created_at,
        updated_at=report.updated_at,
    )


def _report_out(report: Report) -> ReportOut:
    return ReportOut(**_report_fields(report))


def _page(reports: list[Report], total: int, page: int, limit: int) -> PaginatedResponse[ReportOut]:
    return PaginatedResponse[ReportOut](
        data=[_report_out(r) for r in reports],
        pagination=Pagination.build(total, page, limit),
    )


async def _read_upload(upload: UploadFile, kind: str) -> bytes:
    content_type = upload.content_type or ""
    if not content_type.startswith(f"{kind}/"):
        raise ValidationError(f"Only {kind} files are allowed")
    content = await upload.read()
    if not content:
        raise ValidationError("Uploaded file is empty")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError("Uploaded file is too large")
    return content


@router.post("", response_model=ApiResponse[ReportOut], status_code=status.HTTP_201_CREATED)
def create(
    data: ReportCreate,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_user),
):
    """File a new report. Staff are notified."""
    report = report_service.create_report(db, dispatcher, data, current_user.id)
    return ApiResponse(data=_report_out(report))


@router.get("", response_model=PaginatedResponse[ReportOut])
def list_reports(
    category: Category | None = None,
    status_: Status | None = Query(default=None, alias="status"),
    severity: Severity | None = None,
    reporter: int | None = None,
    search: str | None = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    sort: str = "-created_at",
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """List reports, newest first unless `sort` says otherwise."""
    filters = ReportFilters(
        category=category,
        status=status_,
        severity=severity,
        reporter_id=reporter,
        search=search,
    )
    reports, total = report_service.query_reports(db, filters, page, limit, sort)
    return _page(reports, total, page, limit)


# Fixed paths before /{report_id}


@router.get("/nearby", response_model=ApiResponse[list[NearbyReportOut]])
def nearby(
    longitude: float | None = None,
    latitude: float | None = None,
    max_distance: float = Query(default=DEFAULT_NEARBY_DISTANCE_M, alias="maxDistance"),
    limit: int = Query(default=DEFAULT_NEARBY_LIMIT, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Reports within maxDistance meters of a point, nearest first."""
    results = report_service.query_nearby(db, longitude, latitude, max_distance, limit)
    return ApiResponse(
        data=[NearbyReportOut(**_report_fields(r), distance_m=round(d, 1)) for r, d in results]
    )


@router.get("/category/{category}", response_model=PaginatedResponse[ReportOut])
def by_category(
    category: Category,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reports, total = report_service.query_reports(db, ReportFilters(category=category), page, limit)
    return _page(reports, total, page, limit)


@router.get("/status/{report_status}", response_model=PaginatedResponse[ReportOut])
def by_status(
    report_status: Status,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    reports, total = report_service.query_reports(db, ReportFilters(status=report_status), page, limit)
    return _page(reports, total, page, limit)


@router.get("/{report_id}", response_model=ApiResponse[ReportOut])
def get_one(
    report_id: int,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    report = report_service.get_report(db, report_id)
    return ApiResponse(data=_report_out(report))


@router.put("/{report_id}", response_model=ApiResponse[ReportOut])
def update(
    report_id: int,
    data: ReportUpdate,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_user),
):
    """Update a report. Status and assignee are staff-only fields."""
    report = report_service.update_report(db, dispatcher, report_id, data, current_user)
    return ApiResponse(data=_report_out(report))


@router.delete("/{report_id}", response_model=MessageResponse)
def delete(
    report_id: int,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Delete a report. Reporter or staff only."""
    urls = report_service.delete_report(db, report_id, current_user)
    if urls:
        background_tasks.add_task(report_service.remove_attachments, urls)
    return MessageResponse(message="Report deleted successfully")


@router.post("/{report_id}/upvote", response_model=ApiResponse[UpvoteResultOut])
def upvote(
    report_id: int,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_user),
):
    """Toggle the caller's upvote."""
    result = report_service.toggle_upvote(db, dispatcher, report_id, current_user.id)
    return ApiResponse(
        data=UpvoteResultOut(upvoted=result.upvoted, upvotes=result.upvoter_ids, count=result.count)
    )


@router.post(
    "/{report_id}/comments",
    response_model=ApiResponse[CommentOut],
    status_code=status.HTTP_201_CREATED,
)
def comment(
    report_id: int,
    data: CommentCreate,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(get_current_user),
):
    created = report_service.add_comment(db, dispatcher, report_id, current_user.id, data.text)
    return ApiResponse(data=_comment_out(created))


@router.post("/{report_id}/assign", response_model=ApiResponse[ReportOut])
def assign(
    report_id: int,
    data: AssignRequest,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(require_staff),
):
    """Assign a report and move it to in-progress. Staff only."""
    report = report_service.assign_report(db, dispatcher, report_id, data.user_id, current_user)
    return ApiResponse(data=_report_out(report))


@router.post("/{report_id}/resolve", response_model=ApiResponse[ReportOut])
def resolve(
    report_id: int,
    data: ResolveRequest | None = None,
    db: Session = Depends(get_db),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
    current_user: User = Depends(require_staff),
):
    """Mark a report resolved. Staff only."""
    notes = data.resolution_notes if data else None
    report = report_service.resolve_report(db, dispatcher, report_id, current_user, notes)
    return ApiResponse(data=_report_out(report))


@router.post("/{report_id}/images", response_model=ApiResponse[ImageUploadOut])
async def upload_image(
    report_id: int,
    image: UploadFile = File(...),
    caption: str = Form(default=""),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    """Attach an image. Pothole and cleanliness images are checked by AI."""
    content = await _read_upload(image, "image")
    report, url, validation = await report_service.attach_image(
        db,
        report_id,
        current_user,
        content,
        image.filename or "image",
        image.content_type or "image/jpeg",
        caption,
    )
    return ApiResponse(data=ImageUploadOut(image_url=url, image_validation=validation, report=_report_out(report)))


@router.post("/{report_id}/audio", response_model=ApiResponse[AudioUploadOut])
async def upload_audio(
    report_id: int,
    audio: UploadFile = File(...),
    duration: float = Form(default=0),
    db: Session = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    content = await _read_upload(audio, "audio")
    report, url = await report_service.attach_audio(
        db,
        report_id,
        current_user,
        content,
        audio.filename or "audio",
        audio.content_type or "audio/mpeg",
        duration,
    )
    return ApiResponse(data=AudioUploadOut(audio_url=url, report=_report_out(report)))
