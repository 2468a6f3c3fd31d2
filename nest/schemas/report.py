"""Report schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field, field_validator, model_validator

from nest.core.report_policies import subcategory_allowed

Category = Literal["water", "electricity", "noise", "pothole", "cleanliness", "playground", "other"]
Severity = Literal["low", "medium", "high", "critical"]
Status = Literal["pending", "in-progress", "resolved", "rejected"]
Subcategory = Literal[
    "leak", "pressure", "quality", "outage",
    "power_outage", "fluctuation", "streetlight", "wire",
    "music", "party", "construction", "vehicle", "alarm", "animal",
    "road", "sidewalk",
    "garbage", "graffiti", "debris",
    "swing", "slide", "equipment", "fence",
    "other",
]


class LocationIn(BaseModel):
    coordinates: list[float] = Field(min_length=2, max_length=2, description="[longitude, latitude]")
    address: str = Field(min_length=1, max_length=255)

    @field_validator("coordinates")
    @classmethod
    def validate_coordinates(cls, v: list[float]) -> list[float]:
        lon, lat = v
        if not (-180 <= lon <= 180 and -90 <= lat <= 90):
            raise ValueError("Coordinates must be [longitude, latitude] within range")
        return v


class ReportCreate(BaseModel):
    title: str = Field(min_length=1, max_length=100)
    description: str = Field(min_length=1)
    category: Category
    subcategory: Subcategory | None = None
    severity: Severity
    location: LocationIn

    @field_validator("title", "description")
    @classmethod
    def strip_text(cls, v: str) -> str:
        v = v.strip()
        if not v:
            raise ValueError("Must not be blank")
        return v

    @model_validator(mode="after")
    def check_subcategory(self) -> "ReportCreate":
        if not subcategory_allowed(self.category, self.subcategory):
            raise ValueError(f"Subcategory '{self.subcategory}' does not belong to category '{self.category}'")
        return self


class ReportUpdate(BaseModel):
    title: str | None = Field(default=None, min_length=1, max_length=100)
    description: str | None = Field(default=None, min_length=1)
    severity: Severity | None = None
    status: Status | None = None
    assigned_to: int | None = None


class CommentCreate(BaseModel):
    text: str = Field(min_length=1, max_length=2000)


class AssignRequest(BaseModel):
    user_id: int


class ResolveRequest(BaseModel):
    resolution_notes: str | None = Field(default=None, max_length=2000)


class UserSummary(BaseModel):
    id: int
    name: str
    email: str
    profile_picture: str | None = None

    model_config = {"from_attributes": True}


class LocationOut(BaseModel):
    type: str = "Point"
    coordinates: list[float]
    address: str


class ImageOut(BaseModel):
    id: int
    url: str
    caption: str
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class AudioOut(BaseModel):
    id: int
    url: str
    duration: float
    uploaded_at: datetime

    model_config = {"from_attributes": True}


class CommentOut(BaseModel):
    id: int
    user: UserSummary
    text: str
    created_at: datetime


class AIAnalysisOut(BaseModel):
    confidence: float | None = None
    tags: list[str] = Field(default_factory=list)
    prediction: str | None = None
    image_validation: bool | None = None


class ResolutionDetailsOut(BaseModel):
    resolved_by: int | None = None
    resolution_date: datetime | None = None
    resolution_notes: str | None = None


class ReportOut(BaseModel):
    id: int
    title: str
    description: str
    category: str
    subcategory: str | None
    severity: str
    status: str
    location: LocationOut
    reporter: UserSummary
    assigned_to: UserSummary | None = None
    images: list[ImageOut] = Field(default_factory=list)
    audio: list[AudioOut] = Field(default_factory=list)
    comments: list[CommentOut] = Field(default_factory=list)
    upvotes: list[int] = Field(default_factory=list)
    upvote_count: int = 0
    ai_analysis: AIAnalysisOut | None = None
    resolution_details: ResolutionDetailsOut | None = None
    estimated_resolution_time: datetime | None = None
    created_at: datetime
    updated_at: datetime


class NearbyReportOut(ReportOut):
    distance_m: float


class UpvoteResultOut(BaseModel):
    upvoted: bool
    upvotes: list[int]
    count: int


class ImageUploadOut(BaseModel):
    image_url: str
    image_validation: bool
    report: ReportOut


class AudioUploadOut(BaseModel):
    audio_url: str
    report: ReportOut
