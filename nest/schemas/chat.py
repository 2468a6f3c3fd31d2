"""Assistant chat schemas."""

from __future__ import annotations

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    content: str


class ChatRequest(BaseModel):
    message: str = Field(min_length=1, max_length=4000)
    conversation_history: list[ChatMessage] = Field(default_factory=list, max_length=50)


class ChatResponse(BaseModel):
    response: str


class ChatHistoryItem(BaseModel):
    created_at: datetime
    user_id: int
    message: str
    response: str


class ImageAnalysisOut(BaseModel):
    is_valid: bool
    severity: str
    confidence: float
    tags: list[str]
    analysis: str


class AnalyzeImageResponse(BaseModel):
    image_url: str
    analysis: ImageAnalysisOut
