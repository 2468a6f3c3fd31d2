"""Assistant chat and standalone image analysis."""

from __future__ import annotations

from dataclasses import asdict
from datetime import datetime, timezone

from fastapi import APIRouter, Depends, File, Query, UploadFile
from fastapi.concurrency import run_in_threadpool

from nest.core.config import settings
from nest.core.deps import get_current_user
from nest.core.errors import UpstreamError, ValidationError
from nest.models.user import User
from nest.schemas.chat import (
    AnalyzeImageResponse,
    ChatHistoryItem,
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ImageAnalysisOut,
)
from nest.schemas.common import ApiResponse
from nest.schemas.report import Category
from nest.services import ai_service, image_analysis, storage_service
from nest.services.mongo_client import get_chat_logs_collection

router = APIRouter(prefix="/ai", tags=["ai"])

SYSTEM_PROMPT = """You are an AI assistant for the N.E.S.T. (Neighborhood Emergency & Safety Tool) platform.
Your role is to help users with community issues, report problems, and provide information about services.

Available services:
- Water issues (leaks, pressure, quality, outages)
- Electricity issues (outages, fluctuations, streetlights, downed wires)
- Noise complaints (music, parties, construction, vehicles, alarms)
- Maintenance requests (potholes, sidewalks, playground equipment, trash)

Be helpful, concise, and guide users to the appropriate reporting forms when needed.
If there's an emergency situation, advise users to use the SOS button or call emergency services.

Current date: {today}"""


def _format_prompt(history: list[ChatMessage], message: str) -> str:
    lines = [f"{'User' if m.role == 'user' else 'Assistant'}: {m.content}" for m in history]
    lines.append(f"User: {message}")
    return "\n".join(lines)


@router.post("/chat", response_model=ApiResponse[ChatResponse])
async def chat(
    body: ChatRequest,
    current_user: User = Depends(get_current_user),
):
    """Answer a resident's question and log the exchange to MongoDB."""
    system = SYSTEM_PROMPT.format(today=datetime.now(timezone.utc).date().isoformat())
    prompt = _format_prompt(body.conversation_history, body.message)
    try:
        text = await run_in_threadpool(ai_service.complete, prompt, system)
    except ai_service.AIServiceError as exc:
        raise UpstreamError(f"Assistant is unavailable: {exc}") from exc

    collection = get_chat_logs_collection()
    await collection.insert_one(
        {
            "created_at": datetime.now(timezone.utc),
            "user_id": current_user.id,
            "provider": settings.ai_provider,
            "message": body.message,
            "response": text,
        }
    )
    return ApiResponse(data=ChatResponse(response=text))


@router.get("/chat/history", response_model=ApiResponse[list[ChatHistoryItem]])
async def chat_history(
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
):
    """Latest assistant exchanges for the current user."""
    collection = get_chat_logs_collection()
    cursor = collection.find({"user_id": current_user.id}).sort("created_at", -1).limit(limit)
    docs = await cursor.to_list(length=limit)

    items = [
        ChatHistoryItem(
            created_at=doc["created_at"],
            user_id=doc["user_id"],
            message=doc.get("message", ""),
            response=doc.get("response", ""),
        )
        for doc in docs
    ]
    return ApiResponse(data=items)


@router.post("/analyze-image", response_model=ApiResponse[AnalyzeImageResponse])
async def analyze_image(
    category: Category = Query(...),
    image: UploadFile = File(...),
    current_user: User = Depends(get_current_user),
):
    """Upload an image under analysis/ and ask the AI what it shows."""
    content_type = image.content_type or ""
    if not content_type.startswith("image/"):
        raise ValidationError("Only image files are allowed")
    content = await image.read()
    if not content:
        raise ValidationError("No image file provided")
    if len(content) > settings.max_upload_bytes:
        raise ValidationError("Uploaded file is too large")

    url = await storage_service.upload_file(content, image.filename or "image", content_type, folder="analysis")
    analysis = await image_analysis.analyze_image(content, content_type, category)
    return ApiResponse(data=AnalyzeImageResponse(image_url=url, analysis=ImageAnalysisOut(**asdict(analysis))))
