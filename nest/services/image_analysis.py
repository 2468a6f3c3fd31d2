"""AI image analysis for report attachments.

The AI collaborator answers in free text. `interpret_analysis` is the only
place that turns that text into a verdict, so a structured-output parser
can replace it without touching callers.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field

from fastapi.concurrency import run_in_threadpool

from nest.services import ai_service

logger = logging.getLogger(__name__)

PROMPTS: dict[str, str] = {
    "pothole": (
        "Analyze this image and determine if it shows a pothole on a road or sidewalk. "
        "Start your answer with yes or no. If it does, estimate the severity (low, medium, high) "
        "based on size and depth."
    ),
    "cleanliness": (
        "Analyze this image and determine if it shows garbage, debris, or unclean areas. "
        "Start your answer with yes or no. If it does, estimate the severity (low, medium, high) "
        "based on amount and type."
    ),
    "water": (
        "Analyze this image and determine if it shows a water leak, flooding, or water damage. "
        "Start your answer with yes or no. If it does, estimate the severity (low, medium, high) "
        "based on extent and potential damage."
    ),
    "electricity": (
        "Analyze this image and determine if it shows electrical issues like downed wires, damaged poles, "
        "or broken streetlights. Start your answer with yes or no. If it does, estimate the severity "
        "(low, medium, high) based on safety risk."
    ),
}
DEFAULT_PROMPT = "Analyze this image and describe what you see. Is there any visible issue or problem?"

TAG_KEYWORDS: dict[str, tuple[str, ...]] = {
    "pothole": ("large", "deep", "multiple"),
    "cleanliness": ("garbage", "debris", "graffiti"),
}

_YES = re.compile(r"\byes\b")
_NEGATION = re.compile(r"\b(no|not)\b")


@dataclass
class ImageAnalysis:
    is_valid: bool
    severity: str
    confidence: float
    tags: list[str] = field(default_factory=list)
    analysis: str = ""


def build_analysis_prompt(category: str) -> str:
    return PROMPTS.get(category, DEFAULT_PROMPT)


def interpret_analysis(text: str, category: str) -> ImageAnalysis:
    """Heuristically read a free-text AI answer.

    Valid when the answer says "yes", or carries no negation at all.
    Severity is the highest of low/medium/high mentioned.
    """
    lowered = text.lower()
    is_valid = bool(_YES.search(lowered)) or not _NEGATION.search(lowered)

    severity = "low"
    if re.search(r"\bmedium\b", lowered):
        severity = "medium"
    if re.search(r"\bhigh\b", lowered):
        severity = "high"

    tags = [word for word in TAG_KEYWORDS.get(category, ()) if word in lowered]

    return ImageAnalysis(
        is_valid=is_valid,
        severity=severity,
        confidence=0.8 if is_valid else 0.3,
        tags=tags,
        analysis=text,
    )


def failed_analysis() -> ImageAnalysis:
    return ImageAnalysis(
        is_valid=False,
        severity="low",
        confidence=0.0,
        tags=[],
        analysis="Failed to analyze image",
    )


async def analyze_image(image: bytes, content_type: str, category: str) -> ImageAnalysis:
    """Ask the AI collaborator about an image. Never raises."""
    prompt = build_analysis_prompt(category)
    try:
        text = await run_in_threadpool(
            ai_service.complete,
            prompt,
            None,
            image,
            content_type or "image/jpeg",
        )
    except Exception:  # noqa: BLE001 - analysis is best-effort
        logger.exception("Image analysis failed for category=%s", category)
        return failed_analysis()
    return interpret_analysis(text, category)
