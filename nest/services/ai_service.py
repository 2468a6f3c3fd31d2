"""AI provider service (Gemini + Ollama) for free-text completion."""

from __future__ import annotations

import base64
from typing import Any

import httpx

from nest.core.config import settings


class AIServiceError(Exception):
    """Raised when the completion provider fails."""


def complete(
    prompt: str,
    system: str | None = None,
    image: bytes | None = None,
    image_mime_type: str = "image/jpeg",
    provider: str | None = None,
) -> str:
    """Return the provider's unstructured text answer for `prompt`."""
    provider_name = (provider or settings.ai_provider).strip().lower()
    if provider_name not in {"gemini", "ollama"}:
        raise AIServiceError(f"Unsupported provider '{provider_name}'. Use 'gemini' or 'ollama'.")

    if provider_name == "gemini":
        text = _call_gemini(prompt, system, image, image_mime_type)
    else:
        text = _call_ollama(prompt, system, image)

    if not text or not text.strip():
        raise AIServiceError(f"{provider_name} returned an empty response")
    return text.strip()


def _call_gemini(prompt: str, system: str | None, image: bytes | None, image_mime_type: str) -> str:
    if not settings.gemini_api_key:
        raise AIServiceError("GEMINI_API_KEY is not configured")

    try:
        from google import genai
        from google.genai import types
    except ImportError as exc:
        raise AIServiceError("Gemini SDK is not installed. Add 'google-genai' to dependencies.") from exc

    client = genai.Client(api_key=settings.gemini_api_key)

    contents: list[Any] = [prompt]
    if image is not None:
        contents.insert(0, types.Part.from_bytes(data=image, mime_type=image_mime_type))

    try:
        response = client.models.generate_content(
            model=settings.gemini_model,
            contents=contents,
            config=types.GenerateContentConfig(system_instruction=system) if system else None,
        )
    except Exception as exc:  # noqa: BLE001 - SDK raises provider-specific errors
        raise AIServiceError(f"Gemini request failed: {exc}") from exc

    return getattr(response, "text", None) or ""


def _call_ollama(prompt: str, system: str | None, image: bytes | None) -> str:
    url = settings.ollama_base_url.rstrip("/") + "/api/generate"
    payload: dict[str, Any] = {
        "model": settings.ollama_model,
        "prompt": prompt,
        "stream": False,
    }
    if system:
        payload["system"] = system
    if image is not None:
        payload["images"] = [base64.b64encode(image).decode()]

    try:
        response = httpx.post(url, json=payload, timeout=45.0)
        response.raise_for_status()
    except httpx.HTTPError as exc:
        raise AIServiceError(f"Ollama request failed: {exc}") from exc

    data = response.json()
    if "response" not in data:
        raise AIServiceError("Ollama response missing 'response' field")

    return data["response"]
