"""MongoDB client helpers."""

from __future__ import annotations

from typing import Any

from nest.core.config import settings

_client: Any | None = None


def get_mongo_client() -> Any:
    """Return a singleton Motor client."""
    global _client
    if _client is None:
        try:
            from motor.motor_asyncio import AsyncIOMotorClient
        except ImportError as exc:
            raise RuntimeError("motor is not installed. Add 'motor' to dependencies.") from exc
        _client = AsyncIOMotorClient(settings.mongo_uri)
    return _client


def get_chat_logs_collection() -> Any:
    """Return the assistant chat transcript collection."""
    client = get_mongo_client()
    return client[settings.mongo_db]["chat_logs"]
