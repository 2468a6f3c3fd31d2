"""Redis helpers: socket session lookup and transient emergency alerts."""

from __future__ import annotations

import json
import time
from typing import Any

import redis.asyncio as redis

from nest.core.config import settings

SOCKET_AUTH_PREFIX = "socket:auth:"
EMERGENCY_PREFIX = "emergency:"

_client: Any | None = None


def get_redis() -> Any:
    """Return a singleton asyncio Redis client."""
    global _client
    if _client is None:
        _client = redis.from_url(settings.redis_url, decode_responses=True)
    return _client


async def store_socket_token(token: str, user_id: int) -> None:
    await get_redis().set(
        f"{SOCKET_AUTH_PREFIX}{token}",
        str(user_id),
        ex=settings.socket_token_ttl_seconds,
    )


async def resolve_socket_token(token: str) -> int | None:
    """Return the user id a socket token was issued to, or None."""
    value = await get_redis().get(f"{SOCKET_AUTH_PREFIX}{token}")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


async def store_emergency_alert(
    user_id: int,
    alert_type: str,
    description: str,
    location: Any,
) -> dict[str, Any]:
    """Persist an emergency alert hash with a 24h expiry and return it."""
    timestamp = int(time.time() * 1000)
    alert_id = f"{EMERGENCY_PREFIX}{timestamp}"
    client = get_redis()
    await client.hset(
        alert_id,
        mapping={
            "userId": str(user_id),
            "type": alert_type,
            "description": description,
            "location": json.dumps(location),
            "timestamp": str(timestamp),
        },
    )
    await client.expire(alert_id, settings.emergency_alert_ttl_seconds)
    return {
        "id": alert_id,
        "userId": user_id,
        "type": alert_type,
        "description": description,
        "location": location,
        "timestamp": timestamp,
    }


async def list_emergency_alerts() -> list[dict[str, Any]]:
    """Return stored (unexpired) emergency alerts, newest first."""
    client = get_redis()
    alerts: list[dict[str, Any]] = []
    async for key in client.scan_iter(match=f"{EMERGENCY_PREFIX}*"):
        raw = await client.hgetall(key)
        if not raw:
            continue
        alerts.append(
            {
                "id": key,
                "userId": int(raw.get("userId", 0)),
                "type": raw.get("type", ""),
                "description": raw.get("description", ""),
                "location": json.loads(raw.get("location") or "null"),
                "timestamp": int(raw.get("timestamp", 0)),
            }
        )
    alerts.sort(key=lambda a: a["timestamp"], reverse=True)
    return alerts
