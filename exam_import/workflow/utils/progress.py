from __future__ import annotations

import json
import os
from typing import Any, Dict

from redis import Redis as SyncRedis
from redis.asyncio import Redis as AsyncRedis

from exam_import.utils.logging_config import get_logger

logger = get_logger(__name__)

PROGRESS_REDIS_URL = os.getenv("PROGRESS_REDIS_URL", "redis://localhost:6379/2")
_progress_client: AsyncRedis | None = None


def progress_key(import_id: str) -> str:
    return f"import:{import_id}"


def emit_progress(import_id: str | None, status: str, current_step: str, progress: float | int = 0, extra: Dict[str, Any] | None = None) -> None:
    """Push a progress snapshot to a Redis hash + pubsub channel.

    Progress is advisory: the import record in the database is the source of
    truth, so Redis being unavailable is logged and otherwise ignored.
    """
    if not import_id:
        return

    payload: Dict[str, Any] = {
        "status": status,
        "current_step": current_step,
        "progress": progress,
    }
    if extra:
        payload.update(extra)

    try:
        client = SyncRedis.from_url(PROGRESS_REDIS_URL, decode_responses=True)
        client.hset(progress_key(import_id), mapping={k: str(v) for k, v in payload.items() if v is not None})
        client.publish(f"progress:{import_id}", json.dumps(payload))
    except Exception:
        logger.debug("Progress update skipped | import=%s step=%s", import_id, current_step, exc_info=True)


async def get_progress_client() -> AsyncRedis:
    """Return a shared asyncio Redis client for progress tracking."""
    global _progress_client
    if _progress_client is None:
        _progress_client = AsyncRedis.from_url(PROGRESS_REDIS_URL, decode_responses=True)
    return _progress_client


async def read_progress(import_id: str) -> dict:
    try:
        client = await get_progress_client()
        raw = await client.hgetall(progress_key(import_id))
    except Exception:
        logger.debug("Progress read skipped | import=%s", import_id, exc_info=True)
        return {}
    return raw or {}
