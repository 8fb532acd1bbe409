from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from uuid import uuid4

from fastapi import HTTPException, status
from redis.asyncio import Redis

from ..core.config import settings

logger = logging.getLogger(__name__)

ATTEMPT_LOCK_PREFIX = "quest_attempt_lock:"


def _lock_key(quest_id: str, user_id: str) -> str:
    return f"{ATTEMPT_LOCK_PREFIX}{quest_id}:{user_id}"


@asynccontextmanager
async def attempt_guard(
    redis: Redis,
    quest_id: str,
    user_id: str,
    ttl: int | None = None,
) -> AsyncIterator[str]:
    """
    같은 사용자가 같은 퀘스트에 대해 동시에 두 번 시도하지 못하도록 잠금

    TTL이 지나면 잠금은 자동으로 풀립니다. 해제 시에는 자신이 잡은 잠금만 삭제합니다.
    """
    key = _lock_key(quest_id, user_id)
    token = uuid4().hex
    acquired = await redis.set(key, token, nx=True, ex=ttl or settings.attempt_lock_ttl_seconds)
    if not acquired:
        logger.info("진행 중인 시도가 있어 거부: quest=%s user=%s", quest_id, user_id)
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Another attempt for this quest is already in progress",
        )
    try:
        yield token
    finally:
        if await redis.get(key) == token:
            await redis.delete(key)
