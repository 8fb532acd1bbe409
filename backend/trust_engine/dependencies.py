from collections.abc import AsyncGenerator
from functools import lru_cache

from fastapi import Depends, Header, HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from .core.config import Settings, get_settings
from .db.mongo import MongoConnectionManager
from .db.redis import RedisConnectionManager
from .services.ai_vision import AIVisionAdapter
from .services.anti_spoofing import SpoofingPolicy
from .services.completion import CompletionService
from .services.ledger import CompletionLedger, InMemoryCompletionLedger, MongoCompletionLedger
from .services.unlock import UnlockConditionEvaluator
from .services.verification import VerificationOrchestrator


async def get_mongo_db() -> AsyncGenerator[AsyncIOMotorDatabase, None]:
    db = MongoConnectionManager.get_database()
    yield db


async def get_redis() -> AsyncGenerator[Redis, None]:
    # 싱글톤으로 유지하므로 종료하지 않음
    yield RedisConnectionManager.get_client()


async def get_current_user_id(x_user_id: str | None = Header(default=None)) -> str:
    """인증 게이트웨이가 전달한 사용자 ID (세션 관리는 이 서비스 밖에서 처리)"""
    if not x_user_id or not x_user_id.strip():
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Missing X-User-Id header")
    return x_user_id.strip()


def get_ai_adapter(config: Settings = Depends(get_settings)) -> AIVisionAdapter:
    return AIVisionAdapter(config=config)


def get_orchestrator(
    ai_adapter: AIVisionAdapter = Depends(get_ai_adapter),
    config: Settings = Depends(get_settings),
) -> VerificationOrchestrator:
    return VerificationOrchestrator(ai_adapter, spoofing_policy=SpoofingPolicy.from_settings(config))


@lru_cache
def get_memory_ledger() -> InMemoryCompletionLedger:
    return InMemoryCompletionLedger()


def get_ledger(
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    config: Settings = Depends(get_settings),
) -> CompletionLedger:
    if config.completion_ledger_backend == "memory":
        return get_memory_ledger()
    return MongoCompletionLedger(db)


def get_completion_service(
    orchestrator: VerificationOrchestrator = Depends(get_orchestrator),
    ledger: CompletionLedger = Depends(get_ledger),
    config: Settings = Depends(get_settings),
) -> CompletionService:
    return CompletionService(orchestrator, ledger, default_timezone=config.default_timezone)


def get_unlock_evaluator() -> UnlockConditionEvaluator:
    return UnlockConditionEvaluator()
