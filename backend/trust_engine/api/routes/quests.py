from fastapi import APIRouter, Depends
from motor.motor_asyncio import AsyncIOMotorDatabase
from redis.asyncio import Redis

from ...dependencies import get_completion_service, get_current_user_id, get_mongo_db, get_redis
from ...schemas import AttemptOut, SubmissionEvidence
from ...services.attempt_locks import attempt_guard
from ...services.attempts import get_attempt, save_attempt, to_attempt_out
from ...services.completion import CompletionService
from ...services.quests import get_quest

router = APIRouter()


@router.post("/{quest_id}/submit", response_model=AttemptOut, summary="퀘스트 완료 증거 제출 및 검증")
async def submit_completion(
    quest_id: str,
    evidence: SubmissionEvidence,
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    redis: Redis = Depends(get_redis),
    service: CompletionService = Depends(get_completion_service),
) -> AttemptOut:
    quest = await get_quest(db, quest_id)
    async with attempt_guard(redis, quest.id, user_id):
        attempt = await service.submit(quest, user_id, evidence)
        await save_attempt(db, attempt)
    return to_attempt_out(attempt)


@router.get("/{quest_id}/attempts/{attempt_id}", response_model=AttemptOut, summary="완료 시도 결과 조회")
async def read_attempt(
    quest_id: str,
    attempt_id: str,
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
) -> AttemptOut:
    attempt = await get_attempt(db, quest_id, attempt_id, user_id)
    return to_attempt_out(attempt)
