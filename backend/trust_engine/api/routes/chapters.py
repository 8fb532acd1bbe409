from fastapi import APIRouter, Depends, Path
from motor.motor_asyncio import AsyncIOMotorDatabase

from ...dependencies import get_current_user_id, get_mongo_db, get_unlock_evaluator
from ...schemas import UnlockResponse, UnlockSubmission
from ...services.chapters import unlock_chapter
from ...services.unlock import UnlockConditionEvaluator

router = APIRouter()


@router.post(
    "/{story_id}/chapters/{chapter_number}/unlock",
    response_model=UnlockResponse,
    summary="스토리 챕터 잠금 해제 시도",
)
async def unlock_story_chapter(
    story_id: str,
    payload: UnlockSubmission,
    chapter_number: int = Path(ge=1),
    user_id: str = Depends(get_current_user_id),
    db: AsyncIOMotorDatabase = Depends(get_mongo_db),
    evaluator: UnlockConditionEvaluator = Depends(get_unlock_evaluator),
) -> UnlockResponse:
    return await unlock_chapter(db, evaluator, story_id, chapter_number, user_id, payload)
