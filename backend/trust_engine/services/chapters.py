from __future__ import annotations

import logging

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..schemas.chapters import StoryChapter, UnlockResponse, UnlockSubmission
from .unlock import UnlockConditionEvaluator

logger = logging.getLogger(__name__)

STORY_CHAPTERS_COL = "story_chapters"


def _chapter_filter(story_id: str, chapter_number: int) -> dict:
    return {"story_id": story_id, "chapter_number": chapter_number}


def _normalize(doc: dict) -> dict:
    doc = {**doc}
    doc["id"] = str(doc.pop("_id"))
    doc["story_id"] = str(doc["story_id"])
    doc.setdefault("unlocked_by", [])
    doc.pop("stats", None)
    return doc


async def get_chapter(db: AsyncIOMotorDatabase, story_id: str, chapter_number: int) -> StoryChapter:
    doc = await db[STORY_CHAPTERS_COL].find_one(_chapter_filter(story_id, chapter_number))
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Chapter not found")
    return StoryChapter.model_validate(_normalize(doc))


async def has_unlocked(db: AsyncIOMotorDatabase, story_id: str, chapter_number: int, user_id: str) -> bool:
    doc = await db[STORY_CHAPTERS_COL].find_one(
        {**_chapter_filter(story_id, chapter_number), "unlocked_by.user_id": user_id},
        {"_id": 1},
    )
    return doc is not None


async def unlock_chapter(
    db: AsyncIOMotorDatabase,
    evaluator: UnlockConditionEvaluator,
    story_id: str,
    chapter_number: int,
    user_id: str,
    submission: UnlockSubmission,
) -> UnlockResponse:
    chapter = await get_chapter(db, story_id, chapter_number)
    existing = chapter.unlock_for(user_id)
    if existing is not None:
        return UnlockResponse(unlocked=True, already_unlocked=True, unlocked_at=existing.unlocked_at)

    collection = db[STORY_CHAPTERS_COL]
    await collection.update_one(_chapter_filter(story_id, chapter_number), {"$inc": {"stats.unlock_attempts": 1}})

    previous_unlocked = chapter_number > 1 and await has_unlocked(db, story_id, chapter_number - 1, user_id)
    decision = evaluator.evaluate(
        chapter.unlock_conditions,
        submission,
        chapter_number=chapter_number,
        previous_unlocked=previous_unlocked,
    )
    if not decision.unlocked:
        return UnlockResponse(unlocked=False, reason=decision.reason, checks=list(decision.checks))

    _, record = evaluator.record_unlock(chapter, user_id, decision)
    # $push만 사용하며 기존 해제 기록은 절대 지우지 않음
    result = await collection.update_one(
        {**_chapter_filter(story_id, chapter_number), "unlocked_by.user_id": {"$ne": user_id}},
        {"$push": {"unlocked_by": record.model_dump()}},
    )
    if result.modified_count == 0:
        # 동시에 들어온 다른 요청이 먼저 기록함
        current = await get_chapter(db, story_id, chapter_number)
        winner = current.unlock_for(user_id)
        return UnlockResponse(
            unlocked=True,
            already_unlocked=True,
            checks=list(decision.checks),
            unlocked_at=winner.unlocked_at if winner else record.unlocked_at,
        )

    logger.info("챕터 잠금 해제: story=%s chapter=%s user=%s method=%s", story_id, chapter_number, user_id, record.method)
    return UnlockResponse(unlocked=True, checks=list(decision.checks), unlocked_at=record.unlocked_at)
