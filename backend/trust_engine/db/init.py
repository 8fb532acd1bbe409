from __future__ import annotations

from motor.motor_asyncio import AsyncIOMotorDatabase

from ..services.attempts import ATTEMPTS_COL
from ..services.chapters import STORY_CHAPTERS_COL
from ..services.quests import QUESTS_COL


async def ensure_indexes(db: AsyncIOMotorDatabase) -> None:
    await db[QUESTS_COL].create_index([("status", 1), ("end_date", 1)])
    await db[ATTEMPTS_COL].create_index([("quest_id", 1), ("user_id", 1), ("created_at", -1)])
    await db[ATTEMPTS_COL].create_index([("quest_id", 1), ("status", 1)])
    await db[STORY_CHAPTERS_COL].create_index([("story_id", 1), ("chapter_number", 1)], unique=True)
    await db[STORY_CHAPTERS_COL].create_index("unlocked_by.user_id")
