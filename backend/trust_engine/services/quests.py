from __future__ import annotations

from bson import ObjectId
from bson.errors import InvalidId
from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..schemas.quests import Quest

QUESTS_COL = "quests"


def document_id(value: str) -> ObjectId | str:
    """ObjectId 형식이면 변환하고, 아니면 문자열 ID 그대로 사용"""
    try:
        return ObjectId(value)
    except (InvalidId, TypeError):
        return value


def _normalize(doc: dict) -> dict:
    doc = {**doc}
    doc["id"] = str(doc.pop("_id"))
    doc.setdefault("requirement", {})
    doc.setdefault("budget", {})
    return doc


async def get_quest(db: AsyncIOMotorDatabase, quest_id: str) -> Quest:
    doc = await db[QUESTS_COL].find_one({"_id": document_id(quest_id)})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Quest not found")
    return Quest.model_validate(_normalize(doc))
