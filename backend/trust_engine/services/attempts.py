from __future__ import annotations

from fastapi import HTTPException, status
from motor.motor_asyncio import AsyncIOMotorDatabase

from ..schemas.attempts import AttemptOut, CompletionAttempt

ATTEMPTS_COL = "quest_completions"


def _normalize(doc: dict) -> dict:
    doc = {**doc}
    doc["id"] = str(doc.pop("_id"))
    return doc


async def save_attempt(db: AsyncIOMotorDatabase, attempt: CompletionAttempt) -> None:
    # 사진 원본은 저장하지 않음
    doc = attempt.model_dump(mode="json", exclude={"id": True, "evidence": {"photo_base64"}})
    doc["evidence"]["has_photo"] = attempt.evidence.has_photo
    await db[ATTEMPTS_COL].replace_one({"_id": attempt.id}, doc, upsert=True)


async def get_attempt(db: AsyncIOMotorDatabase, quest_id: str, attempt_id: str, user_id: str) -> CompletionAttempt:
    doc = await db[ATTEMPTS_COL].find_one({"_id": attempt_id, "quest_id": quest_id, "user_id": user_id})
    if not doc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Attempt not found")
    doc = _normalize(doc)
    doc["evidence"].pop("has_photo", None)
    return CompletionAttempt.model_validate(doc)


def to_attempt_out(attempt: CompletionAttempt) -> AttemptOut:
    failure = attempt.failure
    return AttemptOut(
        id=attempt.id,
        quest_id=attempt.quest_id,
        status=attempt.status,
        can_retry=failure.can_retry if failure else None,
        failure_code=failure.code if failure else None,
        reason=failure.reason if failure else attempt.verification.message,
        verification=attempt.verification,
    )
