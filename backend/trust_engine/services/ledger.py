"""
퀘스트 완료 원장

최대 완료 수, 사용자별 한도, 일일 한도, 남은 보상 예산의 "확인 후 증가"는
반드시 하나의 원자적 조건부 갱신으로 처리해야 합니다. 동시에 들어온 두 시도가 모두
"완료 0회"를 보고 함께 성공하는 일이 없도록 합니다.
"""
from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Protocol

from motor.motor_asyncio import AsyncIOMotorDatabase
from pymongo import ReturnDocument
from pymongo.errors import DuplicateKeyError

from ..core.constants import FailureCode
from ..schemas.quests import Quest
from .admission import ADMITTED, AdmissionDecision, LedgerSnapshot, check_limits

logger = logging.getLogger(__name__)

QUEST_COUNTERS_COL = "quest_counters"


class CompletionLedger(Protocol):
    async def snapshot(self, quest: Quest, user_id: str, day: str) -> LedgerSnapshot: ...

    async def reserve(self, quest: Quest, user_id: str, day: str) -> AdmissionDecision: ...


@dataclass
class _Counters:
    total_completions: int = 0
    reward_remaining: float = 0.0
    users: dict[str, int] = field(default_factory=dict)
    days: dict[str, int] = field(default_factory=dict)


class InMemoryCompletionLedger:
    """단일 프로세스용 원장 (개발 환경 및 테스트)"""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._counters: dict[str, _Counters] = {}

    def _get(self, quest: Quest) -> _Counters:
        if quest.id not in self._counters:
            self._counters[quest.id] = _Counters(reward_remaining=quest.budget.total_reward_allocated)
        return self._counters[quest.id]

    def _snapshot(self, quest: Quest, user_id: str, day: str) -> LedgerSnapshot:
        counters = self._get(quest)
        return LedgerSnapshot(
            total_completions=counters.total_completions,
            user_completions=counters.users.get(user_id, 0),
            daily_completions=counters.days.get(day, 0),
            reward_remaining=counters.reward_remaining,
        )

    async def snapshot(self, quest: Quest, user_id: str, day: str) -> LedgerSnapshot:
        async with self._lock:
            return self._snapshot(quest, user_id, day)

    async def reserve(self, quest: Quest, user_id: str, day: str) -> AdmissionDecision:
        async with self._lock:
            decision = check_limits(quest.budget, self._snapshot(quest, user_id, day))
            if not decision.admitted:
                return decision
            counters = self._get(quest)
            counters.total_completions += 1
            counters.users[user_id] = counters.users.get(user_id, 0) + 1
            counters.days[day] = counters.days.get(day, 0) + 1
            counters.reward_remaining -= quest.budget.reward_amount
            return ADMITTED


def _field_key(value: str) -> str:
    # 필드 경로에 '.', '$'를 쓸 수 없음. hex 인코딩은 id마다 고유한 키를 만듦
    return "u" + value.encode("utf-8").hex()


class MongoCompletionLedger:
    """퀘스트별 카운터 문서 하나에 대한 find_one_and_update 조건부 갱신"""

    def __init__(self, db: AsyncIOMotorDatabase) -> None:
        self.collection = db[QUEST_COUNTERS_COL]

    async def _ensure_counters(self, quest: Quest) -> None:
        try:
            await self.collection.update_one(
                {"_id": quest.id},
                {
                    "$setOnInsert": {
                        "total_completions": 0,
                        "reward_remaining": quest.budget.total_reward_allocated,
                        "users": {},
                        "days": {},
                    }
                },
                upsert=True,
            )
        except DuplicateKeyError:
            # 동시에 다른 요청이 먼저 생성함
            pass

    async def snapshot(self, quest: Quest, user_id: str, day: str) -> LedgerSnapshot:
        doc = await self.collection.find_one({"_id": quest.id})
        if not doc:
            return LedgerSnapshot(reward_remaining=quest.budget.total_reward_allocated)
        return LedgerSnapshot(
            total_completions=doc.get("total_completions", 0),
            user_completions=doc.get("users", {}).get(_field_key(user_id), 0),
            daily_completions=doc.get("days", {}).get(day, 0),
            reward_remaining=doc.get("reward_remaining", 0),
        )

    async def reserve(self, quest: Quest, user_id: str, day: str) -> AdmissionDecision:
        await self._ensure_counters(quest)
        budget = quest.budget
        user_key = f"users.{_field_key(user_id)}"
        day_key = f"days.{day}"

        query: dict = {"_id": quest.id, user_key: {"$not": {"$gte": budget.max_completions_per_user}}}
        if budget.max_completions is not None:
            query["total_completions"] = {"$lt": budget.max_completions}
        if budget.daily_limit is not None:
            query[day_key] = {"$not": {"$gte": budget.daily_limit}}
        if budget.reward_amount > 0:
            query["reward_remaining"] = {"$gte": budget.reward_amount}

        increments: dict = {"total_completions": 1, user_key: 1, day_key: 1}
        if budget.reward_amount > 0:
            increments["reward_remaining"] = -budget.reward_amount

        doc = await self.collection.find_one_and_update(
            query,
            {"$inc": increments},
            return_document=ReturnDocument.AFTER,
        )
        if doc is not None:
            return ADMITTED

        # 조건 불일치: 어떤 한도에 걸렸는지 다시 읽어서 분류
        decision = check_limits(budget, await self.snapshot(quest, user_id, day))
        if decision.admitted:
            logger.warning("원장 예약 실패 후 재조회에서는 한도 여유가 있음: quest=%s", quest.id)
            return AdmissionDecision(False, FailureCode.BUDGET_EXHAUSTED, "Quest completion could not be reserved")
        return decision
