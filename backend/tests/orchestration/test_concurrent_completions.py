"""
동시 완료 시도와 입장 제어 테스트

AI 어댑터가 await 지점에서 양보하도록 만들어 모든 시도가 사전 확인을 통과한 뒤
원장 예약에서 경쟁하도록 합니다.
"""
from __future__ import annotations

import asyncio
from datetime import datetime, timedelta, timezone

import pytest

from backend.trust_engine.core.constants import AttemptStatus, FailureCode, QuestStatus
from backend.trust_engine.schemas import (
    AIRequirement,
    AIVisionResult,
    CompletionAttempt,
    Quest,
    QuestBudget,
    QuestRequirement,
    SubmissionEvidence,
    TimeWindowConfig,
)
from backend.trust_engine.services.admission import quest_day
from backend.trust_engine.services.completion import CompletionService
from backend.trust_engine.services.ledger import InMemoryCompletionLedger
from backend.trust_engine.services.verification import VerificationOrchestrator

PHOTO_EVIDENCE = SubmissionEvidence(photo_base64="aGVsbG8=")


class YieldingAIAdapter:
    def __init__(self) -> None:
        self.calls = 0

    async def verify_image(self, *_args) -> AIVisionResult:
        self.calls += 1
        await asyncio.sleep(0.01)
        return AIVisionResult(passed=True, message="Photo verified", confidence=0.9)


def _quest(**budget) -> Quest:
    return Quest(
        id="quest-1",
        title="Fountain photo",
        requirement=QuestRequirement(ai_verification=AIRequirement(enabled=True)),
        budget=QuestBudget(**budget),
    )


def _service(fixed_now, ledger=None, adapter=None) -> CompletionService:
    orchestrator = VerificationOrchestrator(adapter or YieldingAIAdapter(), clock=lambda: fixed_now)
    return CompletionService(orchestrator, ledger or InMemoryCompletionLedger(), clock=lambda: fixed_now)


async def _submit_all(service: CompletionService, quest: Quest, users: list[str]):
    return await asyncio.gather(*(service.submit(quest, user, PHOTO_EVIDENCE) for user in users))


def test_three_concurrent_attempts_against_single_slot(fixed_now):
    adapter = YieldingAIAdapter()
    service = _service(fixed_now, adapter=adapter)
    quest = _quest(max_completions=1)

    attempts = asyncio.run(_submit_all(service, quest, ["alice", "bob", "carol"]))

    completed = [a for a in attempts if a.status == AttemptStatus.COMPLETED]
    failed = [a for a in attempts if a.status == AttemptStatus.FAILED]
    assert len(completed) == 1
    assert len(failed) == 2
    assert {a.failure.code for a in failed} <= {FailureCode.BUDGET_EXHAUSTED, FailureCode.ALREADY_COMPLETED}
    # 세 시도 모두 사전 확인을 통과해 실제로 경쟁했음
    assert adapter.calls == 3


def test_same_user_concurrent_attempts_complete_once(fixed_now):
    service = _service(fixed_now)
    quest = _quest()

    attempts = asyncio.run(_submit_all(service, quest, ["alice", "alice", "alice"]))

    statuses = sorted(a.status.value for a in attempts)
    assert statuses == ["completed", "failed", "failed"]
    for attempt in attempts:
        if attempt.status == AttemptStatus.FAILED:
            assert attempt.failure.code == FailureCode.ALREADY_COMPLETED
            assert attempt.failure.can_retry is False
            # 검증 자체는 통과했지만 예약에 실패
            assert attempt.verification.passed is True


@pytest.mark.asyncio
async def test_second_attempt_is_rejected_before_verification(fixed_now):
    adapter = YieldingAIAdapter()
    service = _service(fixed_now, adapter=adapter)
    quest = _quest()

    first = await service.submit(quest, "alice", PHOTO_EVIDENCE)
    second = await service.submit(quest, "alice", PHOTO_EVIDENCE)

    assert first.status == AttemptStatus.COMPLETED
    assert second.failure.code == FailureCode.ALREADY_COMPLETED
    assert second.verification.failure_code == FailureCode.ALREADY_COMPLETED
    assert adapter.calls == 1


def test_reward_budget_limits_completions(fixed_now):
    service = _service(fixed_now)
    quest = _quest(reward_amount=10, total_reward_allocated=25)

    attempts = asyncio.run(_submit_all(service, quest, ["a", "b", "c", "d"]))

    assert sum(a.status == AttemptStatus.COMPLETED for a in attempts) == 2
    failed = [a for a in attempts if a.status == AttemptStatus.FAILED]
    assert all(a.failure.code == FailureCode.BUDGET_EXHAUSTED for a in failed)
    assert all(a.failure.can_retry for a in failed)


@pytest.mark.asyncio
async def test_daily_limit(fixed_now):
    service = _service(fixed_now)
    quest = _quest(daily_limit=1)

    first = await service.submit(quest, "alice", PHOTO_EVIDENCE)
    second = await service.submit(quest, "bob", PHOTO_EVIDENCE)

    assert first.status == AttemptStatus.COMPLETED
    assert second.failure.code == FailureCode.BUDGET_EXHAUSTED
    assert second.failure.reason == "Daily limit reached. Try again tomorrow!"


def test_daily_limit_uses_quest_timezone():
    quest = Quest(
        id="q",
        requirement=QuestRequirement(time_window=TimeWindowConfig(enabled=True, timezone="Asia/Seoul")),
    )
    # 2024-03-13 16:00 UTC = 2024-03-14 01:00 KST
    late_utc = datetime(2024, 3, 13, 16, 0, tzinfo=timezone.utc)

    assert quest_day(quest, late_utc) == "2024-03-14"
    assert quest_day(Quest(id="q"), late_utc) == "2024-03-13"


@pytest.mark.parametrize(
    ("overrides", "reason"),
    [
        ({"status": QuestStatus.PAUSED}, "Quest is not active"),
        ({"start_date": datetime(2024, 3, 14, tzinfo=timezone.utc)}, "Quest has not started yet"),
        ({"end_date": datetime(2024, 3, 12, tzinfo=timezone.utc)}, "Quest has ended"),
    ],
)
def test_inactive_quest_is_expired(fixed_now, overrides, reason):
    adapter = YieldingAIAdapter()
    service = _service(fixed_now, adapter=adapter)
    quest = _quest().model_copy(update=overrides)

    attempt = asyncio.run(service.submit(quest, "alice", PHOTO_EVIDENCE))

    assert attempt.status == AttemptStatus.FAILED
    assert attempt.failure.code == FailureCode.QUEST_EXPIRED
    assert attempt.failure.reason == reason
    assert attempt.failure.can_retry is False
    assert adapter.calls == 0


@pytest.mark.asyncio
async def test_failed_verification_does_not_consume_budget(fixed_now):
    ledger = InMemoryCompletionLedger()
    quest = Quest(
        id="quest-2",
        requirement=QuestRequirement(ai_verification=AIRequirement(enabled=True)),
        budget=QuestBudget(max_completions=1),
        end_date=fixed_now + timedelta(days=1),
    )
    service = _service(fixed_now, ledger=ledger)

    no_photo = await service.submit(quest, "alice", SubmissionEvidence())
    retry = await service.submit(quest, "alice", PHOTO_EVIDENCE)

    assert no_photo.failure.code == FailureCode.AI_VERIFICATION_FAILED
    assert no_photo.failure.can_retry is True
    assert retry.status == AttemptStatus.COMPLETED


@pytest.mark.asyncio
async def test_misconfigured_timezone_fails_attempt_before_verification(fixed_now):
    adapter = YieldingAIAdapter()
    service = _service(fixed_now, adapter=adapter)
    window = TimeWindowConfig.model_construct(enabled=True, timezone="Mars/Olympus")
    quest = Quest(
        id="quest-tz",
        requirement=QuestRequirement(time_window=window, ai_verification=AIRequirement(enabled=True)),
    )

    attempt = await service.submit(quest, "alice", PHOTO_EVIDENCE)

    assert attempt.status == AttemptStatus.FAILED
    assert attempt.failure.code == FailureCode.TIME_WINDOW_CLOSED
    assert attempt.failure.can_retry is True
    assert attempt.verification.is_terminal is True
    assert attempt.verification.infrastructure_error is True
    assert adapter.calls == 0
    # 저장 후 다시 읽어도 같은 종료 상태
    stored = CompletionAttempt.model_validate(attempt.model_dump(mode="json"))
    assert stored.status == AttemptStatus.FAILED
