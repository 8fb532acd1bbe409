"""
입장 제어 (admission control)

검증 전에 퀘스트 상태/기간/예산/사용자 한도를 확인합니다.
원장(ledger)의 스냅샷만 읽는 순수 함수이며, 실제 증가는 원장의 원자적 예약에서만 일어납니다.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

from ..core.constants import FailureCode, QuestStatus
from ..schemas.quests import Quest, QuestBudget
from .time_window import to_local


@dataclass(frozen=True)
class LedgerSnapshot:
    total_completions: int = 0
    user_completions: int = 0
    daily_completions: int = 0
    reward_remaining: float = 0.0


@dataclass(frozen=True)
class AdmissionDecision:
    admitted: bool
    failure_code: FailureCode | None = None
    reason: str | None = None


ADMITTED = AdmissionDecision(admitted=True)


def _aware(value: datetime) -> datetime:
    return value if value.tzinfo else value.replace(tzinfo=timezone.utc)


def quest_timezone(quest: Quest, default_timezone: str = "UTC") -> str:
    window = quest.requirement.time_window
    return window.timezone if window is not None else default_timezone


def quest_day(quest: Quest, now: datetime, default_timezone: str = "UTC") -> str:
    """일일 한도의 기준 날짜. 서버 로컬 자정이 아니라 퀘스트 시간대의 날짜를 사용합니다."""
    return to_local(now, quest_timezone(quest, default_timezone)).date().isoformat()


def check_quest_window(quest: Quest, now: datetime) -> AdmissionDecision:
    now = _aware(now)
    if quest.status != QuestStatus.ACTIVE:
        return AdmissionDecision(False, FailureCode.QUEST_EXPIRED, "Quest is not active")
    if quest.start_date and now < _aware(quest.start_date):
        return AdmissionDecision(False, FailureCode.QUEST_EXPIRED, "Quest has not started yet")
    if quest.end_date and now > _aware(quest.end_date):
        return AdmissionDecision(False, FailureCode.QUEST_EXPIRED, "Quest has ended")
    return ADMITTED


def check_limits(budget: QuestBudget, snapshot: LedgerSnapshot) -> AdmissionDecision:
    if budget.max_completions is not None and snapshot.total_completions >= budget.max_completions:
        return AdmissionDecision(False, FailureCode.BUDGET_EXHAUSTED, "Quest has reached maximum completions")
    if snapshot.user_completions >= budget.max_completions_per_user:
        return AdmissionDecision(False, FailureCode.ALREADY_COMPLETED, "You have already completed this quest")
    if budget.daily_limit is not None and snapshot.daily_completions >= budget.daily_limit:
        return AdmissionDecision(False, FailureCode.BUDGET_EXHAUSTED, "Daily limit reached. Try again tomorrow!")
    if budget.reward_amount > 0 and snapshot.reward_remaining < budget.reward_amount:
        return AdmissionDecision(False, FailureCode.BUDGET_EXHAUSTED, "Quest reward budget exhausted")
    return ADMITTED


def check_admission(quest: Quest, snapshot: LedgerSnapshot, now: datetime) -> AdmissionDecision:
    decision = check_quest_window(quest, now)
    if not decision.admitted:
        return decision
    return check_limits(quest.budget, snapshot)
