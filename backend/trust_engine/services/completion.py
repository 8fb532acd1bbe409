"""
퀘스트 완료 시도의 상태 머신과 전체 처리 흐름

상태: pending → verifying → completed | failed | rejected
- completed는 검증 결과가 passed일 때만 도달합니다.
- failed는 실패 코드와 재시도 가능 여부(can_retry)를 가집니다.
- completed/rejected/failed 이후에는 어떤 전이도 허용하지 않습니다.
  (failed는 해당 시도에 대해서만 종료이며 새 시도는 막지 않습니다.)
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime

from ..core.constants import NON_RETRYABLE_CODES, AttemptStatus, FailureCode
from ..core.errors import ConfigurationError, InvalidTransitionError
from ..schemas.attempts import AttemptFailure, CompletionAttempt
from ..schemas.evidence import SubmissionEvidence
from ..schemas.quests import Quest
from ..schemas.results import VerificationResult
from .admission import check_admission, quest_day
from .ledger import CompletionLedger
from .verification import MISCONFIGURED_MESSAGE, VerificationOrchestrator, utcnow

logger = logging.getLogger(__name__)

TRANSITIONS: dict[AttemptStatus, frozenset[AttemptStatus]] = {
    AttemptStatus.PENDING: frozenset({AttemptStatus.VERIFYING, AttemptStatus.FAILED, AttemptStatus.REJECTED}),
    AttemptStatus.VERIFYING: frozenset({AttemptStatus.COMPLETED, AttemptStatus.FAILED, AttemptStatus.REJECTED}),
    AttemptStatus.COMPLETED: frozenset(),
    AttemptStatus.FAILED: frozenset(),
    AttemptStatus.REJECTED: frozenset(),
}


def can_retry(failure_code: FailureCode) -> bool:
    return failure_code not in NON_RETRYABLE_CODES


class CompletionStateMachine:
    def __init__(self, attempt: CompletionAttempt, clock: Callable[[], datetime] = utcnow) -> None:
        self.attempt = attempt
        self.clock = clock

    @property
    def status(self) -> AttemptStatus:
        return self.attempt.status

    @property
    def is_terminal(self) -> bool:
        return not TRANSITIONS[self.status]

    def _check(self, target: AttemptStatus) -> None:
        if target not in TRANSITIONS[self.status]:
            raise InvalidTransitionError(self.status.value, target.value)

    def _move(self, target: AttemptStatus) -> None:
        self._check(target)
        self.attempt.status = target

    def begin_verification(self) -> None:
        self._move(AttemptStatus.VERIFYING)
        self.attempt.started_at = self.clock()

    def _attach(self, result: VerificationResult) -> None:
        if not result.is_terminal:
            raise InvalidTransitionError(self.status.value, "a terminal state without a finished verification")
        self.attempt.verification = result

    def complete(self, result: VerificationResult) -> None:
        self._check(AttemptStatus.COMPLETED)
        if not result.passed:
            raise InvalidTransitionError(self.status.value, AttemptStatus.COMPLETED.value)
        self._attach(result)
        self._move(AttemptStatus.COMPLETED)
        self.attempt.completed_at = self.clock()

    def fail(self, failure_code: FailureCode, reason: str, result: VerificationResult | None = None) -> None:
        self._check(AttemptStatus.FAILED)
        if result is not None:
            self._attach(result)
        elif not self.attempt.verification.is_terminal:
            # 검증 전에 거부된 시도(입장 제어 실패)도 종료된 결과를 가져야 함
            self.attempt.verification.mark_failed(failure_code, reason, now=self.clock())
        self._move(AttemptStatus.FAILED)
        self.attempt.failed_at = self.clock()
        self.attempt.failure = AttemptFailure(code=failure_code, reason=reason, can_retry=can_retry(failure_code))

    def reject(self, reason: str) -> None:
        """관리자 수동 거부 (엔진 외부 결정)"""
        self._move(AttemptStatus.REJECTED)
        self.attempt.failed_at = self.clock()
        self.attempt.failure = AttemptFailure(code=None, reason=reason, can_retry=False)

    def apply_verification(self, result: VerificationResult) -> None:
        if result.passed:
            self.complete(result)
        else:
            self.fail(result.failure_code or FailureCode.AI_VERIFICATION_FAILED, result.message or "Verification failed", result)


class CompletionService:
    """
    한 번의 완료 시도를 처리합니다.

    1. 입장 제어 사전 확인 (읽기 전용)
    2. 검증 오케스트레이터 실행
    3. 통과 시 원장에 원자적 예약. 예약 실패는 BUDGET_EXHAUSTED/ALREADY_COMPLETED 실패로 반환
    """

    def __init__(
        self,
        orchestrator: VerificationOrchestrator,
        ledger: CompletionLedger,
        *,
        default_timezone: str = "UTC",
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.orchestrator = orchestrator
        self.ledger = ledger
        self.default_timezone = default_timezone
        self.clock = clock

    async def submit(self, quest: Quest, user_id: str, evidence: SubmissionEvidence) -> CompletionAttempt:
        now = self.clock()
        attempt = CompletionAttempt(
            quest_id=quest.id,
            user_id=user_id,
            evidence=evidence,
            verification=VerificationResult(started_at=now),
            created_at=now,
        )
        machine = CompletionStateMachine(attempt, clock=self.clock)
        try:
            day = quest_day(quest, now, self.default_timezone)
        except ConfigurationError as exc:
            logger.error("퀘스트 시간대 설정 오류: quest=%s %s", quest.id, exc)
            attempt.verification.infrastructure_error = True
            machine.fail(FailureCode.TIME_WINDOW_CLOSED, f"{MISCONFIGURED_MESSAGE}: {exc}")
            return attempt

        snapshot = await self.ledger.snapshot(quest, user_id, day)
        admission = check_admission(quest, snapshot, now)
        if not admission.admitted:
            logger.info("입장 제어 거부: quest=%s user=%s code=%s", quest.id, user_id, admission.failure_code.value)
            machine.fail(admission.failure_code, admission.reason)
            return attempt

        machine.begin_verification()
        result = await self.orchestrator.verify(quest.requirement, evidence)
        if not result.passed:
            machine.apply_verification(result)
            return attempt

        reservation = await self.ledger.reserve(quest, user_id, day)
        if not reservation.admitted:
            logger.info("완료 예약 실패: quest=%s user=%s code=%s", quest.id, user_id, reservation.failure_code.value)
            machine.fail(reservation.failure_code, reservation.reason, result)
            return attempt

        machine.complete(result)
        logger.info("퀘스트 완료: quest=%s user=%s score=%.2f", quest.id, user_id, result.overall_score)
        return attempt
