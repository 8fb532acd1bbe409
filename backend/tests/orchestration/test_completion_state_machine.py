"""
완료 시도 상태 머신 테스트
"""
from datetime import datetime, timezone

import pytest

from backend.trust_engine.core.constants import AttemptStatus, FailureCode
from backend.trust_engine.core.errors import InvalidTransitionError
from backend.trust_engine.schemas import CompletionAttempt, SubmissionEvidence, VerificationResult
from backend.trust_engine.services.completion import CompletionStateMachine, can_retry

NOW = datetime(2024, 3, 13, 10, 0, tzinfo=timezone.utc)


def _machine() -> CompletionStateMachine:
    attempt = CompletionAttempt(
        quest_id="q1",
        user_id="u1",
        evidence=SubmissionEvidence(),
        verification=VerificationResult(started_at=NOW),
    )
    return CompletionStateMachine(attempt, clock=lambda: NOW)


def _passed_result() -> VerificationResult:
    result = VerificationResult(started_at=NOW)
    result.mark_passed(1.0, "Verification passed", now=NOW)
    return result


def _failed_result(code: FailureCode) -> VerificationResult:
    result = VerificationResult(started_at=NOW)
    result.mark_failed(code, "failed", now=NOW)
    return result


@pytest.mark.parametrize(
    ("code", "expected"),
    [
        (FailureCode.LOCATION_MISMATCH, True),
        (FailureCode.TIME_WINDOW_CLOSED, True),
        (FailureCode.QR_CODE_INVALID, True),
        (FailureCode.AI_VERIFICATION_FAILED, True),
        (FailureCode.BUDGET_EXHAUSTED, True),
        (FailureCode.SPOOFING_DETECTED, False),
        (FailureCode.ALREADY_COMPLETED, False),
        (FailureCode.QUEST_EXPIRED, False),
    ],
)
def test_retry_classification(code: FailureCode, expected: bool):
    assert can_retry(code) is expected


def test_happy_path_reaches_completed():
    machine = _machine()
    machine.begin_verification()
    assert machine.status == AttemptStatus.VERIFYING
    assert machine.attempt.started_at == NOW

    machine.apply_verification(_passed_result())

    assert machine.status == AttemptStatus.COMPLETED
    assert machine.is_terminal is True
    assert machine.attempt.completed_at == NOW
    assert machine.attempt.failure is None


def test_failed_verification_records_code_and_retry_flag():
    machine = _machine()
    machine.begin_verification()

    machine.apply_verification(_failed_result(FailureCode.LOCATION_MISMATCH))

    assert machine.status == AttemptStatus.FAILED
    assert machine.attempt.failure.code == FailureCode.LOCATION_MISMATCH
    assert machine.attempt.failure.can_retry is True


def test_spoofing_failure_is_not_retryable():
    machine = _machine()
    machine.begin_verification()

    machine.apply_verification(_failed_result(FailureCode.SPOOFING_DETECTED))

    assert machine.attempt.failure.can_retry is False


def test_admission_failure_seals_pending_verification():
    machine = _machine()

    machine.fail(FailureCode.QUEST_EXPIRED, "Quest has ended")

    assert machine.status == AttemptStatus.FAILED
    assert machine.attempt.verification.is_terminal is True
    assert machine.attempt.verification.failure_code == FailureCode.QUEST_EXPIRED


def test_completed_requires_passed_result():
    machine = _machine()
    machine.begin_verification()

    with pytest.raises(InvalidTransitionError):
        machine.complete(_failed_result(FailureCode.QR_CODE_INVALID))


def test_pending_result_cannot_be_attached():
    machine = _machine()
    machine.begin_verification()

    with pytest.raises(InvalidTransitionError):
        machine.complete(VerificationResult(started_at=NOW))


def test_no_transition_out_of_terminal_states():
    machine = _machine()
    machine.begin_verification()
    machine.apply_verification(_passed_result())

    with pytest.raises(InvalidTransitionError):
        machine.fail(FailureCode.BUDGET_EXHAUSTED, "late", _failed_result(FailureCode.BUDGET_EXHAUSTED))
    with pytest.raises(InvalidTransitionError):
        machine.reject("manual")
    assert machine.status == AttemptStatus.COMPLETED


def test_cannot_complete_without_verifying():
    machine = _machine()

    with pytest.raises(InvalidTransitionError):
        machine.complete(_passed_result())


def test_manual_reject_is_final():
    machine = _machine()
    machine.begin_verification()

    machine.reject("Photo shows a different venue")

    assert machine.status == AttemptStatus.REJECTED
    assert machine.attempt.failure.code is None
    assert machine.attempt.failure.can_retry is False
    with pytest.raises(InvalidTransitionError):
        machine.begin_verification()
