"""
검증 오케스트레이터 테스트

가짜 AI 어댑터를 주입해 레이어 순서, 단락(short-circuit), 점수, 인프라 오류 변환을 확인합니다.
"""
from __future__ import annotations

import asyncio

import pytest

from backend.trust_engine.core.constants import FailureCode, VerificationLayer, VerificationOutcome
from backend.trust_engine.core.errors import AIVisionTimeoutError, TerminalResultError
from backend.trust_engine.schemas import (
    AIRequirement,
    AIVisionResult,
    DeviceTelemetry,
    LocationFix,
    QRRequirement,
    QuestRequirement,
    SubmissionEvidence,
    TimeWindowConfig,
)
from backend.trust_engine.services.qr_codes import hash_code
from backend.trust_engine.services.verification import VerificationOrchestrator


@pytest.fixture
def full_requirement(city_hall) -> QuestRequirement:
    return QuestRequirement(
        location=city_hall,
        time_window=TimeWindowConfig(enabled=True, start_time="09:00", end_time="17:00"),
        qr_code=QRRequirement(enabled=True, code_hash=hash_code("ABC123")),
        ai_verification=AIRequirement(enabled=True, prompt="The plaza fountain"),
        verification_layers=(VerificationLayer.GPS, VerificationLayer.TIME, VerificationLayer.QR_SCAN),
    )


@pytest.fixture
def good_evidence(city_hall, fixed_now) -> SubmissionEvidence:
    return SubmissionEvidence(
        location=LocationFix(latitude=city_hall.latitude, longitude=city_hall.longitude, accuracy=5),
        captured_at=fixed_now,
        qr_code_scanned="ABC123",
        photo_base64="aGVsbG8=",
        device_info=DeviceTelemetry(platform="android"),
    )


def _orchestrator(fake_ai, fixed_now) -> VerificationOrchestrator:
    return VerificationOrchestrator(fake_ai, clock=lambda: fixed_now)


def test_all_layers_pass_scores_one(fake_ai, fixed_now, full_requirement, good_evidence):
    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(full_requirement, good_evidence))

    assert result.overall_result == VerificationOutcome.PASSED
    assert result.overall_score == 1.0
    assert [layer.layer for layer in result.layers] == [
        VerificationLayer.ANTI_SPOOFING,
        VerificationLayer.GPS,
        VerificationLayer.TIME,
        VerificationLayer.QR_SCAN,
    ]
    assert result.failure_code is None
    assert result.is_terminal is True
    # 명시적 레이어 목록에 AI가 없으므로 호출되지 않음
    assert fake_ai.calls == 0


def test_empty_layer_set_passes_with_full_score(fake_ai, fixed_now):
    requirement = QuestRequirement(verification_layers=(VerificationLayer.TIME,))

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, SubmissionEvidence()))

    assert result.passed is True
    assert result.overall_score == 1.0
    assert result.layers == ()


def test_spoofing_short_circuits_before_ai(fake_ai, fixed_now, city_hall, good_evidence):
    requirement = QuestRequirement(location=city_hall, ai_verification=AIRequirement(enabled=True))
    evidence = good_evidence.model_copy(update={"device_info": DeviceTelemetry(is_mock_location=True)})

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, evidence))

    assert result.overall_result == VerificationOutcome.FAILED
    assert result.failure_code == FailureCode.SPOOFING_DETECTED
    assert [layer.layer for layer in result.layers] == [VerificationLayer.ANTI_SPOOFING]
    assert fake_ai.calls == 0


def test_first_failing_layer_stops_pipeline(fake_ai, fixed_now, full_requirement, good_evidence):
    evidence = good_evidence.model_copy(update={"qr_code_scanned": "abc123"})
    requirement = full_requirement.model_copy(update={"verification_layers": ()})

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, evidence))

    assert result.failure_code == FailureCode.QR_CODE_INVALID
    assert result.message == "Invalid QR code"
    assert result.get(VerificationLayer.AI_VISION) is None
    assert fake_ai.calls == 0


def test_location_failure_maps_to_location_mismatch(fake_ai, fixed_now, full_requirement, good_evidence):
    evidence = good_evidence.model_copy(update={"location": LocationFix(latitude=37.57, longitude=126.99)})

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(full_requirement, evidence))

    assert result.failure_code == FailureCode.LOCATION_MISMATCH
    assert result.get(VerificationLayer.TIME) is None


def test_ai_layer_runs_last(fake_ai, fixed_now, city_hall, good_evidence):
    requirement = QuestRequirement(location=city_hall, ai_verification=AIRequirement(enabled=True))

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, good_evidence))

    assert result.passed is True
    assert result.layers[-1].layer == VerificationLayer.AI_VISION
    assert fake_ai.calls == 1


def test_missing_photo_fails_ai_layer(fake_ai, fixed_now, good_evidence):
    requirement = QuestRequirement(ai_verification=AIRequirement(enabled=True))
    evidence = good_evidence.model_copy(update={"photo_base64": None})

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, evidence))

    assert result.failure_code == FailureCode.AI_VERIFICATION_FAILED
    assert result.message == "Photo required for AI verification"
    assert fake_ai.calls == 0


def test_infrastructure_error_becomes_retryable_failure(fake_ai, fixed_now, good_evidence):
    fake_ai.error = AIVisionTimeoutError(30)
    requirement = QuestRequirement(ai_verification=AIRequirement(enabled=True))

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, good_evidence))

    assert result.failure_code == FailureCode.AI_VERIFICATION_FAILED
    assert result.infrastructure_error is True
    assert result.message.startswith("AI verification service problem, please retry:")


def test_mock_ai_pass_is_flagged(fake_ai, fixed_now, good_evidence):
    fake_ai.result = AIVisionResult(passed=True, message="mock", confidence=0.85, is_mock=True)
    requirement = QuestRequirement(ai_verification=AIRequirement(enabled=True))

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, good_evidence))

    assert result.passed is True
    assert result.unverified_mock is True
    assert "UNVERIFIED" in result.message


def test_terminal_result_rejects_writes(fake_ai, fixed_now, full_requirement, good_evidence):
    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(full_requirement, good_evidence))

    with pytest.raises(TerminalResultError):
        result.overall_score = 0.1
    with pytest.raises(TerminalResultError):
        result.mark_failed(FailureCode.QR_CODE_INVALID, "late write")
    assert result.passed is True


def test_cancellation_propagates_to_caller(fixed_now, good_evidence):
    class HangingAdapter:
        async def verify_image(self, *_args):
            await asyncio.sleep(10)

    requirement = QuestRequirement(ai_verification=AIRequirement(enabled=True))
    orchestrator = VerificationOrchestrator(HangingAdapter(), clock=lambda: fixed_now)

    async def run() -> None:
        task = asyncio.create_task(orchestrator.verify(requirement, good_evidence))
        await asyncio.sleep(0.01)
        task.cancel()
        await task

    with pytest.raises(asyncio.CancelledError):
        asyncio.run(run())


def test_misconfigured_timezone_ends_in_failed_result(fake_ai, fixed_now):
    # 검증을 거치지 않고 저장된 설정
    window = TimeWindowConfig.model_construct(enabled=True, timezone="Mars/Olympus", start_time="09:00", end_time="17:00")
    requirement = QuestRequirement(time_window=window, verification_layers=(VerificationLayer.TIME,))

    result = asyncio.run(_orchestrator(fake_ai, fixed_now).verify(requirement, SubmissionEvidence(captured_at=fixed_now)))

    assert result.overall_result == VerificationOutcome.FAILED
    assert result.failure_code == FailureCode.TIME_WINDOW_CLOSED
    assert result.infrastructure_error is True
    assert result.message.startswith("Quest verification is misconfigured")
    assert result.is_terminal is True
