"""
검증 오케스트레이터

위치 조작 탐지 → GPS → 시간 창 → QR → AI 비전 순서로 선택된 레이어만 실행하고,
처음 실패한 레이어에서 즉시 중단합니다. 한 번의 호출은 정확히 하나의 VerificationResult를 만듭니다.
"""
from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import datetime, timezone

from ..core.constants import LAYER_FAILURE_CODES, FailureCode, VerificationLayer
from ..core.errors import ConfigurationError, InfrastructureError
from ..schemas.ai import AIVisionRequirements
from ..schemas.evidence import SubmissionEvidence
from ..schemas.requirements import AIRequirement, QuestRequirement
from ..schemas.results import AIVisionResult, LayerResult, VerificationResult
from .ai_vision import AIVisionAdapter
from .anti_spoofing import DEFAULT_POLICY, SpoofingPolicy, assess_device
from .geolocation import verify_location
from .layer_selection import select_layers
from .qr_codes import verify_qr_code
from .time_window import verify_time_window

logger = logging.getLogger(__name__)

MISCONFIGURED_MESSAGE = "Quest verification is misconfigured"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def to_classifier_requirements(requirement: AIRequirement) -> AIVisionRequirements:
    return AIVisionRequirements(
        prompt=requirement.prompt,
        required_objects=requirement.required_objects,
        require_face=requirement.require_face,
        require_selfie=requirement.require_selfie,
        reject_blurry=requirement.reject_blurry,
        minimum_confidence=requirement.minimum_confidence,
    )


class VerificationOrchestrator:
    def __init__(
        self,
        ai_adapter: AIVisionAdapter,
        *,
        spoofing_policy: SpoofingPolicy = DEFAULT_POLICY,
        layer_selector: Callable = select_layers,
        anti_spoofing_gate: Callable = assess_device,
        geo_verifier: Callable = verify_location,
        time_verifier: Callable = verify_time_window,
        qr_verifier: Callable = verify_qr_code,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self.ai_adapter = ai_adapter
        self.spoofing_policy = spoofing_policy
        self.layer_selector = layer_selector
        self.anti_spoofing_gate = anti_spoofing_gate
        self.geo_verifier = geo_verifier
        self.time_verifier = time_verifier
        self.qr_verifier = qr_verifier
        self.clock = clock

    async def verify(self, requirement: QuestRequirement, evidence: SubmissionEvidence) -> VerificationResult:
        result = VerificationResult(started_at=self.clock())
        layers = self.layer_selector(requirement)
        logger.info("검증 시작: layers=%s", [layer.value for layer in layers])

        if evidence.device_info is not None:
            spoofing = self.anti_spoofing_gate(evidence.device_info, self.spoofing_policy)
            result.record(spoofing)
            if not spoofing.passed:
                logger.warning("위치 조작 의심으로 검증 중단 (risk=%.2f)", spoofing.risk_score)
                result.mark_failed(FailureCode.SPOOFING_DETECTED, spoofing.message, now=self.clock())
                return result

        executed: list[LayerResult] = []
        for layer in layers:
            if layer == VerificationLayer.ANTI_SPOOFING:
                continue
            try:
                layer_result = await self._run_layer(layer, requirement, evidence)
            except ConfigurationError as exc:
                # 설정 오류도 예외로 새지 않고 실패 결과로 종료
                logger.error("%s 레이어 설정 오류: %s", layer.value, exc)
                result.infrastructure_error = True
                result.mark_failed(LAYER_FAILURE_CODES[layer], f"{MISCONFIGURED_MESSAGE}: {exc}", now=self.clock())
                return result
            if layer_result is None:
                logger.info("%s 레이어 설정이 없어 건너뜀", layer.value)
                continue

            result.record(layer_result)
            executed.append(layer_result)
            if not layer_result.passed:
                logger.info("%s 레이어 실패: %s", layer.value, layer_result.message)
                result.mark_failed(LAYER_FAILURE_CODES[layer], layer_result.message, now=self.clock())
                return result

        passed_count = sum(1 for layer_result in executed if layer_result.passed)
        score = passed_count / len(executed) if executed else 1.0
        message = "Verification passed"
        if result.unverified_mock:
            message = "Verification passed with an UNVERIFIED mock AI result"
        result.mark_passed(score, message=message, now=self.clock())
        logger.info("검증 통과: score=%.2f, %.0fms", score, result.processing_time_ms or 0)
        return result

    async def _run_layer(
        self,
        layer: VerificationLayer,
        requirement: QuestRequirement,
        evidence: SubmissionEvidence,
    ) -> LayerResult | None:
        if layer == VerificationLayer.GPS:
            if requirement.location is None:
                return None
            fix = evidence.location
            return self.geo_verifier(
                fix.latitude if fix else None,
                fix.longitude if fix else None,
                requirement.location,
            )

        if layer == VerificationLayer.TIME:
            if not requirement.has_time_window:
                return None
            return self.time_verifier(requirement.time_window, evidence.captured_at or self.clock())

        if layer == VerificationLayer.QR_SCAN:
            if not requirement.has_qr_code:
                return None
            return self.qr_verifier(evidence.qr_code_scanned, requirement.qr_code.code_hash)

        if layer == VerificationLayer.AI_VISION:
            if not requirement.has_ai_verification:
                return None
            return await self._run_ai_vision(requirement.ai_verification, evidence)

        raise ValueError(f"Unknown verification layer: {layer}")

    async def _run_ai_vision(self, requirement: AIRequirement, evidence: SubmissionEvidence) -> AIVisionResult:
        if not evidence.has_photo:
            return AIVisionResult(passed=False, message="Photo required for AI verification")

        try:
            return await self.ai_adapter.verify_image(evidence.photo_base64, to_classifier_requirements(requirement))
        except InfrastructureError as exc:
            # 인프라 장애는 재시도 가능한 검증 실패로 변환
            logger.warning("AI 비전 인프라 오류: %s", exc)
            return AIVisionResult(
                passed=False,
                infrastructure_error=True,
                message=f"AI verification service problem, please retry: {exc}",
            )
