"""
레이어별 검증 결과와 최종 검증 결과 스키마

각 레이어 결과는 `layer` 필드로 구분되는 tagged union이며,
VerificationResult는 종료(passed/failed)된 이후 어떤 쓰기도 허용하지 않습니다.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from ..core.constants import FailureCode, VerificationLayer, VerificationOutcome
from ..core.errors import TerminalResultError


class _LayerResultBase(BaseModel):
    model_config = ConfigDict(frozen=True)

    passed: bool
    message: str


class SpoofingCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    check: str
    passed: bool
    details: str


class AntiSpoofingResult(_LayerResultBase):
    layer: Literal[VerificationLayer.ANTI_SPOOFING] = VerificationLayer.ANTI_SPOOFING
    risk_score: float = Field(ge=0, le=1)
    checks: tuple[SpoofingCheck, ...] = ()


class GPSResult(_LayerResultBase):
    layer: Literal[VerificationLayer.GPS] = VerificationLayer.GPS
    distance_meters: float | None = None
    within_radius: bool = False
    allowed_radius: float | None = None


class TimeWindowResult(_LayerResultBase):
    layer: Literal[VerificationLayer.TIME] = VerificationLayer.TIME
    submission_time: str | None = None
    allowed_window: str | None = None


class QRResult(_LayerResultBase):
    layer: Literal[VerificationLayer.QR_SCAN] = VerificationLayer.QR_SCAN
    code_matched: bool = False


class DetectedObject(BaseModel):
    model_config = ConfigDict(frozen=True)

    object: str
    confidence: float = Field(ge=0, le=1)


class AIVisionResult(_LayerResultBase):
    layer: Literal[VerificationLayer.AI_VISION] = VerificationLayer.AI_VISION
    confidence: float = Field(default=0.0, ge=0, le=1)
    detected_objects: tuple[DetectedObject, ...] = ()
    required_objects_found: tuple[str, ...] = ()
    required_objects_missing: tuple[str, ...] = ()
    is_blurry: bool | None = None
    has_face: bool | None = None
    is_selfie: bool | None = None
    is_screen_photo: bool | None = None
    is_printed_photo: bool | None = None
    is_manipulated: bool | None = None
    quality_score: float | None = None
    policy_override: bool = False
    is_mock: bool = False
    infrastructure_error: bool = False
    raw_response: dict[str, Any] | None = None


LayerResult = Annotated[
    Union[AntiSpoofingResult, GPSResult, TimeWindowResult, QRResult, AIVisionResult],
    Field(discriminator="layer"),
]


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class VerificationResult(BaseModel):
    """한 번의 시도에 대해 정확히 한 번 기록되는 검증 결과"""

    overall_result: VerificationOutcome = VerificationOutcome.PENDING
    overall_score: float = Field(default=0.0, ge=0, le=1)
    failure_code: FailureCode | None = None
    message: str | None = None
    layers: tuple[LayerResult, ...] = ()
    unverified_mock: bool = False
    infrastructure_error: bool = False
    started_at: datetime = Field(default_factory=_utcnow)
    completed_at: datetime | None = None
    processing_time_ms: float | None = None

    _sealed: bool = PrivateAttr(default=False)

    def model_post_init(self, __context: Any) -> None:
        if self.overall_result != VerificationOutcome.PENDING:
            self._sealed = True

    def __setattr__(self, name: str, value: Any) -> None:
        if not name.startswith("_") and self.is_terminal:
            raise TerminalResultError(f"검증 결과가 이미 종료되어 '{name}' 필드를 수정할 수 없습니다.")
        super().__setattr__(name, value)

    @property
    def is_terminal(self) -> bool:
        return getattr(self, "_sealed", False)

    @property
    def passed(self) -> bool:
        return self.overall_result == VerificationOutcome.PASSED

    def get(self, layer: VerificationLayer) -> LayerResult | None:
        for result in self.layers:
            if result.layer == layer:
                return result
        return None

    def record(self, result: LayerResult) -> None:
        if self.is_terminal:
            raise TerminalResultError("종료된 검증 결과에는 레이어 결과를 추가할 수 없습니다.")
        self.layers = (*self.layers, result)
        if isinstance(result, AIVisionResult):
            self.unverified_mock = self.unverified_mock or result.is_mock
            self.infrastructure_error = self.infrastructure_error or result.infrastructure_error

    def mark_passed(self, score: float, message: str | None = None, now: datetime | None = None) -> None:
        self._finish(VerificationOutcome.PASSED, score=score, failure_code=None, message=message, now=now)

    def mark_failed(self, failure_code: FailureCode, message: str, now: datetime | None = None) -> None:
        self._finish(VerificationOutcome.FAILED, score=0.0, failure_code=failure_code, message=message, now=now)

    def _finish(
        self,
        outcome: VerificationOutcome,
        *,
        score: float,
        failure_code: FailureCode | None,
        message: str | None,
        now: datetime | None,
    ) -> None:
        if self.is_terminal:
            raise TerminalResultError("검증 결과는 한 번만 종료될 수 있습니다.")
        completed_at = now or _utcnow()
        self.overall_score = score
        self.failure_code = failure_code
        self.message = message
        self.completed_at = completed_at
        self.processing_time_ms = max((completed_at - self.started_at).total_seconds() * 1000, 0.0)
        # 마지막으로 상태를 바꾸고 봉인
        self.overall_result = outcome
        self._sealed = True
