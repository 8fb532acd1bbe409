"""
검증 엔진 전역 상수

레이어 식별자, 실패 코드, 시도 상태 등 외부 시스템과 공유하는 문자열 값을 정의합니다.
"""
from __future__ import annotations

from enum import Enum


class VerificationLayer(str, Enum):
    ANTI_SPOOFING = "anti_spoofing"
    GPS = "gps"
    TIME = "time"
    QR_SCAN = "qr_scan"
    AI_VISION = "ai_vision"


# 저렴하고 결정적인 검사부터, 가장 비싼 AI 검사는 마지막
LAYER_PRIORITY: tuple[VerificationLayer, ...] = (
    VerificationLayer.ANTI_SPOOFING,
    VerificationLayer.GPS,
    VerificationLayer.TIME,
    VerificationLayer.QR_SCAN,
    VerificationLayer.AI_VISION,
)

DEFAULT_LAYERS: tuple[VerificationLayer, ...] = (VerificationLayer.GPS, VerificationLayer.AI_VISION)


class FailureCode(str, Enum):
    LOCATION_MISMATCH = "LOCATION_MISMATCH"
    TIME_WINDOW_CLOSED = "TIME_WINDOW_CLOSED"
    QR_CODE_INVALID = "QR_CODE_INVALID"
    AI_VERIFICATION_FAILED = "AI_VERIFICATION_FAILED"
    SPOOFING_DETECTED = "SPOOFING_DETECTED"
    ALREADY_COMPLETED = "ALREADY_COMPLETED"
    QUEST_EXPIRED = "QUEST_EXPIRED"
    BUDGET_EXHAUSTED = "BUDGET_EXHAUSTED"


NON_RETRYABLE_CODES = frozenset(
    {FailureCode.ALREADY_COMPLETED, FailureCode.QUEST_EXPIRED, FailureCode.SPOOFING_DETECTED}
)

LAYER_FAILURE_CODES: dict[VerificationLayer, FailureCode] = {
    VerificationLayer.ANTI_SPOOFING: FailureCode.SPOOFING_DETECTED,
    VerificationLayer.GPS: FailureCode.LOCATION_MISMATCH,
    VerificationLayer.TIME: FailureCode.TIME_WINDOW_CLOSED,
    VerificationLayer.QR_SCAN: FailureCode.QR_CODE_INVALID,
    VerificationLayer.AI_VISION: FailureCode.AI_VERIFICATION_FAILED,
}


class VerificationOutcome(str, Enum):
    PENDING = "pending"
    PASSED = "passed"
    FAILED = "failed"


class AttemptStatus(str, Enum):
    PENDING = "pending"
    VERIFYING = "verifying"
    COMPLETED = "completed"
    FAILED = "failed"
    REJECTED = "rejected"


class QuestStatus(str, Enum):
    DRAFT = "draft"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    EXPIRED = "expired"


EARTH_RADIUS_METERS = 6371000
DEFAULT_GPS_RADIUS_METERS = 50
DEFAULT_AI_CONFIDENCE = 0.75
SPECIFIC_TIME_TOLERANCE_MINUTES = 5
