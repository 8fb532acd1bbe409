import datetime
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, Field, field_validator

from ..core.constants import DEFAULT_AI_CONFIDENCE, DEFAULT_GPS_RADIUS_METERS, VerificationLayer

HHMM_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


def validate_timezone(value: str) -> str:
    try:
        ZoneInfo(value)
    except (ZoneInfoNotFoundError, ValueError) as exc:
        raise ValueError(f"알 수 없는 시간대입니다: {value}") from exc
    return value


class TargetLocation(BaseModel):
    """GeoJSON 순서([경도, 위도])의 목표 지점과 허용 반경"""

    model_config = ConfigDict(frozen=True)

    name: str | None = None
    coordinates: tuple[float, float]  # [longitude, latitude]
    radius_meters: float = Field(default=DEFAULT_GPS_RADIUS_METERS, ge=10, le=5000)

    @property
    def longitude(self) -> float:
        return self.coordinates[0]

    @property
    def latitude(self) -> float:
        return self.coordinates[1]


class SpecificDateWindow(BaseModel):
    model_config = ConfigDict(frozen=True)

    date: datetime.date
    start_time: str = Field(pattern=HHMM_PATTERN)
    end_time: str = Field(pattern=HHMM_PATTERN)


class TimeWindowConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    timezone: str = "UTC"
    start_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    end_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    days_of_week: frozenset[int] = Field(default_factory=frozenset)  # 0 = 일요일
    specific_dates: tuple[SpecificDateWindow, ...] = ()

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        return validate_timezone(value)

    @field_validator("days_of_week")
    @classmethod
    def _check_days(cls, value: frozenset[int]) -> frozenset[int]:
        if any(day < 0 or day > 6 for day in value):
            raise ValueError("days_of_week 값은 0(일요일)부터 6(토요일) 사이여야 합니다.")
        return value


class QRRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    code_hash: str | None = None


class AIRequirement(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    prompt: str | None = Field(default=None, max_length=500)
    required_objects: tuple[str, ...] = ()
    minimum_confidence: float = Field(default=DEFAULT_AI_CONFIDENCE, ge=0, le=1)
    reject_blurry: bool = True
    require_face: bool = False
    require_selfie: bool = False


class QuestRequirement(BaseModel):
    """퀘스트 생성자가 설정한 검증 요구사항 (검증기 입장에서는 읽기 전용)"""

    model_config = ConfigDict(frozen=True)

    location: TargetLocation | None = None
    time_window: TimeWindowConfig | None = None
    qr_code: QRRequirement | None = None
    ai_verification: AIRequirement | None = None
    verification_layers: tuple[VerificationLayer, ...] = ()

    @property
    def has_location(self) -> bool:
        return self.location is not None

    @property
    def has_time_window(self) -> bool:
        return self.time_window is not None and self.time_window.enabled

    @property
    def has_qr_code(self) -> bool:
        return self.qr_code is not None and self.qr_code.enabled and bool(self.qr_code.code_hash)

    @property
    def has_ai_verification(self) -> bool:
        return self.ai_verification is not None and self.ai_verification.enabled
