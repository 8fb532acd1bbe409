from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from ..core.constants import SPECIFIC_TIME_TOLERANCE_MINUTES
from .requirements import HHMM_PATTERN, TargetLocation, TimeWindowConfig, validate_timezone


class LocationCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    name: str | None = None
    target: TargetLocation | None = None


class ChapterTimeCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    unlock_at: datetime | None = None
    specific_time: str | None = Field(default=None, pattern=HHMM_PATTERN)
    tolerance_minutes: int = Field(default=SPECIFIC_TIME_TOLERANCE_MINUTES, ge=0)
    timezone: str = "UTC"
    window: TimeWindowConfig | None = None

    @field_validator("timezone")
    @classmethod
    def _check_timezone(cls, value: str) -> str:
        return validate_timezone(value)


class QRCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    code_hash: str | None = None
    hint: str | None = None


class PasswordCondition(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = False
    hash: str | None = None
    hint: str | None = None


class UnlockCondition(BaseModel):
    """챕터 잠금 해제 조건 (생성자 소유, 평가기는 읽기만 함)"""

    model_config = ConfigDict(frozen=True)

    require_previous_chapter: bool = True
    location: LocationCondition = Field(default_factory=LocationCondition)
    time: ChapterTimeCondition = Field(default_factory=ChapterTimeCondition)
    qr_code: QRCondition = Field(default_factory=QRCondition)
    password: PasswordCondition = Field(default_factory=PasswordCondition)


class UnlockSubmission(BaseModel):
    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    qr_code: str | None = None
    password: str | None = None


class UnlockCheck(BaseModel):
    model_config = ConfigDict(frozen=True)

    type: str
    passed: bool
    message: str | None = None
    distance: float | None = None


class UnlockDecision(BaseModel):
    model_config = ConfigDict(frozen=True)

    unlocked: bool
    checks: tuple[UnlockCheck, ...] = ()
    reason: str | None = None

    @property
    def method(self) -> str:
        return ",".join(check.type for check in self.checks if check.passed)


class UnlockRecord(BaseModel):
    model_config = ConfigDict(frozen=True)

    user_id: str
    unlocked_at: datetime
    method: str


class StoryChapter(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    story_id: str
    chapter_number: int = Field(ge=1)
    title: str | None = None
    unlock_conditions: UnlockCondition = Field(default_factory=UnlockCondition)
    unlocked_by: tuple[UnlockRecord, ...] = ()

    def unlock_for(self, user_id: str) -> UnlockRecord | None:
        for record in self.unlocked_by:
            if record.user_id == user_id:
                return record
        return None


class UnlockResponse(BaseModel):
    unlocked: bool
    already_unlocked: bool = False
    reason: str | None = None
    checks: list[UnlockCheck] = Field(default_factory=list)
    unlocked_at: datetime | None = None
