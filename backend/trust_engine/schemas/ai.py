from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .results import DetectedObject


class AIVisionRequirements(BaseModel):
    """외부 분류기에 전달하는 요구사항 (wire 포맷은 camelCase)"""

    model_config = ConfigDict(frozen=True, alias_generator=to_camel, populate_by_name=True)

    prompt: str | None = None
    required_objects: tuple[str, ...] = ()
    require_face: bool = False
    require_selfie: bool = False
    reject_blurry: bool = True
    minimum_confidence: float = Field(default=0.75, ge=0, le=1)


class ClassifierResponse(BaseModel):
    """분류기 원본 응답. 파싱 실패 시 검증 실패로 처리됩니다."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True, extra="ignore")

    passed: bool
    confidence: float = Field(ge=0, le=1)
    detected_objects: list[DetectedObject] = Field(default_factory=list)
    required_objects_found: list[str] = Field(default_factory=list)
    required_objects_missing: list[str] = Field(default_factory=list)
    has_face: bool | None = None
    is_selfie: bool | None = None
    is_blurry: bool | None = None
    is_screen_photo: bool = False
    is_printed_photo: bool = False
    is_manipulated: bool = False
    quality_score: float | None = None
    message: str = ""
