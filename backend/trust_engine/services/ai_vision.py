"""
AI 비전 검증 어댑터 (Google Gemini)

원격 분류기 응답을 정규화된 AIVisionResult로 변환하고, 원격 결과 위에
로컬 정책(최소 신뢰도, 화면/인쇄물/조작 감지, 필수 객체 누락)을 덮어씁니다.
네트워크 오류와 타임아웃은 InfrastructureError로, 응답 파싱 실패는 검증 실패로 처리합니다.
"""
from __future__ import annotations

import asyncio
import base64
import binascii
import json
import logging
import re
from functools import lru_cache

from google import genai
from google.genai import types
from pydantic import ValidationError

from ..core.config import Settings, settings as default_settings
from ..core.errors import AIVisionServiceError, AIVisionTimeoutError, AIVisionUnavailableError
from ..schemas.ai import AIVisionRequirements, ClassifierResponse
from ..schemas.results import AIVisionResult, DetectedObject

logger = logging.getLogger(__name__)

MALFORMED_RESPONSE_MESSAGE = "Failed to process AI verification response"
MOCK_MESSAGE = (
    "UNVERIFIED mock result: no AI classifier is configured "
    "(set GEMINI_API_KEY for real verification)"
)

_DATA_URL_PREFIX = re.compile(r"^data:image/\w+;base64,")


def build_verification_prompt(requirements: AIVisionRequirements) -> str:
    prompt = """You are a strict image verification AI for a location-based quest app.
Analyze this image and respond ONLY with a JSON object (no markdown, no explanation).

Your task is to verify the following requirements:

"""
    if requirements.prompt:
        prompt += f"MAIN REQUIREMENT: {requirements.prompt}\n\n"
    if requirements.required_objects:
        prompt += f"REQUIRED OBJECTS (must ALL be clearly visible): {', '.join(requirements.required_objects)}\n\n"
    if requirements.require_face:
        prompt += "FACE REQUIRED: The image must contain at least one human face.\n"
    if requirements.require_selfie:
        prompt += "SELFIE REQUIRED: The image must be a selfie (person facing camera, close up).\n"
    if requirements.reject_blurry:
        prompt += "IMAGE QUALITY: Reject if the image is blurry, too dark, or low quality.\n"

    prompt += """
ANTI-SPOOFING CHECKS:
- Detect if this is a photo of a screen/monitor/TV
- Detect if this is a printed photo being photographed
- Check for digital manipulation artifacts

Respond with EXACTLY this JSON structure:
{
  "passed": boolean,
  "confidence": number between 0 and 1,
  "detectedObjects": [{"object": "string", "confidence": number}],
  "requiredObjectsFound": ["list of required objects that were found"],
  "requiredObjectsMissing": ["list of required objects that were NOT found"],
  "hasFace": boolean,
  "isSelfie": boolean,
  "isBlurry": boolean,
  "isScreenPhoto": boolean,
  "isPrintedPhoto": boolean,
  "isManipulated": boolean,
  "qualityScore": number between 0 and 1,
  "message": "Brief explanation of the result"
}"""
    return prompt


def detect_mime_type(image_base64: str) -> str:
    if image_base64.startswith("data:image/png") or "iVBORw0KGgo" in image_base64[:64]:
        return "image/png"
    if image_base64.startswith("data:image/webp"):
        return "image/webp"
    return "image/jpeg"


def decode_image(image_base64: str) -> bytes:
    """data URL 접두사를 제거하고 base64를 디코딩합니다."""
    return base64.b64decode(_DATA_URL_PREFIX.sub("", image_base64.strip()), validate=True)


def strip_code_fence(raw: str) -> str:
    raw = raw.strip()
    if raw.startswith("```json"):
        raw = raw[7:]
    elif raw.startswith("```"):
        raw = raw[3:]
    if raw.endswith("```"):
        raw = raw[:-3]
    return raw.strip()


def apply_local_policy(parsed: ClassifierResponse, requirements: AIVisionRequirements) -> AIVisionResult:
    """원격 분류기의 passed 값보다 로컬 정책이 우선합니다."""
    violations: list[str] = []

    if parsed.confidence < requirements.minimum_confidence:
        violations.append(
            f"Confidence too low ({parsed.confidence * 100:.1f}% < "
            f"{requirements.minimum_confidence * 100:g}% required)"
        )
    if parsed.is_screen_photo:
        violations.append("Photo of a screen detected. Please take a real photo.")
    if parsed.is_printed_photo:
        violations.append("Photo of a printed image detected. Please take a real photo.")
    if parsed.is_manipulated:
        violations.append("Digital manipulation detected. Please submit an unedited photo.")
    if parsed.required_objects_missing:
        violations.append(f"Missing required elements: {', '.join(parsed.required_objects_missing)}")

    passed = parsed.passed and not violations
    policy_override = parsed.passed and bool(violations)

    if policy_override:
        message = "Classifier approved the photo but local policy rejected it: " + " ".join(violations)
    elif violations:
        message = " ".join(violations)
    else:
        message = parsed.message or ("Image verified" if passed else "Image did not meet the quest requirements")

    return AIVisionResult(
        passed=passed,
        message=message,
        confidence=parsed.confidence,
        detected_objects=tuple(parsed.detected_objects),
        required_objects_found=tuple(parsed.required_objects_found),
        required_objects_missing=tuple(parsed.required_objects_missing),
        is_blurry=parsed.is_blurry,
        has_face=parsed.has_face,
        is_selfie=parsed.is_selfie,
        is_screen_photo=parsed.is_screen_photo,
        is_printed_photo=parsed.is_printed_photo,
        is_manipulated=parsed.is_manipulated,
        quality_score=parsed.quality_score,
        policy_override=policy_override,
        raw_response=parsed.model_dump(by_alias=True),
    )


def parse_classifier_response(raw: str, requirements: AIVisionRequirements) -> AIVisionResult:
    try:
        parsed = ClassifierResponse.model_validate(json.loads(strip_code_fence(raw)))
    except (json.JSONDecodeError, ValidationError, TypeError) as exc:
        logger.warning("AI 비전 응답 파싱 실패: %s", exc)
        return AIVisionResult(passed=False, confidence=0.0, message=MALFORMED_RESPONSE_MESSAGE)
    return apply_local_policy(parsed, requirements)


def mock_result(requirements: AIVisionRequirements) -> AIVisionResult:
    """분류기 미설정 시 사용하는 결정적 대체 결과. 항상 is_mock=True로 표시됩니다.

    실제 응답과 같은 로컬 정책을 거치므로 요구 신뢰도가 0.85보다 높으면 통과하지 못합니다.
    """
    parsed = ClassifierResponse(
        passed=True,
        confidence=0.85,
        detected_objects=[DetectedObject(object=obj, confidence=0.9) for obj in requirements.required_objects],
        required_objects_found=list(requirements.required_objects),
        has_face=True if requirements.require_face else None,
        is_selfie=True if requirements.require_selfie else None,
        is_blurry=False,
        quality_score=0.9,
        message=MOCK_MESSAGE,
    )
    return apply_local_policy(parsed, requirements).model_copy(update={"is_mock": True})


@lru_cache
def get_gemini_client(api_key: str) -> genai.Client:
    return genai.Client(api_key=api_key)


def _response_text(response) -> str:
    if getattr(response, "text", None):
        return response.text
    candidates = getattr(response, "candidates", None) or []
    if candidates and getattr(candidates[0], "content", None) and candidates[0].content.parts:
        return "".join(part.text for part in candidates[0].content.parts if getattr(part, "text", None))
    return ""


class AIVisionAdapter:
    """외부 이미지 분류기 연동. 오케스트레이터에 생성자 인자로 주입됩니다."""

    def __init__(
        self,
        api_key: str | None = None,
        model: str | None = None,
        timeout_seconds: float | None = None,
        mock_when_unconfigured: bool | None = None,
        config: Settings | None = None,
    ) -> None:
        config = config or default_settings
        self.api_key = config.gemini_api_key if api_key is None else api_key
        self.model = model or config.gemini_model
        self.timeout_seconds = timeout_seconds or config.ai_vision_timeout_seconds
        self.mock_when_unconfigured = (
            config.ai_vision_mock_when_unconfigured if mock_when_unconfigured is None else mock_when_unconfigured
        )

    @property
    def configured(self) -> bool:
        return bool(self.api_key)

    async def verify_image(self, image_base64: str, requirements: AIVisionRequirements) -> AIVisionResult:
        if not self.configured:
            if self.mock_when_unconfigured:
                logger.warning("AI 분류기 미설정: mock 결과를 사용합니다 (unverified_mock으로 표시됨)")
                return mock_result(requirements)
            raise AIVisionUnavailableError("AI classifier credentials are not configured")

        try:
            image_bytes = decode_image(image_base64)
        except (binascii.Error, ValueError):
            return AIVisionResult(passed=False, message="Photo could not be decoded")

        prompt = build_verification_prompt(requirements)
        try:
            raw = await asyncio.wait_for(
                self._invoke(prompt, image_bytes, detect_mime_type(image_base64)),
                timeout=self.timeout_seconds,
            )
        except asyncio.TimeoutError as exc:
            raise AIVisionTimeoutError(self.timeout_seconds) from exc

        result = parse_classifier_response(raw, requirements)
        logger.info("AI 비전 검증 완료: %s (confidence=%.2f)", "PASSED" if result.passed else "FAILED", result.confidence)
        return result

    async def _invoke(self, prompt: str, image_bytes: bytes, mime_type: str) -> str:
        """Gemini API 호출. 전송/API 오류는 AIVisionServiceError로 변환합니다."""
        client = get_gemini_client(self.api_key)
        try:
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=self.model,
                contents=[types.Part.from_bytes(data=image_bytes, mime_type=mime_type), prompt],
                config=types.GenerateContentConfig(
                    temperature=0.1,
                    top_k=1,
                    top_p=1,
                    max_output_tokens=2048,
                    response_mime_type="application/json",
                ),
            )
        except Exception as exc:
            if getattr(exc, "code", None) == 429:
                raise AIVisionServiceError("AI service rate limit exceeded. Please try again later.") from exc
            raise AIVisionServiceError(f"Gemini API 호출 실패: {exc}") from exc
        return _response_text(response)
