from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field


class LocationFix(BaseModel):
    model_config = ConfigDict(frozen=True)

    latitude: float | None = Field(default=None, ge=-90, le=90)
    longitude: float | None = Field(default=None, ge=-180, le=180)
    accuracy: float | None = None  # 미터
    altitude: float | None = None
    heading: float | None = None
    speed: float | None = None
    timestamp: datetime | None = None


class DeviceTelemetry(BaseModel):
    model_config = ConfigDict(frozen=True)

    platform: str | None = None
    os_version: str | None = None
    app_version: str | None = None
    device_id: str | None = None
    is_emulator: bool = False
    is_mock_location: bool = False
    prior_flag_count: int = Field(default=0, ge=0)


class SubmissionEvidence(BaseModel):
    """사용자가 한 번의 시도에 제출한 증거 (생성 후 변경 불가)"""

    model_config = ConfigDict(frozen=True)

    location: LocationFix | None = None
    captured_at: datetime | None = None
    qr_code_scanned: str | None = None
    photo_base64: str | None = None
    device_info: DeviceTelemetry | None = None

    @property
    def has_photo(self) -> bool:
        return bool(self.photo_base64)
