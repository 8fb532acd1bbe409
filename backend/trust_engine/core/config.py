from functools import lru_cache

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    project_name: str = "LifeVault Trust Engine"
    api_prefix: str = "/api"
    log_level: str = Field(default="INFO")

    mongodb_uri: str = Field(default="mongodb://mongo:27017")
    mongodb_db: str = Field(default="lifevault")
    mongodb_timeout_ms: int = Field(default=5000, gt=0)

    redis_url: str = Field(default="redis://redis:6379/0")

    cors_origins: str = Field(default="http://localhost:5173,http://localhost:3000,http://localhost")

    # Google Gemini 이미지 검증 설정
    gemini_api_key: str = Field(default="", description="Google Gemini API 키 (환경 변수: GEMINI_API_KEY)")
    gemini_model: str = Field(default="gemini-2.0-flash")
    ai_vision_timeout_seconds: float = Field(default=30.0, gt=0)
    # API 키가 없을 때 mock 결과를 쓸지 여부 (mock 결과는 항상 unverified_mock으로 표시됨)
    ai_vision_mock_when_unconfigured: bool = Field(default=False)

    # 위치 조작 탐지
    spoofing_emulator_penalty: float = Field(default=0.3, ge=0, le=1)
    spoofing_mock_location_penalty: float = Field(default=0.6, ge=0, le=1)
    spoofing_prior_flag_penalty: float = Field(default=0.2, ge=0, le=1)
    spoofing_risk_threshold: float = Field(default=0.5, ge=0, le=1)

    default_timezone: str = Field(default="UTC")

    completion_ledger_backend: str = Field(default="mongo", pattern="^(mongo|memory)$")
    attempt_lock_ttl_seconds: int = Field(default=60, gt=0)

    password_hash_scheme: str = Field(default="argon2")

    @property
    def cors_origins_list(self) -> list[str]:
        return [origin.strip() for origin in self.cors_origins.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    return Settings()  # type: ignore[arg-type]


settings = get_settings()
