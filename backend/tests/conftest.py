from __future__ import annotations

import os
import sys
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(PROJECT_ROOT))

from backend.trust_engine.db import init  # noqa: E402
from backend.trust_engine.db.mongo import MongoConnectionManager  # noqa: E402
from backend.trust_engine.db.redis import RedisConnectionManager  # noqa: E402
from backend.trust_engine.schemas import AIVisionResult, TargetLocation  # noqa: E402


class _DummyCollection:
    async def create_index(self, *_args: Any, **_kwargs: Any) -> None:
        return None

    async def find_one(self, *_args: Any, **_kwargs: Any) -> None:
        return None


class _DummyDatabase:
    def __getitem__(self, _name: str) -> _DummyCollection:
        return _DummyCollection()


class _DummyMongoClient:
    def __init__(self) -> None:
        self._db = _DummyDatabase()

    def __getitem__(self, _name: str) -> _DummyDatabase:
        return self._db

    def close(self) -> None:
        return None


class _DummyRedisClient:
    def __init__(self) -> None:
        self._store: dict[str, str] = {}

    async def set(self, key: str, value: str, nx: bool = False, ex: int | None = None) -> bool | None:
        if nx and key in self._store:
            return None
        self._store[key] = value
        return True

    async def get(self, key: str) -> str | None:
        return self._store.get(key)

    async def delete(self, key: str) -> int:
        return 1 if self._store.pop(key, None) is not None else 0

    async def close(self) -> None:
        return None


@pytest.fixture(autouse=True)
def stub_infrastructure(monkeypatch: pytest.MonkeyPatch) -> None:
    """
    DB 연결을 stub으로 대체하는 fixture

    환경 변수 MONGODB_URI와 REDIS_URL이 설정되어 있거나 CI 환경이면 실제 DB를 사용합니다.
    """
    mongodb_uri = os.getenv("MONGODB_URI", "").strip()
    redis_url = os.getenv("REDIS_URL", "").strip()
    ci_env = os.getenv("CI", "").strip().lower() in ("true", "1", "yes")

    if (mongodb_uri and redis_url) or ci_env:
        return

    dummy_mongo_client = _DummyMongoClient()
    dummy_redis_client = _DummyRedisClient()

    async def _noop_ensure_indexes(_db: Any) -> None:
        return None

    async def _noop_close(cls: type) -> None:
        return None

    monkeypatch.setattr(MongoConnectionManager, "get_client", classmethod(lambda cls: dummy_mongo_client))
    monkeypatch.setattr(RedisConnectionManager, "get_client", classmethod(lambda cls: dummy_redis_client))
    monkeypatch.setattr(MongoConnectionManager, "close", classmethod(lambda cls: _noop_close(cls)))
    monkeypatch.setattr(RedisConnectionManager, "close", classmethod(lambda cls: _noop_close(cls)))
    monkeypatch.setattr(init, "ensure_indexes", _noop_ensure_indexes)


class FakeAIAdapter:
    """호출 횟수를 세는 AI 분류기 대역"""

    def __init__(self, result: AIVisionResult | None = None, error: Exception | None = None) -> None:
        self.result = result or AIVisionResult(passed=True, message="Photo verified", confidence=0.9)
        self.error = error
        self.calls = 0

    async def verify_image(self, image_base64: str, requirements: Any) -> AIVisionResult:
        self.calls += 1
        if self.error is not None:
            raise self.error
        return self.result


@pytest.fixture
def fake_ai() -> FakeAIAdapter:
    return FakeAIAdapter()


@pytest.fixture
def city_hall() -> TargetLocation:
    # 서울시청 광장
    return TargetLocation(name="Seoul City Hall Plaza", coordinates=(126.9780, 37.5665), radius_meters=50)


@pytest.fixture
def fixed_now() -> datetime:
    # 2024-03-13 수요일 10:00 UTC
    return datetime(2024, 3, 13, 10, 0, tzinfo=timezone.utc)
