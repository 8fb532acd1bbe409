from __future__ import annotations

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .api import api_router
from .core.config import settings
from .core.errors import InfrastructureError, TrustEngineError
from .db import init
from .db.mongo import MongoConnectionManager
from .db.redis import RedisConnectionManager

logging.basicConfig(level=settings.log_level.upper())
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    try:
        RedisConnectionManager.get_client()
        await init.ensure_indexes(MongoConnectionManager.get_database())
        logger.info("인덱스 확인 및 Redis 클라이언트 준비 완료")
    except Exception as exc:  # pragma: no cover - 기동은 계속하고 /health/ready로 확인
        logger.warning("기동 중 저장소 초기화 실패: %s", exc)
    yield
    await RedisConnectionManager.close()
    await MongoConnectionManager.close()


app = FastAPI(title=settings.project_name, lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(TrustEngineError)
async def trust_engine_error_handler(request: Request, exc: TrustEngineError) -> JSONResponse:
    # 검증 실패는 결과 값으로 반환되므로 여기까지 오는 것은 인프라 장애나 상태 전이 오류뿐
    if isinstance(exc, InfrastructureError):
        logger.warning("인프라 오류: %s %s - %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=status.HTTP_503_SERVICE_UNAVAILABLE, content={"detail": str(exc)})
    logger.error("검증 엔진 상태 오류: %s %s - %s", request.method, request.url.path, exc)
    return JSONResponse(status_code=status.HTTP_409_CONFLICT, content={"detail": str(exc)})


app.include_router(api_router, prefix=settings.api_prefix)
