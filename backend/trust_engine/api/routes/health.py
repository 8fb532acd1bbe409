from fastapi import APIRouter, Response, status

from ...db.mongo import MongoConnectionManager
from ...db.redis import RedisConnectionManager

router = APIRouter()


@router.get("/health", summary="애플리케이션 헬스체크")
async def healthcheck() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/health/ready", summary="MongoDB/Redis 연결 상태 확인")
async def readiness(response: Response) -> dict[str, str | bool]:
    mongo_ok = await MongoConnectionManager.ping()
    redis_ok = await RedisConnectionManager.ping()
    if not (mongo_ok and redis_ok):
        response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
    return {"status": "ok" if mongo_ok and redis_ok else "degraded", "mongo": mongo_ok, "redis": redis_ok}
