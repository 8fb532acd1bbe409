import logging

from motor.motor_asyncio import AsyncIOMotorClient, AsyncIOMotorDatabase
from pymongo.errors import PyMongoError

from ..core.config import settings

logger = logging.getLogger(__name__)


class MongoConnectionManager:
    client: AsyncIOMotorClient | None = None

    @classmethod
    def get_client(cls) -> AsyncIOMotorClient:
        if cls.client is None:
            # 퀘스트 기간/해제 시각 비교를 위해 항상 tz-aware datetime으로 읽음
            cls.client = AsyncIOMotorClient(
                settings.mongodb_uri,
                tz_aware=True,
                serverSelectionTimeoutMS=settings.mongodb_timeout_ms,
            )
        return cls.client

    @classmethod
    def get_database(cls) -> AsyncIOMotorDatabase:
        return cls.get_client()[settings.mongodb_db]

    @classmethod
    async def ping(cls) -> bool:
        try:
            await cls.get_client().admin.command("ping")
        except PyMongoError as exc:
            logger.warning("MongoDB ping 실패: %s", exc)
            return False
        return True

    @classmethod
    async def close(cls) -> None:
        if cls.client:
            cls.client.close()
            cls.client = None
