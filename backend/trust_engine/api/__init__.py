from fastapi import APIRouter

from .routes import chapters, health, quests

api_router = APIRouter()

api_router.include_router(health.router, tags=["health"])
api_router.include_router(quests.router, prefix="/quests", tags=["quests"])
api_router.include_router(chapters.router, prefix="/stories", tags=["stories"])
