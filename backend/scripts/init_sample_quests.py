"""
로컬 개발용 샘플 퀘스트/스토리 챕터 데이터 삽입 스크립트

1. 서울시청 광장 퀘스트 - GPS + 시간대 + QR 검증
2. 스토리 "city-walk" 챕터 1, 2 - 위치/비밀번호 잠금 해제 조건
"""

import asyncio
import sys
from datetime import datetime
from pathlib import Path

# 프로젝트 루트를 Python 경로에 추가
project_root = Path(__file__).resolve().parents[2]
sys.path.insert(0, str(project_root))

from backend.trust_engine.core.config import settings
from backend.trust_engine.core.security import get_password_hash
from backend.trust_engine.db.init import ensure_indexes
from backend.trust_engine.db.mongo import MongoConnectionManager
from backend.trust_engine.services.chapters import STORY_CHAPTERS_COL
from backend.trust_engine.services.qr_codes import hash_code
from backend.trust_engine.services.quests import QUESTS_COL

CITY_HALL = {"name": "Seoul City Hall Plaza", "coordinates": [126.9780, 37.5665], "radius_meters": 50}

QUESTS = [
    {
        "_id": "city-hall-morning",
        "title": "Morning at City Hall",
        "status": "active",
        "requirement": {
            "location": CITY_HALL,
            "time_window": {
                "enabled": True,
                "timezone": "Asia/Seoul",
                "start_time": "07:00",
                "end_time": "11:00",
                "days_of_week": [1, 2, 3, 4, 5],
            },
            "qr_code": {"enabled": True, "code_hash": hash_code("CITYHALL-2026")},
            "verification_layers": ["gps", "time", "qr_scan"],
        },
        "budget": {
            "max_completions": 100,
            "max_completions_per_user": 1,
            "daily_limit": 20,
            "reward_amount": 10,
            "total_reward_allocated": 1000,
        },
    },
]


def build_chapters() -> list[dict]:
    return [
        {
            "story_id": "city-walk",
            "chapter_number": 1,
            "title": "The Plaza",
            "unlock_conditions": {
                "require_previous_chapter": False,
                "location": {"enabled": True, "name": "Seoul City Hall Plaza", "target": CITY_HALL},
            },
            "unlocked_by": [],
        },
        {
            "story_id": "city-walk",
            "chapter_number": 2,
            "title": "The Secret Word",
            "unlock_conditions": {
                "require_previous_chapter": True,
                "password": {"enabled": True, "hash": get_password_hash("open sesame"), "hint": "What opens the cave?"},
            },
            "unlocked_by": [],
        },
    ]


async def init_sample_quests():
    """샘플 데이터 삽입 (이미 있으면 해제 기록은 유지하고 정의만 갱신)"""
    db = MongoConnectionManager.get_database()
    await ensure_indexes(db)

    print(f"{settings.mongodb_db} 데이터베이스에 샘플 데이터 삽입을 시작합니다...")

    for quest in QUESTS:
        quest_doc = {**quest, "updated_at": datetime.utcnow()}
        await db[QUESTS_COL].replace_one({"_id": quest["_id"]}, quest_doc, upsert=True)
        print(f"  ✓ 퀘스트 {quest['title']}: 저장 완료 (ID: {quest['_id']})")

    for chapter in build_chapters():
        definition = {key: value for key, value in chapter.items() if key != "unlocked_by"}
        await db[STORY_CHAPTERS_COL].update_one(
            {"story_id": chapter["story_id"], "chapter_number": chapter["chapter_number"]},
            {"$set": definition, "$setOnInsert": {"unlocked_by": []}},
            upsert=True,
        )
        print(f"  ✓ 챕터 {chapter['chapter_number']} {chapter['title']}: 저장 완료")

    await MongoConnectionManager.close()
    print("\n샘플 데이터 삽입이 완료되었습니다.")


if __name__ == "__main__":
    asyncio.run(init_sample_quests())
