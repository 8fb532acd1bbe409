"""
위치 검증

제출 좌표와 목표 지점 사이의 대원 거리(Haversine)를 미터 단위로 계산합니다.
퀘스트 GPS 레이어와 챕터 위치 조건이 같은 함수를 사용합니다.
"""

import math

from ..core.constants import EARTH_RADIUS_METERS
from ..schemas.requirements import TargetLocation
from ..schemas.results import GPSResult


def calculate_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """두 좌표(도 단위) 사이 거리 (미터). 같은 입력에는 항상 같은 값을 반환합니다."""
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    half_dphi = math.radians(lat2 - lat1) / 2
    half_dlambda = math.radians(lon2 - lon1) / 2

    a = math.sin(half_dphi) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(half_dlambda) ** 2
    return 2 * EARTH_RADIUS_METERS * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def is_within_radius(distance_meters: float, radius_meters: float) -> bool:
    # 경계 포함
    return distance_meters <= radius_meters


def verify_location(latitude: float | None, longitude: float | None, target: TargetLocation) -> GPSResult:
    """
    제출 좌표가 목표 지점 반경 안에 있는지 검증합니다.

    좌표가 없으면 거리 계산 없이 실패합니다. 0.0은 유효한 좌표로 취급합니다.
    """
    if latitude is None or longitude is None:
        return GPSResult(
            passed=False,
            message="Location data not provided",
            distance_meters=None,
            within_radius=False,
            allowed_radius=target.radius_meters,
        )

    distance = calculate_distance(latitude, longitude, target.latitude, target.longitude)
    within = is_within_radius(distance, target.radius_meters)

    if within:
        message = f"Within range ({round(distance)}m)"
    else:
        message = f"You're {round(distance)}m away. Get closer!"

    return GPSResult(
        passed=within,
        message=message,
        distance_meters=distance,
        within_radius=within,
        allowed_radius=target.radius_meters,
    )
