"""지리 유틸리티 - 하버사인 거리, 주변 탐색

전부 순수 함수, 외부 의존 없음.
"""

import math
from dataclasses import dataclass
from typing import Callable, Iterable, List, Optional, Tuple, TypeVar

EARTH_RADIUS_KM = 6371.0
KM_PER_DEGREE_LAT = 111.0

# 서울 플레이 가능 범위 (대략)
SEOUL_BOUNDS = {
    "lat_min": 37.4,
    "lat_max": 37.7,
    "lng_min": 126.8,
    "lng_max": 127.2,
}

T = TypeVar("T")


@dataclass(frozen=True)
class BoundingBox:
    lat_min: float
    lat_max: float
    lng_min: float
    lng_max: float

    def contains(self, lat: float, lng: float) -> bool:
        return (
            self.lat_min <= lat <= self.lat_max
            and self.lng_min <= lng <= self.lng_max
        )


def distance_km(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
) -> float:
    """두 좌표 간 대원 거리 (km).

    좌표 중 하나라도 없으면 math.inf. 호출 측은 "너무 멀다"로 취급.
    """
    if lat1 is None or lng1 is None or lat2 is None or lng2 is None:
        return math.inf

    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def within_range(
    lat1: Optional[float],
    lng1: Optional[float],
    lat2: Optional[float],
    lng2: Optional[float],
    limit_km: float,
) -> bool:
    """경계 포함 (distance == limit 이면 통과)."""
    return distance_km(lat1, lng1, lat2, lng2) <= limit_km


def bounding_box(lat: float, lng: float, radius_km: float) -> BoundingBox:
    """반경을 감싸는 위경도 박스. 1도 ≈ 111km, 경도는 cos(위도) 보정."""
    lat_range = radius_km / KM_PER_DEGREE_LAT
    cos_lat = math.cos(math.radians(lat))
    # 극지방에서 0으로 나누지 않도록
    lng_range = radius_km / (KM_PER_DEGREE_LAT * max(cos_lat, 1e-6))
    return BoundingBox(
        lat_min=lat - lat_range,
        lat_max=lat + lat_range,
        lng_min=lng - lng_range,
        lng_max=lng + lng_range,
    )


def find_nearby(
    lat: float,
    lng: float,
    radius_km: float,
    candidates: Iterable[T],
    coords: Callable[[T], Tuple[Optional[float], Optional[float]]],
) -> List[Tuple[T, float]]:
    """반경 내 후보를 (후보, 거리) 리스트로 반환. 거리 오름차순.

    1단계: 바운딩 박스로 싸게 걸러냄
    2단계: 남은 후보만 정확한 하버사인 거리 계산
    """
    box = bounding_box(lat, lng, radius_km)
    result: List[Tuple[T, float]] = []
    for candidate in candidates:
        c_lat, c_lng = coords(candidate)
        if c_lat is None or c_lng is None or not box.contains(c_lat, c_lng):
            continue
        d = distance_km(lat, lng, c_lat, c_lng)
        if d <= radius_km:
            result.append((candidate, d))
    result.sort(key=lambda pair: pair[1])
    return result


def is_in_seoul(lat: float, lng: float) -> bool:
    return (
        SEOUL_BOUNDS["lat_min"] <= lat <= SEOUL_BOUNDS["lat_max"]
        and SEOUL_BOUNDS["lng_min"] <= lng <= SEOUL_BOUNDS["lng_max"]
    )
