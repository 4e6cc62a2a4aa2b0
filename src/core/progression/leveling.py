"""레벨업 판정, 경험치 공식, 스탯 분배 검증

전부 순수 함수, 외부 의존 없음.
"""

from typing import Mapping

from src.core.exceptions import PreconditionFailedError

from .models import BASE_STATS, LevelThreshold, LevelUpResult


def buy_experience(price: int) -> int:
    """구매 경험치 = floor(price / 1000) + 5"""
    return price // 1000 + 5


def sell_experience(price: int) -> int:
    """판매 경험치 = floor(price / 800) + 8"""
    return price // 800 + 8


def resolve_level_ups(
    level: int,
    experience: int,
    thresholds: Mapping[int, LevelThreshold],
) -> LevelUpResult:
    """누적 경험치로 도달 가능한 레벨까지 한 단계씩 올린다.

    다음 레벨(level + 1) 요구치를 만족하는 동안 반복하므로
    한 번의 큰 경험치로 여러 레벨을 올릴 수 있다.
    다음 레벨 정의가 없으면 멈춘다 (최대 레벨).
    """
    new_level = level
    stat_points = 0
    skill_points = 0
    while True:
        nxt = thresholds.get(new_level + 1)
        if nxt is None or experience < nxt.required_exp:
            break
        new_level += 1
        stat_points += nxt.stat_points_reward
        skill_points += nxt.skill_points_reward
    return LevelUpResult(
        old_level=level,
        new_level=new_level,
        stat_points_gained=stat_points,
        skill_points_gained=skill_points,
    )


def validate_stat_allocation(
    current: Mapping[str, int],
    requested: Mapping[str, int],
    available_points: int,
) -> tuple[dict[str, int], int]:
    """요청된 목표 스탯값 검증.

    requested는 {스탯명: 목표값}. 생략된 스탯은 현재값 유지.
    Returns: (적용할 스탯 dict, 사용 포인트)
    """
    unknown = set(requested) - set(BASE_STATS)
    if unknown:
        raise PreconditionFailedError(
            "알 수 없는 스탯입니다.", {"unknown": sorted(unknown)}
        )

    new_values: dict[str, int] = {}
    used = 0
    for stat in BASE_STATS:
        target = requested.get(stat, current[stat])
        delta = target - current[stat]
        if delta < 0:
            raise PreconditionFailedError(
                "스탯은 감소시킬 수 없습니다.",
                {"stat": stat, "current": current[stat], "requested": target},
            )
        new_values[stat] = target
        used += delta

    if used > available_points:
        raise PreconditionFailedError(
            "스탯 포인트가 부족합니다.",
            {"required": used, "available": available_points},
        )
    return new_values, used
