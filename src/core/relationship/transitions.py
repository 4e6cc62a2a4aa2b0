"""관계 단계 판정

친밀도 고정 임계값: 0 / 50 / 200 / 500 / 800
"""

from typing import List, Optional, Tuple

from src.core.relationship.models import NextLevelInfo, RelationshipStatus

# 높은 단계부터 검사
STATUS_THRESHOLDS: List[Tuple[int, RelationshipStatus]] = [
    (800, RelationshipStatus.BEST_FRIEND),
    (500, RelationshipStatus.CLOSE_FRIEND),
    (200, RelationshipStatus.FRIEND),
    (50, RelationshipStatus.ACQUAINTANCE),
    (0, RelationshipStatus.STRANGER),
]


def status_for_points(friendship_points: int) -> RelationshipStatus:
    for threshold, status in STATUS_THRESHOLDS:
        if friendship_points >= threshold:
            return status
    return RelationshipStatus.STRANGER


def evaluate_transition(
    old_status: str, friendship_points: int
) -> Optional[RelationshipStatus]:
    """단계가 바뀌면 새 단계, 아니면 None."""
    new_status = status_for_points(friendship_points)
    if new_status.value == old_status:
        return None
    return new_status


def next_level_info(friendship_points: int) -> NextLevelInfo:
    """다음 단계까지 남은 친밀도. 최고 단계면 next_status=None."""
    for threshold, status in reversed(STATUS_THRESHOLDS):
        if threshold > friendship_points:
            return NextLevelInfo(
                next_status=status,
                required_points=threshold,
                points_needed=threshold - friendship_points,
            )
    return NextLevelInfo(next_status=None, required_points=None, points_needed=0)
