"""상인 관계 도메인 모델

DB 무관 순수 데이터 클래스.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class RelationshipStatus(str, Enum):
    """친밀도 기반 관계 단계 5개"""

    STRANGER = "stranger"
    ACQUAINTANCE = "acquaintance"
    FRIEND = "friend"
    CLOSE_FRIEND = "close_friend"
    BEST_FRIEND = "best_friend"


class InteractionType(str, Enum):
    CHAT = "chat"
    COMPLIMENT = "compliment"
    GIFT = "gift"
    ASK_ABOUT_DISTRICT = "ask_about_district"


@dataclass(frozen=True)
class InteractionOutcome:
    """상호작용 1회의 수치 변화"""

    friendship_gain: int
    reputation_gain: int = 0
    mood_change: Optional[str] = None


@dataclass(frozen=True)
class RelationshipBenefits:
    discount_rate: float  # 퍼센트, 표시용
    status: RelationshipStatus


@dataclass(frozen=True)
class NextLevelInfo:
    next_status: Optional[RelationshipStatus]
    required_points: Optional[int]
    points_needed: int
