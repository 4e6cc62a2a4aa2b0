"""관계 수치 계산

전부 순수 함수. 난수원은 주입받는다.
"""

import random
from typing import Optional

from src.core.relationship.models import (
    InteractionOutcome,
    InteractionType,
    RelationshipBenefits,
)
from src.core.relationship.transitions import status_for_points

MAX_FRIENDSHIP = 1000
MAX_REPUTATION = 1000

# 거래 1회당 친밀도
TRADE_FRIENDSHIP_GAIN = 1

MAX_DISCOUNT_RATE = 20.0


def clamp_friendship(value: int) -> int:
    """0 ~ 1000 클램프."""
    return max(0, min(MAX_FRIENDSHIP, value))


def clamp_reputation(value: int) -> int:
    """0 ~ 1000 클램프."""
    return max(0, min(MAX_REPUTATION, value))


def calculate_interaction(
    interaction_type: str,
    personality: str,
    rng: Optional[random.Random] = None,
) -> InteractionOutcome:
    """상호작용 유형과 상인 성격에 따른 친밀도/평판 변화.

    chat: 1~3 랜덤
    compliment: friendly 5 (기분 happy), grumpy 2, 그 외 3
    gift: 친밀도 8 + 평판 2 (기분 happy)
    ask_about_district / 기타: 1
    """
    source = rng or random
    if interaction_type == InteractionType.CHAT.value:
        return InteractionOutcome(friendship_gain=source.randint(1, 3))
    if interaction_type == InteractionType.COMPLIMENT.value:
        if personality == "friendly":
            return InteractionOutcome(friendship_gain=5, mood_change="happy")
        if personality == "grumpy":
            return InteractionOutcome(friendship_gain=2)
        return InteractionOutcome(friendship_gain=3)
    if interaction_type == InteractionType.GIFT.value:
        return InteractionOutcome(
            friendship_gain=8, reputation_gain=2, mood_change="happy"
        )
    return InteractionOutcome(friendship_gain=1)


def calculate_discount_rate(friendship_points: int) -> float:
    """친밀도 1점당 0.01%, 최대 20%."""
    return min(friendship_points * 0.01, MAX_DISCOUNT_RATE)


def calculate_benefits(friendship_points: int) -> RelationshipBenefits:
    return RelationshipBenefits(
        discount_rate=calculate_discount_rate(friendship_points),
        status=status_for_points(friendship_points),
    )
