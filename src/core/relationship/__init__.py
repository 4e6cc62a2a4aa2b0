"""상인 관계 Core 패키지 - 공개 API"""

from src.core.relationship.models import (
    InteractionOutcome,
    InteractionType,
    NextLevelInfo,
    RelationshipBenefits,
    RelationshipStatus,
)
from src.core.relationship.calculations import (
    MAX_FRIENDSHIP,
    MAX_REPUTATION,
    TRADE_FRIENDSHIP_GAIN,
    calculate_benefits,
    calculate_discount_rate,
    calculate_interaction,
    clamp_friendship,
    clamp_reputation,
)
from src.core.relationship.transitions import (
    STATUS_THRESHOLDS,
    evaluate_transition,
    next_level_info,
    status_for_points,
)

__all__ = [
    "InteractionOutcome",
    "InteractionType",
    "NextLevelInfo",
    "RelationshipBenefits",
    "RelationshipStatus",
    "MAX_FRIENDSHIP",
    "MAX_REPUTATION",
    "TRADE_FRIENDSHIP_GAIN",
    "calculate_benefits",
    "calculate_discount_rate",
    "calculate_interaction",
    "clamp_friendship",
    "clamp_reputation",
    "STATUS_THRESHOLDS",
    "evaluate_transition",
    "next_level_info",
    "status_for_points",
]
