"""업적 Core - 순수 Python, DB 무관"""

from .models import AchievementSnapshot, ConditionType, PlayerAggregates
from .progress import compute_progress, is_complete
from .rewards import (
    COSMETIC_TYPES,
    CosmeticReward,
    CurrencyReward,
    ExperienceReward,
    Reward,
    SkillReward,
    TitleReward,
    parse_reward,
)

__all__ = [
    "AchievementSnapshot",
    "ConditionType",
    "PlayerAggregates",
    "compute_progress",
    "is_complete",
    "Reward",
    "COSMETIC_TYPES",
    "CurrencyReward",
    "ExperienceReward",
    "CosmeticReward",
    "TitleReward",
    "SkillReward",
    "parse_reward",
]
