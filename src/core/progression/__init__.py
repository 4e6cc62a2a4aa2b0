"""캐릭터 성장 Core - 순수 Python, DB 무관"""

from .leveling import (
    buy_experience,
    resolve_level_ups,
    sell_experience,
    validate_stat_allocation,
)
from .models import (
    BASE_STATS,
    DEFAULT_SKILL_VALUE,
    DEFAULT_STAT_VALUE,
    SKILLS,
    ExperienceReport,
    LevelThreshold,
    LevelUpResult,
)

__all__ = [
    "BASE_STATS",
    "SKILLS",
    "LevelThreshold",
    "LevelUpResult",
    "ExperienceReport",
    "DEFAULT_STAT_VALUE",
    "DEFAULT_SKILL_VALUE",
    "resolve_level_ups",
    "buy_experience",
    "sell_experience",
    "validate_stat_allocation",
]
