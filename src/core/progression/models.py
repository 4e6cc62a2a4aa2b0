"""성장 도메인 모델"""

from dataclasses import dataclass

BASE_STATS: tuple[str, ...] = ("strength", "intelligence", "charisma", "luck")
SKILLS: tuple[str, ...] = ("trading_skill", "negotiation_skill", "appraisal_skill")

DEFAULT_STAT_VALUE = 10
DEFAULT_SKILL_VALUE = 1


@dataclass(frozen=True)
class LevelThreshold:
    """level 도달에 필요한 누적 경험치와 도달 보상."""

    level: int
    required_exp: int
    stat_points_reward: int = 1
    skill_points_reward: int = 1


@dataclass(frozen=True)
class LevelUpResult:
    old_level: int
    new_level: int
    stat_points_gained: int = 0
    skill_points_gained: int = 0

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level


@dataclass(frozen=True)
class ExperienceReport:
    """경험치 지급 결과 (거래 응답에 포함)."""

    amount: int
    total_experience: int
    old_level: int
    new_level: int
    stat_points_gained: int = 0
    skill_points_gained: int = 0

    @property
    def leveled_up(self) -> bool:
        return self.new_level > self.old_level

    def to_dict(self) -> dict:
        return {
            "gained": self.amount,
            "total_experience": self.total_experience,
            "leveled_up": self.leveled_up,
            "old_level": self.old_level,
            "new_level": self.new_level,
            "stat_points_gained": self.stat_points_gained,
            "skill_points_gained": self.skill_points_gained,
        }
