"""업적 보상 - 태그드 변형

achievements.reward_type + reward_value(JSON) 를 타입이 있는 보상으로 변환.
지급 측은 Reward의 모든 변형을 처리해야 한다.
"""

import json
from dataclasses import dataclass
from typing import Any, Optional, Union

from src.core.progression.models import SKILLS


@dataclass(frozen=True)
class CurrencyReward:
    amount: int
    kind: str = "currency"


@dataclass(frozen=True)
class ExperienceReward:
    amount: int
    kind: str = "experience"


# 코스메틱 슬롯. 슬롯마다 하나만 장착된다.
COSMETIC_TYPES = ("hair", "face", "outfit", "accessory", "skin")


@dataclass(frozen=True)
class CosmeticReward:
    cosmetic_id: int
    cosmetic_type: str = "accessory"
    name: Optional[str] = None
    rarity: str = "common"
    kind: str = "cosmetic"


@dataclass(frozen=True)
class TitleReward:
    title: str
    kind: str = "title"


@dataclass(frozen=True)
class SkillReward:
    skill: str
    amount: int = 1
    kind: str = "skill"


Reward = Union[CurrencyReward, ExperienceReward, CosmeticReward, TitleReward, SkillReward]

# 저장된 reward_type 별칭
_TYPE_ALIASES = {
    "money": "currency",
    "gold": "currency",
    "currency": "currency",
    "exp": "experience",
    "experience": "experience",
    "cosmetic": "cosmetic",
    "title": "title",
    "skill": "skill",
}


def _load_payload(reward_value: str | None) -> dict[str, Any]:
    if not reward_value:
        return {}
    try:
        payload = json.loads(reward_value)
    except json.JSONDecodeError:
        # 숫자만 저장된 레거시 값은 금액으로 취급
        return {"gold": int(reward_value)}
    if isinstance(payload, (int, float)):
        return {"gold": int(payload)}
    if not isinstance(payload, dict):
        raise ValueError(f"Unsupported reward payload: {reward_value!r}")
    return payload


def parse_reward(reward_type: str | None, reward_value: str | None) -> Reward:
    """저장 형식 → Reward. 해석할 수 없으면 ValueError."""
    kind = _TYPE_ALIASES.get((reward_type or "").lower())
    payload = _load_payload(reward_value)

    if kind is None:
        # 타입이 비어 있으면 payload 키로 추론
        if "gold" in payload:
            kind = "currency"
        elif "experience" in payload:
            kind = "experience"
        else:
            raise ValueError(f"Unknown reward type: {reward_type!r}")

    if kind == "currency":
        return CurrencyReward(amount=int(payload.get("gold", payload.get("amount", 0))))
    if kind == "experience":
        return ExperienceReward(amount=int(payload.get("experience", 0)))
    if kind == "cosmetic":
        cosmetic_type = payload.get("type", "accessory")
        if cosmetic_type not in COSMETIC_TYPES:
            raise ValueError(f"Unknown cosmetic type: {cosmetic_type!r}")
        return CosmeticReward(
            cosmetic_id=int(payload["cosmetic_id"]),
            cosmetic_type=cosmetic_type,
            name=payload.get("name"),
            rarity=payload.get("rarity", "common"),
        )
    if kind == "title":
        return TitleReward(title=str(payload["title"]))

    # skill: {"negotiation_skill": 1}
    for skill in SKILLS:
        if skill in payload:
            return SkillReward(skill=skill, amount=int(payload[skill]))
    raise ValueError(f"Unknown skill reward: {reward_value!r}")
