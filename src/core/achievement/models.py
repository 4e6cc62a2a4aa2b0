"""업적 도메인 모델"""

from dataclasses import dataclass
from enum import Enum

# 친구 단계 이상으로 치는 친밀도
FRIEND_THRESHOLD = 200


class ConditionType(str, Enum):
    TRADE_COUNT = "trade_count"
    MONEY_EARNED = "money_earned"  # 누적 판매 수익
    LEVEL_REACHED = "level_reached"
    STAT_TOTAL = "stat_total"  # 기본 스탯 4종 합계
    UNIQUE_ITEMS = "unique_items"  # 보유 아이템 종류 수
    DISTRICTS_VISITED = "districts_visited"  # 거래한 구 수
    MERCHANT_FRIENDSHIP = "merchant_friendship"  # 친밀도 200 이상 상인 수
    SUCCESSFUL_NEGOTIATIONS = "successful_negotiations"


@dataclass(frozen=True)
class PlayerAggregates:
    """원천 데이터에서 매번 새로 집계한 값. 캐시/누적 카운터 사용 금지."""

    trade_count: int = 0
    sell_revenue: int = 0
    level: int = 1
    stat_total: int = 0
    unique_items: int = 0
    districts_visited: int = 0
    friend_merchants: int = 0
    discounted_trades: int = 0


@dataclass(frozen=True)
class AchievementSnapshot:
    """새로 달성된 업적 요약 (check 결과)."""

    achievement_id: str
    name: str
    description: str
    category: str
    progress: int
    target: int
    reward_type: str | None = None
