"""가격 엔진 - 구매 견적, 판매 견적, 시장 시세

전부 순수 함수. 난수원(rng)은 테스트에서 주입 가능.
"""

import logging
import math
import random
from datetime import datetime
from typing import Optional

from .models import QuoteItem

logger = logging.getLogger(__name__)

# 서울 구별 가격 계수 (미등록 구 = 1.0)
DISTRICT_MULTIPLIERS: dict[str, float] = {
    "강남구": 1.3,
    "서초구": 1.25,
    "송파구": 1.2,
    "중구": 1.15,
    "종로구": 1.1,
    "용산구": 1.1,
    "마포구": 1.05,
    "성동구": 1.0,
    "광진구": 0.95,
    "동대문구": 0.9,
    "중랑구": 0.85,
}

# 판매 시 구별 가산 판매율 (미등록 구 = 0)
SELL_DISTRICT_BONUSES: dict[str, float] = {
    "강남구": 0.1,
    "서초구": 0.08,
    "송파구": 0.05,
    "중구": 0.03,
    "종로구": 0.02,
}

GRADE_MULTIPLIERS: dict[str, float] = {
    "common": 1.0,
    "uncommon": 1.2,
    "rare": 1.5,
    "epic": 2.0,
    "legendary": 3.0,
}

BUY_RANDOM_RANGE = (0.95, 1.05)
SELL_RATE_RANGE = (0.70, 0.90)
MAX_SELL_RATE = 0.95
MARKET_RANDOM_RANGE = (0.9, 1.1)

# 시세 변화가 이 비율을 넘을 때만 저장
MARKET_PERSIST_THRESHOLD = 0.05


def time_of_day_multiplier(hour: int) -> float:
    """구매 견적 시간대 계수. 업무시간 9~18시, 저녁 19~22시."""
    if 9 <= hour <= 18:
        return 1.10
    if 19 <= hour <= 22:
        return 1.05
    return 1.0


def market_time_multiplier(hour: int) -> float:
    """시세 시간대 계수. 새벽/심야는 할인."""
    if 9 <= hour <= 18:
        return 1.15
    if 19 <= hour <= 22:
        return 1.05
    return 0.95


def quote(
    item: QuoteItem,
    district: str,
    now: datetime,
    rng: Optional[random.Random] = None,
) -> int:
    """구매 견적. 저장되지 않는 일회성 가격.

    base_price × 구 계수 × 시간대 계수 × 등급 계수 × U(0.95, 1.05), 내림.
    계산 중 오류가 나면 base_price를 그대로 반환한다.
    """
    source = rng or random
    try:
        price = float(item.base_price)
        price *= DISTRICT_MULTIPLIERS.get(district, 1.0)
        price *= time_of_day_multiplier(now.hour)
        price *= GRADE_MULTIPLIERS.get(item.grade, 1.0)
        price *= source.uniform(*BUY_RANDOM_RANGE)
        return math.floor(price)
    except Exception:
        logger.exception("가격 계산 오류: item=%r district=%s", item, district)
        return item.base_price


def sell_rate(district: str, rng: Optional[random.Random] = None) -> float:
    """판매율 = U(0.70, 0.90) + 구 보너스, 상한 0.95."""
    source = rng or random
    base_rate = source.uniform(*SELL_RATE_RANGE)
    bonus = SELL_DISTRICT_BONUSES.get(district, 0.0)
    return max(0.0, min(base_rate + bonus, MAX_SELL_RATE))


def quote_sell(
    current_price: int,
    district: str,
    rng: Optional[random.Random] = None,
) -> int:
    """판매 견적. 항상 0 이상, current_price 이하."""
    price = math.floor(current_price * sell_rate(district, rng))
    return max(0, min(price, current_price))


def market_price(
    baseline: int,
    now: datetime,
    rng: Optional[random.Random] = None,
) -> int:
    """시장 시세. 상인별 견적과 별개의 계수표를 사용한다.

    주말(토/일) ×1.1, 시간대 계수, ±10% 변동.
    """
    source = rng or random
    multiplier = 1.0
    if now.weekday() >= 5:
        multiplier *= 1.1
    multiplier *= market_time_multiplier(now.hour)
    multiplier *= source.uniform(*MARKET_RANDOM_RANGE)
    return math.floor(baseline * multiplier)


def should_persist_market_price(current: int, new: int) -> bool:
    """변화량이 현재가의 5%를 넘으면 True."""
    return abs(new - current) > current * MARKET_PERSIST_THRESHOLD
