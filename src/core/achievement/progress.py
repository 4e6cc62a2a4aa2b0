"""조건 유형별 진행도 계산"""

import logging

from .models import ConditionType, PlayerAggregates

logger = logging.getLogger(__name__)


def compute_progress(condition_type: str, aggregates: PlayerAggregates) -> int:
    """조건 유형 하나에 대한 현재 진행도.

    successful_negotiations는 협상 시스템이 없어 할인 거래 수의 절반으로 근사.
    알 수 없는 유형은 0 (경고 로그).
    """
    try:
        kind = ConditionType(condition_type)
    except ValueError:
        logger.warning("Unknown achievement condition type: %s", condition_type)
        return 0

    if kind is ConditionType.TRADE_COUNT:
        return aggregates.trade_count
    if kind is ConditionType.MONEY_EARNED:
        return aggregates.sell_revenue
    if kind is ConditionType.LEVEL_REACHED:
        return aggregates.level
    if kind is ConditionType.STAT_TOTAL:
        return aggregates.stat_total
    if kind is ConditionType.UNIQUE_ITEMS:
        return aggregates.unique_items
    if kind is ConditionType.DISTRICTS_VISITED:
        return aggregates.districts_visited
    if kind is ConditionType.MERCHANT_FRIENDSHIP:
        return aggregates.friend_merchants
    # SUCCESSFUL_NEGOTIATIONS
    return aggregates.discounted_trades // 2


def is_complete(progress: int, target: int) -> bool:
    return progress >= target
