"""인벤토리 용량 관리"""

import logging

logger = logging.getLogger(__name__)

DEFAULT_INVENTORY_CAPACITY = 5


def can_add_item(current_count: int, capacity: int) -> bool:
    """아이템 1개 추가 가능 여부. 보유 행 수 기준."""
    return current_count < capacity


def remaining_slots(current_count: int, capacity: int) -> int:
    return max(0, capacity - current_count)
