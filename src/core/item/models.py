"""아이템 도메인 모델 (DB 무관)"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class ItemGrade(str, Enum):
    COMMON = "common"
    UNCOMMON = "uncommon"
    RARE = "rare"
    EPIC = "epic"
    LEGENDARY = "legendary"


@dataclass(frozen=True)
class QuoteItem:
    """가격 산정 입력. 상인 재고 라인 또는 카탈로그 아이템에서 생성."""

    name: str
    base_price: int  # 재고 라인 단가
    grade: str = ItemGrade.COMMON.value
    category: str = ""
