"""거래 도메인 모델"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from src.core.exceptions import GameError


class TradeKind(str, Enum):
    BUY = "buy"
    SELL = "sell"


@dataclass
class TradeOutcome:
    """buy/sell 결과. 실패 시 data 없이 사유만."""

    success: bool
    data: Dict[str, Any] = field(default_factory=dict)
    error: Optional[str] = None
    error_kind: Optional[str] = None

    @classmethod
    def ok(cls, data: Dict[str, Any]) -> TradeOutcome:
        return cls(success=True, data=data)

    @classmethod
    def failure(cls, err: GameError) -> TradeOutcome:
        return cls(success=False, error=err.message, error_kind=err.kind)
