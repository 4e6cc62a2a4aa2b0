"""거래 Core - 중복 거래 가드, 결과 레코드"""

from .guard import TradeGuard, make_trade_key
from .models import TradeKind, TradeOutcome

__all__ = ["TradeGuard", "make_trade_key", "TradeKind", "TradeOutcome"]
