"""아이템/가격 Core - 순수 Python, DB 무관"""

from .models import ItemGrade, QuoteItem
from .pricing import market_price, quote, quote_sell

__all__ = [
    "ItemGrade",
    "QuoteItem",
    "quote",
    "quote_sell",
    "market_price",
]
