"""Market Service - 시장 시세 갱신과 조회

시세는 상인별 구매 견적과 별개다. 스케줄러가 주기적으로 갱신하고
prices_updated 이벤트로 실시간 알림 협력자에게 넘긴다.
"""

import json
import random
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy.orm import sessionmaker

from src.core.clock import Clock, game_now
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.item import market_price
from src.core.item.pricing import should_persist_market_price
from src.core.logging import get_logger
from src.db.database import session_scope
from src.db.models import ItemModel, MarketPriceModel, MerchantModel, MerchantStockModel

logger = get_logger(__name__)


class MarketService:
    """시장 시세"""

    def __init__(
        self,
        session_factory: sessionmaker,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = event_bus
        self._clock = clock or game_now
        self._rng = rng

    def get_market_prices(self) -> List[Dict[str, Any]]:
        with session_scope(self._session_factory) as db:
            rows = db.query(MarketPriceModel).order_by(MarketPriceModel.item_name).all()
            return [self._price_to_dict(r) for r in rows]

    def refresh_market_prices(self) -> List[Dict[str, Any]]:
        """전 품목 시세 재계산. 5% 넘게 움직인 품목만 저장한다.

        Returns: 갱신 후 전체 시세 (브로드캐스트 페이로드와 동일)
        """
        now = self._clock()
        changed = 0
        with session_scope(self._session_factory) as db:
            rows = db.query(MarketPriceModel).all()
            for row in rows:
                new_price = market_price(row.base_price, now, self._rng)
                if should_persist_market_price(row.current_price, new_price):
                    row.current_price = new_price
                    row.last_updated = now
                    changed += 1
            db.flush()
            prices = [self._price_to_dict(r) for r in sorted(rows, key=lambda r: r.item_name)]

        logger.info(f"시세 갱신: {changed}/{len(prices)} 품목 변경")
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.PRICES_UPDATED,
                data={"prices": prices, "changed": changed},
                source="market_service",
            )
        )
        return prices

    # ── 카탈로그 동기화 ──────────────────────────────────────

    def sync_world(self, path: Path) -> int:
        """JSON 월드 데이터(아이템, 상인, 재고) → DB. 없는 행만 추가.

        반환: 추가한 상인 수. 재고 보충은 외부 작업 몫.
        """
        with open(path, encoding="utf-8") as f:
            world = json.load(f)

        added = 0
        now = self._clock()
        with session_scope(self._session_factory) as db:
            for entry in world.get("items", []):
                if db.get(ItemModel, entry["id"]) is None:
                    db.add(
                        ItemModel(
                            id=entry["id"],
                            name=entry["name"],
                            category=entry["category"],
                            rarity=entry.get("rarity", "common"),
                            base_price=entry["base_price"],
                            required_license=entry.get("required_license", 1),
                            description=entry.get("description"),
                        )
                    )
                listed = (
                    db.query(MarketPriceModel.id)
                    .filter(MarketPriceModel.item_name == entry["name"])
                    .first()
                )
                if listed is None:
                    db.add(
                        MarketPriceModel(
                            item_name=entry["name"],
                            base_price=entry["base_price"],
                            current_price=entry["base_price"],
                            last_updated=now,
                        )
                    )
            db.flush()

            for entry in world.get("merchants", []):
                if db.get(MerchantModel, entry["id"]) is not None:
                    continue
                merchant = MerchantModel(
                    id=entry["id"],
                    name=entry["name"],
                    title=entry.get("title"),
                    merchant_type=entry.get("merchant_type", "general"),
                    personality=entry.get("personality", "neutral"),
                    mood=entry.get("mood", "neutral"),
                    district=entry["district"],
                    location_lat=entry["lat"],
                    location_lng=entry["lng"],
                    required_license=entry.get("required_license", 1),
                    price_modifier=entry.get("price_modifier", 1.0),
                    is_active=True,
                    last_restocked=now,
                )
                merchant.stock = [
                    MerchantStockModel(
                        item_id=line["item_id"],
                        unit_price=line["unit_price"],
                        stock=line.get("stock", 0),
                    )
                    for line in entry.get("stock", [])
                ]
                db.add(merchant)
                added += 1

        logger.info(f"월드 데이터 동기화: 상인 {added}명 추가")
        return added

    @staticmethod
    def _price_to_dict(row: MarketPriceModel) -> Dict[str, Any]:
        return {
            "item_name": row.item_name,
            "base_price": row.base_price,
            "current_price": row.current_price,
            "last_updated": row.last_updated.isoformat() if row.last_updated else None,
        }
