"""Trade Service - 구매/판매 거래 코디네이터

하나의 거래 = 하나의 DB 트랜잭션:
    잔액/신뢰도 → 재고 → 인벤토리 → 거래 기록 → 관계 → 경험치/레벨 → 업적
중간 어디서 실패해도 전부 롤백된다.

검증 순서 (구매):
    플레이어 → 상인 → 면허 → 재고 아이템 → 재고 수량 → 인벤토리 용량 → 잔액 → 거리
검증 순서 (판매):
    플레이어 → 보유 아이템 → 상인 → 거리

동시성:
- 같은 거래 키의 중복 요청은 TradeGuard가 즉시 거절 (대기 없음)
- 잔액 차감 / 재고 차감 / 아이템 삭제는 조건부 UPDATE·DELETE, 영향 행 수로 재검증
- 이벤트는 커밋 이후에만 발행
"""

import random
import uuid
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import delete, update
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings
from src.core.clock import Clock, game_now
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.exceptions import (
    GameError,
    InternalError,
    NotFoundError,
    PreconditionFailedError,
)
from src.core.geo import within_range
from src.core.item import QuoteItem, quote, quote_sell
from src.core.item.inventory import can_add_item
from src.core.logging import get_logger
from src.core.progression import buy_experience, sell_experience
from src.core.trade import TradeGuard, TradeKind, TradeOutcome, make_trade_key
from src.db.database import session_scope
from src.db.models import (
    InventoryItemModel,
    ItemModel,
    MerchantModel,
    MerchantStockModel,
    PlayerModel,
    TradeModel,
)
from src.db.queries import count_inventory, get_active_merchant, get_player_by_user
from src.services.achievement_service import AchievementService
from src.services.progression_service import ProgressionService
from src.services.relationship_service import RelationshipService

logger = get_logger(__name__)

# 거래당 신뢰도 증가
BUY_TRUST_GAIN = 1
SELL_TRUST_GAIN = 2

TradeOperation = Callable[[Session, List[GameEvent]], Dict[str, Any]]


class TradeService:
    """구매/판매 오케스트레이션"""

    def __init__(
        self,
        session_factory: sessionmaker,
        event_bus: EventBus,
        progression: ProgressionService,
        achievements: AchievementService,
        relationships: RelationshipService,
        guard: Optional[TradeGuard] = None,
        clock: Optional[Clock] = None,
        rng: Optional[random.Random] = None,
        distance_limit_km: float = settings.TRADE_DISTANCE_LIMIT_KM,
    ) -> None:
        self._session_factory = session_factory
        self._bus = event_bus
        self._progression = progression
        self._achievements = achievements
        self._relationships = relationships
        self._guard = guard or TradeGuard()
        self._clock = clock or game_now
        self._rng = rng
        self._distance_limit_km = distance_limit_km

    # ── 공개 연산 ───────────────────────────────────────────

    def buy(self, user_id: str, merchant_id: str, item_name: str) -> TradeOutcome:
        """상인 재고에서 1개 구매."""
        key = make_trade_key(user_id, merchant_id, item_name, TradeKind.BUY.value)
        return self._run(
            key,
            lambda db, events: self._execute_buy(
                db, events, user_id, merchant_id, item_name
            ),
        )

    def sell(
        self, user_id: str, inventory_item_id: str, merchant_id: str
    ) -> TradeOutcome:
        """보유 아이템을 상인에게 판매."""
        key = make_trade_key(
            user_id, merchant_id, inventory_item_id, TradeKind.SELL.value
        )
        return self._run(
            key,
            lambda db, events: self._execute_sell(
                db, events, user_id, inventory_item_id, merchant_id
            ),
        )

    # ── 실행 골격 ───────────────────────────────────────────

    def _run(self, key: str, operation: TradeOperation) -> TradeOutcome:
        """가드 → 트랜잭션 → (커밋 후) 이벤트 발행. 실패는 TradeOutcome으로."""
        events: List[GameEvent] = []
        try:
            with self._guard.hold(key):
                with session_scope(self._session_factory) as db:
                    data = operation(db, events)
        except GameError as e:
            logger.info(f"거래 거절 [{key}]: {e}")
            return TradeOutcome.failure(e)
        except Exception:
            logger.exception(f"거래 처리 실패 [{key}]")
            return TradeOutcome.failure(
                InternalError("거래 처리 중 오류가 발생했습니다.")
            )

        for event in events:
            self._bus.emit(event)
        return TradeOutcome.ok(data)

    # ── 구매 ────────────────────────────────────────────────

    def _execute_buy(
        self,
        db: Session,
        events: List[GameEvent],
        user_id: str,
        merchant_id: str,
        item_name: str,
    ) -> Dict[str, Any]:
        now = self._clock()
        player = get_player_by_user(db, user_id)
        merchant = get_active_merchant(db, merchant_id)

        if player.current_license < merchant.required_license:
            raise PreconditionFailedError(
                f"{merchant.required_license}급 이상 면허가 필요합니다.",
                {
                    "required_license": merchant.required_license,
                    "current_license": player.current_license,
                },
            )

        line = (
            db.query(MerchantStockModel)
            .join(ItemModel, MerchantStockModel.item_id == ItemModel.id)
            .filter(
                MerchantStockModel.merchant_id == merchant.id,
                ItemModel.name == item_name,
            )
            .first()
        )
        if line is None:
            raise NotFoundError(
                "해당 아이템을 찾을 수 없습니다.", {"item_name": item_name}
            )
        if line.stock <= 0:
            raise PreconditionFailedError("재고가 부족합니다.", {"item_name": item_name})

        if not can_add_item(count_inventory(db, player.id), player.max_inventory_size):
            raise PreconditionFailedError(
                "인벤토리가 가득 찼습니다.",
                {"capacity": player.max_inventory_size},
            )

        item = line.item
        price = quote(
            QuoteItem(
                name=item.name,
                base_price=line.unit_price,
                grade=item.rarity,
                category=item.category,
            ),
            merchant.district,
            now,
            self._rng,
        )
        if player.money < price:
            raise PreconditionFailedError(
                f"돈이 부족합니다. ({price - player.money:,}원 부족)",
                {"price": price, "money": player.money},
            )

        self._check_distance(player, merchant)

        # ── 변경 단계: 조건부 UPDATE로 재검증 ──
        debited = db.execute(
            update(PlayerModel)
            .where(PlayerModel.id == player.id, PlayerModel.money >= price)
            .values(
                money=PlayerModel.money - price,
                trust_points=PlayerModel.trust_points + BUY_TRUST_GAIN,
                last_active=now,
            )
        )
        if debited.rowcount != 1:
            raise PreconditionFailedError("돈이 부족합니다.", {"price": price})

        # 플레이어 행 갱신 이후 다시 세어 동시 구매로 인한 초과를 막는다
        if not can_add_item(count_inventory(db, player.id), player.max_inventory_size):
            raise PreconditionFailedError(
                "인벤토리가 가득 찼습니다.",
                {"capacity": player.max_inventory_size},
            )

        taken = db.execute(
            update(MerchantStockModel)
            .where(MerchantStockModel.id == line.id, MerchantStockModel.stock > 0)
            .values(stock=MerchantStockModel.stock - 1)
        )
        if taken.rowcount != 1:
            raise PreconditionFailedError("재고가 부족합니다.", {"item_name": item_name})

        exp = buy_experience(price)
        inventory_item = InventoryItemModel(
            id=str(uuid.uuid4()),
            player_id=player.id,
            item_id=item.id,
            item_name=item.name,
            item_category=item.category,
            grade=item.rarity,
            quantity=1,
            base_price=line.unit_price,
            purchase_price=price,
            current_price=price,
            required_license=item.required_license,
            is_equipped=False,
            is_locked=False,
            is_favorite=False,
            acquired_at=now,
        )
        trade = self._build_trade(
            player,
            merchant,
            item_id=item.id,
            item_name=item.name,
            item_category=item.category,
            item_grade=item.rarity,
            base_price=line.unit_price,
            final_price=price,
            trade_type=TradeKind.BUY,
            experience=exp,
            reputation_change=BUY_TRUST_GAIN,
            now=now,
        )
        db.add_all([inventory_item, trade])
        db.flush()

        data = self._apply_side_effects(
            db, events, player, merchant, trade, spent=price, experience=exp
        )
        data["purchased_item"] = self._inventory_to_dict(inventory_item)
        logger.info(
            f"구매 완료: player={player.id}, merchant={merchant.id}, "
            f"item={item.name}, price={price}"
        )
        return data

    # ── 판매 ────────────────────────────────────────────────

    def _execute_sell(
        self,
        db: Session,
        events: List[GameEvent],
        user_id: str,
        inventory_item_id: str,
        merchant_id: str,
    ) -> Dict[str, Any]:
        now = self._clock()
        player = get_player_by_user(db, user_id)

        owned = (
            db.query(InventoryItemModel)
            .filter(
                InventoryItemModel.id == inventory_item_id,
                InventoryItemModel.player_id == player.id,
            )
            .first()
        )
        if owned is None:
            raise NotFoundError(
                "해당 아이템을 찾을 수 없습니다.", {"item_id": inventory_item_id}
            )
        if owned.is_locked:
            raise PreconditionFailedError("잠긴 아이템은 판매할 수 없습니다.")

        merchant = get_active_merchant(db, merchant_id)
        self._check_distance(player, merchant)

        price = quote_sell(owned.current_price, merchant.district, self._rng)
        exp = sell_experience(price)
        trade = self._build_trade(
            player,
            merchant,
            item_id=owned.item_id,
            item_name=owned.item_name,
            item_category=owned.item_category,
            item_grade=owned.grade,
            base_price=owned.current_price,
            final_price=price,
            trade_type=TradeKind.SELL,
            experience=exp,
            reputation_change=SELL_TRUST_GAIN,
            now=now,
        )

        # 소유 확인과 삭제를 한 문장으로. 동시 판매는 여기서 걸러진다.
        removed = db.execute(
            delete(InventoryItemModel).where(
                InventoryItemModel.id == owned.id,
                InventoryItemModel.player_id == player.id,
            )
        )
        if removed.rowcount != 1:
            raise NotFoundError(
                "해당 아이템을 찾을 수 없습니다.", {"item_id": inventory_item_id}
            )

        db.execute(
            update(PlayerModel)
            .where(PlayerModel.id == player.id)
            .values(
                money=PlayerModel.money + price,
                trust_points=PlayerModel.trust_points + SELL_TRUST_GAIN,
                last_active=now,
            )
        )
        db.add(trade)
        db.flush()

        data = self._apply_side_effects(
            db, events, player, merchant, trade, spent=0, experience=exp
        )
        data["sold_item"] = {
            "id": inventory_item_id,
            "name": trade.item_name,
            "category": trade.item_category,
            "sell_price": price,
        }
        logger.info(
            f"판매 완료: player={player.id}, merchant={merchant.id}, "
            f"item={trade.item_name}, price={price}"
        )
        return data

    # ── 공통 단계 ───────────────────────────────────────────

    def _check_distance(self, player: PlayerModel, merchant: MerchantModel) -> None:
        """위치 미상은 무한대 거리로 취급되어 항상 거절."""
        if not within_range(
            player.location_lat,
            player.location_lng,
            merchant.location_lat,
            merchant.location_lng,
            self._distance_limit_km,
        ):
            raise PreconditionFailedError(
                "상인과 너무 멀리 떨어져 있습니다.",
                {"limit_km": self._distance_limit_km},
            )

    def _build_trade(
        self,
        player: PlayerModel,
        merchant: MerchantModel,
        *,
        item_id: str,
        item_name: str,
        item_category: str,
        item_grade: Optional[str],
        base_price: int,
        final_price: int,
        trade_type: TradeKind,
        experience: int,
        reputation_change: int,
        now: datetime,
    ) -> TradeModel:
        modifier = round(final_price / base_price, 4) if base_price else 1.0
        return TradeModel(
            id=str(uuid.uuid4()),
            player_id=player.id,
            merchant_id=merchant.id,
            item_id=item_id,
            item_name=item_name,
            item_category=item_category,
            item_grade=item_grade,
            quantity=1,
            base_price=base_price,
            final_price=final_price,
            price_modifier=modifier,
            negotiation_discount=0.0,
            trade_type=trade_type.value,
            location_lat=player.location_lat,
            location_lng=player.location_lng,
            district=merchant.district,
            experience_gained=experience,
            reputation_change=reputation_change,
            relationship_change=1,
            timestamp=now,
        )

    def _apply_side_effects(
        self,
        db: Session,
        events: List[GameEvent],
        player: PlayerModel,
        merchant: MerchantModel,
        trade: TradeModel,
        spent: int,
        experience: int,
    ) -> Dict[str, Any]:
        """관계 → 경험치 → 업적. 이벤트는 events에 모아 두고 커밋 후 발행."""
        relationship_event = self._relationships.record_trade(
            db, player.id, merchant.id, spent=spent
        )
        report = self._progression.grant_experience(db, player.id, experience)
        achieved = self._achievements.check_in(db, player.id)
        db.refresh(player)

        events.append(
            GameEvent(
                event_type=EventTypes.TRADE_COMPLETED,
                data={
                    "trade_id": trade.id,
                    "player_id": player.id,
                    "merchant_id": merchant.id,
                    "trade_type": trade.trade_type,
                    "item_name": trade.item_name,
                    "price": trade.final_price,
                },
                source="trade_service",
            )
        )
        if relationship_event is not None:
            events.append(relationship_event)
        if report.leveled_up:
            events.append(
                GameEvent(
                    event_type=EventTypes.LEVEL_UP,
                    data={
                        "player_id": player.id,
                        "old_level": report.old_level,
                        "new_level": report.new_level,
                    },
                    source="progression_service",
                )
            )
        if achieved:
            events.append(
                GameEvent(
                    event_type=EventTypes.ACHIEVEMENT_COMPLETED,
                    data={
                        "player_id": player.id,
                        "achievement_ids": [a.achievement_id for a in achieved],
                    },
                    source="achievement_service",
                )
            )

        return {
            "trade_id": trade.id,
            "price": trade.final_price,
            "new_money": player.money,
            "new_trust_points": player.trust_points,
            "experience": report.to_dict(),
            "new_achievements": [
                AchievementService.snapshot_to_dict(a) for a in achieved
            ],
        }

    @staticmethod
    def _inventory_to_dict(item: InventoryItemModel) -> Dict[str, Any]:
        return {
            "id": item.id,
            "name": item.item_name,
            "category": item.item_category,
            "grade": item.grade,
            "purchase_price": item.purchase_price,
            "current_price": item.current_price,
            "acquired_at": item.acquired_at,
        }
