"""TradeService 통합 테스트 (인메모리 SQLite + EventBus)

구매/판매 한 건이 하나의 트랜잭션으로 묶이는지, 검증 순서와
실패 사유, 커밋 후 이벤트 발행을 확인한다.
"""

import threading

import pytest
from sqlalchemy import func, select, update

from conftest import (
    DRAGON_MERCHANT,
    GANGNAM_LAT,
    GANGNAM_LNG,
    GANGNAM_MERCHANT,
    HONGDAE_MERCHANT,
    IT_PART,
    MidpointRandom,
    fixed_clock,
)
from src.core.event_types import EventTypes
from src.core.geo import distance_km
from src.core.trade import TradeGuard, TradeKind, make_trade_key
from src.db.models import (
    CharacterProgressModel,
    InventoryItemModel,
    MerchantStockModel,
    PlayerMerchantRelationModel,
    PlayerModel,
    TradeModel,
)
from src.services.trade_service import TradeService

HONGDAE_LAT, HONGDAE_LNG = 37.5563, 126.9236
DRAGON_LAT, DRAGON_LNG = 37.5326, 126.9909
# 강남 상인에서 북쪽으로 약 330m
NEAR_LAT, NEAR_LNG = 37.5203, 126.9735


def _trade_service(setup, guard=None, distance_limit_km=0.5) -> TradeService:
    return TradeService(
        setup.session_factory,
        setup.bus,
        progression=setup.progression,
        achievements=setup.achievement,
        relationships=setup.relationship,
        guard=guard or TradeGuard(),
        clock=fixed_clock,
        rng=MidpointRandom(),
        distance_limit_km=distance_limit_km,
    )


def _money(in_db, user_id="user-1") -> int:
    return in_db(
        lambda db: db.scalar(select(PlayerModel.money).where(PlayerModel.user_id == user_id))
    )


def _stock(in_db, merchant_id=GANGNAM_MERCHANT, item_id="it_common_1") -> int:
    return in_db(
        lambda db: db.scalar(
            select(MerchantStockModel.stock).where(
                MerchantStockModel.merchant_id == merchant_id,
                MerchantStockModel.item_id == item_id,
            )
        )
    )


def _count(in_db, model) -> int:
    return in_db(lambda db: db.scalar(select(func.count()).select_from(model)))


def _set_stock(in_db, amount: int) -> None:
    in_db(
        lambda db: db.execute(
            update(MerchantStockModel)
            .where(
                MerchantStockModel.merchant_id == GANGNAM_MERCHANT,
                MerchantStockModel.item_id == "it_common_1",
            )
            .values(stock=amount)
        )
    )


@pytest.fixture()
def setup(services, make_player):
    """강남 상인 앞에 서 있는 플레이어 1명"""
    make_player()
    return services


# ── 구매 성공 ──


class TestBuySuccess:
    def test_buy_returns_trade_summary(self, setup):
        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert outcome.success, outcome.error
        data = outcome.data
        assert data["price"] == 7150
        assert data["new_money"] == 42850
        assert data["new_trust_points"] == 1
        assert data["experience"]["gained"] == 12
        assert data["experience"]["leveled_up"] is False
        assert data["purchased_item"]["name"] == IT_PART
        assert data["purchased_item"]["purchase_price"] == 7150
        assert [a["achievement_id"] for a in data["new_achievements"]] == ["first_trade"]

    def test_buy_persists_all_changes(self, setup, in_db):
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert _money(in_db) == 42850
        assert _stock(in_db) == 9
        assert _count(in_db, InventoryItemModel) == 1
        trade = in_db(
            lambda db: tuple(
                db.query(TradeModel.trade_type, TradeModel.final_price, TradeModel.district).one()
            )
        )
        assert trade == ("buy", 7150, "강남구")

    def test_buy_updates_relationship(self, setup, in_db):
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        relation = in_db(
            lambda db: tuple(
                db.query(
                    PlayerMerchantRelationModel.total_trades,
                    PlayerMerchantRelationModel.total_spent,
                    PlayerMerchantRelationModel.friendship_points,
                ).one()
            )
        )
        assert relation == (1, 7150, 1)

    def test_events_after_commit(self, setup, captured):
        trades = captured(EventTypes.TRADE_COMPLETED)
        achievements = captured(EventTypes.ACHIEVEMENT_COMPLETED)

        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert len(trades) == 1
        assert trades[0].data["trade_id"] == outcome.data["trade_id"]
        assert trades[0].data["trade_type"] == "buy"
        assert achievements[0].data["achievement_ids"] == ["first_trade"]

    def test_level_up_through_trade(self, setup, in_db, captured):
        """경험치 95 + 12 → 레벨 2"""
        level_ups = captured(EventTypes.LEVEL_UP)
        in_db(lambda db: db.execute(update(CharacterProgressModel).values(experience=95)))

        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        exp = outcome.data["experience"]
        assert exp["leveled_up"] is True
        assert exp["new_level"] == 2
        assert exp["stat_points_gained"] == 2
        assert level_ups[0].data["new_level"] == 2

    def test_relationship_tier_change_emitted(self, setup, in_db, captured):
        """친밀도 49 → 거래 +1 → acquaintance"""
        changes = captured(EventTypes.RELATIONSHIP_CHANGED)
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        in_db(
            lambda db: db.execute(
                update(PlayerMerchantRelationModel).values(friendship_points=49)
            )
        )

        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert len(changes) == 1
        assert changes[0].data["new_status"] == "acquaintance"


# ── 구매 거절 ──


class TestBuyRejected:
    def test_unknown_player(self, setup):
        outcome = setup.trade.buy("ghost", GANGNAM_MERCHANT, IT_PART)
        assert not outcome.success
        assert outcome.error_kind == "not_found"
        assert outcome.error == "플레이어를 찾을 수 없습니다."

    def test_unknown_merchant(self, setup):
        outcome = setup.trade.buy("user-1", "merchant_nowhere", IT_PART)
        assert outcome.error_kind == "not_found"
        assert outcome.error == "상인을 찾을 수 없습니다."

    def test_license_required(self, setup, make_player):
        make_player("user-2", lat=DRAGON_LAT, lng=DRAGON_LNG)
        outcome = setup.trade.buy("user-2", DRAGON_MERCHANT, "용비늘")
        assert outcome.error_kind == "precondition_failed"
        assert outcome.error == "3급 이상 면허가 필요합니다."

    def test_item_not_sold_here(self, setup):
        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, "용비늘")
        assert outcome.error_kind == "not_found"
        assert outcome.error == "해당 아이템을 찾을 수 없습니다."

    def test_out_of_stock(self, setup, in_db):
        """재고 1개 → 첫 구매 성공, 두 번째 거절, 음수 재고 없음"""
        _set_stock(in_db, 1)

        assert setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART).success
        second = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert second.error == "재고가 부족합니다."
        assert _stock(in_db) == 0

    def test_inventory_full(self, setup):
        """기본 용량 5개"""
        for _ in range(5):
            assert setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART).success
        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        assert outcome.error == "인벤토리가 가득 찼습니다."

    def test_insufficient_funds(self, setup, patch_player, in_db):
        patch_player("user-1", money=7000)
        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        assert outcome.error_kind == "precondition_failed"
        assert outcome.error == "돈이 부족합니다. (150원 부족)"
        assert _money(in_db) == 7000

    def test_too_far(self, setup, make_player):
        make_player("user-2", lat=HONGDAE_LAT, lng=HONGDAE_LNG)
        outcome = setup.trade.buy("user-2", GANGNAM_MERCHANT, IT_PART)
        assert outcome.error == "상인과 너무 멀리 떨어져 있습니다."

    def test_unknown_location_is_too_far(self, setup, make_player):
        make_player("user-2", lat=None, lng=None)
        outcome = setup.trade.buy("user-2", GANGNAM_MERCHANT, IT_PART)
        assert outcome.error == "상인과 너무 멀리 떨어져 있습니다."

    def test_license_checked_before_distance(self, setup, make_player):
        """검증 순서: 면허가 거리보다 먼저"""
        make_player("user-2", lat=HONGDAE_LAT, lng=HONGDAE_LNG)
        outcome = setup.trade.buy("user-2", DRAGON_MERCHANT, "용비늘")
        assert "면허" in outcome.error

    def test_rejected_trade_emits_nothing(self, setup, patch_player, captured):
        trades = captured(EventTypes.TRADE_COMPLETED)
        patch_player("user-1", money=0)
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        assert trades == []


# ── 거리 경계 ──


class TestDistanceBoundary:
    """제한 거리와 정확히 같으면 허용 (경계 포함)"""

    @pytest.fixture()
    def exact(self, setup, make_player):
        make_player("user-2", lat=NEAR_LAT, lng=NEAR_LNG)
        limit = distance_km(NEAR_LAT, NEAR_LNG, GANGNAM_LAT, GANGNAM_LNG)
        return limit

    def test_buy_at_exact_limit(self, setup, exact):
        trade = _trade_service(setup, distance_limit_km=exact)
        outcome = trade.buy("user-2", GANGNAM_MERCHANT, IT_PART)
        assert outcome.success, outcome.error

    def test_sell_at_exact_limit(self, setup, exact):
        trade = _trade_service(setup, distance_limit_km=exact)
        item_id = trade.buy("user-2", GANGNAM_MERCHANT, IT_PART).data["purchased_item"]["id"]

        outcome = trade.sell("user-2", item_id, GANGNAM_MERCHANT)

        assert outcome.success, outcome.error

    def test_just_beyond_limit(self, setup, exact):
        trade = _trade_service(setup, distance_limit_km=exact * 0.999)
        outcome = trade.buy("user-2", GANGNAM_MERCHANT, IT_PART)
        assert outcome.error == "상인과 너무 멀리 떨어져 있습니다."


# ── 동시성 / 원자성 ──


class TestConcurrencyAndAtomicity:
    def test_duplicate_trade_rejected(self, setup, in_db):
        """같은 거래 키가 진행 중이면 즉시 conflict, DB 변화 없음"""
        guard = TradeGuard()
        trade = _trade_service(setup, guard=guard)
        key = make_trade_key("user-1", GANGNAM_MERCHANT, IT_PART, TradeKind.BUY.value)

        with guard.hold(key):
            outcome = trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert outcome.error_kind == "conflict"
        assert _money(in_db) == 50000
        assert trade.buy("user-1", GANGNAM_MERCHANT, IT_PART).success

    def test_last_unit_concurrent_buys_one_wins(self, setup, in_db, monkeypatch):
        """재고 1개에 같은 구매 두 건이 겹치면 하나만 성공"""
        _set_stock(in_db, 1)
        inside = threading.Event()
        proceed = threading.Event()
        grant = setup.progression.grant_experience

        def slow_grant(db, player_id, amount):
            if threading.current_thread().name == "first-buyer":
                inside.set()
                proceed.wait(timeout=2)
            return grant(db, player_id, amount)

        monkeypatch.setattr(setup.progression, "grant_experience", slow_grant)
        outcomes = {}

        def first():
            outcomes["first"] = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        worker = threading.Thread(target=first, name="first-buyer")
        worker.start()
        assert inside.wait(timeout=2)

        outcomes["second"] = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        proceed.set()
        worker.join(timeout=5)

        assert outcomes["first"].success, outcomes["first"].error
        assert outcomes["second"].error_kind == "conflict"
        assert _stock(in_db) == 0
        assert _count(in_db, InventoryItemModel) == 1
        assert setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART).error == "재고가 부족합니다."

    def test_failure_mid_transaction_rolls_back_everything(
        self, setup, in_db, captured, monkeypatch
    ):
        """업적 판정 단계에서 실패 → 잔액/재고/인벤토리/거래/관계/경험치 모두 원상태"""
        trades = captured(EventTypes.TRADE_COMPLETED)

        def broken_check_in(db, player_id):
            raise RuntimeError("achievement store down")

        monkeypatch.setattr(setup.achievement, "check_in", broken_check_in)

        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert outcome.error_kind == "internal"
        assert outcome.error == "거래 처리 중 오류가 발생했습니다."
        assert _money(in_db) == 50000
        assert _stock(in_db) == 10
        assert _count(in_db, InventoryItemModel) == 0
        assert _count(in_db, TradeModel) == 0
        assert _count(in_db, PlayerMerchantRelationModel) == 0
        assert in_db(lambda db: db.scalar(select(CharacterProgressModel.experience))) == 0
        assert trades == []


# ── 판매 ──


class TestSell:
    def _buy(self, setup) -> str:
        outcome = setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        return outcome.data["purchased_item"]["id"]

    def test_buy_then_sell(self, setup, in_db):
        item_id = self._buy(setup)

        outcome = setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)

        assert outcome.success, outcome.error
        price = outcome.data["price"]
        # 0.8 + 0.1 판매율, 부동소수 오차로 1원 차이 허용
        assert 6434 <= price <= 6435
        assert outcome.data["new_money"] == 42850 + price
        assert outcome.data["new_trust_points"] == 3
        assert outcome.data["experience"]["gained"] == 16
        assert outcome.data["sold_item"]["id"] == item_id
        assert _count(in_db, InventoryItemModel) == 0
        assert _count(in_db, TradeModel) == 2

    def test_sell_price_never_above_current(self, setup):
        item_id = self._buy(setup)
        outcome = setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)
        assert 0 <= outcome.data["price"] <= 7150

    def test_sell_twice_fails(self, setup):
        item_id = self._buy(setup)
        setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)
        again = setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)
        assert again.error_kind == "not_found"

    def test_cannot_sell_other_players_item(self, setup, make_player, in_db):
        item_id = self._buy(setup)
        make_player("user-2")
        outcome = setup.trade.sell("user-2", item_id, GANGNAM_MERCHANT)
        assert outcome.error_kind == "not_found"
        assert _count(in_db, InventoryItemModel) == 1

    def test_locked_item(self, setup, in_db):
        item_id = self._buy(setup)
        in_db(lambda db: db.execute(update(InventoryItemModel).values(is_locked=True)))
        outcome = setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)
        assert outcome.error == "잠긴 아이템은 판매할 수 없습니다."

    def test_sell_too_far(self, setup):
        item_id = self._buy(setup)
        setup.player.update_location("user-1", HONGDAE_LAT, HONGDAE_LNG)
        outcome = setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)
        assert outcome.error == "상인과 너무 멀리 떨어져 있습니다."

    def test_sell_to_other_merchant_nearby(self, setup):
        """구매한 상인이 아니어도 가까운 상인이면 판매 가능"""
        item_id = self._buy(setup)
        setup.player.update_location("user-1", HONGDAE_LAT, HONGDAE_LNG)
        outcome = setup.trade.sell("user-1", item_id, HONGDAE_MERCHANT)
        assert outcome.success
        # 마포구는 판매 보너스 없음: 0.8
        assert outcome.data["price"] <= 5720

    def test_sell_counts_toward_revenue(self, setup, in_db):
        item_id = self._buy(setup)
        outcome = setup.trade.sell("user-1", item_id, GANGNAM_MERCHANT)
        revenue = in_db(
            lambda db: db.scalar(
                select(func.sum(TradeModel.final_price)).where(TradeModel.trade_type == "sell")
            )
        )
        assert revenue == outcome.data["price"]
