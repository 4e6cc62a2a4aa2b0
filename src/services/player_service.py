"""Player Service - 플레이어 생성/조회, 위치 갱신, 주변 상인 탐색, 거래 내역"""

import uuid
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select
from sqlalchemy.orm import Session, sessionmaker

from src.config import settings
from src.core.clock import Clock, game_now
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.exceptions import ConflictError, PreconditionFailedError
from src.core.geo import bounding_box, find_nearby, is_in_seoul
from src.core.item.inventory import DEFAULT_INVENTORY_CAPACITY, remaining_slots
from src.core.logging import get_logger
from src.core.progression import (
    BASE_STATS,
    DEFAULT_SKILL_VALUE,
    DEFAULT_STAT_VALUE,
    SKILLS,
)
from src.db.database import session_scope
from src.db.models import (
    CharacterProgressModel,
    InventoryItemModel,
    MerchantModel,
    PlayerModel,
    TradeModel,
)
from src.db.queries import count_inventory, get_active_merchant, get_player_by_user

logger = get_logger(__name__)

STARTING_MONEY = 50000
STARTING_LICENSE = 1
RECENT_INVENTORY_LIMIT = 50
MAX_HISTORY_PAGE = 100


class PlayerService:
    """플레이어 프로필과 위치"""

    def __init__(
        self,
        session_factory: sessionmaker,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
        nearby_radius_km: float = settings.NEARBY_RADIUS_KM,
    ) -> None:
        self._session_factory = session_factory
        self._bus = event_bus
        self._clock = clock or game_now
        self._nearby_radius_km = nearby_radius_km

    # ── 생성 / 조회 ──────────────────────────────────────────

    def create_player(self, user_id: str, name: str) -> Dict[str, Any]:
        """신규 플레이어 + 성장 정보 생성. 같은 user_id는 하나만."""
        name = name.strip()
        if not name:
            raise PreconditionFailedError("캐릭터 이름을 입력해 주세요.")

        with session_scope(self._session_factory) as db:
            exists = (
                db.query(PlayerModel.id).filter(PlayerModel.user_id == user_id).first()
            )
            if exists is not None:
                raise ConflictError("이미 캐릭터가 있습니다.", {"user_id": user_id})

            now = self._clock()
            player = PlayerModel(
                id=str(uuid.uuid4()),
                user_id=user_id,
                name=name,
                money=STARTING_MONEY,
                trust_points=0,
                current_license=STARTING_LICENSE,
                max_inventory_size=DEFAULT_INVENTORY_CAPACITY,
                last_active=now,
                created_at=now,
            )
            player.progress = CharacterProgressModel(
                level=1,
                experience=0,
                stat_points=0,
                skill_points=0,
                updated_at=now,
                **{stat: DEFAULT_STAT_VALUE for stat in BASE_STATS},
                **{skill: DEFAULT_SKILL_VALUE for skill in SKILLS},
            )
            db.add(player)
            db.flush()

            logger.info(f"플레이어 생성: {player.id} (user={user_id}, name={name})")
            return self._player_to_dict(player, inventory_count=0)

    def get_player_data(self, user_id: str) -> Dict[str, Any]:
        """프로필 + 최근 인벤토리 50개."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            items = (
                db.query(InventoryItemModel)
                .filter(InventoryItemModel.player_id == player.id)
                .order_by(InventoryItemModel.acquired_at.desc())
                .limit(RECENT_INVENTORY_LIMIT)
                .all()
            )
            count = count_inventory(db, player.id)
            data = self._player_to_dict(player, inventory_count=count)
            data["inventory"] = [self._inventory_to_dict(i) for i in items]
            return data

    # ── 위치 ────────────────────────────────────────────────

    def update_location(self, user_id: str, lat: float, lng: float) -> Dict[str, Any]:
        """위치 저장 후 주변 상인 반환. 서울 밖 좌표는 거절."""
        if not is_in_seoul(lat, lng):
            raise PreconditionFailedError(
                "서울 지역 내에서만 플레이할 수 있습니다.", {"lat": lat, "lng": lng}
            )

        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            player.location_lat = lat
            player.location_lng = lng
            player.last_active = self._clock()
            player_id = player.id
            nearby = self._nearby(db, lat, lng, self._nearby_radius_km)

        self._bus.emit(
            GameEvent(
                event_type=EventTypes.PLAYER_MOVED,
                data={
                    "player_id": player_id,
                    "lat": lat,
                    "lng": lng,
                    "nearby": [
                        {"merchant_id": m["id"], "distance_km": m["distance_km"]}
                        for m in nearby
                    ],
                },
                source="player_service",
            )
        )
        return {"lat": lat, "lng": lng, "nearby_merchants": nearby}

    def find_nearby_merchants(
        self, lat: float, lng: float, radius_km: Optional[float] = None
    ) -> List[Dict[str, Any]]:
        radius = self._nearby_radius_km if radius_km is None else radius_km
        with session_scope(self._session_factory) as db:
            return self._nearby(db, lat, lng, radius)

    def list_merchants(self) -> List[Dict[str, Any]]:
        with session_scope(self._session_factory) as db:
            rows = (
                db.query(MerchantModel)
                .filter(MerchantModel.is_active.is_(True))
                .order_by(MerchantModel.district, MerchantModel.name)
                .all()
            )
            return [self._merchant_with_stock(m) for m in rows]

    def get_merchant_detail(self, merchant_id: str) -> Dict[str, Any]:
        with session_scope(self._session_factory) as db:
            return self._merchant_with_stock(get_active_merchant(db, merchant_id))

    def _nearby(
        self, db: Session, lat: float, lng: float, radius_km: float
    ) -> List[Dict[str, Any]]:
        """바운딩 박스는 SQL에서, 정확한 거리는 Core에서."""
        box = bounding_box(lat, lng, radius_km)
        candidates = (
            db.query(MerchantModel)
            .filter(
                MerchantModel.is_active.is_(True),
                MerchantModel.location_lat.between(box.lat_min, box.lat_max),
                MerchantModel.location_lng.between(box.lng_min, box.lng_max),
            )
            .all()
        )
        matches = find_nearby(
            lat,
            lng,
            radius_km,
            candidates,
            lambda m: (m.location_lat, m.location_lng),
        )
        result = []
        for merchant, distance in matches:
            entry = self._merchant_to_dict(merchant)
            entry["distance_km"] = round(distance, 3)
            result.append(entry)
        return result

    # ── 거래 내역 ───────────────────────────────────────────

    def get_trade_history(
        self, user_id: str, limit: int = 20, offset: int = 0
    ) -> Dict[str, Any]:
        """최신순 페이지. has_more = offset + limit < 전체 건수"""
        limit = max(1, min(limit, MAX_HISTORY_PAGE))
        offset = max(0, offset)
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            total = db.scalar(
                select(func.count())
                .select_from(TradeModel)
                .where(TradeModel.player_id == player.id)
            ) or 0
            rows = (
                db.query(TradeModel)
                .filter(TradeModel.player_id == player.id)
                .order_by(TradeModel.timestamp.desc(), TradeModel.id.desc())
                .offset(offset)
                .limit(limit)
                .all()
            )
            return {
                "trades": [self._trade_to_dict(t) for t in rows],
                "total": total,
                "limit": limit,
                "offset": offset,
                "has_more": offset + limit < total,
            }

    # ── 변환 ────────────────────────────────────────────────

    @staticmethod
    def _player_to_dict(player: PlayerModel, inventory_count: int) -> Dict[str, Any]:
        progress = player.progress
        return {
            "id": player.id,
            "user_id": player.user_id,
            "name": player.name,
            "money": player.money,
            "trust_points": player.trust_points,
            "current_license": player.current_license,
            "max_inventory_size": player.max_inventory_size,
            "inventory_count": inventory_count,
            "remaining_slots": remaining_slots(
                inventory_count, player.max_inventory_size
            ),
            "location": (
                {"lat": player.location_lat, "lng": player.location_lng}
                if player.location_lat is not None
                else None
            ),
            "title": player.title,
            "level": progress.level if progress else 1,
            "experience": progress.experience if progress else 0,
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
            "is_locked": item.is_locked,
            "acquired_at": item.acquired_at,
        }

    @staticmethod
    def _merchant_to_dict(merchant: MerchantModel) -> Dict[str, Any]:
        return {
            "id": merchant.id,
            "name": merchant.name,
            "title": merchant.title,
            "merchant_type": merchant.merchant_type,
            "personality": merchant.personality,
            "mood": merchant.mood,
            "district": merchant.district,
            "lat": merchant.location_lat,
            "lng": merchant.location_lng,
            "required_license": merchant.required_license,
        }

    @classmethod
    def _merchant_with_stock(cls, merchant: MerchantModel) -> Dict[str, Any]:
        """상인 정보 + 재고 목록. 표시 단가는 재고 라인 단가."""
        data = cls._merchant_to_dict(merchant)
        data["inventory"] = [
            {
                "item_id": line.item_id,
                "name": line.item.name,
                "category": line.item.category,
                "grade": line.item.rarity,
                "unit_price": line.unit_price,
                "stock": line.stock,
                "required_license": line.item.required_license,
            }
            for line in sorted(merchant.stock, key=lambda s: s.item.name)
        ]
        return data

    @staticmethod
    def _trade_to_dict(trade: TradeModel) -> Dict[str, Any]:
        return {
            "id": trade.id,
            "merchant_id": trade.merchant_id,
            "item_name": trade.item_name,
            "item_category": trade.item_category,
            "trade_type": trade.trade_type,
            "base_price": trade.base_price,
            "final_price": trade.final_price,
            "district": trade.district,
            "experience_gained": trade.experience_gained,
            "timestamp": trade.timestamp,
        }
