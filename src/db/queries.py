"""서비스 공용 조회 헬퍼"""

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from src.core.exceptions import NotFoundError
from src.db.models import InventoryItemModel, MerchantModel, PlayerModel


def get_player_by_user(db: Session, user_id: str) -> PlayerModel:
    """인증된 user_id → 플레이어. 없으면 NotFoundError."""
    player = db.query(PlayerModel).filter(PlayerModel.user_id == user_id).first()
    if player is None:
        raise NotFoundError("플레이어를 찾을 수 없습니다.", {"user_id": user_id})
    return player


def get_active_merchant(db: Session, merchant_id: str) -> MerchantModel:
    merchant = db.get(MerchantModel, merchant_id)
    if merchant is None or not merchant.is_active:
        raise NotFoundError("상인을 찾을 수 없습니다.", {"merchant_id": merchant_id})
    return merchant


def count_inventory(db: Session, player_id: str) -> int:
    return db.scalar(
        select(func.count())
        .select_from(InventoryItemModel)
        .where(InventoryItemModel.player_id == player_id)
    ) or 0
