"""Cosmetic Service - 보유 코스메틱 조회와 장착

코스메틱은 업적 보상으로만 들어온다 (AchievementService 참고).
슬롯(cosmetic_type)마다 장착은 하나만 허용한다.
"""

from typing import Any, Dict, List

from sqlalchemy import update
from sqlalchemy.orm import sessionmaker

from src.core.achievement import COSMETIC_TYPES
from src.core.exceptions import NotFoundError
from src.core.item.models import ItemGrade
from src.core.logging import get_logger
from src.db.database import session_scope
from src.db.models import PlayerCosmeticModel
from src.db.queries import get_player_by_user

logger = get_logger(__name__)

_RARITY_RANK = {grade.value: rank for rank, grade in enumerate(ItemGrade)}


class CosmeticService:
    """캐릭터 꾸미기"""

    def __init__(self, session_factory: sessionmaker) -> None:
        self._session_factory = session_factory

    def list_cosmetics(self, user_id: str) -> Dict[str, Any]:
        """보유 코스메틱 (희귀도 → 최근 획득 순) + 슬롯별 묶음."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            rows: List[PlayerCosmeticModel] = (
                db.query(PlayerCosmeticModel)
                .filter(PlayerCosmeticModel.player_id == player.id)
                .order_by(PlayerCosmeticModel.acquired_at.desc())
                .all()
            )
            rows.sort(key=lambda r: _RARITY_RANK.get(r.rarity, 0), reverse=True)
            cosmetics = [self._cosmetic_to_dict(r) for r in rows]

        grouped: Dict[str, List[Dict[str, Any]]] = {t: [] for t in COSMETIC_TYPES}
        for entry in cosmetics:
            grouped.setdefault(entry["type"], []).append(entry)
        return {
            "total_count": len(cosmetics),
            "cosmetics": cosmetics,
            "by_type": grouped,
        }

    def set_equipped(
        self, user_id: str, cosmetic_id: str, is_equipped: bool = True
    ) -> Dict[str, Any]:
        """장착/해제. 장착하면 같은 슬롯의 다른 코스메틱은 해제된다."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            cosmetic = (
                db.query(PlayerCosmeticModel)
                .filter(
                    PlayerCosmeticModel.id == cosmetic_id,
                    PlayerCosmeticModel.player_id == player.id,
                )
                .first()
            )
            if cosmetic is None:
                raise NotFoundError(
                    "해당 코스메틱을 찾을 수 없습니다.", {"cosmetic_id": cosmetic_id}
                )

            if is_equipped:
                db.execute(
                    update(PlayerCosmeticModel)
                    .where(
                        PlayerCosmeticModel.player_id == player.id,
                        PlayerCosmeticModel.cosmetic_type == cosmetic.cosmetic_type,
                        PlayerCosmeticModel.id != cosmetic.id,
                    )
                    .values(is_equipped=False)
                    .execution_options(synchronize_session=False)
                )
            cosmetic.is_equipped = is_equipped
            db.flush()
            result = self._cosmetic_to_dict(cosmetic)

        logger.info(
            f"코스메틱 {'장착' if is_equipped else '해제'}: "
            f"user={user_id}, cosmetic={cosmetic_id}"
        )
        return result

    @staticmethod
    def _cosmetic_to_dict(row: PlayerCosmeticModel) -> Dict[str, Any]:
        return {
            "id": row.id,
            "cosmetic_id": row.cosmetic_id,
            "type": row.cosmetic_type,
            "name": row.cosmetic_name,
            "rarity": row.rarity,
            "is_equipped": row.is_equipped,
            "acquired_at": row.acquired_at,
        }
