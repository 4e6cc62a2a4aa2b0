"""Relationship Service - 플레이어-상인 관계를 DB와 연결

record_trade는 거래 트랜잭션에 참여하며, 단계 변화 이벤트는
발행하지 않고 돌려준다. 발행은 커밋 이후 호출자가 한다.
"""

import random
import uuid
from typing import Any, Dict, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from src.core.clock import Clock, game_now
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.logging import get_logger
from src.core.relationship import (
    RelationshipStatus,
    calculate_benefits,
    calculate_interaction,
    clamp_friendship,
    clamp_reputation,
    evaluate_transition,
    next_level_info,
)
from src.core.relationship.calculations import TRADE_FRIENDSHIP_GAIN
from src.db.database import session_scope
from src.db.models import MerchantModel, PlayerMerchantRelationModel
from src.db.queries import get_active_merchant, get_player_by_user

logger = get_logger(__name__)


class RelationshipService:
    """상인 관계 생성, 상호작용, 거래 반영"""

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

    # ── 트랜잭션 참여 연산 ───────────────────────────────────

    def get_or_create_relation(
        self, db: Session, player_id: str, merchant_id: str
    ) -> PlayerMerchantRelationModel:
        """쓰기 경로 전용. 기존 행은 행 잠금(FOR UPDATE)으로 최신 값을 다시 읽는다."""
        row = self._get_relation_row(db, player_id, merchant_id, for_update=True)
        if row is not None:
            return row

        try:
            with db.begin_nested():
                row = PlayerMerchantRelationModel(
                    id=str(uuid.uuid4()),
                    player_id=player_id,
                    merchant_id=merchant_id,
                    friendship_points=0,
                    reputation=0,
                    total_trades=0,
                    total_spent=0,
                    relationship_status=RelationshipStatus.STRANGER.value,
                )
                db.add(row)
        except IntegrityError:
            logger.info(f"관계 동시 생성 감지, 재조회: {player_id}→{merchant_id}")
            row = self._get_relation_row(db, player_id, merchant_id, for_update=True)
        return row

    def record_trade(
        self,
        db: Session,
        player_id: str,
        merchant_id: str,
        spent: int = 0,
    ) -> Optional[GameEvent]:
        """거래 1회 반영: 거래수 +1, 구매액 누적, 친밀도 +1.

        Returns: 관계 단계가 바뀌었으면 발행할 이벤트, 아니면 None
        """
        row = self.get_or_create_relation(db, player_id, merchant_id)
        row.total_trades = row.total_trades + 1
        row.total_spent = row.total_spent + spent
        event = self._apply_gain(row, TRADE_FRIENDSHIP_GAIN, 0, reason="trade")
        db.flush()
        return event

    def _apply_gain(
        self,
        row: PlayerMerchantRelationModel,
        friendship_gain: int,
        reputation_gain: int,
        reason: str,
    ) -> Optional[GameEvent]:
        old_status = row.relationship_status
        row.friendship_points = clamp_friendship(row.friendship_points + friendship_gain)
        row.reputation = clamp_reputation(row.reputation + reputation_gain)
        row.last_interaction = self._clock()

        new_status = evaluate_transition(old_status, row.friendship_points)
        if new_status is None:
            return None

        row.relationship_status = new_status.value
        logger.info(
            f"관계 단계 변화: {row.player_id}→{row.merchant_id} "
            f"{old_status} → {new_status.value} ({reason})"
        )
        return GameEvent(
            event_type=EventTypes.RELATIONSHIP_CHANGED,
            data={
                "player_id": row.player_id,
                "merchant_id": row.merchant_id,
                "old_status": old_status,
                "new_status": new_status.value,
            },
            source="relationship_service",
        )

    # ── 공개 연산 ───────────────────────────────────────────

    def interact(
        self, user_id: str, merchant_id: str, interaction_type: str
    ) -> Dict[str, Any]:
        """상인과 상호작용 (잡담, 칭찬, 선물, 지역 문의).

        목록에 없는 유형도 거절하지 않고 친밀도 +1로 처리한다.
        """
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            merchant = get_active_merchant(db, merchant_id)
            row = self.get_or_create_relation(db, player.id, merchant.id)

            outcome = calculate_interaction(
                interaction_type, merchant.personality, self._rng
            )
            event = self._apply_gain(
                row,
                outcome.friendship_gain,
                outcome.reputation_gain,
                reason=interaction_type,
            )
            if outcome.mood_change is not None:
                merchant.mood = outcome.mood_change

            db.flush()
            result = self._relation_to_dict(row, merchant)
            result["friendship_gained"] = outcome.friendship_gain
            result["reputation_gained"] = outcome.reputation_gain
            result["merchant_mood"] = merchant.mood

        if event is not None:
            self._bus.emit(event)
        logger.info(
            f"상호작용: {user_id}→{merchant_id} {interaction_type} "
            f"(+{outcome.friendship_gain})"
        )
        return result

    def get_relationship(self, user_id: str, merchant_id: str) -> Dict[str, Any]:
        """관계 조회. 아직 관계가 없으면 초면 상태를 반환 (저장하지 않음)."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            merchant = get_active_merchant(db, merchant_id)
            row = self._get_relation_row(db, player.id, merchant.id)
            if row is None:
                row = PlayerMerchantRelationModel(
                    player_id=player.id,
                    merchant_id=merchant.id,
                    friendship_points=0,
                    reputation=0,
                    total_trades=0,
                    total_spent=0,
                    relationship_status=RelationshipStatus.STRANGER.value,
                )
            return self._relation_to_dict(row, merchant)

    def list_relationships(self, user_id: str) -> Dict[str, Any]:
        """플레이어의 전체 상인 관계 (친밀도 내림차순) + 단계별 집계."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            rows = (
                db.query(PlayerMerchantRelationModel)
                .filter(PlayerMerchantRelationModel.player_id == player.id)
                .order_by(PlayerMerchantRelationModel.friendship_points.desc())
                .all()
            )
            summary = {status.value: 0 for status in RelationshipStatus}
            for r in rows:
                summary[r.relationship_status] = summary.get(r.relationship_status, 0) + 1
            return {
                "relations": [self._relation_to_dict(r, r.merchant) for r in rows],
                "summary": summary,
                "total": len(rows),
            }

    # ── 내부 ────────────────────────────────────────────────

    @staticmethod
    def _get_relation_row(
        db: Session, player_id: str, merchant_id: str, for_update: bool = False
    ) -> Optional[PlayerMerchantRelationModel]:
        query = db.query(PlayerMerchantRelationModel).filter(
            PlayerMerchantRelationModel.player_id == player_id,
            PlayerMerchantRelationModel.merchant_id == merchant_id,
        )
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def _relation_to_dict(
        row: PlayerMerchantRelationModel, merchant: MerchantModel
    ) -> Dict[str, Any]:
        benefits = calculate_benefits(row.friendship_points)
        nxt = next_level_info(row.friendship_points)
        return {
            "merchant_id": merchant.id,
            "merchant_name": merchant.name,
            "friendship_points": row.friendship_points,
            "reputation": row.reputation,
            "total_trades": row.total_trades,
            "total_spent": row.total_spent,
            "relationship_status": row.relationship_status,
            "last_interaction": row.last_interaction,
            "discount_rate": benefits.discount_rate,
            "next_status": nxt.next_status.value if nxt.next_status else None,
            "points_to_next": nxt.points_needed,
        }
