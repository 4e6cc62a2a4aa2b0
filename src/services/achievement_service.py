"""Achievement Service - 업적 진행도 판정과 보상 지급

진행도는 매번 원천 테이블(거래, 인벤토리, 관계, 성장)에서 새로 집계한다.
check_in은 호출자 트랜잭션에 참여하고, 공개 연산은 자체 트랜잭션을 연다.
"""

import json
import uuid
from dataclasses import asdict
from pathlib import Path
from typing import Any, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from src.core.achievement import (
    AchievementSnapshot,
    CosmeticReward,
    CurrencyReward,
    ExperienceReward,
    PlayerAggregates,
    Reward,
    SkillReward,
    TitleReward,
    compute_progress,
    is_complete,
    parse_reward,
)
from src.core.achievement.models import FRIEND_THRESHOLD
from src.core.clock import Clock, game_now
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.exceptions import (
    ConflictError,
    InternalError,
    NotFoundError,
    PreconditionFailedError,
)
from src.core.logging import get_logger
from src.core.progression import BASE_STATS, ExperienceReport
from src.db.database import session_scope
from src.db.models import (
    AchievementModel,
    CharacterProgressModel,
    InventoryItemModel,
    PlayerAchievementModel,
    PlayerCosmeticModel,
    PlayerMerchantRelationModel,
    PlayerModel,
    TradeModel,
)
from src.db.queries import get_player_by_user
from src.services.progression_service import ProgressionService

logger = get_logger(__name__)


class AchievementService:
    """업적 엔진"""

    def __init__(
        self,
        session_factory: sessionmaker,
        event_bus: EventBus,
        progression: ProgressionService,
        clock: Optional[Clock] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = event_bus
        self._progression = progression
        self._clock = clock or game_now

    # ── 집계 ────────────────────────────────────────────────

    def collect_aggregates(self, db: Session, player_id: str) -> PlayerAggregates:
        trade_count = db.scalar(
            select(func.count())
            .select_from(TradeModel)
            .where(TradeModel.player_id == player_id)
        )
        sell_revenue = db.scalar(
            select(func.coalesce(func.sum(TradeModel.final_price), 0)).where(
                TradeModel.player_id == player_id,
                TradeModel.trade_type == "sell",
            )
        )
        districts = db.scalar(
            select(func.count(func.distinct(TradeModel.district))).where(
                TradeModel.player_id == player_id,
                TradeModel.district.is_not(None),
            )
        )
        discounted = db.scalar(
            select(func.count())
            .select_from(TradeModel)
            .where(
                TradeModel.player_id == player_id,
                TradeModel.negotiation_discount > 0,
            )
        )
        unique_items = db.scalar(
            select(func.count(func.distinct(InventoryItemModel.item_id))).where(
                InventoryItemModel.player_id == player_id
            )
        )
        friends = db.scalar(
            select(func.count())
            .select_from(PlayerMerchantRelationModel)
            .where(
                PlayerMerchantRelationModel.player_id == player_id,
                PlayerMerchantRelationModel.friendship_points >= FRIEND_THRESHOLD,
            )
        )
        progress = self._progression.get_or_create_progress(db, player_id)

        return PlayerAggregates(
            trade_count=trade_count or 0,
            sell_revenue=sell_revenue or 0,
            level=progress.level,
            stat_total=sum(getattr(progress, stat) for stat in BASE_STATS),
            unique_items=unique_items or 0,
            districts_visited=districts or 0,
            friend_merchants=friends or 0,
            discounted_trades=discounted or 0,
        )

    # ── 판정 (트랜잭션 참여) ─────────────────────────────────

    def check_in(self, db: Session, player_id: str) -> List[AchievementSnapshot]:
        """미완료 업적 진행도 갱신. 이번 호출에서 새로 완료된 것만 반환.

        이미 완료된 업적은 건너뛰므로 같은 상태에서 반복 호출해도
        결과가 달라지지 않는다.
        """
        completed_ids = set(
            db.scalars(
                select(PlayerAchievementModel.achievement_id).where(
                    PlayerAchievementModel.player_id == player_id,
                    PlayerAchievementModel.is_completed.is_(True),
                )
            )
        )
        candidates = [
            a
            for a in db.query(AchievementModel).all()
            if a.id not in completed_ids
        ]
        if not candidates:
            return []

        aggregates = self.collect_aggregates(db, player_id)
        existing = {
            row.achievement_id: row
            for row in db.query(PlayerAchievementModel).filter(
                PlayerAchievementModel.player_id == player_id
            )
        }

        newly_completed: List[AchievementSnapshot] = []
        for achievement in candidates:
            progress = compute_progress(achievement.condition_type, aggregates)
            done = is_complete(progress, achievement.condition_value)
            row = existing.get(achievement.id)

            if row is None:
                if progress == 0 and not done:
                    continue
                row = self._insert_progress_row(db, player_id, achievement.id)
                if row.is_completed:
                    continue

            if progress != row.progress:
                row.progress = progress
            if done and not row.is_completed:
                row.is_completed = True
                if row.completed_at is None:
                    row.completed_at = self._clock()
                newly_completed.append(
                    AchievementSnapshot(
                        achievement_id=achievement.id,
                        name=achievement.name,
                        description=achievement.description,
                        category=achievement.category,
                        progress=progress,
                        target=achievement.condition_value,
                        reward_type=achievement.reward_type,
                    )
                )

        db.flush()
        if newly_completed:
            logger.info(
                f"업적 달성: player={player_id}, "
                f"{[s.achievement_id for s in newly_completed]}"
            )
        return newly_completed

    def _insert_progress_row(
        self, db: Session, player_id: str, achievement_id: str
    ) -> PlayerAchievementModel:
        """진행도 행 생성. (player, achievement) 유니크 충돌 시 기존 행 사용."""
        try:
            with db.begin_nested():
                row = PlayerAchievementModel(
                    id=str(uuid.uuid4()),
                    player_id=player_id,
                    achievement_id=achievement_id,
                    progress=0,
                    is_completed=False,
                    claimed=False,
                )
                db.add(row)
            return row
        except IntegrityError:
            logger.info(f"업적 진행도 동시 생성 감지: {player_id}/{achievement_id}")
            return (
                db.query(PlayerAchievementModel)
                .filter(
                    PlayerAchievementModel.player_id == player_id,
                    PlayerAchievementModel.achievement_id == achievement_id,
                )
                .one()
            )

    def emit_completed(
        self, player_id: str, snapshots: List[AchievementSnapshot]
    ) -> None:
        """커밋 이후 호출할 것."""
        if not snapshots:
            return
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.ACHIEVEMENT_COMPLETED,
                data={
                    "player_id": player_id,
                    "achievement_ids": [s.achievement_id for s in snapshots],
                },
                source="achievement_service",
            )
        )

    # ── 공개 연산 ───────────────────────────────────────────

    def check_achievements(self, user_id: str) -> List[Dict[str, Any]]:
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            player_id = player.id
            snapshots = self.check_in(db, player_id)
        self.emit_completed(player_id, snapshots)
        return [self.snapshot_to_dict(s) for s in snapshots]

    def list_achievements(self) -> List[Dict[str, Any]]:
        with session_scope(self._session_factory) as db:
            rows = (
                db.query(AchievementModel)
                .filter(AchievementModel.is_hidden.is_(False))
                .order_by(AchievementModel.category, AchievementModel.condition_value)
                .all()
            )
            return [self._achievement_to_dict(a) for a in rows]

    def get_progress(self, user_id: str) -> List[Dict[str, Any]]:
        """전체 업적 + 플레이어 진행도. 숨김 업적은 진행이 있을 때만 노출."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            progress_rows = {
                row.achievement_id: row
                for row in db.query(PlayerAchievementModel).filter(
                    PlayerAchievementModel.player_id == player.id
                )
            }
            result: List[Dict[str, Any]] = []
            for a in db.query(AchievementModel).order_by(AchievementModel.id):
                row = progress_rows.get(a.id)
                progress = row.progress if row else 0
                if a.is_hidden and progress == 0:
                    continue
                entry = self._achievement_to_dict(a)
                entry.update(
                    {
                        "progress": progress,
                        "is_completed": bool(row and row.is_completed),
                        "completed_at": row.completed_at if row else None,
                        "claimed": bool(row and row.claimed),
                    }
                )
                result.append(entry)
            return result

    def claim_reward(self, user_id: str, achievement_id: str) -> Dict[str, Any]:
        """완료된 업적의 보상을 한 번만 지급."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            player_id = player.id
            achievement = db.get(AchievementModel, achievement_id)
            if achievement is None:
                raise NotFoundError(
                    "업적을 찾을 수 없습니다.", {"achievement_id": achievement_id}
                )

            row = (
                db.query(PlayerAchievementModel)
                .filter(
                    PlayerAchievementModel.player_id == player_id,
                    PlayerAchievementModel.achievement_id == achievement_id,
                )
                .first()
            )
            if row is None or not row.is_completed:
                raise PreconditionFailedError("아직 완료하지 않은 업적입니다.")

            claimed = db.execute(
                update(PlayerAchievementModel)
                .where(
                    PlayerAchievementModel.id == row.id,
                    PlayerAchievementModel.claimed.is_(False),
                )
                .values(claimed=True, claimed_at=self._clock())
            )
            if claimed.rowcount != 1:
                raise ConflictError("이미 보상을 수령했습니다.")

            try:
                reward = parse_reward(achievement.reward_type, achievement.reward_value)
            except (ValueError, KeyError) as e:
                logger.error(f"업적 보상 형식 오류: {achievement_id}: {e}")
                raise InternalError() from e

            report = self._apply_reward(db, player, reward)

        if report is not None:
            self._progression.emit_level_up(player_id, report)
        logger.info(f"업적 보상 지급: player={player_id}, {achievement_id}")
        return {
            "achievement_id": achievement_id,
            "reward": self._reward_to_dict(reward),
            "experience": report.to_dict() if report else None,
        }

    def _apply_reward(
        self, db: Session, player: PlayerModel, reward: Reward
    ) -> Optional[ExperienceReport]:
        """Reward 변형별 지급. 경험치 보상이면 레벨 결과 반환."""
        if isinstance(reward, CurrencyReward):
            db.execute(
                update(PlayerModel)
                .where(PlayerModel.id == player.id)
                .values(money=PlayerModel.money + reward.amount)
            )
            return None
        if isinstance(reward, ExperienceReward):
            return self._progression.grant_experience(db, player.id, reward.amount)
        if isinstance(reward, CosmeticReward):
            owned = (
                db.query(PlayerCosmeticModel)
                .filter(
                    PlayerCosmeticModel.player_id == player.id,
                    PlayerCosmeticModel.cosmetic_id == reward.cosmetic_id,
                )
                .first()
            )
            if owned is None:
                db.add(
                    PlayerCosmeticModel(
                        id=str(uuid.uuid4()),
                        player_id=player.id,
                        cosmetic_id=reward.cosmetic_id,
                        cosmetic_type=reward.cosmetic_type,
                        cosmetic_name=reward.name or f"코스메틱 #{reward.cosmetic_id}",
                        rarity=reward.rarity,
                        is_equipped=False,
                        source="achievement",
                        acquired_at=self._clock(),
                    )
                )
            return None
        if isinstance(reward, TitleReward):
            player.title = reward.title
            return None
        if isinstance(reward, SkillReward):
            skill_col = getattr(CharacterProgressModel, reward.skill)
            self._progression.get_or_create_progress(db, player.id)
            db.execute(
                update(CharacterProgressModel)
                .where(CharacterProgressModel.player_id == player.id)
                .values(**{reward.skill: skill_col + reward.amount})
            )
            return None
        raise TypeError(f"Unhandled reward: {reward!r}")

    # ── 카탈로그 동기화 ──────────────────────────────────────

    def sync_catalog(self, path: Path) -> int:
        """JSON 업적 정의 → DB. 없는 업적만 추가. 반환: 추가한 수"""
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)

        added = 0
        with session_scope(self._session_factory) as db:
            for entry in entries:
                if db.get(AchievementModel, entry["id"]) is not None:
                    continue
                row = AchievementModel(id=entry["id"])
                row.name = entry["name"]
                row.description = entry.get("description", "")
                row.category = entry["category"]
                row.condition_type = entry["condition_type"]
                row.condition_value = entry["condition_value"]
                row.reward_type = entry.get("reward_type")
                reward_value = entry.get("reward_value")
                row.reward_value = (
                    json.dumps(reward_value, ensure_ascii=False)
                    if reward_value is not None
                    else None
                )
                row.icon_id = entry.get("icon_id", 1)
                row.is_hidden = entry.get("is_hidden", False)
                db.add(row)
                added += 1

        logger.info(f"업적 카탈로그 동기화: {added}/{len(entries)}건 추가")
        return added

    # ── 변환 ────────────────────────────────────────────────

    @staticmethod
    def snapshot_to_dict(snapshot: AchievementSnapshot) -> Dict[str, Any]:
        return {
            "achievement_id": snapshot.achievement_id,
            "name": snapshot.name,
            "description": snapshot.description,
            "category": snapshot.category,
            "progress": snapshot.progress,
            "target": snapshot.target,
            "reward_type": snapshot.reward_type,
        }

    @staticmethod
    def _achievement_to_dict(a: AchievementModel) -> Dict[str, Any]:
        return {
            "id": a.id,
            "name": a.name,
            "description": a.description,
            "category": a.category,
            "condition_type": a.condition_type,
            "condition_value": a.condition_value,
            "reward_type": a.reward_type,
            "icon_id": a.icon_id,
            "is_hidden": a.is_hidden,
        }

    @staticmethod
    def _reward_to_dict(reward: Reward) -> Dict[str, Any]:
        return asdict(reward)
