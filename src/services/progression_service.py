"""Progression Service - 경험치/레벨/스탯을 DB와 연결

grant_experience, get_or_create_progress는 호출자의 트랜잭션(db)에 참여한다.
거래 코디네이터가 같은 세션을 넘기므로 거래와 경험치 반영은 함께 커밋/롤백된다.
"""

import json
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session, sessionmaker

from src.core.clock import Clock, game_now
from src.core.event_bus import EventBus, GameEvent
from src.core.event_types import EventTypes
from src.core.exceptions import ConflictError, PreconditionFailedError
from src.core.logging import get_logger
from src.core.progression import (
    BASE_STATS,
    DEFAULT_SKILL_VALUE,
    DEFAULT_STAT_VALUE,
    SKILLS,
    ExperienceReport,
    LevelThreshold,
    LevelUpResult,
    resolve_level_ups,
    validate_stat_allocation,
)
from src.db.database import session_scope
from src.db.models import CharacterProgressModel, LevelThresholdModel
from src.db.queries import get_player_by_user

logger = get_logger(__name__)


class ProgressionService:
    """캐릭터 성장 엔진"""

    def __init__(
        self,
        session_factory: sessionmaker,
        event_bus: EventBus,
        clock: Optional[Clock] = None,
    ) -> None:
        self._session_factory = session_factory
        self._bus = event_bus
        self._clock = clock or game_now

    # ── 트랜잭션 참여 연산 ───────────────────────────────────

    def load_thresholds(self, db: Session) -> Dict[int, LevelThreshold]:
        rows = db.query(LevelThresholdModel).all()
        return {
            r.level: LevelThreshold(
                level=r.level,
                required_exp=r.required_exp,
                stat_points_reward=r.stat_points_reward,
                skill_points_reward=r.skill_points_reward,
            )
            for r in rows
        }

    def get_or_create_progress(
        self, db: Session, player_id: str, for_update: bool = False
    ) -> CharacterProgressModel:
        """없으면 기본값으로 생성. 동시 생성 경합은 PK 충돌로 감지 후 재조회.

        for_update=True면 행 잠금(FOR UPDATE) 후 DB의 최신 값으로 다시 읽는다.
        읽은 값으로 절대값을 계산해 쓰는 경로(레벨, 스탯)는 반드시 잠근다.
        """
        row = self._load_progress(db, player_id, for_update)
        if row is not None:
            return row

        try:
            with db.begin_nested():
                row = CharacterProgressModel(
                    player_id=player_id,
                    level=1,
                    experience=0,
                    stat_points=0,
                    skill_points=0,
                    updated_at=self._clock(),
                    **{stat: DEFAULT_STAT_VALUE for stat in BASE_STATS},
                    **{skill: DEFAULT_SKILL_VALUE for skill in SKILLS},
                )
                db.add(row)
        except IntegrityError:
            logger.info(f"성장 정보 동시 생성 감지, 재조회: {player_id}")
            row = self._load_progress(db, player_id, for_update)
        return row

    @staticmethod
    def _load_progress(
        db: Session, player_id: str, for_update: bool
    ) -> Optional[CharacterProgressModel]:
        if not for_update:
            return db.get(CharacterProgressModel, player_id)
        return db.get(
            CharacterProgressModel,
            player_id,
            with_for_update=True,
            populate_existing=True,
        )

    def grant_experience(
        self, db: Session, player_id: str, amount: int
    ) -> ExperienceReport:
        """경험치 지급 + 레벨업 판정을 한 번의 UPDATE로 반영."""
        progress = self.get_or_create_progress(db, player_id, for_update=True)
        thresholds = self.load_thresholds(db)

        total = progress.experience + amount
        result = resolve_level_ups(progress.level, total, thresholds)

        db.execute(
            update(CharacterProgressModel)
            .where(CharacterProgressModel.player_id == player_id)
            .values(
                experience=CharacterProgressModel.experience + amount,
                level=result.new_level,
                stat_points=CharacterProgressModel.stat_points
                + result.stat_points_gained,
                skill_points=CharacterProgressModel.skill_points
                + result.skill_points_gained,
                updated_at=self._clock(),
            )
        )
        db.refresh(progress)

        if result.leveled_up:
            logger.info(
                f"레벨업: player={player_id} "
                f"{result.old_level} → {result.new_level}"
            )

        return ExperienceReport(
            amount=amount,
            total_experience=progress.experience,
            old_level=result.old_level,
            new_level=result.new_level,
            stat_points_gained=result.stat_points_gained,
            skill_points_gained=result.skill_points_gained,
        )

    def emit_level_up(self, player_id: str, report: ExperienceReport) -> None:
        """커밋 이후 호출할 것."""
        if not report.leveled_up:
            return
        self._bus.emit(
            GameEvent(
                event_type=EventTypes.LEVEL_UP,
                data={
                    "player_id": player_id,
                    "old_level": report.old_level,
                    "new_level": report.new_level,
                },
                source="progression_service",
            )
        )

    # ── 공개 연산 ───────────────────────────────────────────

    def get_stats(self, user_id: str) -> Dict[str, Any]:
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            progress = self.get_or_create_progress(db, player.id)
            thresholds = self.load_thresholds(db)
            return self._progress_to_dict(progress, thresholds)

    def allocate_stats(
        self, user_id: str, requested: Mapping[str, int]
    ) -> Dict[str, Any]:
        """목표 스탯값으로 분배. 감소 불가, 보유 포인트 한도 내."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            progress = self.get_or_create_progress(db, player.id, for_update=True)
            current = {stat: getattr(progress, stat) for stat in BASE_STATS}

            new_values, used = validate_stat_allocation(
                current, requested, progress.stat_points
            )
            if used == 0:
                return {
                    "stats": new_values,
                    "points_used": 0,
                    "remaining_points": progress.stat_points,
                }

            result = db.execute(
                update(CharacterProgressModel)
                .where(
                    CharacterProgressModel.player_id == player.id,
                    CharacterProgressModel.stat_points >= used,
                )
                .values(
                    stat_points=CharacterProgressModel.stat_points - used,
                    updated_at=self._clock(),
                    **new_values,
                )
            )
            if result.rowcount != 1:
                raise PreconditionFailedError("스탯 포인트가 부족합니다.")
            db.refresh(progress)

            logger.info(f"스탯 분배: player={player.id}, used={used}")
            return {
                "stats": {stat: getattr(progress, stat) for stat in BASE_STATS},
                "points_used": used,
                "remaining_points": progress.stat_points,
            }

    def level_up(self, user_id: str) -> Dict[str, Any]:
        """수동 레벨업. 한 번에 한 단계만 올린다."""
        with session_scope(self._session_factory) as db:
            player = get_player_by_user(db, user_id)
            progress = self.get_or_create_progress(db, player.id, for_update=True)
            thresholds = self.load_thresholds(db)

            nxt = thresholds.get(progress.level + 1)
            if nxt is None:
                raise PreconditionFailedError(
                    "이미 최대 레벨입니다.", {"level": progress.level}
                )
            if progress.experience < nxt.required_exp:
                raise PreconditionFailedError(
                    "경험치가 부족합니다.",
                    {
                        "required_exp": nxt.required_exp,
                        "current_exp": progress.experience,
                        "missing_exp": nxt.required_exp - progress.experience,
                    },
                )
            result = LevelUpResult(
                old_level=progress.level,
                new_level=nxt.level,
                stat_points_gained=nxt.stat_points_reward,
                skill_points_gained=nxt.skill_points_reward,
            )

            updated = db.execute(
                update(CharacterProgressModel)
                .where(
                    CharacterProgressModel.player_id == player.id,
                    CharacterProgressModel.level == result.old_level,
                )
                .values(
                    level=result.new_level,
                    stat_points=CharacterProgressModel.stat_points
                    + result.stat_points_gained,
                    skill_points=CharacterProgressModel.skill_points
                    + result.skill_points_gained,
                    updated_at=self._clock(),
                )
            )
            if updated.rowcount != 1:
                raise ConflictError("레벨이 이미 변경되었습니다.", {"level": result.old_level})
            db.refresh(progress)
            player_id = player.id
            report = ExperienceReport(
                amount=0,
                total_experience=progress.experience,
                old_level=result.old_level,
                new_level=result.new_level,
                stat_points_gained=result.stat_points_gained,
                skill_points_gained=result.skill_points_gained,
            )

        self.emit_level_up(player_id, report)
        return report.to_dict()

    # ── 카탈로그 동기화 ──────────────────────────────────────

    def sync_level_thresholds(self, path: Path) -> int:
        """JSON 레벨표 → DB. 없는 레벨만 추가. 반환: 추가한 수"""
        with open(path, encoding="utf-8") as f:
            entries = json.load(f)

        added = 0
        with session_scope(self._session_factory) as db:
            for entry in entries:
                if db.get(LevelThresholdModel, entry["level"]) is not None:
                    continue
                db.add(
                    LevelThresholdModel(
                        level=entry["level"],
                        required_exp=entry["required_exp"],
                        stat_points_reward=entry.get("stat_points_reward", 1),
                        skill_points_reward=entry.get("skill_points_reward", 1),
                    )
                )
                added += 1

        logger.info(f"레벨표 동기화: {added}/{len(entries)}단계 추가")
        return added

    # ── 변환 ────────────────────────────────────────────────

    @staticmethod
    def _progress_to_dict(
        progress: CharacterProgressModel,
        thresholds: Mapping[int, LevelThreshold],
    ) -> Dict[str, Any]:
        nxt = thresholds.get(progress.level + 1)
        return {
            "level": progress.level,
            "experience": progress.experience,
            "next_level_exp": nxt.required_exp if nxt else None,
            "stat_points": progress.stat_points,
            "skill_points": progress.skill_points,
            "stats": {stat: getattr(progress, stat) for stat in BASE_STATS},
            "skills": {skill: getattr(progress, skill) for skill in SKILLS},
        }
