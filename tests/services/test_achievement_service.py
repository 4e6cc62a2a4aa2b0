"""AchievementService 통합 테스트 (판정 멱등성, 보상 1회 지급)"""

import pytest
from sqlalchemy import func, select, update

from conftest import GANGNAM_MERCHANT, IT_PART
from src.core.event_types import EventTypes
from src.core.exceptions import ConflictError, InternalError, NotFoundError, PreconditionFailedError
from src.db.models import (
    AchievementModel,
    CharacterProgressModel,
    PlayerAchievementModel,
    PlayerCosmeticModel,
    PlayerModel,
)


def _player_field(in_db, column):
    return in_db(lambda db: db.scalar(select(column).where(PlayerModel.user_id == "user-1")))


def _complete(in_db, achievement_id: str) -> None:
    """진행도 행을 완료 상태로 직접 구성"""
    in_db(
        lambda db: db.add(
            PlayerAchievementModel(
                id=f"pa-{achievement_id}",
                player_id=db.scalar(select(PlayerModel.id)),
                achievement_id=achievement_id,
                progress=1,
                is_completed=True,
                claimed=False,
            )
        )
    )


@pytest.fixture()
def setup(services, make_player):
    make_player()
    return services


# ── 판정 ──


class TestCheckAchievements:
    def test_nothing_before_any_trade(self, setup):
        assert setup.achievement.check_achievements("user-1") == []

    def test_first_trade_completed_once(self, setup, captured):
        """같은 상태에서 반복 판정해도 새 완료는 한 번뿐"""
        completed = captured(EventTypes.ACHIEVEMENT_COMPLETED)
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        assert setup.achievement.check_achievements("user-1") == []
        assert setup.achievement.check_achievements("user-1") == []
        # 거래 안에서 이미 완료 처리됨
        assert len(completed) == 1

    def test_completed_at_set(self, setup, in_db):
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        completed_at = in_db(
            lambda db: db.scalar(
                select(PlayerAchievementModel.completed_at).where(
                    PlayerAchievementModel.achievement_id == "first_trade"
                )
            )
        )
        assert completed_at is not None

    def test_stat_total_from_current_stats(self, setup, in_db):
        """스탯 합계 60 → 숨김 업적 완료"""
        in_db(
            lambda db: db.execute(
                update(CharacterProgressModel).values(strength=25, luck=15)
            )
        )
        result = setup.achievement.check_achievements("user-1")
        assert [a["achievement_id"] for a in result] == ["stat_master"]

    def test_progress_rows_not_duplicated(self, setup, in_db):
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        setup.achievement.check_achievements("user-1")
        duplicates = in_db(
            lambda db: db.execute(
                select(PlayerAchievementModel.achievement_id, func.count())
                .group_by(PlayerAchievementModel.player_id, PlayerAchievementModel.achievement_id)
                .having(func.count() > 1)
            ).all()
        )
        assert duplicates == []


# ── 목록 / 진행도 ──


class TestListing:
    def test_hidden_excluded_from_catalog(self, setup):
        ids = {a["id"] for a in setup.achievement.list_achievements()}
        assert "first_trade" in ids
        assert "stat_master" not in ids

    def test_progress_after_trade(self, setup):
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        progress = {p["id"]: p for p in setup.achievement.get_progress("user-1")}
        assert progress["first_trade"]["is_completed"] is True
        assert progress["first_trade"]["claimed"] is False
        assert progress["trader_50"]["progress"] == 1

    def test_hidden_shown_once_progress_exists(self, setup):
        before = {p["id"] for p in setup.achievement.get_progress("user-1")}
        assert "stat_master" not in before

        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        after = {p["id"] for p in setup.achievement.get_progress("user-1")}
        assert "stat_master" in after


# ── 보상 수령 ──


class TestClaimReward:
    def test_experience_reward(self, setup):
        """first_trade: 경험치 50"""
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)

        result = setup.achievement.claim_reward("user-1", "first_trade")

        assert result["reward"] == {"amount": 50, "kind": "experience"}
        assert result["experience"]["total_experience"] == 12 + 50
        assert setup.progression.get_stats("user-1")["experience"] == 62

    def test_second_claim_conflict(self, setup):
        setup.trade.buy("user-1", GANGNAM_MERCHANT, IT_PART)
        setup.achievement.claim_reward("user-1", "first_trade")

        with pytest.raises(ConflictError):
            setup.achievement.claim_reward("user-1", "first_trade")
        assert setup.progression.get_stats("user-1")["experience"] == 62

    def test_not_completed(self, setup):
        with pytest.raises(PreconditionFailedError) as exc:
            setup.achievement.claim_reward("user-1", "trader_50")
        assert exc.value.message == "아직 완료하지 않은 업적입니다."

    def test_unknown_achievement(self, setup):
        with pytest.raises(NotFoundError):
            setup.achievement.claim_reward("user-1", "no_such_achievement")

    def test_currency_reward(self, setup, in_db):
        _complete(in_db, "level_5")
        setup.achievement.claim_reward("user-1", "level_5")
        assert _player_field(in_db, PlayerModel.money) == 50000 + 3000

    def test_title_reward(self, setup, in_db):
        _complete(in_db, "explorer_1")
        setup.achievement.claim_reward("user-1", "explorer_1")
        assert _player_field(in_db, PlayerModel.title) == "탐험가"

    def test_cosmetic_reward(self, setup, in_db):
        _complete(in_db, "collector_1")
        setup.achievement.claim_reward("user-1", "collector_1")
        cosmetic = in_db(lambda db: db.scalar(select(PlayerCosmeticModel.cosmetic_id)))
        assert cosmetic == 101

    def test_skill_reward(self, setup, in_db):
        _complete(in_db, "negotiator")
        setup.achievement.claim_reward("user-1", "negotiator")
        assert setup.progression.get_stats("user-1")["skills"]["negotiation_skill"] == 2

    def test_malformed_reward_rolls_back_claim(self, setup, in_db):
        """보상 형식 오류 → internal, 수령 표시도 되돌림"""
        in_db(
            lambda db: db.execute(
                update(AchievementModel)
                .where(AchievementModel.id == "level_5")
                .values(reward_type="mystery", reward_value='{"box": 1}')
            )
        )
        _complete(in_db, "level_5")

        with pytest.raises(InternalError):
            setup.achievement.claim_reward("user-1", "level_5")

        claimed = in_db(
            lambda db: db.scalar(
                select(PlayerAchievementModel.claimed).where(
                    PlayerAchievementModel.achievement_id == "level_5"
                )
            )
        )
        assert claimed is False
