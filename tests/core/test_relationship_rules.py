"""상인 관계 Core 테스트 (단계 판정, 상호작용 수치, 할인율)"""

import random

import pytest

from src.core.relationship import (
    RelationshipStatus,
    calculate_benefits,
    calculate_discount_rate,
    calculate_interaction,
    clamp_friendship,
    clamp_reputation,
    evaluate_transition,
    next_level_info,
    status_for_points,
)


class FixedRandom(random.Random):
    def randint(self, a, b):
        return b


# ── 단계 ──


class TestStatus:
    @pytest.mark.parametrize(
        "points,expected",
        [
            (0, RelationshipStatus.STRANGER),
            (49, RelationshipStatus.STRANGER),
            (50, RelationshipStatus.ACQUAINTANCE),
            (199, RelationshipStatus.ACQUAINTANCE),
            (200, RelationshipStatus.FRIEND),
            (500, RelationshipStatus.CLOSE_FRIEND),
            (800, RelationshipStatus.BEST_FRIEND),
            (1000, RelationshipStatus.BEST_FRIEND),
        ],
    )
    def test_status_for_points(self, points, expected):
        assert status_for_points(points) is expected

    def test_transition_detected(self):
        assert evaluate_transition("stranger", 50) is RelationshipStatus.ACQUAINTANCE

    def test_no_transition(self):
        assert evaluate_transition("acquaintance", 120) is None

    def test_next_level_info(self):
        info = next_level_info(180)
        assert info.next_status is RelationshipStatus.FRIEND
        assert info.points_needed == 20

    def test_next_level_info_at_top(self):
        info = next_level_info(900)
        assert info.next_status is None
        assert info.points_needed == 0


# ── 상호작용 ──


class TestInteraction:
    def test_chat_random_range(self):
        outcome = calculate_interaction("chat", "neutral", FixedRandom())
        assert outcome.friendship_gain == 3

    def test_chat_default_rng_in_range(self):
        for _ in range(50):
            assert 1 <= calculate_interaction("chat", "neutral").friendship_gain <= 3

    @pytest.mark.parametrize(
        "personality,gain,mood",
        [("friendly", 5, "happy"), ("grumpy", 2, None), ("mysterious", 3, None)],
    )
    def test_compliment_by_personality(self, personality, gain, mood):
        outcome = calculate_interaction("compliment", personality)
        assert outcome.friendship_gain == gain
        assert outcome.mood_change == mood

    def test_gift(self):
        outcome = calculate_interaction("gift", "grumpy")
        assert outcome.friendship_gain == 8
        assert outcome.reputation_gain == 2
        assert outcome.mood_change == "happy"

    def test_ask_about_district(self):
        assert calculate_interaction("ask_about_district", "friendly").friendship_gain == 1


# ── 수치 한계 ──


class TestLimits:
    def test_clamp(self):
        assert clamp_friendship(-5) == 0
        assert clamp_friendship(1200) == 1000
        assert clamp_reputation(1001) == 1000

    def test_discount_rate(self):
        """1점당 0.01%, 최대 20%"""
        assert calculate_discount_rate(300) == pytest.approx(3.0)
        assert calculate_discount_rate(5000) == 20.0

    def test_benefits(self):
        benefits = calculate_benefits(250)
        assert benefits.status is RelationshipStatus.FRIEND
        assert benefits.discount_rate == pytest.approx(2.5)
