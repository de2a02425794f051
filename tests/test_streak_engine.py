"""
Tests for the pure streak / coin / risk functions.
"""
from datetime import date
from decimal import Decimal

import pytest

from app.core.config import Settings
from app.core.errors import InvariantViolationError
from app.models.recognition import RecognitionType
from app.models.user import RiskLevel
from app.services.aggregate_store import WellnessAggregate
from app.services.checkin import mean_mood, trend_direction
from app.services.coins import RECOGNITION_COINS, checkin_coins
from app.services.risk import HeuristicRiskClassifier
from app.services.streak import STREAK_BONUSES, advance

TODAY = date(2024, 3, 7)


def _agg(current=0, longest=0, last=None) -> WellnessAggregate:
    return WellnessAggregate(
        user_id="u1",
        version=1,
        coin_balance=0,
        current_streak=current,
        longest_streak=longest,
        last_checkin_day=last,
        average_mood=None,
        risk_level="low",
        risk_score=Decimal("0"),
        journal_total_entries=0,
        journal_last_entry_day=None,
        surveys_completed=0,
    )


class TestStreakAdvance:
    def test_first_check_in(self):
        step = advance(_agg(), TODAY)
        assert (step.new_streak, step.new_longest, step.bonus) == (1, 1, 0)

    def test_consecutive_day_extends(self):
        step = advance(_agg(3, 3, date(2024, 3, 6)), TODAY)
        assert step.new_streak == 4
        assert step.new_longest == 4

    def test_gap_resets_and_keeps_longest(self):
        step = advance(_agg(5, 5, date(2024, 3, 1)), TODAY)
        assert step.new_streak == 1
        assert step.new_longest == 5

    def test_future_last_day_resets(self):
        step = advance(_agg(2, 2, date(2024, 3, 9)), TODAY)
        assert step.new_streak == 1

    def test_same_day_is_an_invariant_violation(self):
        with pytest.raises(InvariantViolationError):
            advance(_agg(1, 1, TODAY), TODAY)

    @pytest.mark.parametrize("streak,bonus", sorted(STREAK_BONUSES.items()))
    def test_milestone_bonus(self, streak, bonus):
        step = advance(_agg(streak - 1, streak - 1, date(2024, 3, 6)), TODAY)
        assert step.new_streak == streak
        assert step.bonus == bonus

    def test_no_bonus_off_milestone(self):
        assert advance(_agg(7, 7, date(2024, 3, 6)), TODAY).bonus == 0


class TestCheckInCoins:
    def test_base_only(self):
        coins = checkin_coins(3, None, 0, Settings())
        assert coins.total == 50

    def test_all_bonuses(self):
        coins = checkin_coins(4, "good", 100, Settings())
        assert coins.to_dict() == {
            "base": 50, "feedback_bonus": 10, "mood_bonus": 5, "streak_bonus": 100, "total": 165,
        }

    def test_blank_feedback_earns_nothing(self):
        assert checkin_coins(2, "   ", 0, Settings()).feedback_bonus == 0

    def test_recognition_table_covers_every_type(self):
        assert set(RECOGNITION_COINS) == set(RecognitionType)
        assert RECOGNITION_COINS[RecognitionType.kudos] == 20


class TestMoodMath:
    def test_mean_rounds_half_up(self):
        assert mean_mood([4, 5]) == Decimal("4.5")
        assert mean_mood([1, 2, 2]) == Decimal("1.7")

    def test_mean_of_nothing(self):
        assert mean_mood([]) is None

    def test_trend_improving(self):
        direction, change, _ = trend_direction([2, 2, 2, 4, 4, 4])
        assert direction == "improving"
        assert change == 2.0

    def test_trend_declining(self):
        assert trend_direction([5, 5, 5, 2, 2, 2])[0] == "declining"

    def test_trend_single_point_is_stable(self):
        assert trend_direction([3]) == ("stable", 0.0, 3.0)


class TestHeuristicRisk:
    def test_no_history_is_low(self):
        assert HeuristicRiskClassifier().classify([]).level == RiskLevel.low

    def test_happy_history_is_low(self):
        result = HeuristicRiskClassifier().classify([4, 5, 4, 5])
        assert result.level == RiskLevel.low
        assert result.score == Decimal("0.000")

    def test_one_bad_day_after_good_ones_is_low(self):
        assert HeuristicRiskClassifier().classify([5, 5, 5, 1]).level == RiskLevel.low

    def test_low_mean_and_latest_low_is_high(self):
        result = HeuristicRiskClassifier().classify([2, 3, 1])
        assert result.level == RiskLevel.high
        assert result.score == Decimal("0.700")

    def test_low_mean_alone_is_medium(self):
        assert HeuristicRiskClassifier().classify([1, 1, 3]).level == RiskLevel.medium
