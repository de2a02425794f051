"""
Tests for the check-in ledger: submit, duplicate rejection, streak reset,
mood window, feedback edits, history pagination and trend.

All scenarios run at 2024-03-07 10:00 UTC unless the clock is moved.
"""
from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

import pytest

from app.core.errors import AlreadyCheckedInError, NotFoundError, ValidationFailedError
from app.models.checkin import CheckIn, CheckInSource
from app.models.coin_mutation import CoinMutation
from app.models.notification import Notification, NotificationType
from app.models.user import User, UserRole
from app.services import checkin as checkin_service

from conftest import TestingSessionLocal


def _submit(ctx, user_id, mood, feedback=None):
    with ctx.unit_of_work():
        return checkin_service.submit_check_in(ctx, user_id, mood, feedback)


def _notification_types(db, user_id) -> list[str]:
    return sorted(
        n.type.value for n in db.query(Notification).filter(Notification.user_id == user_id)
    )


class TestSubmit:
    def test_week_streak_bonus(self, ctx, db, make_user):
        user = make_user(coin_balance=120, current_streak=6, last_checkin_day=date(2024, 3, 6))

        result = _submit(ctx, user.id, 4, "good")

        row = db.query(CheckIn).filter(CheckIn.user_id == user.id).one()
        assert row.day == date(2024, 3, 7)
        assert row.happy_coins_earned == 165
        assert row.streak_at_checkin == 7
        assert result.coins.total == 165

        stored = db.get(User, user.id, populate_existing=True)
        assert stored.current_streak == 7
        assert stored.longest_streak >= 7
        assert stored.coin_balance == 285
        assert stored.last_checkin_day == date(2024, 3, 7)
        assert ctx.store.ledger_balance(user.id) == 285

    def test_milestone_notifications_written(self, ctx, db, make_user):
        user = make_user(coin_balance=120, current_streak=6, last_checkin_day=date(2024, 3, 6))
        _submit(ctx, user.id, 4, "good")
        assert _notification_types(db, user.id) == [
            "CHECK_IN_COMPLETED", "HAPPY_COINS_EARNED", "STREAK_MILESTONE",
        ]

    def test_duplicate_same_day_conflicts(self, ctx, db, make_user):
        user = make_user(coin_balance=120, current_streak=6, last_checkin_day=date(2024, 3, 6))
        _submit(ctx, user.id, 4, "good")

        with pytest.raises(AlreadyCheckedInError) as exc_info:
            _submit(ctx, user.id, 3)

        assert exc_info.value.data["check_in"]["mood"] == 4
        assert db.query(CheckIn).filter(CheckIn.user_id == user.id).count() == 1
        stored = db.get(User, user.id, populate_existing=True)
        assert stored.coin_balance == 285
        assert stored.current_streak == 7
        assert db.query(CoinMutation).filter(CoinMutation.user_id == user.id).count() == 2

    def test_lost_race_reports_the_winning_row(self, monkeypatch, ctx, db, make_user):
        user = make_user(coin_balance=10)
        rival = TestingSessionLocal()
        try:
            winner = CheckIn(
                user_id=user.id, day=date(2024, 3, 7), mood=2, source=CheckInSource.mobile,
                happy_coins_earned=50, streak_at_checkin=1,
                created_at=ctx.clock.now(), updated_at=ctx.clock.now(),
            )
            rival.add(winner)
            rival.commit()
            winner_id = winner.id
        finally:
            rival.close()

        # The pre-check runs before the rival commit lands; later lookups see it.
        real_find = checkin_service._find_by_day
        calls = []

        def stale_first_lookup(session, user_id, day):
            calls.append(day)
            return None if len(calls) == 1 else real_find(session, user_id, day)

        monkeypatch.setattr(checkin_service, "_find_by_day", stale_first_lookup)

        with pytest.raises(AlreadyCheckedInError) as exc_info:
            _submit(ctx, user.id, 5)

        assert len(calls) == 2
        payload = exc_info.value.data["check_in"]
        assert payload["id"] == winner_id
        assert payload["mood"] == 2
        assert db.query(CheckIn).filter(CheckIn.user_id == user.id).count() == 1
        assert db.get(User, user.id, populate_existing=True).coin_balance == 10


    def test_streak_reset_after_gap(self, ctx, db, clock, make_user):
        clock.set(clock.now().replace(day=5))
        user = make_user(coin_balance=0, current_streak=5, last_checkin_day=date(2024, 3, 1))

        _submit(ctx, user.id, 3)

        stored = db.get(User, user.id, populate_existing=True)
        assert stored.current_streak == 1
        assert stored.longest_streak == 5
        assert stored.coin_balance == 50

    def test_next_day_is_allowed(self, ctx, db, clock, make_user):
        user = make_user()
        _submit(ctx, user.id, 3)
        clock.advance(days=1)
        _submit(ctx, user.id, 5)
        stored = db.get(User, user.id, populate_existing=True)
        assert stored.current_streak == 2
        assert stored.coin_balance == 50 + 55

    def test_mood_average_over_last_thirty_days(self, ctx, db, clock, make_user):
        user = make_user()
        clock.set(clock.now() - timedelta(days=30))
        for mood in [1, 2, 3, 4] + [5] * 27:
            _submit(ctx, user.id, mood)
            clock.advance(days=1)

        stored = db.get(User, user.id, populate_existing=True)
        assert stored.average_mood == Decimal("4.8")
        assert stored.current_streak == 31

    @pytest.mark.parametrize("mood", [0, 6, True, "3"])
    def test_invalid_mood_rejected(self, ctx, make_user, mood):
        user = make_user()
        with pytest.raises(ValidationFailedError):
            _submit(ctx, user.id, mood)

    def test_feedback_too_long_rejected(self, ctx, make_user):
        user = make_user()
        with pytest.raises(ValidationFailedError):
            _submit(ctx, user.id, 3, "x" * 501)

    def test_failure_leaves_no_ledger_row(self, ctx, db, make_user):
        user = make_user()

        class Boom(Exception):
            pass

        with pytest.raises(Boom):
            with ctx.unit_of_work():
                checkin_service.submit_check_in(ctx, user.id, 3)
                raise Boom()

        assert db.query(CheckIn).count() == 0
        assert db.get(User, user.id, populate_existing=True).coin_balance == 0

    def test_unknown_user(self, ctx):
        with pytest.raises(NotFoundError):
            _submit(ctx, "missing", 3)


class TestRiskAlert:
    def test_hr_alerted_when_risk_turns_high(self, ctx, db, clock, make_user):
        hr = make_user(name="HR", role=UserRole.hr)
        user = make_user(name="Sam")
        clock.set(clock.now() - timedelta(days=2))
        for mood in (2, 1, 1):
            _submit(ctx, user.id, mood)
            clock.advance(days=1)

        stored = db.get(User, user.id, populate_existing=True)
        assert stored.risk_level.value == "high"
        alerts = (
            db.query(Notification)
            .filter(Notification.user_id == hr.id, Notification.type == NotificationType.RISK_ALERT)
            .all()
        )
        # Only the transition into "high" alerts.
        assert len(alerts) == 1
        assert "Sam" in alerts[0].message


class TestFeedback:
    def test_edit_same_day(self, ctx, db, make_user):
        user = make_user()
        result = _submit(ctx, user.id, 3)
        with ctx.unit_of_work():
            checkin_service.update_feedback(ctx, user.id, result.check_in.id, "  better now ")
        assert db.get(CheckIn, result.check_in.id, populate_existing=True).feedback == "better now"

    def test_edit_next_day_rejected(self, ctx, clock, make_user):
        user = make_user()
        result = _submit(ctx, user.id, 3)
        clock.advance(days=1)
        with pytest.raises(ValidationFailedError):
            checkin_service.update_feedback(ctx, user.id, result.check_in.id, "late")

    def test_other_users_check_in_is_not_found(self, ctx, make_user):
        owner, other = make_user(), make_user()
        result = _submit(ctx, owner.id, 3)
        with pytest.raises(NotFoundError):
            checkin_service.update_feedback(ctx, other.id, result.check_in.id, "x")


class TestHistory:
    def _seed(self, ctx, clock, user_id, moods):
        clock.set(clock.now() - timedelta(days=len(moods) - 1))
        for mood in moods:
            _submit(ctx, user_id, mood)
            clock.advance(days=1)
        clock.advance(days=-1)

    def test_pages_and_stats(self, ctx, db, clock, make_user):
        user = make_user()
        self._seed(ctx, clock, user.id, [3, 4, 5, 2, 4])

        page = checkin_service.list_by_user(db, user.id, limit=2, page=1)
        assert page.total == 5
        assert page.pages == 3
        assert [r.day for r in page.items] == [date(2024, 3, 7), date(2024, 3, 6)]
        assert page.stats.mood_distribution == {1: 0, 2: 1, 3: 1, 4: 2, 5: 1}
        assert page.stats.average_mood == 3.6

    def test_cursor_continues_after_last_day(self, ctx, db, clock, make_user):
        user = make_user()
        self._seed(ctx, clock, user.id, [3, 3, 3, 3])

        first = checkin_service.list_by_user(db, user.id, limit=3)
        assert first.next_cursor == "2024-03-05"
        second = checkin_service.list_by_user(db, user.id, limit=3, cursor=first.next_cursor)
        assert [r.day for r in second.items] == [date(2024, 3, 4)]
        assert second.next_cursor is None

    def test_date_range(self, ctx, db, clock, make_user):
        user = make_user()
        self._seed(ctx, clock, user.id, [3, 3, 3, 3])
        page = checkin_service.list_by_user(
            db, user.id, start=date(2024, 3, 5), end=date(2024, 3, 6)
        )
        assert page.total == 2

    def test_inverted_range_rejected(self, db, make_user):
        user = make_user()
        with pytest.raises(ValidationFailedError):
            checkin_service.list_by_user(db, user.id, start=date(2024, 3, 7), end=date(2024, 3, 1))

    def test_trend(self, ctx, db, clock, make_user):
        user = make_user()
        self._seed(ctx, clock, user.id, [2, 2, 2, 4, 5, 5])
        trend = checkin_service.mood_trend(db, clock, user.id, days=7)
        assert len(trend.points) == 6
        assert trend.direction == "improving"

    def test_find_today(self, ctx, db, clock, make_user):
        user = make_user()
        assert checkin_service.find_today(db, clock, user.id) is None
        _submit(ctx, user.id, 4)
        assert checkin_service.find_today(db, clock, user.id).mood == 4
