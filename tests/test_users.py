"""
Tests for user lifecycle and the HR analytics reads.
"""
from datetime import date

import pytest

from app.core.errors import NotFoundError, ValidationFailedError
from app.models.checkin import CheckIn
from app.models.user import User, UserRole
from app.services import analytics
from app.services import checkin as checkin_service
from app.services import users as user_service


class TestRegistration:
    def test_register_normalises_identity(self, db):
        user = user_service.register_user(
            db, employee_id=" emp042 ", email="Jane.Doe@Example.COM", name=" Jane ",
            department="Sales",
        )
        db.commit()
        assert user.employee_id == "EMP042"
        assert user.email == "jane.doe@example.com"
        assert user.name == "Jane"
        assert (user.coin_balance, user.current_streak, user.version) == (0, 0, 1)
        assert user.role == UserRole.employee

    def test_duplicate_email_rejected(self, db):
        user_service.register_user(db, "EMP1", "a@example.com", "A")
        db.commit()
        with pytest.raises(ValidationFailedError):
            user_service.register_user(db, "EMP2", "A@example.com", "B")

    def test_unknown_user(self, db):
        with pytest.raises(NotFoundError):
            user_service.get_user(db, "missing")


class TestProfile:
    def test_profile_projects_lapsed_streak(self, db, clock, make_user):
        user = make_user(current_streak=6, last_checkin_day=date(2024, 3, 1), coin_balance=40)
        profile = user_service.get_profile(db, clock, user.id)

        assert profile["wellness"]["current_streak"] == 0
        assert profile["wellness"]["longest_streak"] == 6
        assert profile["wellness"]["coin_balance"] == 40
        assert profile["notification_preferences"]["reward_updates"] is False
        # Reads never write the projection back.
        assert db.get(User, user.id, populate_existing=True).current_streak == 6

    def test_update_preferences(self, db, make_user):
        user = make_user()
        user_service.update_notification_preferences(
            db, user.id, check_in_reminder=False, reward_updates=True, survey_reminder=None
        )
        db.commit()
        stored = db.get(User, user.id, populate_existing=True)
        assert (stored.check_in_reminder, stored.reward_updates, stored.survey_reminder) == (
            False, True, True,
        )

    def test_unknown_preference(self, db, make_user):
        user = make_user()
        with pytest.raises(ValidationFailedError):
            user_service.update_notification_preferences(db, user.id, sms=True)


class TestAnonymise:
    def test_pii_removed_history_kept(self, ctx, db, clock, make_user):
        user = make_user(name="Jane")
        with ctx.unit_of_work():
            checkin_service.submit_check_in(ctx, user.id, 4)

        user_service.anonymize_user(db, clock, user.id)
        db.commit()

        stored = db.get(User, user.id, populate_existing=True)
        assert stored.name == "Anonymous User"
        assert stored.is_active is False
        assert stored.department is None
        assert stored.anonymized_at is not None
        assert stored.coin_balance == 50
        assert db.query(CheckIn).filter(CheckIn.user_id == user.id).count() == 1

    def test_second_call_is_a_no_op(self, db, clock, make_user):
        user = make_user()
        first = user_service.anonymize_user(db, clock, user.id)
        stamp = first.anonymized_at
        clock.advance(days=1)
        assert user_service.anonymize_user(db, clock, user.id).anonymized_at == stamp


class TestAnalytics:
    def test_overview(self, ctx, db, make_user):
        alice = make_user(current_streak=8, last_checkin_day=date(2024, 3, 6))
        bob = make_user(current_streak=2, last_checkin_day=date(2024, 2, 1))
        make_user()
        make_user(is_active=False)

        with ctx.unit_of_work():
            checkin_service.submit_check_in(ctx, alice.id, 5)
        with ctx.unit_of_work():
            checkin_service.submit_check_in(ctx, bob.id, 3)

        report = analytics.overview(db, ctx.clock, days=7)
        assert report.active_users == 3
        assert report.total_checkins == 2
        assert report.participating_users == 2
        assert report.average_mood == 4.0
        assert report.mood_distribution[5] == 1
        assert report.mood_distribution[3] == 1
        # alice 9 (continued), bob 1 (restarted)
        assert report.active_streaks == 2
        assert report.streaks_7_plus == 1
        assert report.max_current_streak == 9
        assert report.coins_spent == 0
        assert report.coins_issued == report.coins_outstanding

    def test_overview_by_department(self, db, clock, make_user):
        make_user(department="Sales")
        make_user()
        report = analytics.overview(db, clock, department="Sales")
        assert report.active_users == 1
        assert report.average_mood is None

    def test_coin_audit_is_consistent(self, ctx, db, make_user):
        user = make_user(coin_balance=30)
        with ctx.unit_of_work():
            checkin_service.submit_check_in(ctx, user.id, 4, "Feeling productive")

        audit = analytics.coin_audit(db, ctx.store, user.id)
        assert audit["consistent"] is True
        assert audit["stored_balance"] == audit["ledger_balance"] == 95
        assert [m["delta"] for m in audit["mutations"]] == [65, 30]

    def test_leaderboard_ranks_employees_by_coins(self, db, make_user):
        top = make_user(name="Ada", coin_balance=300)
        tied_a = make_user(name="Ben", coin_balance=120)
        tied_b = make_user(name="Cy", coin_balance=120)
        low = make_user(name="Dee", coin_balance=10)
        make_user(name="Hr", role=UserRole.hr, coin_balance=900)
        make_user(name="Gone", coin_balance=800, is_active=False)

        board = analytics.leaderboard(db, user_id=tied_b.id)
        assert board.total_users == 4
        assert [e.user_id for e in board.entries] == [top.id, tied_a.id, tied_b.id, low.id]
        assert [e.rank for e in board.entries] == [1, 2, 3, 4]
        # Ties share the rank of the first holder of that balance.
        assert board.current_user.rank == 2
        assert board.stats is None

        page = analytics.leaderboard(db, limit=2, offset=2)
        assert [(e.rank, e.user_id) for e in page.entries] == [(3, tied_b.id), (4, low.id)]
        assert page.current_user is None

    def test_leaderboard_by_department(self, db, make_user):
        make_user(coin_balance=500)
        sales_a = make_user(department="Sales", coin_balance=60)
        sales_b = make_user(department="Sales", coin_balance=20)

        board = analytics.leaderboard(db, department="Sales", user_id=sales_b.id)
        assert [e.user_id for e in board.entries] == [sales_a.id, sales_b.id]
        assert board.current_user.rank == 2
        assert board.stats == {
            "total_employees": 2,
            "total_happy_coins": 80,
            "average_happy_coins": 40.0,
            "max_happy_coins": 60,
        }

    def test_staff_caller_has_no_rank(self, db, make_user):
        make_user(coin_balance=5)
        hr = make_user(role=UserRole.hr)
        assert analytics.leaderboard(db, user_id=hr.id).current_user is None
