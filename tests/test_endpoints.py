"""
Integration tests for API endpoints using a SQLite DB.
"""
from datetime import date

from conftest import auth

from app.models.user import User, UserRole


class TestHealth:
    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json()["status"] == "ok"


class TestAuth:
    def test_missing_header(self, client):
        r = client.get("/users/me")
        assert r.status_code == 401
        assert r.json()["code"] == "UNAUTHORIZED"

    def test_unknown_user(self, client):
        r = client.get("/users/me", headers={"X-User-Id": "nobody"})
        assert r.status_code == 401

    def test_inactive_user(self, client, make_user):
        user = make_user(is_active=False)
        r = client.get("/users/me", headers=auth(user))
        assert r.status_code == 401

    def test_staff_only_route(self, client, make_user):
        employee = make_user()
        r = client.get("/analytics/overview", headers=auth(employee))
        assert r.status_code == 403
        assert r.json()["code"] == "FORBIDDEN"


class TestCheckIns:
    def test_submit(self, client, make_user):
        user = make_user()
        r = client.post("/checkins", json={"mood": 4, "feedback": "  Good standup  "}, headers=auth(user))
        assert r.status_code == 201
        body = r.json()
        assert body["success"] is True
        assert body["message"] == "Check-in recorded. +65 happy coins."
        data = body["data"]
        assert data["check_in"]["day"] == "2024-03-07"
        assert data["check_in"]["feedback"] == "Good standup"
        assert data["check_in"]["mood_label"] == "Good"
        assert data["wellness"]["coin_balance"] == 65
        assert data["wellness"]["current_streak"] == 1
        assert data["coins"] == {
            "base": 50, "feedback_bonus": 10, "mood_bonus": 5, "streak_bonus": 0, "total": 65,
        }

    def test_duplicate_is_conflict(self, client, make_user):
        user = make_user()
        first = client.post("/checkins", json={"mood": 3}, headers=auth(user))
        r = client.post("/checkins", json={"mood": 5}, headers=auth(user))
        assert r.status_code == 409
        body = r.json()
        assert body["code"] == "ALREADY_CHECKED_IN"
        assert body["data"]["check_in"]["id"] == first.json()["data"]["check_in"]["id"]

    def test_invalid_mood(self, client, make_user):
        user = make_user()
        for mood in (6, "great"):
            r = client.post("/checkins", json={"mood": mood}, headers=auth(user))
            assert r.status_code == 400
            body = r.json()
            assert body["code"] == "VALIDATION_ERROR"
            assert body["errors"][0]["field"] == "mood"

    def test_today_history_and_feedback_edit(self, client, make_user):
        user = make_user()
        assert client.get("/checkins/today", headers=auth(user)).json()["data"] is None

        created = client.post("/checkins", json={"mood": 2}, headers=auth(user)).json()["data"]
        check_in_id = created["check_in"]["id"]

        today = client.get("/checkins/today", headers=auth(user)).json()["data"]
        assert today["id"] == check_in_id

        history = client.get(
            "/checkins", params={"startDate": "2024-03-01", "endDate": "2024-03-31"}, headers=auth(user)
        ).json()["data"]
        assert history["pagination"]["total"] == 1
        assert history["stats"]["average_mood"] == 2.0

        r = client.patch(f"/checkins/{check_in_id}", json={"feedback": "Rough morning"}, headers=auth(user))
        assert r.status_code == 200
        assert r.json()["data"]["feedback"] == "Rough morning"

    def test_trend(self, client, make_user):
        user = make_user()
        client.post("/checkins", json={"mood": 5}, headers=auth(user))
        r = client.get("/checkins/trend", params={"days": 7}, headers=auth(user))
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["trend"] == [{"day": "2024-03-07", "mood": 5, "mood_label": "Excellent"}]
        assert data["direction"] == "stable"


class TestRewards:
    def test_redeem_and_cancel(self, client, db, make_user, make_reward):
        user = make_user(coin_balance=300)
        reward = make_reward(cost=200, quantity_remaining=2)

        r = client.post(f"/rewards/{reward.id}/redeem", headers=auth(user))
        assert r.status_code == 200
        redemption = r.json()["data"]
        assert redemption["state"] == "pending"
        assert redemption["coins_spent"] == 200
        assert db.get(User, user.id, populate_existing=True).coin_balance == 100

        r = client.post(f"/redemptions/{redemption['id']}/cancel", headers=auth(user))
        assert r.status_code == 200
        assert r.json()["data"]["state"] == "cancelled"
        assert db.get(User, user.id, populate_existing=True).coin_balance == 300

        r = client.post(f"/redemptions/{redemption['id']}/cancel", headers=auth(user))
        assert r.status_code == 409
        assert r.json()["code"] == "INVALID_TRANSITION"

    def test_insufficient_coins(self, client, make_user, make_reward):
        user = make_user(coin_balance=10)
        reward = make_reward(cost=200)
        r = client.post(f"/rewards/{reward.id}/redeem", headers=auth(user))
        assert r.status_code == 400
        assert r.json()["code"] == "INSUFFICIENT_COINS"
        assert r.json()["data"] == {"balance": 10, "required": 200}

    def test_staff_creates_and_approves(self, client, make_user):
        hr = make_user(role=UserRole.hr)
        employee = make_user(coin_balance=100)

        r = client.post("/rewards", json={"name": "Lunch", "cost": 80}, headers=auth(hr))
        assert r.status_code == 201
        reward_id = r.json()["data"]["id"]

        assert client.post("/rewards", json={"name": "x", "cost": 1}, headers=auth(employee)).status_code == 403

        redemption_id = client.post(f"/rewards/{reward_id}/redeem", headers=auth(employee)).json()["data"]["id"]
        r = client.post(f"/redemptions/{redemption_id}/approve", headers=auth(hr))
        assert r.json()["data"]["state"] == "approved"
        r = client.post(f"/redemptions/{redemption_id}/fulfill", headers=auth(hr))
        assert r.json()["data"]["state"] == "fulfilled"

        listing = client.get("/redemptions", headers=auth(employee)).json()["data"]
        assert listing["total"] == 1


class TestRecognitions:
    def test_send_and_list(self, client, make_user):
        alice, bob = make_user(name="Alice"), make_user(name="Bob")
        r = client.post(
            "/recognitions",
            json={"to_user_id": bob.id, "type": "innovation", "message": "Clever fix"},
            headers=auth(alice),
        )
        assert r.status_code == 201
        assert r.json()["data"]["happy_coins_awarded"] == 40

        received = client.get("/recognitions", headers=auth(bob)).json()["data"]
        assert received["total"] == 1
        assert received["items"][0]["from_user_id"] == alice.id

    def test_self_recognition(self, client, make_user):
        alice = make_user()
        r = client.post(
            "/recognitions",
            json={"to_user_id": alice.id, "type": "kudos", "message": "Me!"},
            headers=auth(alice),
        )
        assert r.status_code == 400


class TestJournals:
    def test_crud(self, client, make_user):
        user = make_user()
        r = client.post(
            "/journals",
            json={"title": "Day one", "content": "A calm and focused day.", "mood": 4, "tags": ["Calm"]},
            headers=auth(user),
        )
        assert r.status_code == 201
        entry = r.json()["data"]
        assert entry["word_count"] == 5
        assert entry["tags"] == ["calm"]

        r = client.patch(f"/journals/{entry['id']}", json={"title": "Day 1"}, headers=auth(user))
        assert r.json()["data"]["title"] == "Day 1"

        assert client.get("/journals", headers=auth(user)).json()["data"]["total"] == 1

        r = client.delete(f"/journals/{entry['id']}", headers=auth(user))
        assert r.status_code == 200
        assert client.get(f"/journals/{entry['id']}", headers=auth(user)).status_code == 404


class TestAchievements:
    def test_progress_after_first_check_in(self, client, make_user, achievement_catalog):
        user = make_user()
        client.post("/checkins", json={"mood": 3}, headers=auth(user))

        items = client.get("/achievements", headers=auth(user)).json()["data"]
        by_name = {p["achievement"]["name"]: p for p in items}
        assert by_name["First Steps"]["earned"] is True
        assert by_name["First Steps"]["percentage"] == 100
        assert by_name["Week Warrior"]["current"] == 1

    def test_admin_creates_achievement(self, client, make_user):
        admin = make_user(role=UserRole.admin)
        hr = make_user(role=UserRole.hr)
        body = {
            "name": "Fifty Check-ins", "description": "Check in fifty times.", "category": "checkin",
            "criteria_type": "total_checkins", "criteria_value": 50, "happy_coins_reward": 100,
        }
        assert client.post("/achievements", json=body, headers=auth(hr)).status_code == 403
        r = client.post("/achievements", json=body, headers=auth(admin))
        assert r.status_code == 201
        assert r.json()["data"]["criteria_type"] == "total_checkins"


class TestNotifications:
    def test_list_and_read(self, client, make_user):
        user = make_user()
        client.post("/checkins", json={"mood": 3}, headers=auth(user))

        listing = client.get("/notifications", headers=auth(user)).json()["data"]
        assert listing["total"] == 2
        assert listing["unread"] == 2
        assert {n["type"] for n in listing["items"]} == {"CHECK_IN_COMPLETED", "HAPPY_COINS_EARNED"}
        coins_note = next(n for n in listing["items"] if n["type"] == "HAPPY_COINS_EARNED")
        assert coins_note["payload"]["coins"] == 50

        r = client.post(f"/notifications/{coins_note['id']}/read", headers=auth(user))
        assert r.json()["data"]["is_read"] is True

        r = client.post("/notifications/read-all", headers=auth(user))
        assert r.json()["data"] == {"updated": 1}

    def test_broadcast_requires_staff(self, client, make_user):
        employee = make_user()
        hr = make_user(role=UserRole.hr)
        body = {"type": "SYSTEM_UPDATE", "payload": {"title": "Maintenance", "message": "Tonight"}}

        assert client.post("/notifications/broadcast", json=body, headers=auth(employee)).status_code == 403
        r = client.post("/notifications/broadcast", json=body, headers=auth(hr))
        assert r.status_code == 200
        assert r.json()["data"] == {"sent": 2}


class TestUsers:
    def test_me_and_preferences(self, client, make_user):
        user = make_user(name="Jane")
        me = client.get("/users/me", headers=auth(user)).json()["data"]
        assert me["name"] == "Jane"
        assert me["wellness"]["coin_balance"] == 0

        r = client.patch("/users/me/preferences", json={"reward_updates": True}, headers=auth(user))
        assert r.json()["data"]["notification_preferences"]["reward_updates"] is True

    def test_register_by_hr(self, client, make_user):
        hr = make_user(role=UserRole.hr)
        body = {"employee_id": "emp900", "email": "New@Example.com", "name": "New Hire"}
        r = client.post("/users", json=body, headers=auth(hr))
        assert r.status_code == 201
        assert r.json()["data"]["employee_id"] == "EMP900"

        r = client.post("/users", json={**body, "role": "admin", "email": "b@example.com", "employee_id": "E2"},
                        headers=auth(hr))
        assert r.status_code == 403

    def test_survey_and_anonymise(self, client, make_user):
        user = make_user()
        r = client.post("/users/me/surveys", json={"survey_id": "pulse-q1"}, headers=auth(user))
        assert r.json()["data"]["surveys_completed"] == 1

        other = make_user()
        assert client.delete(f"/users/{user.id}", headers=auth(other)).status_code == 403
        assert client.delete(f"/users/{user.id}", headers=auth(user)).status_code == 200
        assert client.get("/users/me", headers=auth(user)).status_code == 401


class TestAnalyticsAndJobs:
    def test_overview_as_hr(self, client, make_user):
        hr = make_user(role=UserRole.hr)
        employee = make_user()
        client.post("/checkins", json={"mood": 4}, headers=auth(employee))

        r = client.get("/analytics/overview", params={"days": 7}, headers=auth(hr))
        assert r.status_code == 200
        data = r.json()["data"]
        assert data["total_checkins"] == 1
        assert data["active_users"] == 2

    def test_coin_audit_permissions(self, client, make_user):
        hr = make_user(role=UserRole.hr)
        employee = make_user(coin_balance=20)
        other = make_user()

        r = client.get(f"/analytics/coins/{employee.id}", headers=auth(employee))
        assert r.json()["data"]["consistent"] is True
        assert client.get(f"/analytics/coins/{employee.id}", headers=auth(other)).status_code == 403
        assert client.get(f"/analytics/coins/{employee.id}", headers=auth(hr)).status_code == 200
        assert client.get("/analytics/coins/missing", headers=auth(hr)).status_code == 404

    def test_leaderboard_open_to_employees(self, client, make_user):
        leader = make_user(name="Ada", coin_balance=200)
        me = make_user(name="Ben", department="Sales", coin_balance=50)

        r = client.get("/analytics/leaderboard", headers=auth(me))
        assert r.status_code == 200
        data = r.json()["data"]
        assert [e["user_id"] for e in data["entries"]] == [leader.id, me.id]
        assert data["current_user"]["rank"] == 2

        r = client.get("/analytics/leaderboard", params={"department": "Sales"}, headers=auth(me))
        body = r.json()
        assert body["message"] == "Sales department leaderboard"
        assert body["data"]["current_user"]["rank"] == 1
        assert body["data"]["stats"]["total_happy_coins"] == 50
        assert client.get("/analytics/leaderboard", params={"limit": 0}, headers=auth(me)).status_code == 400

    def test_jobs_admin_only(self, client, db, make_user):
        admin = make_user(role=UserRole.admin)
        hr = make_user(role=UserRole.hr)
        lapsed = make_user(current_streak=5, last_checkin_day=date(2024, 3, 4))

        assert client.post("/jobs/lost-streaks", headers=auth(hr)).status_code == 403

        r = client.post("/jobs/lost-streaks", headers=auth(admin))
        assert r.status_code == 200
        assert r.json()["data"]["reset"] == 1
        assert db.get(User, lapsed.id, populate_existing=True).current_streak == 0

        r = client.post("/jobs/outbox-dispatch", headers=auth(admin))
        assert r.json()["data"]["attempted"] == 0

        schedule = client.get("/jobs/schedule", headers=auth(admin)).json()["data"]
        assert schedule == {"streak_warnings": "0 * * * *", "lost_streaks": "5 0 * * *"}
