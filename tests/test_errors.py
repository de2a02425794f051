"""
Tests for error handling: structured error responses, HTTP status codes,
and the custom exception classes.
"""
import pytest

from conftest import auth

from app.core.errors import (
    AggregateConflictError,
    AlreadyCheckedInError,
    ExternalDependencyError,
    ForbiddenError,
    InsufficientCoinsError,
    InvalidTransitionError,
    NotFoundError,
    RewardUnavailableError,
    UnauthorizedError,
    ValidationFailedError,
)


# ---------------------------------------------------------------------------
# Unit tests on exception classes
# ---------------------------------------------------------------------------

class TestExceptionClasses:
    def test_already_checked_in(self):
        err = AlreadyCheckedInError({"id": 7, "day": "2024-03-07"})
        assert err.http_status == 409
        assert err.code == "ALREADY_CHECKED_IN"
        d = err.to_dict()
        assert d["success"] is False
        assert d["data"]["check_in"]["id"] == 7

    def test_insufficient_coins(self):
        err = InsufficientCoinsError(balance=40, required=200)
        assert err.http_status == 400
        assert err.code == "INSUFFICIENT_COINS"
        assert "40" in err.message
        assert "200" in err.message
        assert err.to_dict()["data"] == {"balance": 40, "required": 200}

    def test_not_found(self):
        err = NotFoundError("Reward", 12)
        assert err.http_status == 404
        assert err.message == "Reward 12 not found."
        assert err.data == {"entity": "Reward", "id": "12"}

    def test_conflicts(self):
        assert AggregateConflictError("u1", 5).http_status == 409
        assert RewardUnavailableError(3, "sold out").code == "REWARD_UNAVAILABLE"
        err = InvalidTransitionError("Redemption", "fulfilled", "cancelled")
        assert err.code == "INVALID_TRANSITION"
        assert err.data == {"current": "fulfilled", "target": "cancelled"}

    def test_auth_errors_have_default_messages(self):
        assert UnauthorizedError().http_status == 401
        assert ForbiddenError().http_status == 403
        assert ForbiddenError().message

    def test_external_dependency(self):
        err = ExternalDependencyError("slack", "timeout")
        assert err.http_status == 502
        assert err.message == "slack failed: timeout"

    def test_to_dict_without_data(self):
        d = ValidationFailedError("Bad input.").to_dict()
        assert d == {"success": False, "code": "VALIDATION_ERROR", "message": "Bad input."}


# ---------------------------------------------------------------------------
# Integration tests on HTTP error responses
# ---------------------------------------------------------------------------

class TestValidationErrors:
    def test_missing_mood(self, client, make_user):
        user = make_user()
        r = client.post("/checkins", json={}, headers=auth(user))
        assert r.status_code == 400
        body = r.json()
        assert body["success"] is False
        assert body["code"] == "VALIDATION_ERROR"
        assert isinstance(body["errors"], list)
        assert body["errors"][0]["field"] == "mood"

    def test_boolean_mood_rejected(self, client, make_user):
        user = make_user()
        r = client.post("/checkins", json={"mood": True}, headers=auth(user))
        assert r.status_code == 400

    def test_feedback_too_long(self, client, make_user):
        user = make_user()
        r = client.post("/checkins", json={"mood": 3, "feedback": "x" * 501}, headers=auth(user))
        assert r.status_code == 400
        fields = [e["field"] for e in r.json()["errors"]]
        assert "feedback" in fields

    def test_bad_date_query(self, client, make_user):
        user = make_user()
        r = client.get("/checkins", params={"startDate": "not-a-date"}, headers=auth(user))
        assert r.status_code == 400
        assert r.json()["errors"][0]["field"] == "startDate"


class TestSourceChannelValidation:
    @pytest.mark.parametrize("source", ["web", "mobile", "slack", "whatsapp"])
    def test_all_valid_sources_accepted(self, client, make_user, source):
        user = make_user()
        r = client.post("/checkins", json={"mood": 3, "source": source}, headers=auth(user))
        assert r.status_code == 201
        assert r.json()["data"]["check_in"]["source"] == source

    @pytest.mark.parametrize("source", ["email", "sms", "", "Web"])
    def test_invalid_sources_rejected(self, client, make_user, source):
        user = make_user()
        r = client.post("/checkins", json={"mood": 3, "source": source}, headers=auth(user))
        assert r.status_code == 400
        assert r.json()["code"] == "VALIDATION_ERROR"


class TestDomainErrors:
    def test_not_found_envelope(self, client, make_user):
        user = make_user()
        r = client.get("/journals/999", headers=auth(user))
        assert r.status_code == 404
        body = r.json()
        assert body == {
            "success": False,
            "code": "NOT_FOUND",
            "message": "JournalEntry 999 not found.",
            "data": {"entity": "JournalEntry", "id": "999"},
        }

    def test_sold_out_reward(self, client, make_user, make_reward):
        user = make_user(coin_balance=500)
        reward = make_reward(cost=100, quantity_remaining=0)
        r = client.post(f"/rewards/{reward.id}/redeem", headers=auth(user))
        assert r.status_code == 409
        assert r.json()["code"] == "REWARD_UNAVAILABLE"
