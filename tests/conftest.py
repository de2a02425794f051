"""
Shared pytest fixtures.

Uses a file-backed SQLite database, rebuilt for every test, so no Postgres
is required. The clock is fixed at 2024-03-07 10:00 UTC unless a test
moves it.
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

from app.core.clock import FixedClock
from app.core.config import settings
from app.db.base import Base, get_db
from app.main import app
from app.models.coin_mutation import CoinMutation, CoinSource
from app.models.user import RiskLevel, User, UserRole
from app.services.achievements import seed_default_achievements
from app.services.engine import build_context, get_channels, get_clock
from app.services.redemption import create_reward

SQLITE_URL = "sqlite:///./test_wellness.db"

engine = create_engine(SQLITE_URL, connect_args={"check_same_thread": False})
TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)

NOW = datetime(2024, 3, 7, 10, 0, tzinfo=timezone.utc)


def override_get_db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture(autouse=True)
def create_tables():
    Base.metadata.create_all(bind=engine)
    yield
    Base.metadata.drop_all(bind=engine)


@pytest.fixture()
def db():
    db = TestingSessionLocal()
    try:
        yield db
    finally:
        db.close()


@pytest.fixture()
def clock():
    return FixedClock(NOW)


@pytest.fixture()
def ctx(db, clock):
    """Engine context with no external channels."""
    return build_context(db, clock, settings, channels=[])


@pytest.fixture()
def client(db, clock):
    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_clock] = lambda: clock
    app.dependency_overrides[get_channels] = lambda: []
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


@pytest.fixture()
def make_user(db):
    """
    Insert a user with an arbitrary starting aggregate. A non-zero starting
    balance is backed by a matching coin mutation so the ledger stays whole.
    """
    counter = {"n": 0}

    def _make(
        name: str = "Employee",
        role: UserRole = UserRole.employee,
        coin_balance: int = 0,
        current_streak: int = 0,
        longest_streak: int | None = None,
        last_checkin_day=None,
        **extra,
    ) -> User:
        counter["n"] += 1
        n = counter["n"]
        fields = dict(
            employee_id=f"EMP{n:03d}",
            email=f"user{n}@example.com",
            name=name,
            department="Engineering",
            role=role,
            is_active=True,
            is_email_verified=True,
            coin_balance=coin_balance,
            current_streak=current_streak,
            longest_streak=longest_streak if longest_streak is not None else current_streak,
            last_checkin_day=last_checkin_day,
            risk_level=RiskLevel.low,
            risk_score=Decimal("0"),
            journal_total_entries=0,
            surveys_completed=0,
            version=1,
        )
        fields.update(extra)
        user = User(**fields)
        db.add(user)
        db.flush()
        if coin_balance:
            db.add(CoinMutation(
                user_id=user.id,
                delta=coin_balance,
                balance_after=coin_balance,
                source=CoinSource.checkin,
                reference="opening-balance",
                created_at=NOW,
            ))
        db.commit()
        return user

    return _make


@pytest.fixture()
def make_reward(db):
    def _make(cost: int = 200, quantity_remaining: int = 10, **kwargs):
        reward = create_reward(
            db, name=kwargs.pop("name", "Coffee voucher"), cost=cost,
            quantity_remaining=quantity_remaining, **kwargs,
        )
        db.commit()
        return reward

    return _make


@pytest.fixture()
def achievement_catalog(db):
    seed_default_achievements(db)
    db.commit()


def auth(user: User) -> dict:
    return {"X-User-Id": user.id}
