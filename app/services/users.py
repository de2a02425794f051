"""
User registration, profile, preferences, anonymisation and the survey hook.

The wellness aggregate starts at zero on registration. Anonymisation
replaces PII and deactivates the account; check-ins, coin mutations and
the aggregate stay for analytics.
"""
from __future__ import annotations

from dataclasses import replace
from typing import Optional, TYPE_CHECKING

from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.errors import NotFoundError, ValidationFailedError
from app.models.user import RiskLevel, User, UserRole
from app.schemas.common import ev
from app.services.aggregate_store import WellnessAggregate
from app.services.events import DomainEvent, EventKind

if TYPE_CHECKING:
    from app.services.engine import EngineContext

PREFERENCE_FIELDS = ("check_in_reminder", "survey_reminder", "reward_updates")


def get_user(db: Session, user_id: str) -> User:
    user = db.get(User, user_id)
    if user is None:
        raise NotFoundError("User", user_id)
    return user


def register_user(
    db: Session,
    employee_id: str,
    email: str,
    name: str,
    department: Optional[str] = None,
    role: UserRole | str = UserRole.employee,
) -> User:
    email = email.strip().lower()
    employee_id = employee_id.strip().upper()
    clash = (
        db.query(User.id)
        .filter((User.email == email) | (User.employee_id == employee_id))
        .first()
    )
    if clash is not None:
        raise ValidationFailedError(
            "A user with this email or employee id already exists.",
            {"email": email, "employee_id": employee_id},
        )
    user = User(
        employee_id=employee_id,
        email=email,
        name=name.strip(),
        department=department,
        role=UserRole(role),
        is_active=True,
        coin_balance=0,
        current_streak=0,
        longest_streak=0,
        risk_level=RiskLevel.low,
        journal_total_entries=0,
        surveys_completed=0,
        version=1,
    )
    db.add(user)
    db.flush()
    return user


def get_profile(db: Session, clock: Clock, user_id: str) -> dict:
    user = get_user(db, user_id)
    aggregate = WellnessAggregate.from_user(user).project(clock.today())
    return {
        "id": user.id,
        "employee_id": user.employee_id,
        "email": user.email,
        "name": user.name,
        "department": user.department,
        "role": ev(user.role),
        "is_active": user.is_active,
        "wellness": aggregate.to_dict(),
        "notification_preferences": {f: getattr(user, f) for f in PREFERENCE_FIELDS},
    }


def update_notification_preferences(db: Session, user_id: str, **prefs: Optional[bool]) -> User:
    user = get_user(db, user_id)
    for field, value in prefs.items():
        if field not in PREFERENCE_FIELDS:
            raise ValidationFailedError(f"Unknown preference {field!r}.", {"field": field})
        if value is not None:
            setattr(user, field, bool(value))
    db.flush()
    return user


def anonymize_user(db: Session, clock: Clock, user_id: str) -> User:
    user = get_user(db, user_id)
    if user.anonymized_at is not None:
        return user
    user.name = "Anonymous User"
    user.email = f"anonymized-{user.id}@deleted.invalid"
    user.employee_id = f"ANON-{user.id[:12].upper()}"
    user.department = None
    user.is_active = False
    user.check_in_reminder = False
    user.survey_reminder = False
    user.reward_updates = False
    user.anonymized_at = clock.now()
    db.flush()
    return user


def record_survey_completion(ctx: "EngineContext", user_id: str, survey_id: str) -> WellnessAggregate:
    aggregate = ctx.store.update_atomically(
        user_id, lambda agg: replace(agg, surveys_completed=agg.surveys_completed + 1)
    )
    ctx.publish(DomainEvent(EventKind.SURVEY_COMPLETED, user_id, reference=f"survey:{survey_id}"))
    return aggregate
