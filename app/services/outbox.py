"""
Notification Outbox.

emit()
------
  1. resolve the template for the (closed) NotificationType
  2. skip if (user_id, dedup_key) already exists
  3. insert the in-app Notification row in the caller's transaction
  4. if the user's preference for this type allows it, insert one pending
     NotificationDelivery per configured external channel

Nothing leaves the process before commit. Deliveries enqueued by a unit of
work are dispatched by a post-commit hook; anything still pending is picked
up by POST /jobs/outbox-dispatch.

Preference gating (external channels only; the in-app row is always kept):
  HAPPY_COINS_EARNED                  → reward_updates
  CHECK_IN_COMPLETED, STREAK_WARNING  → check_in_reminder
  SURVEY_AVAILABLE                    → survey_reminder
  everything else                     → always on
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Callable, Optional, Sequence

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from app.core.clock import Clock
from app.core.config import Settings
from app.core.errors import ExternalDependencyError, NotFoundError, ValidationFailedError
from app.models.notification import (
    DeliveryStatus,
    Notification,
    NotificationDelivery,
    NotificationPriority,
    NotificationType,
)
from app.models.user import User
from app.services.channels import DeliveryChannel

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Templates
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class Template:
    title: str
    message: str
    priority: NotificationPriority
    preference: Optional[str] = None       # User attribute gating external channels
    ttl: Optional[timedelta] = None


TEMPLATES: dict[NotificationType, Template] = {
    NotificationType.HAPPY_COINS_EARNED: Template(
        "+{coins} Happy Coins!",
        "Great job! You earned {coins} happy coins for {reason}.",
        NotificationPriority.medium,
        preference="reward_updates",
    ),
    NotificationType.CHECK_IN_COMPLETED: Template(
        "Check-in Complete!",
        "Thanks for checking in! Your mood: {mood_label} | Streak: {streak} days",
        NotificationPriority.low,
        preference="check_in_reminder",
    ),
    NotificationType.STREAK_WARNING: Template(
        "Don't Break Your Streak!",
        "You have {hours_left} hours left to check in and keep your {streak}-day streak!",
        NotificationPriority.high,
        preference="check_in_reminder",
    ),
    NotificationType.STREAK_LOST: Template(
        "Streak Ended",
        "Your {streak}-day streak has ended. Check in today to start a new one!",
        NotificationPriority.medium,
    ),
    NotificationType.STREAK_MILESTONE: Template(
        "{streak}-Day Streak!",
        "{streak} days of consistency! Bonus: {bonus} happy coins!",
        NotificationPriority.high,
    ),
    NotificationType.ACHIEVEMENT_EARNED: Template(
        "Achievement Unlocked!",
        "{name}: {description} You've earned {coins} happy coins!",
        NotificationPriority.high,
    ),
    NotificationType.MILESTONE_ACHIEVED: Template(
        "Milestone Reached: {name}",
        "{description}",
        NotificationPriority.medium,
    ),
    NotificationType.SURVEY_AVAILABLE: Template(
        "New Survey Available",
        "\"{survey_title}\" - Share your thoughts and help us improve!",
        NotificationPriority.medium,
        preference="survey_reminder",
        ttl=timedelta(days=7),
    ),
    NotificationType.CHALLENGE_JOINED: Template(
        "Challenge Joined!",
        "You've successfully joined \"{challenge_name}\". Good luck!",
        NotificationPriority.medium,
    ),
    NotificationType.REWARD_REDEEMED: Template(
        "Reward Redeemed!",
        "You've redeemed \"{reward_name}\" for {coins} happy coins. Code: {code}",
        NotificationPriority.medium,
    ),
    NotificationType.RECOGNITION_RECEIVED: Template(
        "Recognition Received!",
        "{from_name} recognized you ({recognition_type}): {message}",
        NotificationPriority.high,
    ),
    NotificationType.RISK_ALERT: Template(
        "Employee Wellness Alert",
        "{employee_name} shows {risk_level} risk level.",
        NotificationPriority.urgent,
    ),
    NotificationType.SYSTEM_UPDATE: Template(
        "{title}",
        "{message}",
        NotificationPriority.low,
    ),
}

# Types other components (surveys, challenges, admins) may broadcast.
BROADCAST_TYPES = frozenset({
    NotificationType.SURVEY_AVAILABLE,
    NotificationType.CHALLENGE_JOINED,
    NotificationType.SYSTEM_UPDATE,
})


class _Payload(dict):
    def __missing__(self, key):
        return ""


def render(ntype: NotificationType, payload: dict[str, Any]) -> tuple[str, str]:
    template = TEMPLATES[ntype]
    values = _Payload(payload)
    return template.title.format_map(values)[:100], template.message.format_map(values)[:500]


def channel_allowed(user: User, ntype: NotificationType) -> bool:
    preference = TEMPLATES[ntype].preference
    if preference is None:
        return True
    return bool(getattr(user, preference))


# ---------------------------------------------------------------------------
# Outbox
# ---------------------------------------------------------------------------

@dataclass
class DispatchReport:
    attempted: int = 0
    sent: int = 0
    failed: int = 0      # attempts exhausted in this run
    retrying: int = 0

    def to_dict(self) -> dict:
        return {
            "attempted": self.attempted,
            "sent": self.sent,
            "failed": self.failed,
            "retrying": self.retrying,
        }


class Outbox:
    def __init__(
        self,
        db: Session,
        clock: Clock,
        settings: Settings,
        channels: Sequence[DeliveryChannel],
        after_commit: Optional[Callable[[Callable[[], None]], None]] = None,
    ):
        self.db = db
        self.clock = clock
        self.channels = list(channels)
        self.max_attempts = settings.OUTBOX_MAX_ATTEMPTS
        self._after_commit = after_commit
        self._enqueued: list[int] = []

    # --- write side -------------------------------------------------------

    def _dedup_exists(self, user_id: str, dedup_key: str) -> bool:
        return (
            self.db.query(Notification.id)
            .filter(Notification.user_id == user_id, Notification.dedup_key == dedup_key)
            .first()
            is not None
        )

    def emit(
        self,
        user_id: str,
        ntype: NotificationType | str,
        payload: Optional[dict[str, Any]] = None,
        *,
        priority: Optional[NotificationPriority] = None,
        expires_at: Optional[datetime] = None,
        dedup_key: Optional[str] = None,
    ) -> Optional[Notification]:
        """Write one notification. Returns None when deduplicated."""
        ntype = NotificationType(ntype)
        template = TEMPLATES[ntype]
        payload = payload or {}

        if dedup_key and self._dedup_exists(user_id, dedup_key):
            return None

        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User", user_id)

        now = self.clock.now()
        if expires_at is None and template.ttl is not None:
            expires_at = now + template.ttl
        title, message = render(ntype, payload)
        notification = Notification(
            user_id=user_id,
            type=ntype,
            title=title,
            message=message,
            payload=json.dumps(payload, default=str),
            priority=priority or template.priority,
            is_read=False,
            expires_at=expires_at,
            dedup_key=dedup_key,
            created_at=now,
        )
        self.db.add(notification)
        self.db.flush()

        if self.channels and channel_allowed(user, ntype):
            for channel in self.channels:
                delivery = NotificationDelivery(
                    notification_id=notification.id,
                    channel=channel.name,
                    status=DeliveryStatus.pending,
                    attempts=0,
                )
                self.db.add(delivery)
                self.db.flush()
                if not self._enqueued and self._after_commit is not None:
                    self._after_commit(self.dispatch_enqueued)
                self._enqueued.append(delivery.id)
        return notification

    def discard(self) -> None:
        self._enqueued.clear()

    # --- dispatch side (after commit) -------------------------------------

    def dispatch_enqueued(self) -> DispatchReport:
        ids, self._enqueued = self._enqueued, []
        if not ids:
            return DispatchReport()
        deliveries = (
            self.db.query(NotificationDelivery)
            .filter(
                NotificationDelivery.id.in_(ids),
                NotificationDelivery.status == DeliveryStatus.pending,
            )
            .order_by(NotificationDelivery.id)
            .all()
        )
        return self._deliver(deliveries)

    def dispatch_pending(self, limit: int = 100) -> DispatchReport:
        deliveries = (
            self.db.query(NotificationDelivery)
            .filter(NotificationDelivery.status == DeliveryStatus.pending)
            .order_by(NotificationDelivery.id)
            .limit(limit)
            .all()
        )
        report = self._deliver(deliveries)
        logger.info("Outbox dispatch: %s", report.to_dict())
        return report

    def _deliver(self, deliveries: list[NotificationDelivery]) -> DispatchReport:
        report = DispatchReport()
        channels = {c.name: c for c in self.channels}
        for delivery in deliveries:
            notification = self.db.get(Notification, delivery.notification_id)
            user = self.db.get(User, notification.user_id)
            delivery.attempts += 1
            report.attempted += 1
            try:
                channel = channels.get(delivery.channel)
                if channel is None:
                    raise ExternalDependencyError(delivery.channel, "channel is not configured")
                channel.send(user, notification)
            except ExternalDependencyError as exc:
                delivery.last_error = exc.message
                if delivery.attempts >= self.max_attempts:
                    delivery.status = DeliveryStatus.failed
                    report.failed += 1
                else:
                    report.retrying += 1
                logger.warning(
                    "Delivery %s of notification %s via %s failed (attempt %d/%d): %s",
                    delivery.id, notification.id, delivery.channel,
                    delivery.attempts, self.max_attempts, exc.message,
                )
            else:
                delivery.status = DeliveryStatus.sent
                delivery.sent_at = self.clock.now()
                delivery.last_error = None
                report.sent += 1
        self.db.commit()
        return report


# ---------------------------------------------------------------------------
# Reads & user actions
# ---------------------------------------------------------------------------

def _visible(query, user_id: str, now: datetime):
    return query.filter(
        Notification.user_id == user_id,
        (Notification.expires_at.is_(None)) | (Notification.expires_at > now),
    )


def list_notifications(
    db: Session,
    clock: Clock,
    user_id: str,
    unread_only: bool = False,
    limit: int = 20,
    offset: int = 0,
) -> tuple[int, int, list[Notification]]:
    """Returns (total, unread_count, items) newest first."""
    now = clock.now()
    q = _visible(db.query(Notification), user_id, now)
    unread = q.filter(Notification.is_read.is_(False)).count()
    if unread_only:
        q = q.filter(Notification.is_read.is_(False))
    total = q.count()
    items = (
        q.order_by(Notification.created_at.desc(), Notification.id.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    return total, unread, items


def mark_read(db: Session, clock: Clock, user_id: str, notification_id: int) -> Notification:
    notification = db.get(Notification, notification_id)
    if notification is None or notification.user_id != user_id:
        raise NotFoundError("Notification", notification_id)
    if not notification.is_read:
        notification.is_read = True
        notification.read_at = clock.now()
    return notification


def mark_all_read(db: Session, clock: Clock, user_id: str) -> int:
    result = db.execute(
        update(Notification)
        .where(Notification.user_id == user_id, Notification.is_read.is_(False))
        .values(is_read=True, read_at=clock.now())
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


def broadcast(
    outbox: Outbox,
    db: Session,
    user_ids: Optional[Sequence[str]],
    ntype: NotificationType | str,
    payload: dict[str, Any],
) -> int:
    """Emit one notification per user. `user_ids=None` targets every active user."""
    ntype = NotificationType(ntype)
    if ntype not in BROADCAST_TYPES:
        raise ValidationFailedError(
            f"{ntype.value} cannot be broadcast.",
            {"allowed": sorted(t.value for t in BROADCAST_TYPES)},
        )
    if user_ids is None:
        user_ids = list(db.execute(select(User.id).where(User.is_active.is_(True))).scalars())
    sent = 0
    for user_id in user_ids:
        if outbox.emit(user_id, ntype, payload) is not None:
            sent += 1
    return sent

