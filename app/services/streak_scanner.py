"""
Streak Scanner — scheduled passes over the user table.

scan_streak_warnings (hourly, REMINDER_CRON)
  Trigger : current_streak > 0, last_checkin_day == yesterday,
            2 < hours left until UTC midnight <= 18, check_in_reminder on
  Action  : STREAK_WARNING, dedup key "streak_warning:<today>"

scan_lost_streaks (daily, LOST_STREAK_CRON)
  Trigger : last_checkin_day <= today-2 and a stored current_streak > 0,
            or last_checkin_day in [today-7, today-2]
  Action  : stored current_streak reset to 0 through update_atomically,
            however old the lapse; STREAK_LOST only when the last day is
            within the lookback and the streak produced on it was >= 3
            (dedup key "streak_lost:<last day>")

Each user runs in its own unit of work; one failing user is logged and
counted, the scan carries on.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta
from typing import TYPE_CHECKING

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError

from app.core.clock import hours_until_midnight, start_of_day
from app.core.errors import WellnessException
from app.models.checkin import CheckIn
from app.models.notification import NotificationType
from app.models.user import User

if TYPE_CHECKING:
    from app.services.engine import EngineContext

logger = logging.getLogger(__name__)

WARNING_MIN_HOURS = 2
WARNING_MAX_HOURS = 18
LOST_STREAK_MIN = 3
LOST_STREAK_LOOKBACK_DAYS = 7


@dataclass
class ScanReport:
    job: str
    scanned: int = 0
    notified: int = 0
    reset: int = 0
    skipped: int = 0
    failed: int = 0

    def to_dict(self) -> dict:
        return {
            "job": self.job,
            "scanned": self.scanned,
            "notified": self.notified,
            "reset": self.reset,
            "skipped": self.skipped,
            "failed": self.failed,
        }


def warning_window_open(hours_left: int) -> bool:
    return WARNING_MIN_HOURS < hours_left <= WARNING_MAX_HOURS


def scan_streak_warnings(ctx: "EngineContext") -> ScanReport:
    report = ScanReport(job="streak_warnings")
    now = ctx.clock.now()
    today = ctx.clock.today()
    hours_left = hours_until_midnight(now)
    if not warning_window_open(hours_left):
        logger.info("Streak warning scan skipped: %d hours left in the day", hours_left)
        return report

    user_ids = [
        uid for (uid,) in ctx.db.query(User.id).filter(
            User.is_active.is_(True),
            User.current_streak > 0,
            User.last_checkin_day == today - timedelta(days=1),
            User.check_in_reminder.is_(True),
        ).order_by(User.id)
    ]

    for user_id in user_ids:
        report.scanned += 1
        try:
            with ctx.unit_of_work():
                streak = ctx.db.get(User, user_id).current_streak
                notification = ctx.outbox.emit(
                    user_id,
                    NotificationType.STREAK_WARNING,
                    {"streak": streak, "hours_left": hours_left},
                    expires_at=start_of_day(today + timedelta(days=1)),
                    dedup_key=f"streak_warning:{today.isoformat()}",
                )
            if notification is None:
                report.skipped += 1
            else:
                report.notified += 1
        except (WellnessException, SQLAlchemyError):
            report.failed += 1
            logger.exception("Streak warning failed for user %s", user_id)

    logger.info("Streak warning scan: %s", report.to_dict())
    return report


def scan_lost_streaks(ctx: "EngineContext") -> ScanReport:
    report = ScanReport(job="lost_streaks")
    today = ctx.clock.today()
    oldest = today - timedelta(days=LOST_STREAK_LOOKBACK_DAYS)
    newest = today - timedelta(days=2)

    candidates = [
        (row.id, row.last_checkin_day, row.current_streak)
        for row in ctx.db.query(User.id, User.last_checkin_day, User.current_streak).filter(
            User.is_active.is_(True),
            User.last_checkin_day <= newest,
            or_(User.current_streak > 0, User.last_checkin_day >= oldest),
        ).order_by(User.id)
    ]

    for user_id, last_day, stored_streak in candidates:
        report.scanned += 1
        try:
            with ctx.unit_of_work():
                ledger_row = (
                    ctx.db.query(CheckIn.streak_at_checkin)
                    .filter(CheckIn.user_id == user_id, CheckIn.day == last_day)
                    .first()
                )
                prior = ledger_row.streak_at_checkin if ledger_row else stored_streak

                notification = None
                if prior >= LOST_STREAK_MIN and last_day >= oldest:
                    notification = ctx.outbox.emit(
                        user_id,
                        NotificationType.STREAK_LOST,
                        {"streak": prior, "last_checkin_day": last_day.isoformat()},
                        dedup_key=f"streak_lost:{last_day.isoformat()}",
                    )
                if stored_streak > 0:
                    # read() already projects the lapsed streak to 0; writing it back persists the reset.
                    ctx.store.update_atomically(user_id, lambda agg: agg)
            if notification is not None:
                report.notified += 1
            if stored_streak > 0:
                report.reset += 1
            if notification is None and stored_streak == 0:
                report.skipped += 1
        except (WellnessException, SQLAlchemyError):
            report.failed += 1
            logger.exception("Lost-streak pass failed for user %s", user_id)

    logger.info("Lost streak scan: %s", report.to_dict())
    return report
