"""initial schema

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

_ENUMS = {
    "user_role_enum": ("employee", "hr", "admin"),
    "risk_level_enum": ("low", "medium", "high"),
    "checkin_source_enum": ("web", "mobile", "slack", "whatsapp"),
    "journal_category_enum": (
        "personal", "work", "wellness", "goals", "gratitude", "challenges", "reflection",
    ),
    "journal_privacy_enum": ("private", "anonymous_share", "team_share"),
    "recognition_type_enum": (
        "kudos", "thank_you", "great_job", "team_player", "innovation", "leadership",
    ),
    "redemption_state_enum": ("pending", "approved", "fulfilled", "cancelled"),
    "criteria_type_enum": (
        "streak_days", "total_checkins", "consecutive_good_mood",
        "survey_completion", "peer_recognition", "custom",
    ),
    "coin_source_enum": ("checkin", "recognition", "achievement", "redemption", "refund"),
    "notification_type_enum": (
        "HAPPY_COINS_EARNED", "CHECK_IN_COMPLETED", "STREAK_WARNING", "STREAK_LOST",
        "STREAK_MILESTONE", "ACHIEVEMENT_EARNED", "MILESTONE_ACHIEVED", "SURVEY_AVAILABLE",
        "CHALLENGE_JOINED", "REWARD_REDEEMED", "RECOGNITION_RECEIVED", "RISK_ALERT",
        "SYSTEM_UPDATE",
    ),
    "notification_priority_enum": ("low", "medium", "high", "urgent"),
    "delivery_status_enum": ("pending", "sent", "failed"),
}


def _enum(name: str) -> sa.Enum:
    return sa.Enum(*_ENUMS[name], name=name, create_type=False)


def upgrade() -> None:
    # --- ENUM types ---
    for name, values in _ENUMS.items():
        sa.Enum(*values, name=name).create(op.get_bind(), checkfirst=True)

    # --- users (identity + wellness aggregate) ---
    op.create_table(
        "users",
        sa.Column("id", sa.String(32), nullable=False),
        sa.Column("employee_id", sa.String(32), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("name", sa.String(100), nullable=False),
        sa.Column("department", sa.String(64), nullable=True),
        sa.Column("role", _enum("user_role_enum"), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("is_email_verified", sa.Boolean(), nullable=False),
        sa.Column("coin_balance", sa.Integer(), nullable=False),
        sa.Column("current_streak", sa.Integer(), nullable=False),
        sa.Column("longest_streak", sa.Integer(), nullable=False),
        sa.Column("last_checkin_day", sa.Date(), nullable=True),
        sa.Column("average_mood", sa.Numeric(3, 1), nullable=True),
        sa.Column("risk_level", _enum("risk_level_enum"), nullable=False),
        sa.Column("risk_score", sa.Numeric(4, 3), nullable=False),
        sa.Column("journal_total_entries", sa.Integer(), nullable=False),
        sa.Column("journal_last_entry_day", sa.Date(), nullable=True),
        sa.Column("surveys_completed", sa.Integer(), nullable=False),
        sa.Column("version", sa.Integer(), nullable=False),
        sa.Column("check_in_reminder", sa.Boolean(), nullable=False),
        sa.Column("survey_reminder", sa.Boolean(), nullable=False),
        sa.Column("reward_updates", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("anonymized_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("employee_id"),
        sa.UniqueConstraint("email"),
        sa.CheckConstraint("coin_balance >= 0", name="ck_users_coin_balance_non_negative"),
        sa.CheckConstraint("current_streak >= 0", name="ck_users_current_streak_non_negative"),
        sa.CheckConstraint("longest_streak >= current_streak", name="ck_users_longest_streak"),
    )
    op.create_index("ix_users_last_checkin_day", "users", ["last_checkin_day"])
    op.create_index("ix_users_department_risk", "users", ["department", "risk_level"])

    # --- checkins ---
    op.create_table(
        "checkins",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("day", sa.Date(), nullable=False),
        sa.Column("mood", sa.Integer(), nullable=False),
        sa.Column("feedback", sa.Text(), nullable=True),
        sa.Column("source", _enum("checkin_source_enum"), nullable=False),
        sa.Column("happy_coins_earned", sa.Integer(), nullable=False),
        sa.Column("streak_at_checkin", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "day", name="uq_checkins_user_day"),
        sa.CheckConstraint("mood BETWEEN 1 AND 5", name="ck_checkins_mood_range"),
        sa.CheckConstraint("happy_coins_earned >= 0", name="ck_checkins_coins_non_negative"),
    )
    op.create_index("ix_checkins_id", "checkins", ["id"])
    op.create_index("ix_checkins_user_created", "checkins", ["user_id", "created_at"])
    op.create_index("ix_checkins_day_mood", "checkins", ["day", "mood"])

    # --- journal_entries ---
    op.create_table(
        "journal_entries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("title", sa.String(200), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("mood", sa.Integer(), nullable=False),
        sa.Column("category", _enum("journal_category_enum"), nullable=False),
        sa.Column("tags", sa.String(512), nullable=True),
        sa.Column("privacy", _enum("journal_privacy_enum"), nullable=False),
        sa.Column("word_count", sa.Integer(), nullable=False),
        sa.Column("reading_time", sa.Integer(), nullable=False),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("mood BETWEEN 1 AND 5", name="ck_journal_mood_range"),
    )
    op.create_index("ix_journal_entries_id", "journal_entries", ["id"])
    op.create_index("ix_journal_user_created", "journal_entries", ["user_id", "created_at"])
    op.create_index("ix_journal_user_category", "journal_entries", ["user_id", "category"])

    # --- recognitions ---
    op.create_table(
        "recognitions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("from_user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("to_user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", _enum("recognition_type_enum"), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("happy_coins_awarded", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("from_user_id <> to_user_id", name="ck_recognitions_not_self"),
    )
    op.create_index("ix_recognitions_id", "recognitions", ["id"])
    op.create_index("ix_recognitions_to_created", "recognitions", ["to_user_id", "created_at"])
    op.create_index("ix_recognitions_from_created", "recognitions", ["from_user_id", "created_at"])

    # --- rewards ---
    op.create_table(
        "rewards",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("cost", sa.Integer(), nullable=False),
        sa.Column("quantity_remaining", sa.Integer(), nullable=False),
        sa.Column("starts_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("ends_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("total_redemptions", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("cost >= 0", name="ck_rewards_cost_non_negative"),
        sa.CheckConstraint("quantity_remaining >= -1", name="ck_rewards_quantity"),
    )
    op.create_index("ix_rewards_id", "rewards", ["id"])

    # --- redemptions ---
    op.create_table(
        "redemptions",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("reward_id", sa.Integer(), sa.ForeignKey("rewards.id"), nullable=False),
        sa.Column("coins_spent", sa.Integer(), nullable=False),
        sa.Column("redemption_code", sa.String(32), nullable=False),
        sa.Column("state", _enum("redemption_state_enum"), nullable=False),
        sa.Column("requested_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("fulfilled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("redemption_code"),
    )
    op.create_index("ix_redemptions_id", "redemptions", ["id"])
    op.create_index("ix_redemptions_reward_id", "redemptions", ["reward_id"])
    op.create_index("ix_redemptions_user_requested", "redemptions", ["user_id", "requested_at"])

    # --- achievements ---
    op.create_table(
        "achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("name", sa.String(128), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.String(32), nullable=False),
        sa.Column("icon", sa.String(16), nullable=True),
        sa.Column("criteria_type", _enum("criteria_type_enum"), nullable=False),
        sa.Column("criteria_value", sa.Integer(), nullable=False),
        sa.Column("rarity", sa.String(16), nullable=False),
        sa.Column("happy_coins_reward", sa.Integer(), nullable=False),
        sa.Column("sort_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("name"),
    )
    op.create_index("ix_achievements_id", "achievements", ["id"])

    # --- user_achievements ---
    op.create_table(
        "user_achievements",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("achievement_id", sa.Integer(), sa.ForeignKey("achievements.id"), nullable=False),
        sa.Column("happy_coins_earned", sa.Integer(), nullable=False),
        sa.Column("earned_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "achievement_id", name="uq_user_achievement"),
    )
    op.create_index("ix_user_achievements_id", "user_achievements", ["id"])
    op.create_index("ix_user_achievements_user_earned", "user_achievements", ["user_id", "earned_at"])

    # --- coin_mutations ---
    op.create_table(
        "coin_mutations",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("delta", sa.Integer(), nullable=False),
        sa.Column("balance_after", sa.Integer(), nullable=False),
        sa.Column("source", _enum("coin_source_enum"), nullable=False),
        sa.Column("reference", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_coin_mutations_id", "coin_mutations", ["id"])
    op.create_index("ix_coin_mutations_user_created", "coin_mutations", ["user_id", "created_at"])
    op.create_index("ix_coin_mutations_reference", "coin_mutations", ["reference"])

    # --- notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.String(32), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
        sa.Column("type", _enum("notification_type_enum"), nullable=False),
        sa.Column("title", sa.String(100), nullable=False),
        sa.Column("message", sa.String(500), nullable=False),
        sa.Column("payload", sa.Text(), nullable=True),
        sa.Column("priority", _enum("notification_priority_enum"), nullable=False),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("dedup_key", sa.String(64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "dedup_key", name="uq_notifications_user_dedup"),
    )
    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_created", "notifications", ["user_id", "created_at"])
    op.create_index("ix_notifications_user_read", "notifications", ["user_id", "is_read"])

    # --- notification_deliveries ---
    op.create_table(
        "notification_deliveries",
        sa.Column("id", sa.Integer(), nullable=False),
        sa.Column(
            "notification_id", sa.Integer(),
            sa.ForeignKey("notifications.id", ondelete="CASCADE"), nullable=False,
        ),
        sa.Column("channel", sa.String(16), nullable=False),
        sa.Column("status", _enum("delivery_status_enum"), nullable=False),
        sa.Column("attempts", sa.Integer(), nullable=False),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.Column("sent_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notification_deliveries_id", "notification_deliveries", ["id"])
    op.create_index(
        "ix_notification_deliveries_notification_id", "notification_deliveries", ["notification_id"]
    )
    op.create_index("ix_deliveries_status", "notification_deliveries", ["status"])


def downgrade() -> None:
    op.drop_table("notification_deliveries")
    op.drop_table("notifications")
    op.drop_table("coin_mutations")
    op.drop_table("user_achievements")
    op.drop_table("achievements")
    op.drop_table("redemptions")
    op.drop_table("rewards")
    op.drop_table("recognitions")
    op.drop_table("journal_entries")
    op.drop_table("checkins")
    op.drop_table("users")

    for name in reversed(list(_ENUMS)):
        op.execute(f"DROP TYPE IF EXISTS {name}")
