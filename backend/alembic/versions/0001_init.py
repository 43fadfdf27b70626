"""init

Revision ID: 0001_init
Revises:
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0001_init"
down_revision = None
branch_labels = None
depends_on = None

_NOW = sa.text("(CURRENT_TIMESTAMP)")


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def upgrade() -> None:
    inspector = _inspector()
    existing_tables = set(inspector.get_table_names())

    def existing_indexes(table: str) -> set[str]:
        if table not in existing_tables:
            return set()
        return {idx["name"] for idx in inspector.get_indexes(table)}

    def ensure_index(name: str, table: str, columns: list[str], unique: bool = False) -> None:
        if name not in existing_indexes(table):
            op.create_index(name, table, columns, unique=unique)

    if "users" not in existing_tables:
        op.create_table(
            "users",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("open_id", sa.String(255), nullable=False),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("email", sa.String(255), nullable=True),
            sa.Column("device_id", sa.String(255), nullable=True),
            sa.Column("avatar", sa.String(255), nullable=True),
            sa.Column("push_token", sa.String(255), nullable=True),
            sa.Column("xp", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("level", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("role", sa.String(), nullable=True),
            sa.Column("is_banned", sa.Boolean(), nullable=True),
            sa.Column("is_premium", sa.Boolean(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
        )
    ensure_index("ix_users_id", "users", ["id"])
    ensure_index("ix_users_open_id", "users", ["open_id"], unique=True)
    ensure_index("ix_users_email", "users", ["email"])

    if "spots" not in existing_tables:
        op.create_table(
            "spots",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("spotter_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("owner_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=True),
            sa.Column("name", sa.String(255), nullable=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("category", sa.String(50), nullable=True),
            sa.Column("latitude", sa.Float(), nullable=True),
            sa.Column("longitude", sa.Float(), nullable=True),
            sa.Column("total_points", sa.Integer(), nullable=False),
            sa.Column("remaining_points", sa.String(64), nullable=False),
            sa.Column("rate_per_minute", sa.Integer(), nullable=False),
            sa.Column("tax_rate", sa.Integer(), nullable=False, server_default="5"),
            sa.Column("active", sa.Boolean(), nullable=True),
            sa.Column("spot_level", sa.Integer(), nullable=False, server_default="1"),
            sa.Column("total_activity", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("shield_expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("tax_boost_expires_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_owner_change_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
        )
    ensure_index("ix_spots_id", "spots", ["id"])
    ensure_index("ix_spots_spotter_id", "spots", ["spotter_id"])
    ensure_index("ix_spots_owner_id", "spots", ["owner_id"])
    ensure_index("ix_spots_active", "spots", ["active"])

    if "visits" not in existing_tables:
        op.create_table(
            "visits",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("spot_id", sa.Integer(), sa.ForeignKey("spots.id"), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("check_in_time", sa.DateTime(timezone=True), nullable=False),
            sa.Column("check_out_time", sa.DateTime(timezone=True), nullable=True),
            sa.Column("last_heartbeat_at", sa.DateTime(timezone=True), nullable=True),
            sa.Column("earned_points", sa.String(64), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
        )
    ensure_index("ix_visits_id", "visits", ["id"])
    ensure_index("ix_visits_spot_id", "visits", ["spot_id"])
    ensure_index("ix_visits_user_id", "visits", ["user_id"])
    ensure_index("ix_visits_check_out_time", "visits", ["check_out_time"])
    ensure_index("ix_visits_last_heartbeat_at", "visits", ["last_heartbeat_at"])

    if "wallets" not in existing_tables:
        op.create_table(
            "wallets",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("balance", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("last_transaction_at", sa.DateTime(timezone=True), nullable=True),
            sa.CheckConstraint("balance >= 0", name="ck_wallets_balance_non_negative"),
        )
    ensure_index("ix_wallets_id", "wallets", ["id"])
    ensure_index("ix_wallets_user_id", "wallets", ["user_id"], unique=True)

    if "transactions" not in existing_tables:
        op.create_table(
            "transactions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("amount", sa.Integer(), nullable=False),
            sa.Column("kind", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("reference", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.UniqueConstraint("user_id", "reference", name="uq_transactions_user_reference"),
        )
    ensure_index("ix_transactions_id", "transactions", ["id"])
    ensure_index("ix_transactions_user_id", "transactions", ["user_id"])
    ensure_index("ix_transactions_kind", "transactions", ["kind"])
    ensure_index("ix_transactions_reference", "transactions", ["reference"])

    if "weekly_spot_points" not in existing_tables:
        op.create_table(
            "weekly_spot_points",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("spot_id", sa.Integer(), sa.ForeignKey("spots.id"), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("week_start", sa.DateTime(timezone=True), nullable=False),
            sa.Column("points", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("updated_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.UniqueConstraint("spot_id", "user_id", "week_start", name="uq_weekly_spot_points_spot_user_week"),
        )
    ensure_index("ix_weekly_spot_points_id", "weekly_spot_points", ["id"])
    ensure_index("ix_weekly_spot_points_user_id", "weekly_spot_points", ["user_id"])
    ensure_index(
        "ix_weekly_spot_points_spot_week_points",
        "weekly_spot_points",
        ["spot_id", "week_start", "points"],
    )

    if "quests" not in existing_tables:
        op.create_table(
            "quests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("title", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("reward_points", sa.Integer(), nullable=False),
            sa.Column("condition_type", sa.String(), nullable=False),
            sa.Column("condition_value", sa.Integer(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
        )
    ensure_index("ix_quests_id", "quests", ["id"])

    if "user_quests" not in existing_tables:
        op.create_table(
            "user_quests",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("quest_id", sa.Integer(), sa.ForeignKey("quests.id"), nullable=False),
            sa.Column("status", sa.String(), nullable=False, server_default="in_progress"),
            sa.Column("progress", sa.Integer(), nullable=False, server_default="0"),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
            sa.UniqueConstraint("user_id", "quest_id", name="uq_user_quests_user_quest"),
        )
    ensure_index("ix_user_quests_id", "user_quests", ["id"])
    ensure_index("ix_user_quests_user_id", "user_quests", ["user_id"])
    ensure_index("ix_user_quests_quest_id", "user_quests", ["quest_id"])

    if "badges" not in existing_tables:
        op.create_table(
            "badges",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False, unique=True),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("icon", sa.String(), nullable=True),
            sa.Column("condition_type", sa.String(), nullable=False),
            sa.Column("condition_value", sa.Integer(), nullable=False),
        )
    ensure_index("ix_badges_id", "badges", ["id"])
    ensure_index("ix_badges_condition_type", "badges", ["condition_type"])

    if "user_badges" not in existing_tables:
        op.create_table(
            "user_badges",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("badge_id", sa.Integer(), sa.ForeignKey("badges.id"), nullable=False),
            sa.Column("earned_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.UniqueConstraint("user_id", "badge_id", name="uq_user_badges_user_badge"),
        )
    ensure_index("ix_user_badges_id", "user_badges", ["id"])
    ensure_index("ix_user_badges_user_id", "user_badges", ["user_id"])

    if "follows" not in existing_tables:
        op.create_table(
            "follows",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("follower_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("following_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.UniqueConstraint("follower_id", "following_id", name="uq_follows_pair"),
        )
    ensure_index("ix_follows_id", "follows", ["id"])
    ensure_index("ix_follows_follower_id", "follows", ["follower_id"])
    ensure_index("ix_follows_following_id", "follows", ["following_id"])

    if "spot_likes" not in existing_tables:
        op.create_table(
            "spot_likes",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("spot_id", sa.Integer(), sa.ForeignKey("spots.id", ondelete="CASCADE"), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.UniqueConstraint("user_id", "spot_id", name="uq_spot_likes_user_spot"),
        )
    ensure_index("ix_spot_likes_id", "spot_likes", ["id"])
    ensure_index("ix_spot_likes_user_id", "spot_likes", ["user_id"])
    ensure_index("ix_spot_likes_spot_id", "spot_likes", ["spot_id"])

    if "spot_messages" not in existing_tables:
        op.create_table(
            "spot_messages",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("spot_id", sa.Integer(), sa.ForeignKey("spots.id", ondelete="CASCADE"), nullable=False),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id", ondelete="CASCADE"), nullable=False),
            sa.Column("content", sa.Text(), nullable=False),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
        )
    ensure_index("ix_spot_messages_id", "spot_messages", ["id"])
    ensure_index("ix_spot_messages_spot_id", "spot_messages", ["spot_id"])
    ensure_index("ix_spot_messages_user_id", "spot_messages", ["user_id"])


def downgrade() -> None:
    for table in [
        "spot_messages",
        "spot_likes",
        "follows",
        "user_badges",
        "badges",
        "user_quests",
        "quests",
        "weekly_spot_points",
        "transactions",
        "wallets",
        "visits",
        "spots",
        "users",
    ]:
        op.drop_table(table)
