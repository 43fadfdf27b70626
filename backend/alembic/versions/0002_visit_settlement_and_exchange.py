"""visit settlement point and coupon exchange

Revision ID: 0002_visit_settlement_and_exchange
Revises: 0001_init
Create Date: 2026-10-19
"""

from alembic import op
import sqlalchemy as sa


revision = "0002_visit_settlement_and_exchange"
down_revision = "0001_init"
branch_labels = None
depends_on = None

_NOW = sa.text("(CURRENT_TIMESTAMP)")


def _inspector():
    from sqlalchemy import inspect as sa_inspect
    return sa_inspect(op.get_bind())


def _column_names(table: str) -> set[str]:
    return {col["name"] for col in _inspector().get_columns(table)}


def upgrade() -> None:
    existing_tables = set(_inspector().get_table_names())

    if "settled_points" not in _column_names("visits"):
        with op.batch_alter_table("visits") as batch_op:
            batch_op.add_column(sa.Column("settled_points", sa.String(64), nullable=False, server_default="0"))

    if "coupons" not in existing_tables:
        op.create_table(
            "coupons",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("name", sa.String(), nullable=False),
            sa.Column("description", sa.Text(), nullable=True),
            sa.Column("cost", sa.Integer(), nullable=False),
            sa.Column("kind", sa.String(), nullable=False, server_default="gift_card"),
            sa.Column("stock", sa.Integer(), nullable=True),
            sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
            sa.Column("data", sa.String(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), server_default=_NOW),
            sa.CheckConstraint("stock IS NULL OR stock >= 0", name="ck_coupons_stock_non_negative"),
        )
        op.create_index("ix_coupons_id", "coupons", ["id"])
        op.create_index("ix_coupons_kind", "coupons", ["kind"])

    if "redemptions" not in existing_tables:
        op.create_table(
            "redemptions",
            sa.Column("id", sa.Integer(), primary_key=True),
            sa.Column("user_id", sa.Integer(), sa.ForeignKey("users.id"), nullable=False),
            sa.Column("coupon_id", sa.Integer(), sa.ForeignKey("coupons.id"), nullable=False),
            sa.Column("code", sa.String(), nullable=False),
            sa.Column("status", sa.String(), nullable=False, server_default="completed"),
            sa.Column("redeemed_at", sa.DateTime(timezone=True), server_default=_NOW),
        )
        op.create_index("ix_redemptions_id", "redemptions", ["id"])
        op.create_index("ix_redemptions_user_id", "redemptions", ["user_id"])
        op.create_index("ix_redemptions_coupon_id", "redemptions", ["coupon_id"])
        op.create_index("ix_redemptions_code", "redemptions", ["code"], unique=True)


def downgrade() -> None:
    existing_tables = set(_inspector().get_table_names())
    for table in ["redemptions", "coupons"]:
        if table in existing_tables:
            op.drop_table(table)
    if "settled_points" in _column_names("visits"):
        with op.batch_alter_table("visits") as batch_op:
            batch_op.drop_column("settled_points")
