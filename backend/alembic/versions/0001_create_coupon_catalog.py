"""create coupon catalog

Revision ID: 0001
Revises:
Create Date: 2026-10-18
"""

from collections.abc import Sequence

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "0001"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: Sequence[str] | None = None


def upgrade() -> None:
    coupon_type = sa.Enum("fixed", "percentage", name="coupontype", native_enum=False)

    op.create_table(
        "coupons",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("type", coupon_type, nullable=False, server_default="fixed"),
        sa.Column("value", sa.Numeric(10, 2), nullable=False),
        sa.Column("min_order_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("max_discount_amount", sa.Numeric(10, 2), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_coupons_location_id", "coupons", ["location_id"])

    op.create_table(
        "dish_coupons",
        sa.Column("id", postgresql.UUID(as_uuid=True), primary_key=True, nullable=False),
        sa.Column("location_id", sa.String(length=64), nullable=False),
        sa.Column("coupon_code", sa.String(length=80), nullable=False),
        sa.Column("dish_name", sa.String(length=120), nullable=False),
        sa.Column("discount_percentage", sa.Numeric(5, 2), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_by", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            onupdate=sa.func.now(),
            nullable=False,
        ),
    )
    op.create_index("ix_dish_coupons_location_id", "dish_coupons", ["location_id"])
    op.create_index("ix_dish_coupons_coupon_code", "dish_coupons", ["coupon_code"])


def downgrade() -> None:
    op.drop_index("ix_dish_coupons_coupon_code", table_name="dish_coupons")
    op.drop_index("ix_dish_coupons_location_id", table_name="dish_coupons")
    op.drop_table("dish_coupons")
    op.drop_index("ix_coupons_location_id", table_name="coupons")
    op.drop_table("coupons")
