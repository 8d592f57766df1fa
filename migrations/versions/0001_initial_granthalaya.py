"""create catalogue, rack, order and admin log tables

Revision ID: 0001_initial_granthalaya
Revises: 
Create Date: 2026-10-19

"""

from alembic import op
import sqlalchemy as sa


revision = "0001_initial_granthalaya"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "rack",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("rack_id", sa.String(length=64), nullable=False, unique=True),
        sa.Column("name", sa.String(length=120), nullable=False),
        sa.Column("section", sa.String(length=120)),
        sa.Column("shelf", sa.String(length=120)),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "product",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("product_code", sa.String(length=64), unique=True),
        sa.Column("type", sa.String(length=2)),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("stock_quantity", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("category", sa.String(length=120)),
        sa.Column("description", sa.Text()),
        sa.Column("variant_info", sa.String(length=120)),
        sa.Column("rack_id", sa.String(length=64), sa.ForeignKey("rack.rack_id")),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("created_at", sa.DateTime()),
        sa.Column("updated_at", sa.DateTime()),
        sa.Column("created_by", sa.String(length=120)),
    )

    op.create_table(
        "customer_order",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(length=64), nullable=False, unique=True),
        sa.Column("customer_name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("status", sa.String(length=32), nullable=False, server_default="pending"),
        sa.Column(
            "delivery_status", sa.String(length=32), nullable=False, server_default="pending"
        ),
        sa.Column("packed_by", sa.String(length=120)),
        sa.Column("packed_at", sa.DateTime()),
        sa.Column("created_at", sa.DateTime(), nullable=False),
        sa.Column("updated_at", sa.DateTime(), nullable=False),
    )

    op.create_table(
        "customer_order_item",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column(
            "order_id",
            sa.Integer(),
            sa.ForeignKey("customer_order.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.Integer(), sa.ForeignKey("product.id")),
        sa.Column("product_code", sa.String(length=64)),
        sa.Column("title", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("unit_price", sa.Numeric(10, 2), nullable=False, server_default="0"),
        sa.Column("quantity", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("rack_id", sa.String(length=64)),
        sa.Column("verified_quantity", sa.Integer(), nullable=False, server_default="0"),
    )
    op.create_index(
        "ix_customer_order_item_order_id", "customer_order_item", ["order_id"]
    )

    op.create_table(
        "system_metadata",
        sa.Column("key", sa.String(length=120), primary_key=True),
        sa.Column("completed", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("processed_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("completed_at", sa.DateTime()),
    )

    op.create_table(
        "admin_log",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("admin_user", sa.String(length=120)),
        sa.Column("action", sa.String(length=16), nullable=False),
        sa.Column("collection", sa.String(length=120), nullable=False),
        sa.Column("document_id", sa.String(length=120), nullable=False),
        sa.Column("details", sa.String(length=512)),
        sa.Column("previous_data", sa.JSON()),
        sa.Column("new_data", sa.JSON()),
        sa.Column("platform", sa.String(length=32), nullable=False, server_default="api"),
        sa.Column("timestamp", sa.DateTime(), nullable=False),
    )
    op.create_index("ix_admin_log_timestamp", "admin_log", ["timestamp"])


def downgrade():
    op.drop_index("ix_admin_log_timestamp", table_name="admin_log")
    op.drop_table("admin_log")
    op.drop_table("system_metadata")
    op.drop_index("ix_customer_order_item_order_id", table_name="customer_order_item")
    op.drop_table("customer_order_item")
    op.drop_table("customer_order")
    op.drop_table("product")
    op.drop_table("rack")
