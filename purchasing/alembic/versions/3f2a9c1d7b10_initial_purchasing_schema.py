"""initial purchasing schema

Revision ID: 3f2a9c1d7b10
Revises:
Create Date: 2026-10-19
"""

from __future__ import annotations

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op

# revision identifiers, used by Alembic.
revision: str = "3f2a9c1d7b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

PO_STATUSES = ("draft", "sent", "confirmed", "shipped", "partial", "received", "cancelled")
CUSTOMER_ORDER_STATUSES = ("pending", "processing", "completed", "delivered", "cancelled", "refunded")


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    ]


def upgrade() -> None:
    op.create_table(
        "suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("external_id", sa.String(64), unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("code", sa.String(64), unique=True),
        sa.Column("email", sa.String(255)),
        sa.Column("phone", sa.String(64)),
        sa.Column("address", sa.Text()),
        sa.Column("contact_name", sa.String(255)),
        sa.Column("country_code", sa.String(2)),
        sa.Column("currency", sa.String(3), nullable=False, server_default="EUR"),
        sa.Column("analysis_period_months", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("coverage_months", sa.Numeric(5, 2), nullable=False, server_default="1"),
        sa.Column("lead_time_days", sa.Integer(), nullable=False, server_default="2"),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column("external_synced_at", sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.CheckConstraint("lead_time_days >= 0", name="ck_supplier_lead_time_nonneg"),
        sa.CheckConstraint("analysis_period_months > 0", name="ck_supplier_analysis_period_pos"),
        sa.CheckConstraint("coverage_months > 0", name="ck_supplier_coverage_pos"),
    )

    op.create_table(
        "products",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("sku", sa.String(64), unique=True),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("stock", sa.Integer()),
        sa.Column("cost", sa.Numeric(14, 2)),
        sa.Column("is_published", sa.Boolean(), nullable=False, server_default=sa.true()),
    )

    op.create_table(
        "product_alerts",
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="CASCADE"), primary_key=True),
        sa.Column("alert_threshold", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
    )

    op.create_table(
        "product_suppliers",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False),
        sa.Column("supplier_sku", sa.String(64)),
        sa.Column("supplier_price", sa.Numeric(14, 4)),
        sa.Column("is_primary", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("min_order_qty", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("product_id", "supplier_id", name="uq_product_supplier"),
    )

    customer_order_status = sa.Enum(*CUSTOMER_ORDER_STATUSES, name="customer_order_status")
    op.create_table(
        "customer_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("status", customer_order_status, nullable=False),
        sa.Column("placed_at", sa.DateTime(timezone=True), nullable=False),
    )
    op.create_index("ix_customer_orders_placed_at", "customer_orders", ["placed_at"])

    op.create_table(
        "customer_order_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "order_id", sa.BigInteger(), sa.ForeignKey("customer_orders.id", ondelete="CASCADE"), nullable=False
        ),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="RESTRICT"), nullable=False),
        sa.Column("qty", sa.Integer(), nullable=False),
    )
    op.create_index("ix_customer_order_items_product", "customer_order_items", ["product_id", "order_id"])

    po_status = sa.Enum(*PO_STATUSES, name="po_status")
    op.create_table(
        "purchase_orders",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column("order_number", sa.String(64), nullable=False, unique=True),
        sa.Column(
            "supplier_id", sa.BigInteger(), sa.ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False
        ),
        sa.Column("status", po_status, nullable=False, server_default="draft"),
        sa.Column("external_id", sa.String(64), unique=True),
        sa.Column("external_reference", sa.String(128)),
        sa.Column("order_date", sa.DateTime(timezone=True)),
        sa.Column("expected_date", sa.Date()),
        sa.Column("received_date", sa.DateTime(timezone=True)),
        sa.Column("total_items", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_qty", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("notes", sa.Text()),
        *_timestamps(),
    )
    op.create_index("ix_purchase_orders_external_reference", "purchase_orders", ["external_reference"])

    op.create_table(
        "purchase_order_items",
        sa.Column("id", sa.BigInteger(), primary_key=True),
        sa.Column(
            "purchase_order_id",
            sa.BigInteger(),
            sa.ForeignKey("purchase_orders.id", ondelete="CASCADE"),
            nullable=False,
        ),
        sa.Column("product_id", sa.BigInteger(), sa.ForeignKey("products.id", ondelete="SET NULL")),
        sa.Column("supplier_sku", sa.String(64)),
        sa.Column("product_name", sa.String(255), nullable=False),
        sa.Column("qty_ordered", sa.Integer(), nullable=False),
        sa.Column("qty_received", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(14, 4)),
        sa.Column("theoretical_need", sa.Integer()),
        sa.Column("supposed_need", sa.Integer()),
        sa.CheckConstraint("qty_ordered >= 0", name="ck_po_item_qty_ordered_nonneg"),
    )
    op.create_index("ix_purchase_order_items_purchase_order_id", "purchase_order_items", ["purchase_order_id"])
    op.create_index("ix_po_items_product", "purchase_order_items", ["product_id"])

    op.create_table(
        "app_config",
        sa.Column("config_key", sa.String(64), primary_key=True),
        sa.Column("config_value", sa.Text()),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )
    # Watermark rows start at the epoch ("never synced")
    op.execute(
        "INSERT INTO app_config (config_key, config_value) VALUES "
        "('last_order_sync_at', '1970-01-01T00:00:00+00:00'), "
        "('last_reception_sync_at', '1970-01-01T00:00:00+00:00')"
    )


def downgrade() -> None:
    op.drop_table("app_config")
    op.drop_index("ix_po_items_product", table_name="purchase_order_items")
    op.drop_index("ix_purchase_order_items_purchase_order_id", table_name="purchase_order_items")
    op.drop_table("purchase_order_items")
    op.drop_index("ix_purchase_orders_external_reference", table_name="purchase_orders")
    op.drop_table("purchase_orders")
    op.drop_index("ix_customer_order_items_product", table_name="customer_order_items")
    op.drop_table("customer_order_items")
    op.drop_index("ix_customer_orders_placed_at", table_name="customer_orders")
    op.drop_table("customer_orders")
    op.drop_table("product_suppliers")
    op.drop_table("product_alerts")
    op.drop_table("products")
    op.drop_table("suppliers")
    sa.Enum(name="po_status").drop(op.get_bind(), checkfirst=True)
    sa.Enum(name="customer_order_status").drop(op.get_bind(), checkfirst=True)
