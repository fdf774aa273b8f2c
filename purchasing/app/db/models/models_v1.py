from __future__ import annotations

from datetime import datetime, date, timezone
from decimal import Decimal

from sqlalchemy import (
    String,
    Integer,
    DateTime,
    Date,
    Boolean,
    ForeignKey,
    Numeric,
    Text,
    Enum,
    UniqueConstraint,
    Index,
    CheckConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from purchasing.app.db.base import Base, BigIntPK
from purchasing.app.db.models.core_types import POStatus, CustomerOrderStatus


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


# ---------- MASTER DATA ----------
class Supplier(Base):
    __tablename__ = "suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    external_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    code: Mapped[str | None] = mapped_column(String(64), unique=True)
    email: Mapped[str | None] = mapped_column(String(255))
    phone: Mapped[str | None] = mapped_column(String(64))
    address: Mapped[str | None] = mapped_column(Text)
    contact_name: Mapped[str | None] = mapped_column(String(255))
    country_code: Mapped[str | None] = mapped_column(String(2))
    currency: Mapped[str] = mapped_column(String(3), default="EUR", nullable=False)

    # Default forecast parameters for products of this supplier
    analysis_period_months: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    coverage_months: Mapped[Decimal] = mapped_column(Numeric(5, 2), default=1, nullable=False)
    lead_time_days: Mapped[int] = mapped_column(Integer, default=2, nullable=False)

    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    external_synced_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    __table_args__ = (
        CheckConstraint("lead_time_days >= 0", name="ck_supplier_lead_time_nonneg"),
        CheckConstraint("analysis_period_months > 0", name="ck_supplier_analysis_period_pos"),
        CheckConstraint("coverage_months > 0", name="ck_supplier_coverage_pos"),
    )


class Product(Base):
    __tablename__ = "products"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    sku: Mapped[str | None] = mapped_column(String(64), unique=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    stock: Mapped[int | None] = mapped_column(Integer)
    cost: Mapped[Decimal | None] = mapped_column(Numeric(14, 2))
    is_published: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)


class ProductAlert(Base):
    __tablename__ = "product_alerts"
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), primary_key=True)
    alert_threshold: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    notes: Mapped[str | None] = mapped_column(Text)


class ProductSupplier(Base):
    __tablename__ = "product_suppliers"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="CASCADE"), nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="CASCADE"), nullable=False)
    supplier_sku: Mapped[str | None] = mapped_column(String(64))
    supplier_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    is_primary: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    min_order_qty: Mapped[int] = mapped_column(Integer, default=1, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    product: Mapped[Product] = relationship()
    supplier: Mapped[Supplier] = relationship()

    __table_args__ = (UniqueConstraint("product_id", "supplier_id", name="uq_product_supplier"),)


# ---------- SALES HISTORY (read-only here) ----------
class CustomerOrder(Base):
    __tablename__ = "customer_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    status: Mapped[CustomerOrderStatus] = mapped_column(
        Enum(CustomerOrderStatus, name="customer_order_status"), nullable=False
    )
    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    items: Mapped[list["CustomerOrderItem"]] = relationship(back_populates="order", cascade="all, delete-orphan")


class CustomerOrderItem(Base):
    __tablename__ = "customer_order_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("customer_orders.id", ondelete="CASCADE"), nullable=False)
    product_id: Mapped[int] = mapped_column(ForeignKey("products.id", ondelete="RESTRICT"), nullable=False)
    qty: Mapped[int] = mapped_column(Integer, nullable=False)

    order: Mapped[CustomerOrder] = relationship(back_populates="items")

    __table_args__ = (Index("ix_customer_order_items_product", "product_id", "order_id"),)


# ---------- PURCHASING ----------
class PurchaseOrder(Base):
    __tablename__ = "purchase_orders"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_number: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    supplier_id: Mapped[int] = mapped_column(ForeignKey("suppliers.id", ondelete="RESTRICT"), nullable=False)
    status: Mapped[POStatus] = mapped_column(Enum(POStatus, name="po_status"), default=POStatus.draft, nullable=False)

    # BMS identifiers. The reference is free text and not guaranteed unique.
    external_id: Mapped[str | None] = mapped_column(String(64), unique=True)
    external_reference: Mapped[str | None] = mapped_column(String(128), index=True)

    order_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    expected_date: Mapped[date | None] = mapped_column(Date)
    received_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Cached aggregates, written together with the items
    total_items: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_qty: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    total_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), default=0, nullable=False)

    notes: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )

    supplier: Mapped[Supplier] = relationship()
    items: Mapped[list["PurchaseOrderItem"]] = relationship(
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="PurchaseOrderItem.id",
    )


class PurchaseOrderItem(Base):
    __tablename__ = "purchase_order_items"
    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    purchase_order_id: Mapped[int] = mapped_column(
        ForeignKey("purchase_orders.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    # Unresolved SKUs keep a null product link
    product_id: Mapped[int | None] = mapped_column(ForeignKey("products.id", ondelete="SET NULL"))
    supplier_sku: Mapped[str | None] = mapped_column(String(64))
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    qty_ordered: Mapped[int] = mapped_column(Integer, nullable=False)
    qty_received: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    unit_price: Mapped[Decimal | None] = mapped_column(Numeric(14, 4))
    theoretical_need: Mapped[int | None] = mapped_column(Integer)
    supposed_need: Mapped[int | None] = mapped_column(Integer)

    order: Mapped[PurchaseOrder] = relationship(back_populates="items")
    product: Mapped[Product | None] = relationship()

    __table_args__ = (
        CheckConstraint("qty_ordered >= 0", name="ck_po_item_qty_ordered_nonneg"),
        Index("ix_po_items_product", "product_id"),
    )


# ---------- APP CONFIG ----------
class AppConfig(Base):
    __tablename__ = "app_config"
    config_key: Mapped[str] = mapped_column(String(64), primary_key=True)
    config_value: Mapped[str | None] = mapped_column(Text)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow, nullable=False
    )
