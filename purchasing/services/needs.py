"""
Replenishment needs for a product.

Wraps the forecast engine with the data it needs: the monthly sales series
built from customer order lines, the supplier's default parameters, incoming
quantities on open purchase orders and the manual alert threshold.
"""
from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone

import pandas as pd
from sqlalchemy import select
from sqlalchemy.orm import Session

from purchasing.app.core.config import settings
from purchasing.app.db.models.core_types import CustomerOrderStatus
from purchasing.app.db.models.models_v1 import (
    CustomerOrder,
    CustomerOrderItem,
    Product,
    ProductAlert,
    ProductSupplier,
    Supplier,
)
from purchasing.services.errors import NotFoundError, OrderValidationError
from purchasing.services.forecast import MonthlySales, forecast
from purchasing.services.inventory import incoming_qty

COUNTED_STATUSES = {
    CustomerOrderStatus.completed,
    CustomerOrderStatus.processing,
    CustomerOrderStatus.delivered,
}


@dataclass(frozen=True)
class ProductNeeds:
    product_id: int
    analysis_period_months: int
    coverage_months: float
    avg_monthly_sales: float
    max_order_qty: int
    trend_coefficient: float
    trend_method: str
    trend_r_squared: float | None
    trend_direction: str
    theoretical_need: int
    supposed_need: int
    stock: int
    incoming_qty: int
    alert_threshold: int
    effective_theoretical_need: int
    effective_supposed_need: int
    theoretical_proposal: int
    supposed_proposal: int
    monthly_sales: list[MonthlySales]


def _as_utc_ts(now: datetime | None) -> pd.Timestamp:
    ts = pd.Timestamp(now or datetime.now(timezone.utc))
    return ts.tz_localize("UTC") if ts.tzinfo is None else ts


def _sales_frame(db: Session, product_id: int, since: pd.Timestamp, until: pd.Timestamp) -> pd.DataFrame:
    """Counted sale lines of ``product_id`` placed in ``[since, until)``."""
    rows = db.execute(
        select(CustomerOrder.placed_at, CustomerOrderItem.qty)
        .join(CustomerOrder, CustomerOrder.id == CustomerOrderItem.order_id)
        .where(CustomerOrderItem.product_id == product_id)
        .where(CustomerOrder.status.in_(COUNTED_STATUSES))
        .where(CustomerOrder.placed_at >= since.to_pydatetime())
        .where(CustomerOrder.placed_at < until.to_pydatetime())
    ).all()
    return pd.DataFrame(rows, columns=["placed_at", "qty"])


def monthly_sales(
    db: Session,
    product_id: int,
    *,
    now: datetime | None = None,
    lookback_months: int | None = None,
) -> list[MonthlySales]:
    """
    Calendar-month sales for ``product_id`` over the lookback window.

    Only completed months are returned: the series runs from the first month
    with sales up to the month before ``now``, with zero for months without
    sales in between. The month in progress would read as a drop in demand.
    """
    now_ts = _as_utc_ts(now)
    lookback = lookback_months or settings.sales_lookback_months
    current_month = now_ts.tz_convert(None).to_period("M")
    month_start = current_month.start_time.tz_localize("UTC")

    df = _sales_frame(db, product_id, now_ts - pd.DateOffset(months=lookback), month_start)
    if df.empty:
        return []

    df["month"] = pd.to_datetime(df["placed_at"], utc=True).dt.tz_convert(None).dt.to_period("M")
    by_month = df.groupby("month")["qty"].agg(["sum", "max"])
    months = pd.period_range(by_month.index.min(), current_month - 1, freq="M")
    by_month = by_month.reindex(months, fill_value=0)

    return [
        MonthlySales(month=period.start_time.date(), qty=int(row["sum"]), max_order_qty=int(row["max"]))
        for period, row in by_month.iterrows()
    ]


def period_sales(db: Session, product_id: int, months: int, *, now: datetime | None = None) -> int:
    """Quantity sold over the rolling ``months`` ending at ``now``."""
    now_ts = _as_utc_ts(now)
    df = _sales_frame(db, product_id, now_ts - pd.DateOffset(months=months), now_ts + pd.Timedelta(microseconds=1))
    return int(df["qty"].sum()) if not df.empty else 0


def max_order_qty(
    db: Session,
    product_id: int,
    *,
    now: datetime | None = None,
    lookback_months: int | None = None,
) -> int:
    """Largest single sale line over the lookback window, current month included."""
    now_ts = _as_utc_ts(now)
    lookback = lookback_months or settings.sales_lookback_months
    df = _sales_frame(db, product_id, now_ts - pd.DateOffset(months=lookback), now_ts + pd.Timedelta(microseconds=1))
    return int(df["qty"].max()) if not df.empty else 0


def _supplier_defaults(db: Session, product_id: int) -> tuple[int, float] | None:
    supplier = db.execute(
        select(Supplier)
        .join(ProductSupplier, ProductSupplier.supplier_id == Supplier.id)
        .where(ProductSupplier.product_id == product_id)
        .order_by(ProductSupplier.is_primary.desc(), ProductSupplier.id.asc())
    ).scalars().first()
    if supplier is None:
        return None
    return supplier.analysis_period_months or 1, float(supplier.coverage_months or 1)


def product_needs(
    db: Session,
    product_id: int,
    analysis_period_months: int | None = None,
    coverage_months: float | None = None,
    *,
    now: datetime | None = None,
) -> ProductNeeds:
    product = db.get(Product, product_id)
    if product is None:
        raise NotFoundError(f"Product {product_id} not found")

    if analysis_period_months is None or coverage_months is None:
        defaults = _supplier_defaults(db, product_id) or (1, 1.0)
        analysis_period_months = analysis_period_months or defaults[0]
        coverage_months = coverage_months or defaults[1]
    if analysis_period_months <= 0 or coverage_months <= 0:
        raise OrderValidationError("analysis_period_months and coverage_months must be positive")

    now = now or datetime.now(timezone.utc)
    series = monthly_sales(db, product_id, now=now)
    result = forecast(
        series,
        int(analysis_period_months),
        float(coverage_months),
        period_sales=period_sales(db, product_id, int(analysis_period_months), now=now),
        max_order_qty=max_order_qty(db, product_id, now=now),
    )

    alert = db.get(ProductAlert, product_id)
    threshold = alert.alert_threshold if alert else 0
    stock = product.stock or 0
    incoming = incoming_qty(db, [product_id]).get(product_id, 0)

    effective_theoretical = max(result.theoretical_need, threshold)
    effective_supposed = max(result.projected_need, threshold)

    return ProductNeeds(
        product_id=product_id,
        analysis_period_months=int(analysis_period_months),
        coverage_months=float(coverage_months),
        avg_monthly_sales=round(result.avg_monthly, 2),
        max_order_qty=result.max_order_qty,
        trend_coefficient=round(result.trend_coefficient, 2),
        trend_method=result.trend_method,
        trend_r_squared=round(result.r_squared, 2) if result.r_squared is not None else None,
        trend_direction=result.trend_direction,
        theoretical_need=result.theoretical_need,
        supposed_need=result.projected_need,
        stock=stock,
        incoming_qty=incoming,
        alert_threshold=threshold,
        effective_theoretical_need=effective_theoretical,
        effective_supposed_need=effective_supposed,
        theoretical_proposal=max(0, effective_theoretical - stock - incoming),
        supposed_proposal=max(0, effective_supposed - stock - incoming),
        monthly_sales=series,
    )
