"""
Demand forecast engine.

Needs formula::

    theoretical = max(avg * coverage, max_order + avg / 2)
    projected   = max(avg * trend * coverage, max_order + avg * trend / 2)

``max_order + half a month of sales`` is the safety floor against
underordering ahead of a known spike. The trend coefficient comes from a
linear regression when it explains the series well (R² >= 0.7), otherwise
from a recency-weighted moving average.
"""
from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import date
from typing import NamedTuple, Sequence

import numpy as np
from sklearn.linear_model import LinearRegression

R2_THRESHOLD = 0.7
MIN_COEFFICIENT = 0.1
MAX_COEFFICIENT = 5.0

METHOD_INSUFFICIENT = "insufficient_data"
METHOD_REGRESSION = "linear_regression"
METHOD_WMA = "weighted_moving_average"


class MonthlySales(NamedTuple):
    month: date
    qty: int
    max_order_qty: int = 0


@dataclass(frozen=True)
class Trend:
    coefficient: float
    method: str
    r_squared: float | None


@dataclass(frozen=True)
class ForecastResult:
    avg_monthly: float
    trend_coefficient: float
    trend_method: str
    r_squared: float | None
    max_order_qty: int
    theoretical_need: int
    projected_need: int

    @property
    def trend_direction(self) -> str:
        if self.trend_coefficient > 1.1:
            return "up"
        if self.trend_coefficient < 0.9:
            return "down"
        return "stable"


def _clamp(value: float) -> float:
    return max(MIN_COEFFICIENT, min(MAX_COEFFICIENT, value))


def _ceil_units(value: float) -> int:
    # round first so 11.000000000000002 stays 11
    return int(math.ceil(round(value, 6)))


def linear_regression_trend(sales: Sequence[float]) -> tuple[float, float]:
    """Return ``(coefficient, r_squared)`` of an OLS fit over the series."""
    y = np.asarray(sales, dtype=float)
    n = len(y)
    x = np.arange(n, dtype=float).reshape(-1, 1)

    model = LinearRegression().fit(x, y)
    predicted = model.predict(x)
    avg = float(y.mean())

    ss_res = float(np.sum((y - predicted) ** 2))
    ss_tot = float(np.sum((y - avg) ** 2))
    r_squared = 0.0 if ss_tot == 0 else max(0.0, 1 - ss_res / ss_tot)

    projected = float(model.predict(np.array([[n]], dtype=float))[0])
    if avg == 0:
        coefficient = 2.0 if projected > 0 else 1.0
    else:
        coefficient = projected / avg

    return _clamp(coefficient), r_squared


def weighted_moving_average_trend(sales: Sequence[float]) -> float:
    """Weighted (1..n, most recent heaviest) average over the simple average."""
    y = np.asarray(sales, dtype=float)
    if len(y) < 2:
        return 1.0

    weights = np.arange(1, len(y) + 1, dtype=float)
    weighted_avg = float(np.average(y, weights=weights))
    simple_avg = float(y.mean())

    if simple_avg == 0:
        return 1.5 if weighted_avg > 0 else 1.0
    return _clamp(weighted_avg / simple_avg)


def trend_coefficient(sales: Sequence[float]) -> Trend:
    if len(sales) < 2:
        return Trend(coefficient=1.0, method=METHOD_INSUFFICIENT, r_squared=None)

    coefficient, r_squared = linear_regression_trend(sales)
    if r_squared >= R2_THRESHOLD:
        return Trend(coefficient=coefficient, method=METHOD_REGRESSION, r_squared=r_squared)

    return Trend(
        coefficient=weighted_moving_average_trend(sales),
        method=METHOD_WMA,
        r_squared=r_squared,
    )


def forecast(
    monthly_series: Sequence[MonthlySales],
    analysis_period_months: int,
    coverage_months: float,
    *,
    period_sales: float | None = None,
    max_order_qty: int | None = None,
) -> ForecastResult:
    """
    Needs from a series of completed months.

    ``period_sales`` is the quantity sold over the rolling analysis window
    ending now; without it the last ``analysis_period_months`` buckets of the
    series are summed. ``max_order_qty`` likewise overrides the series maximum.
    """
    if analysis_period_months <= 0:
        raise ValueError("analysis_period_months must be positive")
    if coverage_months <= 0:
        raise ValueError("coverage_months must be positive")

    sales = [m.qty for m in monthly_series]
    if period_sales is None:
        period_sales = sum(sales[-analysis_period_months:]) if sales else 0
    avg_monthly = period_sales / analysis_period_months

    trend = trend_coefficient(sales)
    if max_order_qty is None:
        max_order_qty = max((m.max_order_qty for m in monthly_series), default=0)

    theoretical = max(avg_monthly * coverage_months, max_order_qty + avg_monthly / 2)
    projected_monthly = avg_monthly * trend.coefficient
    projected = max(projected_monthly * coverage_months, max_order_qty + projected_monthly / 2)

    return ForecastResult(
        avg_monthly=avg_monthly,
        trend_coefficient=trend.coefficient,
        trend_method=trend.method,
        r_squared=trend.r_squared,
        max_order_qty=max_order_qty,
        theoretical_need=_ceil_units(theoretical),
        projected_need=_ceil_units(projected),
    )
