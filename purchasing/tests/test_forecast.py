from datetime import date

import pytest

from purchasing.services.forecast import (
    METHOD_INSUFFICIENT,
    METHOD_REGRESSION,
    METHOD_WMA,
    MonthlySales,
    forecast,
    linear_regression_trend,
    trend_coefficient,
    weighted_moving_average_trend,
)


def _series(values, max_order_qty=0):
    return [MonthlySales(month=date(2025, i + 1, 1), qty=v, max_order_qty=max_order_qty) for i, v in enumerate(values)]


class TestTrend:
    def test_steady_growth_uses_regression(self):
        trend = trend_coefficient([10, 12, 11, 13, 14, 15])

        assert trend.method == METHOD_REGRESSION
        assert trend.r_squared == pytest.approx(0.889, abs=1e-3)
        assert trend.coefficient == pytest.approx(1.264, abs=1e-3)

    def test_noisy_series_falls_back_to_weighted_average(self):
        trend = trend_coefficient([5, 20, 5, 20, 5, 20])

        assert trend.method == METHOD_WMA
        assert trend.r_squared < 0.7
        assert trend.coefficient == pytest.approx(285 / 21 / 12.5)

    def test_single_month_is_insufficient(self):
        trend = trend_coefficient([42])
        assert trend.method == METHOD_INSUFFICIENT
        assert trend.coefficient == 1.0
        assert trend.r_squared is None

    def test_all_zero_series_is_neutral(self):
        trend = trend_coefficient([0, 0, 0])
        assert trend.method == METHOD_WMA
        assert trend.coefficient == 1.0

    def test_regression_coefficient_is_clamped(self):
        coefficient, _ = linear_regression_trend([100, 50, 1])
        assert coefficient == 0.1

    def test_regression_zero_average(self):
        coefficient, r_squared = linear_regression_trend([0, 0, 0])
        assert coefficient == 1.0
        assert r_squared == 0.0

    def test_weighted_average_needs_two_points(self):
        assert weighted_moving_average_trend([7]) == 1.0


class TestForecast:
    def test_needs_with_growth(self):
        result = forecast(_series([10, 12, 11, 13, 14, 15]), analysis_period_months=3, coverage_months=2)

        assert result.avg_monthly == 14
        assert result.theoretical_need == 28
        # 14 * 1.264 * 2 = 35.39
        assert result.projected_need == 36
        assert result.trend_direction == "up"

    def test_max_order_floor(self):
        result = forecast(_series([14, 14], max_order_qty=30), analysis_period_months=1, coverage_months=1)

        assert result.max_order_qty == 30
        assert result.theoretical_need == 37
        assert result.trend_direction == "stable"

    def test_short_history_divides_by_full_period(self):
        result = forecast(_series([6]), analysis_period_months=3, coverage_months=1)
        assert result.avg_monthly == 2
        assert result.theoretical_need == 2

    def test_window_totals_override_the_series(self):
        result = forecast(_series([10], max_order_qty=2), 1, 1, period_sales=30, max_order_qty=8)

        assert result.avg_monthly == 30
        assert result.max_order_qty == 8
        assert result.theoretical_need == 30
        assert result.trend_method == METHOD_INSUFFICIENT

    def test_no_sales(self):
        result = forecast([], analysis_period_months=3, coverage_months=1)
        assert result.avg_monthly == 0
        assert result.theoretical_need == 0
        assert result.projected_need == 0
        assert result.trend_method == METHOD_INSUFFICIENT

    def test_ceil_is_not_fooled_by_float_noise(self):
        # 10 * 1.1 == 11.000000000000002
        result = forecast(_series([10]), analysis_period_months=1, coverage_months=1.1)
        assert result.theoretical_need == 11

    @pytest.mark.parametrize("period,coverage", [(0, 1), (1, 0), (-1, 1)])
    def test_invalid_parameters(self, period, coverage):
        with pytest.raises(ValueError):
            forecast(_series([1, 2]), period, coverage)
