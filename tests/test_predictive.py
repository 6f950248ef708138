"""Tests for trend analysis, forecasting and anomaly detection."""

import math
from datetime import date, timedelta
from unittest.mock import MagicMock

import pytest

from bookmark_insights.analytics.models import TimeSeriesPoint, TrendAnalysis, TrendDirection
from bookmark_insights.analytics.predictive import (
    PredictiveAnalytics,
    analyze_trend,
    calculate_moving_average,
    detect_anomalies,
    forecast,
    percentage_change,
    regression_slope,
)

START = date(2026, 3, 1)


def series(*values, start=START):
    return [TimeSeriesPoint(date=start + timedelta(days=i), value=v) for i, v in enumerate(values)]


# =============================================================================
# analyze_trend
# =============================================================================

def test_increasing_decreasing_stable():
    assert analyze_trend(series(1, 2, 3, 4, 5)).trend == TrendDirection.INCREASING
    assert analyze_trend(series(5, 4, 3, 2, 1)).trend == TrendDirection.DECREASING
    assert analyze_trend(series(7, 7, 7, 7)).trend == TrendDirection.STABLE


def test_small_slope_is_stable():
    analysis = analyze_trend(series(10, 10.4, 10.8))
    assert analysis.slope == pytest.approx(0.4)
    assert analysis.trend == TrendDirection.STABLE


def test_trend_resorts_input():
    points = series(1, 2, 3, 4, 5)
    assert analyze_trend(list(reversed(points))).trend == TrendDirection.INCREASING


def test_short_series_returns_defaults():
    assert analyze_trend([]) == TrendAnalysis()
    single = analyze_trend(series(42))
    assert single.trend == TrendDirection.STABLE
    assert single.percentage_change == 0
    assert single.average_growth_rate == 0
    assert single.volatility == 0


def test_percentage_change_from_zero_is_infinite():
    """Growth from zero has no finite ratio and is reported as +inf."""
    analysis = analyze_trend(series(0, 50))
    assert analysis.percentage_change == math.inf
    assert analysis.trend == TrendDirection.INCREASING
    assert analysis.average_growth_rate == 0.0
    assert analysis.volatility == pytest.approx(25.0)


def test_percentage_change_rules():
    assert percentage_change(50, 75) == pytest.approx(50.0)
    assert percentage_change(0, -3) == -math.inf
    assert percentage_change(0, 0) == 0.0


def test_average_growth_skips_zero_periods():
    assert analyze_trend(series(10, 20, 10)).average_growth_rate == pytest.approx(25.0)
    assert analyze_trend(series(0, 10, 20)).average_growth_rate == pytest.approx(100.0)


def test_volatility_is_population_stddev():
    analysis = analyze_trend(series(2, 4, 4, 4, 5, 5, 7, 9))
    assert analysis.volatility == pytest.approx(2.0)


def test_regression_slope_single_value():
    assert regression_slope([3.0]) == 0.0


# =============================================================================
# forecast
# =============================================================================

def test_forecast_shape():
    forecasts = forecast(series(3, 8, 5, 9, 4), periods_ahead=7)
    assert len(forecasts) == 7
    dates = [f.date for f in forecasts]
    assert dates[0] == START + timedelta(days=5)
    assert all(later - earlier == timedelta(days=1) for earlier, later in zip(dates, dates[1:]))
    levels = [f.confidence_level for f in forecasts]
    assert levels == [90, 85, 80, 75, 70, 65, 60]


def test_forecast_confidence_floor():
    levels = [f.confidence_level for f in forecast(series(1, 2), periods_ahead=12)]
    assert all(a >= b for a, b in zip(levels, levels[1:]))
    assert levels[-1] == 50
    assert min(levels) == 50


def test_forecast_is_flat_with_widening_band():
    forecasts = forecast(series(0, 10), periods_ahead=3, alpha=0.5)
    # smoothed = 0.5 * 10 + 0.5 * 0 = 5, stddev = 5
    assert [f.predicted_value for f in forecasts] == [5, 5, 5]
    assert forecasts[0].confidence_lower == 0
    assert forecasts[0].confidence_upper == 15  # round(5 + 9.8)
    uppers = [f.confidence_upper for f in forecasts]
    assert uppers == sorted(uppers)
    assert uppers[-1] > uppers[0]


def test_forecast_constant_series():
    forecasts = forecast(series(10, 10, 10), periods_ahead=2)
    assert [(f.predicted_value, f.confidence_lower, f.confidence_upper) for f in forecasts] == [
        (10, 10, 10),
        (10, 10, 10),
    ]


def test_forecast_requires_two_points():
    assert forecast([]) == []
    assert forecast(series(5)) == []


def test_forecast_uses_sorted_order():
    forward = forecast(series(1, 5, 9), periods_ahead=1)
    shuffled = forecast(list(reversed(series(1, 5, 9))), periods_ahead=1)
    assert forward == shuffled


# =============================================================================
# detect_anomalies
# =============================================================================

def test_detect_anomalies_flags_outlier():
    points = series(10, 10, 10, 10, 10, 10, 10, 10, 10, 50)
    assert detect_anomalies(points) == [START + timedelta(days=9)]
    # z-score of the outlier is exactly 3
    assert detect_anomalies(points, threshold=3) == []


def test_detect_anomalies_guards():
    assert detect_anomalies(series(1, 100)) == []
    assert detect_anomalies(series(4, 4, 4, 4)) == []


# =============================================================================
# calculate_moving_average
# =============================================================================

def test_moving_average_rounds_half_up():
    averaged = calculate_moving_average(series(1, 2, 3, 4), window_size=2)
    assert [p.value for p in averaged] == [2, 3, 4]
    assert [p.date for p in averaged] == [START + timedelta(days=i) for i in (1, 2, 3)]


def test_moving_average_short_series_unchanged():
    points = series(1, 2, 3)
    assert calculate_moving_average(points, window_size=7) is points


def test_moving_average_non_positive_window_unchanged():
    points = series(1, 2, 3)
    assert calculate_moving_average(points, window_size=0) is points
    assert calculate_moving_average(points, window_size=-2) is points


# =============================================================================
# PredictiveAnalytics
# =============================================================================

def test_forecast_affiliate_earnings_uses_history():
    aggregator = MagicMock()
    aggregator.daily_affiliate_earnings.return_value = series(2, 4, 6)
    result = PredictiveAnalytics(aggregator).forecast_affiliate_earnings("alice", days_ahead=5, lookback_days=60)

    aggregator.daily_affiliate_earnings.assert_called_once_with("alice", days=60)
    assert len(result) == 5


def test_forecast_bookmark_growth_without_history():
    aggregator = MagicMock()
    aggregator.daily_bookmark_counts.return_value = []
    assert PredictiveAnalytics(aggregator).forecast_bookmark_growth("alice") == []


def test_analyze_metric_report():
    aggregator = MagicMock()
    aggregator.daily_views.return_value = series(1, 2, 3, 4, 5, 6, 7, 8)
    report = PredictiveAnalytics(aggregator).analyze_metric("alice", "views", days=14, window_size=7)

    aggregator.daily_views.assert_called_once_with("alice", days=14)
    assert report["metric"] == "views"
    assert report["trend"].trend == TrendDirection.INCREASING
    assert report["anomalies"] == []
    assert [p.value for p in report["moving_average"]] == [4, 5]


def test_analyze_metric_unknown():
    with pytest.raises(ValueError, match="Unknown metric"):
        PredictiveAnalytics(MagicMock()).analyze_metric("alice", "shares")
