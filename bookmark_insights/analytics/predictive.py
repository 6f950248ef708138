"""Predictive analytics — trend detection, forecasting and anomaly detection.

Simple statistical methods over daily series:

- linear regression slope for trend direction
- exponential smoothing for forecasts
- z-scores for anomalies
- moving averages for smoothing charts
"""

from __future__ import annotations

import math
from datetime import timedelta

from bookmark_insights.analytics.aggregator import MetricsAggregator
from bookmark_insights.analytics.models import Forecast, TimeSeriesPoint, TrendAnalysis, TrendDirection
from bookmark_insights.utils.logger import get_logger
from bookmark_insights.utils.numbers import round_half_up

logger = get_logger()

TREND_SLOPE_THRESHOLD = 0.5
CONFIDENCE_Z = 1.96  # 95%
CONFIDENCE_WIDENING_PER_PERIOD = 0.1
CONFIDENCE_LEVEL_START = 95
CONFIDENCE_LEVEL_STEP = 5
CONFIDENCE_LEVEL_FLOOR = 50

METRICS = ("bookmarks", "views", "earnings")


def _sorted(series: list[TimeSeriesPoint]) -> list[TimeSeriesPoint]:
    return sorted(series, key=lambda p: p.date)


def _mean_and_stddev(values: list[float]) -> tuple[float, float]:
    """Population mean and standard deviation."""
    n = len(values)
    mean = sum(values) / n
    variance = sum((v - mean) ** 2 for v in values) / n
    return mean, math.sqrt(variance)


def regression_slope(values: list[float]) -> float:
    """Least-squares slope of values against their index positions 0..n-1."""
    n = len(values)
    sum_x = sum(range(n))
    sum_y = sum(values)
    sum_xy = sum(i * v for i, v in enumerate(values))
    sum_x2 = sum(i * i for i in range(n))
    denominator = n * sum_x2 - sum_x * sum_x
    if denominator == 0:
        return 0.0
    return (n * sum_xy - sum_x * sum_y) / denominator


def percentage_change(first: float, last: float) -> float:
    """Relative change from first to last, in percent.

    A zero starting value has no defined ratio: the result is +inf or -inf
    following the direction of the change, or 0.0 when nothing changed.
    """
    if first == 0:
        if last == first:
            return 0.0
        return math.inf if last > first else -math.inf
    return (last - first) / first * 100


def analyze_trend(series: list[TimeSeriesPoint]) -> TrendAnalysis:
    """Classify direction and volatility of a series."""
    if len(series) < 2:
        return TrendAnalysis()

    values = [p.value for p in _sorted(series)]
    slope = regression_slope(values)

    if slope > TREND_SLOPE_THRESHOLD:
        trend = TrendDirection.INCREASING
    elif slope < -TREND_SLOPE_THRESHOLD:
        trend = TrendDirection.DECREASING
    else:
        trend = TrendDirection.STABLE

    _, volatility = _mean_and_stddev(values)

    # Periods starting from zero have no growth rate and are skipped
    growth_rates = [
        (current - previous) / previous * 100
        for previous, current in zip(values, values[1:])
        if previous > 0
    ]
    average_growth_rate = sum(growth_rates) / len(growth_rates) if growth_rates else 0.0

    return TrendAnalysis(
        trend=trend,
        percentage_change=percentage_change(values[0], values[-1]),
        average_growth_rate=average_growth_rate,
        volatility=volatility,
        slope=slope,
    )


def forecast(series: list[TimeSeriesPoint], periods_ahead: int = 7, alpha: float = 0.3) -> list[Forecast]:
    """Forecast the next ``periods_ahead`` days with single exponential smoothing.

    The final smoothed level is used as a flat prediction for every future
    day; only the confidence band widens with the horizon.
    """
    if len(series) < 2:
        return []

    ordered = _sorted(series)
    smoothed = ordered[0].value
    for point in ordered[1:]:
        smoothed = alpha * point.value + (1 - alpha) * smoothed

    _, stddev = _mean_and_stddev([p.value for p in ordered])
    last_date = ordered[-1].date

    forecasts = []
    for i in range(1, periods_ahead + 1):
        multiplier = CONFIDENCE_Z * (1 + (i - 1) * CONFIDENCE_WIDENING_PER_PERIOD)
        margin = stddev * multiplier
        forecasts.append(Forecast(
            date=last_date + timedelta(days=i),
            predicted_value=round_half_up(smoothed),
            confidence_lower=max(0, round_half_up(smoothed - margin)),
            confidence_upper=round_half_up(smoothed + margin),
            confidence_level=max(CONFIDENCE_LEVEL_FLOOR, CONFIDENCE_LEVEL_START - i * CONFIDENCE_LEVEL_STEP),
        ))
    return forecasts


def detect_anomalies(series: list[TimeSeriesPoint], threshold: float = 2) -> list:
    """Dates whose value lies more than ``threshold`` standard deviations from the mean."""
    if len(series) < 3:
        return []

    mean, stddev = _mean_and_stddev([p.value for p in series])
    if stddev == 0:
        return []
    return [p.date for p in series if abs(p.value - mean) / stddev > threshold]


def calculate_moving_average(series: list[TimeSeriesPoint], window_size: int = 7) -> list[TimeSeriesPoint]:
    """Trailing moving average, rounded to whole numbers.

    Series shorter than the window, or a window below one, are returned unchanged.
    """
    if window_size < 1 or len(series) < window_size:
        return series

    ordered = _sorted(series)
    averaged = []
    for i in range(window_size - 1, len(ordered)):
        window = ordered[i - window_size + 1:i + 1]
        average = sum(p.value for p in window) / window_size
        averaged.append(TimeSeriesPoint(date=ordered[i].date, value=round_half_up(average)))
    return averaged


class PredictiveAnalytics:
    """Forecasts and trend reports for a creator's activity."""

    def __init__(self, aggregator: MetricsAggregator):
        self.aggregator = aggregator

    def series_for(self, user_id: str, metric: str, days: int = 30) -> list[TimeSeriesPoint]:
        """Daily series for one of ``METRICS``."""
        if metric == "bookmarks":
            return self.aggregator.daily_bookmark_counts(user_id)
        if metric == "views":
            return self.aggregator.daily_views(user_id, days=days)
        if metric == "earnings":
            return self.aggregator.daily_affiliate_earnings(user_id, days=days)
        raise ValueError(f"Unknown metric '{metric}' (expected one of {', '.join(METRICS)})")

    def forecast_affiliate_earnings(
        self, user_id: str, days_ahead: int = 30, lookback_days: int = 90, alpha: float = 0.3
    ) -> list[Forecast]:
        history = self.aggregator.daily_affiliate_earnings(user_id, days=lookback_days)
        if not history:
            logger.info("No affiliate earnings history for %s", user_id)
            return []
        return forecast(history, days_ahead, alpha)

    def forecast_bookmark_growth(self, user_id: str, days_ahead: int = 30, alpha: float = 0.3) -> list[Forecast]:
        history = self.aggregator.daily_bookmark_counts(user_id)
        if not history:
            logger.info("No bookmark history for %s", user_id)
            return []
        return forecast(history, days_ahead, alpha)

    def analyze_metric(
        self,
        user_id: str,
        metric: str,
        days: int = 30,
        anomaly_threshold: float = 2,
        window_size: int = 7,
    ) -> dict:
        """Trend, anomalies and moving average for one metric's daily series."""
        series = self.series_for(user_id, metric, days)
        return {
            "metric": metric,
            "series": series,
            "trend": analyze_trend(series),
            "anomalies": detect_anomalies(series, anomaly_threshold),
            "moving_average": calculate_moving_average(series, window_size),
        }
