"""Time-series data models."""

from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import date
from enum import Enum

from bookmark_insights.utils.timeutil import parse_date


class TrendDirection(str, Enum):
    INCREASING = "increasing"
    DECREASING = "decreasing"
    STABLE = "stable"


@dataclass(frozen=True)
class TimeSeriesPoint:
    """One calendar day and its aggregated value."""

    date: date
    value: float

    @classmethod
    def from_dict(cls, data: dict) -> TimeSeriesPoint:
        return cls(date=parse_date(data["date"]), value=float(data["value"]))

    def to_dict(self) -> dict:
        return {"date": self.date.isoformat(), "value": self.value}


@dataclass
class Forecast:
    """A predicted value for a future day with its confidence band."""

    date: date
    predicted_value: int
    confidence_lower: int
    confidence_upper: int
    confidence_level: int  # 50-95

    def to_dict(self) -> dict:
        data = asdict(self)
        data["date"] = self.date.isoformat()
        return data


@dataclass
class TrendAnalysis:
    trend: TrendDirection = TrendDirection.STABLE
    percentage_change: float = 0.0
    average_growth_rate: float = 0.0
    volatility: float = 0.0
    slope: float = 0.0

    def to_dict(self) -> dict:
        data = asdict(self)
        data["trend"] = self.trend.value
        return data
