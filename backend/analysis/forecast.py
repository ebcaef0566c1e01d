"""Short-horizon metric forecasting from recent floor history.

A deliberately cheap hybrid: a moving average blended with a least-squares
trend line, clamped to each metric's physical range. Everything here is a pure
function of its inputs; timestamps are anchored to the newest sample so the
same history always yields the same forecast.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta

import numpy as np
from numpy.typing import NDArray

from core.clock import local_now
from core.models import FloorForecast, FloorReading, Forecast, ForecastPoint, Metric

RECENT_SAMPLES = 30
MOVING_AVERAGE_WINDOW = 10
STEP_MINUTES = 10
DEFAULT_HORIZON_MINUTES = 60
MIN_SAMPLES_FOR_CONFIDENCE = 5


@dataclass(frozen=True)
class MetricModel:
    """Blend weights, clamp range and rounding for one metric."""

    ma_weight: float
    lr_weight: float
    lower: float
    upper: float | None
    decimals: int  # 0 -> integer output


METRIC_MODELS: dict[Metric, MetricModel] = {
    Metric.OCCUPANCY: MetricModel(ma_weight=0.6, lr_weight=0.4, lower=0.0, upper=100.0, decimals=0),
    Metric.TEMPERATURE: MetricModel(ma_weight=0.6, lr_weight=0.4, lower=18.0, upper=30.0, decimals=1),
    Metric.POWER_CONSUMPTION: MetricModel(ma_weight=0.5, lr_weight=0.5, lower=0.0, upper=None, decimals=2),
    Metric.HUMIDITY: MetricModel(ma_weight=0.6, lr_weight=0.4, lower=0.0, upper=100.0, decimals=0),
}


@dataclass(frozen=True)
class LinearFit:
    slope: float
    intercept: float

    def predict(self, x: float) -> float:
        return self.slope * x + self.intercept


def moving_average(values: NDArray[np.float64], window: int = MOVING_AVERAGE_WINDOW) -> float:
    """Mean of the last ``min(window, n)`` values; 0 for no data."""
    if values.size == 0:
        return 0.0
    return float(np.mean(values[-min(window, values.size) :]))


def linear_regression(x: NDArray[np.float64], y: NDArray[np.float64]) -> LinearFit:
    """Ordinary least squares ``y = slope * x + intercept``.

    With a single distinct x the slope is undefined; it is taken as 0 and the
    line passes through the mean.
    """
    n = x.size
    if n == 0:
        return LinearFit(slope=0.0, intercept=0.0)
    sum_x = float(np.sum(x))
    sum_y = float(np.sum(y))
    denominator = n * float(np.dot(x, x)) - sum_x * sum_x
    if denominator == 0:
        return LinearFit(slope=0.0, intercept=sum_y / n)
    slope = (n * float(np.dot(x, y)) - sum_x * sum_y) / denominator
    return LinearFit(slope=slope, intercept=(sum_y - slope * sum_x) / n)


def calculate_confidence(recent: list[FloorReading]) -> float:
    """Confidence from occupancy spread, whatever metric is being forecast."""
    occupancy = _metric_series(recent, Metric.OCCUPANCY)
    if len(recent) < MIN_SAMPLES_FOR_CONFIDENCE or occupancy.size == 0:
        return 0.5
    std_dev = float(np.std(occupancy))
    return round(max(0.5, min(0.95, 1 - std_dev / 100)), 2)


def _metric_series(recent: list[FloorReading], metric: Metric) -> NDArray[np.float64]:
    return _indexed_series(recent, metric)[1]


def _indexed_series(
    recent: list[FloorReading], metric: Metric
) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Slice positions and values of the samples that carry a usable value."""
    pairs = [(i, v) for i, v in enumerate(r.value_of(metric) for r in recent) if v is not None]
    positions = np.array([i for i, _ in pairs], dtype=np.float64)
    values = np.array([v for _, v in pairs], dtype=np.float64)
    return positions, values


def _finish(value: float, model: MetricModel) -> int | float:
    upper = model.upper if model.upper is not None else value
    clamped = max(model.lower, min(upper, value))
    if model.decimals == 0:
        return int(round(clamped))
    return round(clamped, model.decimals)


def empty_forecast(metric: Metric) -> Forecast:
    return Forecast(metric=metric, predictions=[], method="none", confidence=0.0)


def forecast(
    history: list[FloorReading],
    metric: Metric,
    horizon_minutes: int = DEFAULT_HORIZON_MINUTES,
) -> Forecast:
    """Project ``metric`` forward in 10-minute steps up to ``horizon_minutes``.

    Args:
        history: Chronological readings for one floor (one per minute)
        metric: Metric to forecast
        horizon_minutes: How far ahead to project

    Returns:
        Forecast with one point per step; an empty ``"none"`` forecast with
        zero confidence when there is no usable history
    """
    if not history:
        return empty_forecast(metric)

    recent = history[-RECENT_SAMPLES:]
    positions, values = _indexed_series(recent, metric)
    if values.size == 0:
        return empty_forecast(metric)

    model = METRIC_MODELS[metric]
    ma_value = moving_average(values)
    fit = linear_regression(positions, values)
    n = len(recent)
    anchor = recent[-1].timestamp

    predictions: list[ForecastPoint] = []
    for minutes_ahead in range(STEP_MINUTES, horizon_minutes + 1, STEP_MINUTES):
        lr_value = fit.predict(n + minutes_ahead)
        blended = ma_value * model.ma_weight + lr_value * model.lr_weight
        predictions.append(
            ForecastPoint(
                minutes_ahead=minutes_ahead,
                value=_finish(blended, model),
                timestamp=anchor + timedelta(minutes=minutes_ahead),
            )
        )

    predicted_value = None
    if metric is Metric.OCCUPANCY:
        predicted_value = int(round((ma_value + fit.predict(n + horizon_minutes)) / 2))

    return Forecast(
        metric=metric,
        predictions=predictions,
        method="hybrid",
        confidence=calculate_confidence(recent),
        current_value=float(values[-1]),
        predicted_value=predicted_value,
    )


def forecast_floor(
    history: list[FloorReading],
    horizon_minutes: int = DEFAULT_HORIZON_MINUTES,
    generated_at: datetime | None = None,
) -> FloorForecast:
    """Forecast occupancy, temperature and power for one floor."""
    if generated_at is None:
        generated_at = history[-1].timestamp if history else local_now()
    return FloorForecast(
        occupancy=forecast(history, Metric.OCCUPANCY, horizon_minutes),
        temperature=forecast(history, Metric.TEMPERATURE, horizon_minutes),
        power_consumption=forecast(history, Metric.POWER_CONSUMPTION, horizon_minutes),
        generated_at=generated_at,
    )
