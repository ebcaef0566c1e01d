"""Tests for the moving-average + trend forecaster."""

import math
from datetime import UTC, datetime, timedelta

import numpy as np
import pytest

from analysis.forecast import (
    calculate_confidence,
    forecast,
    forecast_floor,
    linear_regression,
    moving_average,
)
from core.models import FloorReading, Metric

T0 = datetime(2025, 1, 15, 9, 0, tzinfo=UTC)


def _history(
    occupancy: list[int],
    temperature: list[float] | None = None,
    power: list[float] | None = None,
) -> list[FloorReading]:
    n = len(occupancy)
    temperature = temperature or [22.0] * n
    power = power or [120.0] * n
    return [
        FloorReading(
            floor_id=1,
            name="Floor 1",
            occupancy=occupancy[i],
            temperature=temperature[i],
            humidity=35,
            power_consumption=power[i],
            timestamp=T0 + timedelta(minutes=i),
        )
        for i in range(n)
    ]


# -----------------------------------------------------------------------------
# Building blocks
# -----------------------------------------------------------------------------


def test_moving_average_uses_last_window() -> None:
    values = np.arange(20, dtype=np.float64)
    assert moving_average(values, 10) == pytest.approx(np.mean(np.arange(10, 20)))


def test_moving_average_short_series_uses_all_values() -> None:
    assert moving_average(np.array([2.0, 4.0, 6.0]), 10) == pytest.approx(4.0)
    assert moving_average(np.array([], dtype=np.float64)) == 0.0


def test_linear_regression_recovers_line() -> None:
    x = np.arange(8, dtype=np.float64)
    fit = linear_regression(x, 3.0 * x + 2.0)
    assert fit.slope == pytest.approx(3.0)
    assert fit.intercept == pytest.approx(2.0)


def test_linear_regression_single_point_has_zero_slope() -> None:
    fit = linear_regression(np.array([0.0]), np.array([42.0]))
    assert fit.slope == 0.0
    assert fit.intercept == 42.0


def test_confidence_floor_for_short_history() -> None:
    assert calculate_confidence(_history([10, 90, 10])) == 0.5


def test_confidence_from_occupancy_spread() -> None:
    steady = _history([50] * 10)
    assert calculate_confidence(steady) == 0.95

    noisy = _history([10, 90] * 5)
    # std = 40 -> 1 - 0.4
    assert calculate_confidence(noisy) == 0.6


# -----------------------------------------------------------------------------
# forecast()
# -----------------------------------------------------------------------------


def test_empty_history_gives_empty_forecast() -> None:
    result = forecast([], Metric.TEMPERATURE, 60)
    assert result.predictions == []
    assert result.method == "none"
    assert result.confidence == 0


def test_steps_every_ten_minutes_up_to_horizon() -> None:
    result = forecast(_history([50] * 12), Metric.OCCUPANCY, 60)
    assert [p.minutes_ahead for p in result.predictions] == [10, 20, 30, 40, 50, 60]
    assert result.method == "hybrid"

    short = forecast(_history([50] * 12), Metric.OCCUPANCY, 25)
    assert [p.minutes_ahead for p in short.predictions] == [10, 20]


def test_flat_history_forecasts_flat_values() -> None:
    result = forecast(_history([50] * 15, temperature=[23.0] * 15), Metric.TEMPERATURE, 60)
    assert all(p.value == 23.0 for p in result.predictions)
    assert result.current_value == 23.0


def test_single_sample_forecasts_that_value() -> None:
    result = forecast(_history([40], power=[130.0]), Metric.POWER_CONSUMPTION, 30)
    assert [p.value for p in result.predictions] == [130.0, 130.0, 130.0]
    assert result.confidence == 0.5


def test_values_are_clamped_to_physical_range() -> None:
    rising = [20.0 + i * 0.5 for i in range(30)]  # 20 -> 34.5
    result = forecast(_history([50] * 30, temperature=rising), Metric.TEMPERATURE, 60)
    assert all(18.0 <= p.value <= 30.0 for p in result.predictions)
    assert result.predictions[-1].value == 30.0

    falling = [100 - i * 4 for i in range(25)]
    occ = forecast(_history(falling), Metric.OCCUPANCY, 60)
    assert all(0 <= p.value <= 100 for p in occ.predictions)


def test_power_has_no_upper_clamp() -> None:
    rising = [150.0 + i * 10 for i in range(30)]
    result = forecast(_history([50] * 30, power=rising), Metric.POWER_CONSUMPTION, 60)
    assert result.predictions[-1].value > 440.0


def test_blend_weights() -> None:
    # Values 0..9: MA = 4.5, LR is y = x, step 10 predicts index 20
    temps = [18.0 + i for i in range(10)]
    result = forecast(_history([50] * 10, temperature=temps), Metric.TEMPERATURE, 10)
    expected = 0.6 * (18.0 + 4.5) + 0.4 * (18.0 + 20)
    assert result.predictions[0].value == round(min(30.0, expected), 1)

    powers = [100.0 + i for i in range(10)]
    power = forecast(_history([50] * 10, power=powers), Metric.POWER_CONSUMPTION, 10)
    assert power.predictions[0].value == round(0.5 * 104.5 + 0.5 * 120.0, 2)


def test_occupancy_predictions_are_integers() -> None:
    result = forecast(_history([40, 42, 45, 47, 50, 53]), Metric.OCCUPANCY, 30)
    assert all(type(p.value) is int for p in result.predictions)
    assert type(result.predicted_value) is int
    assert ".0" not in str(result.as_dict()["predictions"][0]["occupancy"])


def test_malformed_samples_keep_their_slice_position() -> None:
    # 18..27 with index 3 unreadable: the remaining points still lie on y = 18 + x
    temps = [18.0 + i for i in range(10)]
    temps[3] = float("nan")
    result = forecast(_history([50] * 10, temperature=temps), Metric.TEMPERATURE, 10)

    valid = [t for t in temps if not math.isnan(t)]
    expected = 0.6 * (sum(valid) / len(valid)) + 0.4 * (18.0 + 20)
    assert result.predictions[0].value == round(expected, 1)
    assert result.current_value == 27.0


def test_only_last_thirty_samples_are_used() -> None:
    old = _history([0] * 20 + [60] * 30)
    recent = _history([60] * 30)
    assert [p.value for p in forecast(old, Metric.OCCUPANCY).predictions] == [
        p.value for p in forecast(recent, Metric.OCCUPANCY).predictions
    ]


def test_occupancy_forecast_carries_predicted_value() -> None:
    result = forecast(_history([50] * 10), Metric.OCCUPANCY, 60)
    assert result.predicted_value == 50
    assert forecast(_history([50] * 10), Metric.TEMPERATURE).predicted_value is None


def test_forecast_is_idempotent() -> None:
    history = _history([30, 45, 60, 52, 70, 66, 80], temperature=[22.0, 22.5, 23.1, 24.0, 24.2, 25.0, 25.4])
    first = forecast(history, Metric.TEMPERATURE, 60)
    second = forecast(history, Metric.TEMPERATURE, 60)
    assert first == second


def test_timestamps_anchor_on_last_sample() -> None:
    history = _history([50] * 5)
    result = forecast(history, Metric.OCCUPANCY, 20)
    assert result.predictions[0].timestamp == history[-1].timestamp + timedelta(minutes=10)


def test_forecast_floor_covers_three_metrics() -> None:
    history = _history([50] * 10)
    result = forecast_floor(history, 30)
    assert set(result.by_metric()) == {Metric.OCCUPANCY, Metric.TEMPERATURE, Metric.POWER_CONSUMPTION}
    assert result.generated_at == history[-1].timestamp
    assert len(result.temperature.predictions) == 3


def test_forecast_floor_empty_history() -> None:
    result = forecast_floor([], 60)
    assert all(f.is_empty and f.method == "none" for f in result.by_metric().values())
