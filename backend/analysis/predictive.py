"""Preventive rules evaluated against forecasts.

Each metric's forecast is scanned point by point in horizon order. At every
point the critical tier is checked before the warning tier, and the first point
matching either tier produces the metric's only anomaly; later points are not
inspected. The scan therefore reports the earliest crossing, not the worst one.
"""

from collections.abc import Callable
from datetime import datetime

from analysis.thresholds import DEFAULT_THRESHOLDS, AlertThresholds
from core.models import Anomaly, AnomalyType, Forecast, ForecastPoint, Metric, Severity, ThermalLoad

type PointRule = Callable[[ForecastPoint, int, datetime, AlertThresholds], Anomaly | None]


def _preparation_lead(minutes_ahead: int) -> int:
    return max(10, minutes_ahead - 10)


def _temperature_point(
    point: ForecastPoint, floor_id: int, now: datetime, thresholds: AlertThresholds
) -> Anomaly | None:
    t = thresholds.temperature
    if point.value >= t.critical:
        return Anomaly(
            type=AnomalyType.PREDICTIVE_TEMPERATURE,
            severity=Severity.CRITICAL,
            metric="Temperature Forecast",
            value=point.value,
            message=(
                f"PREVENTIVE ALERT: critical temperature of {point.value}°C forecast "
                f"in {point.minutes_ahead} minutes"
            ),
            recommendation=(
                f"PREVENTIVE ACTION: Set the Floor {floor_id} setpoint to 22°C now. "
                "Start pre-cooling before the critical temperature is reached."
            ),
            timestamp=now,
            minutes_ahead=point.minutes_ahead,
            predicted_time=point.timestamp,
        )
    if point.value >= t.warning:
        return Anomaly(
            type=AnomalyType.PREDICTIVE_TEMPERATURE,
            severity=Severity.WARNING,
            metric="Temperature Forecast",
            value=point.value,
            message=(
                f"Preventive alert: high temperature of {point.value}°C forecast in {point.minutes_ahead} minutes"
            ),
            recommendation=(
                f"Prepare a climate adjustment on Floor {floor_id}. Consider lowering the setpoint to 23°C "
                f"within the next {_preparation_lead(point.minutes_ahead)} minutes."
            ),
            timestamp=now,
            minutes_ahead=point.minutes_ahead,
            predicted_time=point.timestamp,
        )
    return None


def _humidity_point(
    point: ForecastPoint, floor_id: int, now: datetime, thresholds: AlertThresholds
) -> Anomaly | None:
    t = thresholds.humidity
    shown = f"{point.value:g}"
    if point.value > t.high_critical:
        severity = Severity.CRITICAL
        message = f"PREVENTIVE ALERT: critical humidity of {shown}% forecast in {point.minutes_ahead} minutes"
        recommendation = (
            f"PREVENTIVE ACTION: Turn on dehumidifiers on Floor {floor_id} now. Increase ventilation ahead of time."
        )
    elif point.value < t.low_critical:
        severity = Severity.CRITICAL
        message = f"PREVENTIVE ALERT: critically low humidity of {shown}% forecast in {point.minutes_ahead} minutes"
        recommendation = (
            f"PREVENTIVE ACTION: Turn on humidifiers on Floor {floor_id} now to avoid extremely dry air."
        )
    elif point.value > t.high_warning:
        severity = Severity.WARNING
        message = f"Preventive alert: high humidity of {shown}% forecast in {point.minutes_ahead} minutes"
        recommendation = (
            f"Increase ventilation on Floor {floor_id} within the next "
            f"{_preparation_lead(point.minutes_ahead)} minutes."
        )
    elif point.value < t.low_warning:
        severity = Severity.WARNING
        message = f"Preventive alert: low humidity of {shown}% forecast in {point.minutes_ahead} minutes"
        recommendation = (
            f"Prepare humidifiers on Floor {floor_id} within the next "
            f"{_preparation_lead(point.minutes_ahead)} minutes."
        )
    else:
        return None
    return Anomaly(
        type=AnomalyType.PREDICTIVE_HUMIDITY,
        severity=severity,
        metric="Humidity Forecast",
        value=point.value,
        message=message,
        recommendation=recommendation,
        timestamp=now,
        minutes_ahead=point.minutes_ahead,
        predicted_time=point.timestamp,
    )


def _power_point(point: ForecastPoint, floor_id: int, now: datetime, thresholds: AlertThresholds) -> Anomaly | None:
    t = thresholds.power
    if point.value >= t.critical:
        return Anomaly(
            type=AnomalyType.PREDICTIVE_POWER,
            severity=Severity.CRITICAL,
            metric="Power Consumption Forecast",
            value=point.value,
            message=(
                f"PREVENTIVE ALERT: critical consumption of {point.value} kWh forecast "
                f"in {point.minutes_ahead} minutes"
            ),
            recommendation=(
                f"PREVENTIVE ACTION: Shift electrical load off Floor {floor_id} now. "
                "Switch off non-essential equipment before overload."
            ),
            timestamp=now,
            minutes_ahead=point.minutes_ahead,
            predicted_time=point.timestamp,
        )
    if point.value >= t.warning:
        return Anomaly(
            type=AnomalyType.PREDICTIVE_POWER,
            severity=Severity.WARNING,
            metric="Power Consumption Forecast",
            value=point.value,
            message=(
                f"Preventive alert: high consumption of {point.value} kWh forecast in {point.minutes_ahead} minutes"
            ),
            recommendation=(
                f"Review high-consumption equipment on Floor {floor_id} within the next "
                f"{_preparation_lead(point.minutes_ahead)} minutes."
            ),
            timestamp=now,
            minutes_ahead=point.minutes_ahead,
            predicted_time=point.timestamp,
        )
    return None


POINT_RULES: dict[Metric, PointRule] = {
    Metric.TEMPERATURE: _temperature_point,
    Metric.HUMIDITY: _humidity_point,
    Metric.POWER_CONSUMPTION: _power_point,
}


def scan_forecast(
    forecast: Forecast | None,
    floor_id: int,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    """First forecast point crossing a warning or critical tier for its metric."""
    if forecast is None:
        return None
    rule = POINT_RULES.get(forecast.metric)
    if rule is None:
        return None
    for point in forecast.predictions:
        anomaly = rule(point, floor_id, now, thresholds)
        if anomaly is not None:
            return anomaly
    return None


def check_predictive_thermal_risk(
    floor_id: int,
    temperature: Forecast | None,
    power: Forecast | None,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    """First horizon step where forecast temperature and power both run high.

    The two forecasts are walked index-aligned; the search stops at the first
    qualifying step even if a later step would be more severe.
    """
    if temperature is None or power is None:
        return None
    t = thresholds.predictive_thermal

    for temp_point, power_point in zip(temperature.predictions, power.predictions):
        load = ThermalLoad(temperature=temp_point.value, power_consumption=power_point.value)
        if temp_point.value >= t.critical_temperature and power_point.value >= t.critical_power:
            return Anomaly(
                type=AnomalyType.PREDICTIVE_THERMAL_OVERLOAD,
                severity=Severity.CRITICAL,
                metric="Thermal Overload Forecast",
                value=load,
                message=(
                    f"CRITICAL PREVENTIVE ALERT: Floor {floor_id} is forecast to exceed {temp_point.value}°C "
                    f"in {temp_point.minutes_ahead} minutes with high consumption of {power_point.value} kWh"
                ),
                recommendation=(
                    f"IMMEDIATE PREVENTIVE ACTION: Reduce the thermal load on Floor {floor_id} NOW. Set the "
                    "setpoint to 21°C, run ventilation at maximum and move high-consumption equipment to other "
                    "floors. Avoid the overload before it happens."
                ),
                timestamp=now,
                minutes_ahead=temp_point.minutes_ahead,
                predicted_time=temp_point.timestamp,
            )
        if temp_point.value >= t.warning_temperature and power_point.value >= t.warning_power:
            return Anomaly(
                type=AnomalyType.PREDICTIVE_THERMAL_OVERLOAD,
                severity=Severity.WARNING,
                metric="Thermal Risk Forecast",
                value=load,
                message=(
                    f"Preventive alert: thermal risk forecast on Floor {floor_id} ({temp_point.value}°C + "
                    f"{power_point.value} kWh) in {temp_point.minutes_ahead} minutes"
                ),
                recommendation=(
                    f"Prepare preventive measures on Floor {floor_id}: set climate control to 23°C, review "
                    "high-consumption equipment and optimise ventilation within the next "
                    f"{_preparation_lead(temp_point.minutes_ahead)} minutes."
                ),
                timestamp=now,
                minutes_ahead=temp_point.minutes_ahead,
                predicted_time=temp_point.timestamp,
            )
    return None


def detect_predictive_anomalies(
    floor_id: int,
    forecasts: dict[Metric, Forecast],
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> list[Anomaly]:
    """Preventive anomalies for temperature, humidity, power and thermal risk."""
    candidates = [
        scan_forecast(forecasts.get(Metric.TEMPERATURE), floor_id, now, thresholds),
        scan_forecast(forecasts.get(Metric.HUMIDITY), floor_id, now, thresholds),
        scan_forecast(forecasts.get(Metric.POWER_CONSUMPTION), floor_id, now, thresholds),
        check_predictive_thermal_risk(
            floor_id,
            forecasts.get(Metric.TEMPERATURE),
            forecasts.get(Metric.POWER_CONSUMPTION),
            now,
            thresholds,
        ),
    ]
    return [anomaly for anomaly in candidates if anomaly is not None]
