"""Threshold rules over observed floor readings.

Each ``check_*`` function returns at most one anomaly: tiers are checked from
the highest severity down and the first match wins. A missing or malformed
metric makes the rule return ``None`` instead of raising, so one bad value
never blocks the other rules.
"""

from datetime import datetime

import numpy as np

from analysis.thresholds import DEFAULT_THRESHOLDS, AlertThresholds
from core.models import Anomaly, AnomalyType, FloorReading, Metric, Severity, ThermalLoad, metric_value

OCCUPANCY_LABEL = "Occupancy"
TEMPERATURE_LABEL = "Temperature"
HUMIDITY_LABEL = "Humidity"
POWER_LABEL = "Power Consumption"


def _neighbour_floor(floor_id: int) -> int:
    """Floor that absorbs redistributed people or load."""
    return floor_id - 1 if floor_id > 1 else floor_id + 1


def check_occupancy(
    occupancy: object,
    history: list[FloorReading],
    floor_id: int,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    value = metric_value(occupancy)
    if value is None:
        return None
    t = thresholds.occupancy
    people = int(value)

    if value >= t.critical:
        to_move = round((value - t.warning) / 2)
        return Anomaly(
            type=AnomalyType.OCCUPANCY,
            severity=Severity.CRITICAL,
            metric=OCCUPANCY_LABEL,
            value=value,
            message=f"Critical occupancy: {people} people",
            recommendation=(
                f"CRITICAL: Turn on extra ventilation on Floor {floor_id} immediately. "
                f"Move {to_move} people to Floor {_neighbour_floor(floor_id)} within 15 min. "
                "Keep an eye on maximum capacity."
            ),
            timestamp=now,
        )

    if value >= t.warning:
        return Anomaly(
            type=AnomalyType.OCCUPANCY,
            severity=Severity.WARNING,
            metric=OCCUPANCY_LABEL,
            value=value,
            message=f"High occupancy: {people} people",
            recommendation=(
                f"Prepare ventilation on Floor {floor_id}. Set the setpoint to 23°C within 20 min "
                "and monitor thermal comfort."
            ),
            timestamp=now,
        )

    if len(history) >= t.deviation_window:
        recent = [metric_value(r.occupancy) for r in history[-t.deviation_window :]]
        samples = [v for v in recent if v is not None]
        if samples:
            average = float(np.mean(samples))
            deviation = abs(value - average)
            if deviation > t.deviation_people and value > average:
                return Anomaly(
                    type=AnomalyType.OCCUPANCY,
                    severity=Severity.INFO,
                    metric=OCCUPANCY_LABEL,
                    value=value,
                    message=f"Unusual occupancy increase ({round(deviation)} people above average)",
                    recommendation=(
                        f"Check whether an event is scheduled on Floor {floor_id}. "
                        "Pre-cool to 23°C within 15 min."
                    ),
                    timestamp=now,
                )

    return None


def check_temperature(
    temperature: object,
    occupancy: object,
    floor_id: int,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    value = metric_value(temperature)
    if value is None:
        return None
    t = thresholds.temperature

    if value >= t.critical:
        target = max(22.0, value - 4)
        return Anomaly(
            type=AnomalyType.TEMPERATURE,
            severity=Severity.CRITICAL,
            metric=TEMPERATURE_LABEL,
            value=value,
            message=f"Critical temperature: {value}°C",
            recommendation=(
                f"CRITICAL: Set the Floor {floor_id} setpoint to {target:g}°C immediately. "
                "Run air conditioning at full power and reduce occupancy if possible."
            ),
            timestamp=now,
        )

    if value >= t.warning:
        return Anomaly(
            type=AnomalyType.TEMPERATURE,
            severity=Severity.WARNING,
            metric=TEMPERATURE_LABEL,
            value=value,
            message=f"High temperature: {value}°C",
            recommendation=(
                f"Set the Floor {floor_id} setpoint to 24°C within 15 min. "
                f"Increase ventilation on Floor {floor_id}; check doors and louvres."
            ),
            timestamp=now,
        )

    if value >= t.info:
        return Anomaly(
            type=AnomalyType.TEMPERATURE,
            severity=Severity.INFO,
            metric=TEMPERATURE_LABEL,
            value=value,
            message=f"Temperature above the optimal range: {value}°C",
            recommendation=(
                f"Monitor temperature on Floor {floor_id}. Consider lowering the setpoint to 24°C "
                "within 20 min if it keeps rising."
            ),
            timestamp=now,
        )

    if value <= t.low:
        return Anomaly(
            type=AnomalyType.TEMPERATURE,
            severity=Severity.WARNING,
            metric=TEMPERATURE_LABEL,
            value=value,
            message=f"Low temperature: {value}°C",
            recommendation=(
                f"Set the Floor {floor_id} setpoint to 21°C. Turn on heating and inspect thermal insulation."
            ),
            timestamp=now,
        )

    people = metric_value(occupancy)
    if people is not None and people > t.decoupled_occupancy and value < t.decoupled_temperature:
        return Anomaly(
            type=AnomalyType.TEMPERATURE,
            severity=Severity.INFO,
            metric=TEMPERATURE_LABEL,
            value=value,
            message="Unusually low temperature for high occupancy",
            recommendation=(
                f"Schedule an inspection of thermal seals on Floor {floor_id}. "
                "Check the HVAC system for possible overcooling."
            ),
            timestamp=now,
        )

    return None


def check_humidity(
    humidity: object,
    floor_id: int,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    value = metric_value(humidity)
    if value is None:
        return None
    t = thresholds.humidity
    shown = f"{value:g}"

    if value > t.high_critical:
        severity = Severity.CRITICAL
        message = f"Critical humidity: {shown}%"
        recommendation = (
            f"CRITICAL: Turn on dehumidifiers on Floor {floor_id} immediately. Maximise ventilation; "
            "check doors and louvres. High humidity affects comfort and equipment."
        )
    elif value > t.high_warning:
        severity = Severity.WARNING
        message = f"High humidity: {shown}%"
        recommendation = (
            f"Increase ventilation on Floor {floor_id} within 20 min. "
            "Check air-conditioning filters and windows."
        )
    elif value > t.high_info:
        severity = Severity.INFO
        message = f"Humidity above the optimal range: {shown}%"
        recommendation = (
            f"Monitor humidity on Floor {floor_id}. Consider dehumidifying if it keeps rising over the next 30 min."
        )
    elif value < t.low_critical:
        severity = Severity.CRITICAL
        message = f"Critically low humidity: {shown}%"
        recommendation = (
            f"CRITICAL: Turn on humidifiers on Floor {floor_id} immediately. "
            "Extremely dry air affects health and comfort."
        )
    elif value < t.low_warning:
        severity = Severity.WARNING
        message = f"Low humidity: {shown}%"
        recommendation = f"Turn on humidifiers on Floor {floor_id}. Very dry air affects health and comfort."
    elif value < t.low_info:
        severity = Severity.INFO
        message = f"Humidity below the optimal range: {shown}%"
        recommendation = f"Monitor humidity on Floor {floor_id}. Consider humidifying if it keeps dropping."
    else:
        return None

    return Anomaly(
        type=AnomalyType.HUMIDITY,
        severity=severity,
        metric=HUMIDITY_LABEL,
        value=value,
        message=message,
        recommendation=recommendation,
        timestamp=now,
    )


def check_thermal_overload(
    power: float,
    temperature: float,
    occupancy: float | None,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    """Composite temperature + power risk."""
    t = thresholds.thermal

    if temperature >= t.critical_temperature and power >= t.critical_power:
        return Anomaly(
            type=AnomalyType.THERMAL_OVERLOAD,
            severity=Severity.CRITICAL,
            metric="Thermal Overload Risk",
            value=ThermalLoad(temperature=temperature, power_consumption=power),
            message=f"CRITICAL RISK: Temperature {temperature}°C + Consumption {power} kWh",
            recommendation=(
                "IMMEDIATE ACTION: Thermal overload risk. Cut electrical load now, set the setpoint to 23°C "
                "and run ventilation at maximum. Move people to other floors if possible."
            ),
            timestamp=now,
        )

    if temperature >= t.warning_temperature and power >= t.warning_power:
        return Anomaly(
            type=AnomalyType.THERMAL_OVERLOAD,
            severity=Severity.WARNING,
            metric="Thermal Overload Risk",
            value=ThermalLoad(temperature=temperature, power_consumption=power),
            message=f"Moderate risk: Temperature {temperature}°C + Consumption {power} kWh",
            recommendation=(
                "Watch closely over the next 30 min. Set the setpoint to 24°C, switch off non-essential "
                "equipment and improve air circulation. Consider redistributing load."
            ),
            timestamp=now,
        )

    if (
        occupancy is not None
        and temperature >= t.info_temperature
        and power >= t.info_power
        and occupancy > t.info_occupancy
    ):
        people = int(occupancy)
        return Anomaly(
            type=AnomalyType.THERMAL_OVERLOAD,
            severity=Severity.INFO,
            metric="Conditions Outside Optimal Range",
            value=ThermalLoad(temperature=temperature, power_consumption=power, occupancy=people),
            message=f"Suboptimal conditions: Temp {temperature}°C, Consumption {power} kWh, Occupancy {people}",
            recommendation=(
                "Optimise conditions within 45 min: adjust climate control, check ventilation and consider "
                "moving 10-15 people to other floors to improve energy efficiency."
            ),
            timestamp=now,
        )

    return None


def check_power_consumption(
    power_consumption: object,
    occupancy: object,
    floor_id: int,
    now: datetime,
    temperature: object = 22.0,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    """Power thresholds, preceded by the thermal overload check.

    A thermal overload anomaly replaces the plain power anomaly for the tick.
    """
    power = metric_value(power_consumption)
    if power is None:
        return None
    people = metric_value(occupancy)
    t = thresholds.power

    degrees = metric_value(temperature)
    if degrees is not None:
        thermal = check_thermal_overload(power, degrees, people, now, thresholds)
        if thermal is not None:
            return thermal

    if power >= t.critical:
        return Anomaly(
            type=AnomalyType.POWER,
            severity=Severity.CRITICAL,
            metric=POWER_LABEL,
            value=power,
            message=f"Very high power consumption: {power} kWh",
            recommendation=(
                f"CRITICAL: Shift electrical load from Floor {floor_id} to Floor {_neighbour_floor(floor_id)} "
                "within the next hour. Inspect electrical systems for faults or energy waste."
            ),
            timestamp=now,
        )

    if power >= t.warning:
        return Anomaly(
            type=AnomalyType.POWER,
            severity=Severity.WARNING,
            metric=POWER_LABEL,
            value=power,
            message=f"High power consumption: {power} kWh",
            recommendation=(
                f"Optimise equipment use on Floor {floor_id} within 30 min. Turn off unneeded lights and "
                "devices. Review climate-control settings."
            ),
            timestamp=now,
        )

    if people is not None and people < t.idle_occupancy and power > t.idle_power:
        savings = round((power - 50) * 0.3)
        return Anomaly(
            type=AnomalyType.POWER,
            severity=Severity.WARNING,
            metric=POWER_LABEL,
            value=power,
            message=f"High consumption with low occupancy on Floor {floor_id}",
            recommendation=(
                f"Check for equipment left on unnecessarily on Floor {floor_id}. Possible savings of up to "
                f"{savings} kWh. Schedule automatic light shut-off."
            ),
            timestamp=now,
        )

    return None


def check_sudden_changes(
    current: FloorReading,
    history: list[FloorReading],
    floor_id: int,
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> Anomaly | None:
    """Compare the current reading with the previous sample."""
    t = thresholds.sudden_change
    if len(history) < t.min_history:
        return None
    previous = history[-1]

    occupancy_now = current.value_of(Metric.OCCUPANCY)
    occupancy_before = previous.value_of(Metric.OCCUPANCY)
    if occupancy_now is not None and occupancy_before is not None:
        delta = occupancy_now - occupancy_before
        if abs(delta) > t.occupancy_delta:
            if delta > 0:
                label = "Sudden increase"
                action = "Set climate control to 23°C and add ventilation within 10 min"
            else:
                label = "Sudden drop"
                action = "Reduce ventilation and set the setpoint to 24°C to save energy"
            return Anomaly(
                type=AnomalyType.SUDDEN_CHANGE,
                severity=Severity.INFO,
                metric="Sudden Occupancy Change",
                value=abs(delta),
                message=f"{label} in occupancy on Floor {floor_id}: {int(delta):+d} people",
                recommendation=(
                    f"Monitor the situation on Floor {floor_id}. {action}. Check whether it matches a scheduled event."
                ),
                timestamp=now,
            )

    temp_now = current.value_of(Metric.TEMPERATURE)
    temp_before = previous.value_of(Metric.TEMPERATURE)
    if temp_now is not None and temp_before is not None:
        change = abs(temp_now - temp_before)
        if change > t.temperature_delta:
            return Anomaly(
                type=AnomalyType.SUDDEN_CHANGE,
                severity=Severity.WARNING,
                metric="Sudden Temperature Change",
                value=change,
                message=f"Temperature changed {change:.1f}°C in 1 minute on Floor {floor_id}",
                recommendation=(
                    f"Inspect the climate system on Floor {floor_id} immediately. An unusually fast change can "
                    "indicate equipment failure. Schedule a technical review within 2 hours."
                ),
                timestamp=now,
            )

    return None


def detect_anomalies(
    current: FloorReading,
    history: list[FloorReading],
    now: datetime,
    thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
) -> list[Anomaly]:
    """Run every observed-value rule for one floor.

    ``history`` holds the floor's readings before ``current``. Results keep
    rule order: occupancy, temperature, humidity, power/thermal, sudden change.
    """
    floor_id = current.floor_id
    candidates = [
        check_occupancy(current.occupancy, history, floor_id, now, thresholds),
        check_temperature(current.temperature, current.occupancy, floor_id, now, thresholds),
        check_humidity(current.humidity, floor_id, now, thresholds),
        check_power_consumption(
            current.power_consumption, current.occupancy, floor_id, now, current.temperature, thresholds
        ),
    ]
    if history:
        candidates.append(check_sudden_changes(current, history, floor_id, now, thresholds))
    return [anomaly for anomaly in candidates if anomaly is not None]


def highest_severity(anomalies: list[Anomaly]) -> Severity:
    """Maximum severity in a non-empty set of anomalies."""
    if not anomalies:
        raise ValueError("highest_severity() needs at least one anomaly")
    return max(anomaly.severity for anomaly in anomalies)
