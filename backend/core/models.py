"""Core data models for the floor monitoring system."""

import math
from dataclasses import dataclass, field
from datetime import datetime
from enum import IntEnum, StrEnum
from typing import Any


class Severity(IntEnum):
    """Alert severity tiers, totally ordered."""

    INFO = 1
    WARNING = 2
    CRITICAL = 3

    @property
    def label(self) -> str:
        return self.name.lower()

    @classmethod
    def from_label(cls, label: str) -> "Severity":
        return cls[label.upper()]


class Metric(StrEnum):
    OCCUPANCY = "occupancy"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    POWER_CONSUMPTION = "power_consumption"


class AnomalyType(StrEnum):
    OCCUPANCY = "occupancy"
    TEMPERATURE = "temperature"
    HUMIDITY = "humidity"
    POWER = "power"
    THERMAL_OVERLOAD = "thermal_overload"
    SUDDEN_CHANGE = "sudden_change"
    PREDICTIVE_TEMPERATURE = "predictive_temperature"
    PREDICTIVE_HUMIDITY = "predictive_humidity"
    PREDICTIVE_POWER = "predictive_power"
    PREDICTIVE_THERMAL_OVERLOAD = "predictive_thermal_overload"


class AlertKind(StrEnum):
    PREDICTIVE = "predictive"


@dataclass(frozen=True)
class FloorReading:
    """One synthetic sample for a floor."""

    floor_id: int
    name: str
    occupancy: int
    temperature: float
    humidity: int
    power_consumption: float
    timestamp: datetime
    building_id: int = 1
    building_name: str = ""

    def value_of(self, metric: Metric) -> float | None:
        """Metric value, or None when missing or not a finite number."""
        return metric_value(getattr(self, metric.value, None))

    def as_dict(self) -> dict[str, Any]:
        return {
            "building_id": self.building_id,
            "building_name": self.building_name,
            "floor_id": self.floor_id,
            "name": self.name,
            "occupancy": self.occupancy,
            "temperature": self.temperature,
            "humidity": self.humidity,
            "power_consumption": self.power_consumption,
            "timestamp": self.timestamp.isoformat(),
        }


def metric_value(value: object) -> float | None:
    """Coerce a raw metric to float; malformed values become None."""
    if isinstance(value, bool) or not isinstance(value, int | float):
        return None
    if math.isnan(value) or math.isinf(value):
        return None
    return float(value)


# ---------------------------------------------------------------------------
# Forecasts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ForecastPoint:
    minutes_ahead: int
    value: int | float
    timestamp: datetime


@dataclass(frozen=True)
class Forecast:
    """Projection of a single metric over the requested horizon."""

    metric: Metric
    predictions: list[ForecastPoint]
    method: str
    confidence: float
    current_value: float | None = None
    predicted_value: int | None = None  # occupancy only

    @property
    def is_empty(self) -> bool:
        return not self.predictions

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "metric": self.metric.value,
            "predictions": [
                {
                    "minutes_ahead": p.minutes_ahead,
                    self.metric.value: p.value,
                    "timestamp": p.timestamp.isoformat(),
                }
                for p in self.predictions
            ],
            "method": self.method,
            "confidence": self.confidence,
        }
        if self.current_value is not None:
            data["current_value"] = self.current_value
        if self.predicted_value is not None:
            data["predicted_value"] = self.predicted_value
        return data


@dataclass(frozen=True)
class FloorForecast:
    """All per-metric forecasts for one floor."""

    occupancy: Forecast
    temperature: Forecast
    power_consumption: Forecast
    generated_at: datetime

    def by_metric(self) -> dict[Metric, Forecast]:
        return {
            Metric.OCCUPANCY: self.occupancy,
            Metric.TEMPERATURE: self.temperature,
            Metric.POWER_CONSUMPTION: self.power_consumption,
        }

    def as_dict(self) -> dict[str, Any]:
        return {
            "occupancy": self.occupancy.as_dict(),
            "temperature": self.temperature.as_dict(),
            "power_consumption": self.power_consumption.as_dict(),
            "timestamp": self.generated_at.isoformat(),
        }


# ---------------------------------------------------------------------------
# Anomalies and alerts
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ThermalLoad:
    """Composite value carried by thermal-overload anomalies."""

    temperature: float
    power_consumption: float
    occupancy: int | None = None


type AnomalyValue = float | ThermalLoad


def anomaly_value_to_json(value: AnomalyValue) -> float | dict[str, float | int]:
    match value:
        case ThermalLoad(temperature=t, power_consumption=p, occupancy=None):
            return {"temperature": t, "power_consumption": p}
        case ThermalLoad(temperature=t, power_consumption=p, occupancy=o):
            return {"temperature": t, "power_consumption": p, "occupancy": o}
        case _:
            return value


@dataclass(frozen=True)
class Anomaly:
    """A single rule violation, observed or predicted."""

    type: AnomalyType
    severity: Severity
    metric: str
    value: AnomalyValue
    message: str
    recommendation: str
    timestamp: datetime
    minutes_ahead: int | None = None
    predicted_time: datetime | None = None

    @property
    def is_predictive(self) -> bool:
        return self.minutes_ahead is not None

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "type": self.type.value,
            "severity": self.severity.label,
            "metric": self.metric,
            "value": anomaly_value_to_json(self.value),
            "message": self.message,
            "recommendation": self.recommendation,
            "timestamp": self.timestamp.isoformat(),
        }
        if self.minutes_ahead is not None:
            data["minutes_ahead"] = self.minutes_ahead
        if self.predicted_time is not None:
            data["predicted_time"] = self.predicted_time.isoformat()
        return data


@dataclass(frozen=True)
class Alert:
    """One or more anomalies raised for a floor at one evaluation instant."""

    floor_id: int
    floor_name: str
    anomalies: tuple[Anomaly, ...]
    timestamp: datetime
    severity: Severity
    kind: AlertKind | None = None
    building_name: str = ""

    @property
    def is_predictive(self) -> bool:
        return self.kind is AlertKind.PREDICTIVE

    def as_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "floor_id": self.floor_id,
            "floor_name": self.floor_name,
            "anomalies": [a.as_dict() for a in self.anomalies],
            "timestamp": self.timestamp.isoformat(),
            "severity": self.severity.label,
        }
        if self.kind is not None:
            data["type"] = self.kind.value
        if self.building_name:
            data["building_name"] = self.building_name
        return data


@dataclass
class TickResult:
    """Everything one pipeline tick produced."""

    readings: list[FloorReading]
    observed_alerts: list[Alert] = field(default_factory=list)
    predictive_alerts: list[Alert] = field(default_factory=list)
    forecasts: dict[int, FloorForecast] = field(default_factory=dict)

    @property
    def alerts(self) -> list[Alert]:
        return [*self.observed_alerts, *self.predictive_alerts]
