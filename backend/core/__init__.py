"""Core domain models and the bounded reading history."""

from core.history import DEFAULT_RETENTION, FloorHistory
from core.models import (
    Alert,
    AlertKind,
    Anomaly,
    AnomalyType,
    AnomalyValue,
    FloorForecast,
    FloorReading,
    Forecast,
    ForecastPoint,
    Metric,
    Severity,
    ThermalLoad,
    TickResult,
)

__all__ = [
    "DEFAULT_RETENTION",
    "Alert",
    "AlertKind",
    "Anomaly",
    "AnomalyType",
    "AnomalyValue",
    "FloorForecast",
    "FloorHistory",
    "FloorReading",
    "Forecast",
    "ForecastPoint",
    "Metric",
    "Severity",
    "ThermalLoad",
    "TickResult",
]
