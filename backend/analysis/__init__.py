"""Analysis utilities - pure functions for forecasting and anomaly rules."""

from analysis.forecast import forecast, forecast_floor
from analysis.predictive import check_predictive_thermal_risk, detect_predictive_anomalies
from analysis.rules import detect_anomalies, highest_severity
from analysis.thresholds import DEFAULT_THRESHOLDS, AlertThresholds

__all__ = [
    "DEFAULT_THRESHOLDS",
    "AlertThresholds",
    "check_predictive_thermal_risk",
    "detect_anomalies",
    "detect_predictive_anomalies",
    "forecast",
    "forecast_floor",
    "highest_severity",
]
