"""Anomaly engine: turns rule results into alerts and keeps the alert log."""

import logging
import threading
from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Any

from analysis.predictive import check_predictive_thermal_risk, detect_predictive_anomalies
from analysis.rules import detect_anomalies, highest_severity
from analysis.thresholds import DEFAULT_THRESHOLDS, AlertThresholds
from core.clock import Clock, local_now
from core.models import Alert, AlertKind, Anomaly, AnomalyType, FloorReading, Forecast, Metric, Severity

logger = logging.getLogger(__name__)

ALERT_RETENTION = timedelta(hours=24)


@dataclass
class AlertSummary:
    """Roll-up of the alert log, used for the daily digest."""

    date: str
    total_alerts: int
    critical_alerts: int
    warning_alerts: int
    info_alerts: int
    predictive_alerts: int
    alerts_by_floor: dict[int, int] = field(default_factory=dict)
    top_anomalies: list[tuple[str, int]] = field(default_factory=list)

    def as_dict(self) -> dict[str, Any]:
        return {
            "date": self.date,
            "total_alerts": self.total_alerts,
            "critical_alerts": self.critical_alerts,
            "warning_alerts": self.warning_alerts,
            "info_alerts": self.info_alerts,
            "predictive_alerts": self.predictive_alerts,
            "alerts_by_floor": {str(k): v for k, v in self.alerts_by_floor.items()},
            "top_anomalies": [{"type": t, "count": c} for t, c in self.top_anomalies],
        }


class AnomalyEngine:
    """Evaluates observed and forecast values and owns the alert log.

    Detection is stateless: an anomaly exists only for the evaluation in which
    its thresholds are exceeded. The log only grows between calls to
    ``clean_old_alerts``; appends and reads are serialized by a lock so readers
    never see a half-recorded alert.
    """

    def __init__(
        self,
        thresholds: AlertThresholds = DEFAULT_THRESHOLDS,
        clock: Clock = local_now,
        retention: timedelta = ALERT_RETENTION,
    ) -> None:
        self.thresholds = thresholds
        self.retention = retention
        self._clock = clock
        self._alerts: list[Alert] = []
        self._lock = threading.Lock()

    # ------------------------------------------------------------------
    # Detection
    # ------------------------------------------------------------------

    def detect_anomalies(
        self, current: FloorReading, history: list[FloorReading], now: datetime | None = None
    ) -> list[Anomaly]:
        return detect_anomalies(current, history, now or self._clock(), self.thresholds)

    @staticmethod
    def get_highest_severity(anomalies: list[Anomaly]) -> Severity:
        return highest_severity(anomalies)

    def generate_alert(self, floor_id: int, current: FloorReading, history: list[FloorReading]) -> Alert | None:
        """Alert for the floor's current reading, or None when nothing fires."""
        now = self._clock()
        anomalies = self.detect_anomalies(current, history, now)
        if not anomalies:
            return None
        alert = Alert(
            floor_id=floor_id,
            floor_name=current.name,
            anomalies=tuple(anomalies),
            timestamp=now,
            severity=highest_severity(anomalies),
            building_name=current.building_name,
        )
        self._record(alert)
        return alert

    def check_predictive_thermal_risk(
        self, floor_id: int, temperature: Forecast | None, power: Forecast | None
    ) -> Anomaly | None:
        return check_predictive_thermal_risk(floor_id, temperature, power, self._clock(), self.thresholds)

    def generate_predictive_alert(
        self,
        floor_id: int,
        floor_name: str,
        forecasts: dict[Metric, Forecast],
        current_power: float = 0.0,
        building_name: str = "",
    ) -> Alert | None:
        """Preventive alert from forecasts, before any threshold is crossed.

        ``current_power`` is accepted for callers that track it; the rules
        only look at the forecast values.
        """
        now = self._clock()
        anomalies = detect_predictive_anomalies(floor_id, forecasts, now, self.thresholds)
        if not anomalies:
            return None
        alert = Alert(
            floor_id=floor_id,
            floor_name=floor_name,
            anomalies=tuple(anomalies),
            timestamp=now,
            severity=highest_severity(anomalies),
            building_name=building_name,
            kind=AlertKind.PREDICTIVE,
        )
        self._record(alert)
        logger.debug(
            "Predictive alert for floor %d (%s, current power %.2f kWh)",
            floor_id,
            alert.severity.label,
            current_power,
        )
        return alert

    # ------------------------------------------------------------------
    # Alert log
    # ------------------------------------------------------------------

    def _record(self, alert: Alert) -> None:
        with self._lock:
            self._alerts.append(alert)

    def get_alerts(self) -> list[Alert]:
        """Snapshot of the log in insertion order."""
        with self._lock:
            return list(self._alerts)

    def clean_old_alerts(self) -> int:
        """Drop alerts older than the retention window; returns how many went."""
        cutoff = self._clock() - self.retention
        with self._lock:
            before = len(self._alerts)
            self._alerts = [alert for alert in self._alerts if alert.timestamp > cutoff]
            removed = before - len(self._alerts)
        if removed:
            logger.info("Removed %d alerts older than %s", removed, self.retention)
        return removed

    def query_alerts(
        self,
        severity: Severity | None = None,
        floor_id: int | None = None,
        anomaly_type: AnomalyType | None = None,
        limit: int | None = None,
    ) -> list[Alert]:
        """Filtered alerts, newest first."""
        alerts = self.get_alerts()
        if severity is not None:
            alerts = [a for a in alerts if a.severity is severity]
        if floor_id is not None:
            alerts = [a for a in alerts if a.floor_id == floor_id]
        if anomaly_type is not None:
            alerts = [a for a in alerts if any(an.type is anomaly_type for an in a.anomalies)]
        alerts.sort(key=lambda a: a.timestamp, reverse=True)
        if limit is not None:
            alerts = alerts[:limit]
        return alerts

    def summarize_alerts(self, top: int = 5) -> AlertSummary:
        alerts = self.get_alerts()
        by_severity = Counter(a.severity for a in alerts)
        by_floor = Counter(a.floor_id for a in alerts)
        by_type = Counter(an.type.value for a in alerts for an in a.anomalies)
        return AlertSummary(
            date=self._clock().date().isoformat(),
            total_alerts=len(alerts),
            critical_alerts=by_severity[Severity.CRITICAL],
            warning_alerts=by_severity[Severity.WARNING],
            info_alerts=by_severity[Severity.INFO],
            predictive_alerts=sum(1 for a in alerts if a.is_predictive),
            alerts_by_floor=dict(sorted(by_floor.items())),
            top_anomalies=by_type.most_common(top),
        )

