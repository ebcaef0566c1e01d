"""Monitoring pipeline: one tick generates, detects, forecasts and records."""

import logging
import threading
from dataclasses import dataclass
from typing import Any

from analysis.forecast import DEFAULT_HORIZON_MINUTES, RECENT_SAMPLES
from analysis.forecast import forecast_floor as _forecast_floor
from core.models import Alert, FloorForecast, FloorReading, Severity, TickResult
from services.alerts import AlertSummary, AnomalyEngine
from services.notifications import AlertNotifier, NotifyResult
from simulation.generator import TelemetryGenerator

logger = logging.getLogger(__name__)

# Readings handed to the sudden-change rule as history
DETECTION_HISTORY = 10


class TickInProgressError(RuntimeError):
    """Raised when a tick is requested while another one is running."""


@dataclass
class BuildingStats:
    total_occupancy: int
    average_occupancy: float
    average_temperature: float
    total_power_consumption: float
    floors: int

    def as_dict(self) -> dict[str, Any]:
        return {
            "total_occupancy": self.total_occupancy,
            "average_occupancy": self.average_occupancy,
            "average_temperature": self.average_temperature,
            "total_power_consumption": self.total_power_consumption,
            "floors": self.floors,
        }


class MonitoringPipeline:
    """Owns the generator, the anomaly engine and the notifier for one building.

    Constructed once at startup and handed to the transport layer. Ticks are
    strictly serialized: a second ``generate_tick`` while one is running raises
    ``TickInProgressError`` instead of interleaving with it.
    """

    def __init__(
        self,
        generator: TelemetryGenerator,
        engine: AnomalyEngine,
        notifier: AlertNotifier,
        horizon_minutes: int = DEFAULT_HORIZON_MINUTES,
    ) -> None:
        self.generator = generator
        self.engine = engine
        self.notifier = notifier
        self.horizon_minutes = horizon_minutes
        self._tick_lock = threading.Lock()

    def generate_tick(self) -> TickResult:
        if not self._tick_lock.acquire(blocking=False):
            raise TickInProgressError("A tick is already running")
        try:
            return self._tick()
        finally:
            self._tick_lock.release()

    def _tick(self) -> TickResult:
        readings = self.generator.generate()
        result = TickResult(readings=readings)

        for reading in readings:
            floor_id = reading.floor_id
            # The newest history entry is the reading itself
            previous = self.generator.get_floor_history(floor_id, DETECTION_HISTORY + 1)[:-1]
            alert = self.engine.generate_alert(floor_id, reading, previous)
            if alert is not None:
                result.observed_alerts.append(alert)

            recent = self.generator.get_floor_history(floor_id, RECENT_SAMPLES)
            floor_forecast = _forecast_floor(recent, self.horizon_minutes)
            result.forecasts[floor_id] = floor_forecast

            predictive = self.engine.generate_predictive_alert(
                floor_id,
                reading.name,
                floor_forecast.by_metric(),
                current_power=reading.power_consumption,
                building_name=reading.building_name,
            )
            if predictive is not None:
                result.predictive_alerts.append(predictive)

        logger.info(
            "Tick: %d floors, %d alerts, %d predictive alerts",
            len(readings),
            len(result.observed_alerts),
            len(result.predictive_alerts),
        )
        return result

    async def dispatch(self, alerts: list[Alert]) -> list[NotifyResult]:
        """Notify once per critical alert. Failures are logged, never retried."""
        results: list[NotifyResult] = []
        for alert in alerts:
            if alert.severity is not Severity.CRITICAL:
                continue
            try:
                outcome = await self.notifier.notify(alert)
            except Exception:
                logger.warning("Notification for floor %d failed", alert.floor_id, exc_info=True)
                continue
            if outcome.sent:
                logger.info("Notified critical alert for floor %d", alert.floor_id)
            else:
                logger.info("Critical alert for floor %d not sent: %s", alert.floor_id, outcome.reason)
            results.append(outcome)
        return results

    async def run_tick(self) -> TickResult:
        result = self.generate_tick()
        await self.dispatch(result.alerts)
        return result

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def get_current_data(self) -> list[FloorReading]:
        return self.generator.get_current_data()

    def get_floor(self, floor_id: int) -> FloorReading | None:
        return self.generator.get_floor(floor_id)

    def get_floor_history(self, floor_id: int, limit: int = 60) -> list[FloorReading]:
        return self.generator.get_floor_history(floor_id, limit)

    def get_alerts(self) -> list[Alert]:
        return self.engine.get_alerts()

    def query_alerts(self, **filters: Any) -> list[Alert]:
        return self.engine.query_alerts(**filters)

    def forecast_floor(self, history: list[FloorReading], horizon_minutes: int | None = None) -> FloorForecast:
        return _forecast_floor(history, horizon_minutes or self.horizon_minutes)

    def predict_floor(self, floor_id: int, horizon_minutes: int | None = None) -> FloorForecast:
        return self.forecast_floor(self.generator.get_floor_history(floor_id, RECENT_SAMPLES), horizon_minutes)

    def stats(self) -> BuildingStats:
        readings = self.get_current_data()
        count = len(readings)
        total_occupancy = sum(r.occupancy for r in readings)
        return BuildingStats(
            total_occupancy=total_occupancy,
            average_occupancy=round(total_occupancy / count, 2) if count else 0.0,
            average_temperature=round(sum(r.temperature for r in readings) / count, 2) if count else 0.0,
            total_power_consumption=round(sum(r.power_consumption for r in readings), 2),
            floors=count,
        )

    def summarize(self) -> AlertSummary:
        return self.engine.summarize_alerts()

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    def clean_old_alerts(self) -> int:
        return self.engine.clean_old_alerts()

    def clear_cooldowns(self) -> None:
        self.notifier.clear_cooldowns()

    def clear_rate_limiting(self) -> None:
        self.notifier.clear_rate_limiting()
