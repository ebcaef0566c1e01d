"""Tests for the anomaly engine and alert log."""

from datetime import UTC, datetime, timedelta

from core.models import AlertKind, AnomalyType, FloorReading, Forecast, ForecastPoint, Metric, Severity
from services.alerts import AnomalyEngine

T0 = datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


class ManualClock:
    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs: float) -> None:
        self.now += timedelta(**kwargs)


class SteppingClock(ManualClock):
    """Moves one second forward every time it is read."""

    def __call__(self) -> datetime:
        self.advance(seconds=1)
        return self.now


def _reading(floor_id: int = 1, **overrides: object) -> FloorReading:
    values: dict[str, object] = {
        "occupancy": 50,
        "temperature": 22.0,
        "humidity": 35,
        "power_consumption": 120.0,
    }
    values.update(overrides)
    return FloorReading(
        floor_id=floor_id,
        name=f"Floor {floor_id}",
        timestamp=T0,
        building_name="Main Building",
        **values,  # type: ignore[arg-type]
    )


def _forecast(metric: Metric, values: list[float]) -> Forecast:
    return Forecast(
        metric=metric,
        predictions=[
            ForecastPoint(minutes_ahead=10 * (i + 1), value=v, timestamp=T0 + timedelta(minutes=10 * (i + 1)))
            for i, v in enumerate(values)
        ],
        method="hybrid",
        confidence=0.8,
    )


# -----------------------------------------------------------------------------
# Observed alerts
# -----------------------------------------------------------------------------


def test_quiet_floor_produces_no_alert() -> None:
    engine = AnomalyEngine(clock=ManualClock())
    assert engine.generate_alert(1, _reading(), []) is None
    assert engine.get_alerts() == []


def test_critical_scenario_alert() -> None:
    engine = AnomalyEngine(clock=ManualClock())
    current = _reading(occupancy=96, temperature=30.0, humidity=50, power_consumption=210.0)
    alert = engine.generate_alert(1, current, [])

    assert alert is not None
    assert alert.severity is Severity.CRITICAL
    assert len(alert.anomalies) >= 2
    assert alert.floor_name == "Floor 1"
    assert alert.building_name == "Main Building"
    assert alert.kind is None
    assert engine.get_alerts() == [alert]


def test_alert_severity_is_max_of_anomalies() -> None:
    engine = AnomalyEngine(clock=ManualClock())
    # warning humidity + info temperature
    alert = engine.generate_alert(1, _reading(humidity=77, temperature=26.5), [])
    assert alert is not None
    assert {a.severity for a in alert.anomalies} == {Severity.WARNING, Severity.INFO}
    assert alert.severity is Severity.WARNING


def test_get_alerts_returns_a_snapshot() -> None:
    engine = AnomalyEngine(clock=ManualClock())
    engine.generate_alert(1, _reading(occupancy=90), [])
    snapshot = engine.get_alerts()
    engine.generate_alert(2, _reading(2, occupancy=90), [])
    assert len(snapshot) == 1
    assert len(engine.get_alerts()) == 2


def test_alert_and_anomalies_share_one_instant() -> None:
    engine = AnomalyEngine(clock=SteppingClock())
    current = _reading(occupancy=96, temperature=30.0, power_consumption=210.0)
    alert = engine.generate_alert(1, current, [])

    assert alert is not None
    assert {a.timestamp for a in alert.anomalies} == {alert.timestamp}


# -----------------------------------------------------------------------------
# Predictive alerts
# -----------------------------------------------------------------------------


def test_predictive_alert_is_tagged() -> None:
    engine = AnomalyEngine(clock=ManualClock())
    forecasts = {
        Metric.TEMPERATURE: _forecast(Metric.TEMPERATURE, [28.5, 29.0]),
        Metric.POWER_CONSUMPTION: _forecast(Metric.POWER_CONSUMPTION, [130.0, 140.0]),
    }
    alert = engine.generate_predictive_alert(
        4, "Floor 4", forecasts, current_power=125.0, building_name="Main Building"
    )

    assert alert is not None
    assert alert.kind is AlertKind.PREDICTIVE
    assert alert.is_predictive
    assert alert.severity is Severity.WARNING
    assert alert.as_dict()["type"] == "predictive"
    assert alert.building_name == "Main Building"
    assert {a.timestamp for a in alert.anomalies} == {alert.timestamp}
    assert engine.get_alerts() == [alert]


def test_predictive_alert_none_for_calm_forecast() -> None:
    engine = AnomalyEngine(clock=ManualClock())
    forecasts = {Metric.TEMPERATURE: _forecast(Metric.TEMPERATURE, [22.0, 22.5])}
    assert engine.generate_predictive_alert(4, "Floor 4", forecasts) is None
    assert engine.get_alerts() == []


# -----------------------------------------------------------------------------
# Log maintenance and queries
# -----------------------------------------------------------------------------


def test_clean_old_alerts_drops_entries_older_than_a_day() -> None:
    clock = ManualClock()
    engine = AnomalyEngine(clock=clock)
    engine.generate_alert(1, _reading(occupancy=90), [])
    clock.advance(hours=20)
    engine.generate_alert(2, _reading(2, occupancy=90), [])
    clock.advance(hours=5)

    assert engine.clean_old_alerts() == 1
    assert [a.floor_id for a in engine.get_alerts()] == [2]
    assert engine.clean_old_alerts() == 0


def test_query_alerts_filters_and_orders_newest_first() -> None:
    clock = ManualClock()
    engine = AnomalyEngine(clock=clock)
    engine.generate_alert(1, _reading(occupancy=90), [])  # warning occupancy
    clock.advance(minutes=1)
    engine.generate_alert(2, _reading(2, occupancy=97), [])  # critical occupancy
    clock.advance(minutes=1)
    engine.generate_alert(1, _reading(humidity=85), [])  # critical humidity

    newest_first = engine.query_alerts()
    assert [a.timestamp for a in newest_first] == sorted((a.timestamp for a in newest_first), reverse=True)

    critical = engine.query_alerts(severity=Severity.CRITICAL)
    assert [a.floor_id for a in critical] == [1, 2]

    floor_one = engine.query_alerts(floor_id=1)
    assert len(floor_one) == 2

    humidity = engine.query_alerts(anomaly_type=AnomalyType.HUMIDITY)
    assert len(humidity) == 1

    assert len(engine.query_alerts(limit=1)) == 1


def test_summarize_alerts() -> None:
    clock = ManualClock()
    engine = AnomalyEngine(clock=clock)
    engine.generate_alert(1, _reading(occupancy=90), [])
    engine.generate_alert(1, _reading(occupancy=97), [])
    engine.generate_alert(3, _reading(3, humidity=85), [])
    engine.generate_predictive_alert(
        3, "Floor 3", {Metric.POWER_CONSUMPTION: _forecast(Metric.POWER_CONSUMPTION, [210.0])}
    )

    summary = engine.summarize_alerts()
    assert summary.date == "2025-01-15"
    assert summary.total_alerts == 4
    assert summary.critical_alerts == 3
    assert summary.warning_alerts == 1
    assert summary.predictive_alerts == 1
    assert summary.alerts_by_floor == {1: 2, 3: 2}
    assert summary.top_anomalies[0] == ("occupancy", 2)
    assert summary.as_dict()["alerts_by_floor"] == {"1": 2, "3": 2}
