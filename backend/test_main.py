"""HTTP and WebSocket surface tests."""

import random
from datetime import UTC, datetime
from typing import Any

import pytest
from fastapi.testclient import TestClient

import main
from main import create_app
from services.alerts import AnomalyEngine
from services.notifications import EmailNotifier
from services.pipeline import MonitoringPipeline
from services.settings import EmailSettings, Settings
from simulation.config import SimConfig
from simulation.generator import TelemetryGenerator


def _business_hours() -> datetime:
    return datetime(2025, 1, 15, 10, 0, tzinfo=UTC)


@pytest.fixture
def pipeline() -> MonitoringPipeline:
    email = EmailSettings(
        _env_file=None,
        EMAILJS_SERVICE_ID="service_x",
        EMAILJS_PUBLIC_KEY="public_x",
        EMAILJS_PRIVATE_KEY="private_x",
        EMAIL_RECIPIENTS_CRITICAL="ops@example.com",
        EMAIL_RECIPIENTS_ADMIN="admin@example.com",
        EMAIL_NOTIFICATIONS_ENABLED=True,
    )
    config = SimConfig(number_of_floors=3, critical_occupancy_probability=1.0, temp_critical_probability=1.0)
    return MonitoringPipeline(
        TelemetryGenerator(config, rng=random.Random(1), clock=_business_hours),
        AnomalyEngine(clock=_business_hours),
        EmailNotifier(email),
    )


@pytest.fixture
def client(pipeline: MonitoringPipeline) -> TestClient:
    settings = Settings(_env_file=None, SIMULATION_ENABLED=False)
    return TestClient(create_app(settings, pipeline))


@pytest.fixture
def sent(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, Any]]:
    calls: list[dict[str, Any]] = []

    async def fake_send(self: EmailNotifier, template_id: str, params: dict[str, Any]) -> str:
        calls.append({"template_id": template_id, **params})
        return "OK"

    monkeypatch.setattr(EmailNotifier, "_send", fake_send)
    return calls


# -----------------------------------------------------------------------------
# Floors
# -----------------------------------------------------------------------------


def test_health(client: TestClient) -> None:
    body = client.get("/health").json()
    assert body["status"] == "ok"
    assert body["floors"] == 3
    assert body["simulation_running"] is False


def test_list_floors(client: TestClient) -> None:
    body = client.get("/api/v1/floors").json()
    assert body["success"] is True
    assert [f["floor_id"] for f in body["data"]] == [1, 2, 3]


def test_floor_by_id(client: TestClient) -> None:
    assert client.get("/api/v1/floors/2").json()["data"]["name"] == "Floor 2"
    assert client.get("/api/v1/floors/42").status_code == 404


def test_floor_history_and_predictions(client: TestClient, pipeline: MonitoringPipeline) -> None:
    for _ in range(5):
        pipeline.generate_tick()

    history = client.get("/api/v1/floors/1/history", params={"limit": 3}).json()["data"]
    assert history["count"] == 3

    predictions = client.get("/api/v1/floors/1/predictions", params={"minutes_ahead": 30}).json()["data"]
    assert len(predictions["predictions"]["temperature"]["predictions"]) == 3
    assert predictions["predictions"]["occupancy"]["method"] == "hybrid"

    assert client.get("/api/v1/floors/1/history", params={"limit": 0}).status_code == 422


def test_stats(client: TestClient, pipeline: MonitoringPipeline) -> None:
    pipeline.generate_tick()
    data = client.get("/api/v1/floors/stats").json()["data"]
    assert data["floors"] == 3
    assert data["total_occupancy"] >= 270


# -----------------------------------------------------------------------------
# Alerts
# -----------------------------------------------------------------------------


def test_alert_filters(client: TestClient, pipeline: MonitoringPipeline) -> None:
    pipeline.generate_tick()

    body = client.get("/api/v1/alerts", params={"severity": "critical", "floor_id": 2}).json()
    assert body["count"] >= 1
    assert all(a["floor_id"] == 2 and a["severity"] == "critical" for a in body["data"])

    limited = client.get("/api/v1/alerts", params={"limit": 1}).json()
    assert limited["count"] == 1

    by_type = client.get("/api/v1/alerts", params={"type": "temperature"}).json()
    assert all(any(an["type"] == "temperature" for an in a["anomalies"]) for a in by_type["data"])

    assert client.get("/api/v1/alerts", params={"severity": "severe"}).status_code == 422


def test_alert_summary(client: TestClient, pipeline: MonitoringPipeline) -> None:
    pipeline.generate_tick()
    data = client.get("/api/v1/alerts/summary").json()["data"]
    assert data["total_alerts"] == len(pipeline.get_alerts())


# -----------------------------------------------------------------------------
# Email
# -----------------------------------------------------------------------------


def test_email_status(client: TestClient) -> None:
    data = client.get("/api/v1/email/status").json()["data"]
    assert data["configured"] is True
    assert data["enabled"] is True
    assert data["missing_config"] == []


def test_send_alert_email(client: TestClient, sent: list) -> None:
    payload = {
        "alert": {
            "floor_id": 1,
            "floor_name": "Floor 1",
            "severity": "critical",
            "anomalies": [
                {
                    "type": "occupancy",
                    "severity": "critical",
                    "metric": "Occupancy",
                    "value": 96,
                    "message": "Critical occupancy: 96 people",
                    "recommendation": "Turn on extra ventilation",
                }
            ],
        }
    }
    body = client.post("/api/v1/email/alert", json=payload).json()
    assert body["success"] is True
    assert sent[0]["template_id"] == "template_critical"
    assert sent[0]["to_email"] == "ops@example.com,admin@example.com"

    again = client.post("/api/v1/email/alert", json=payload).json()
    assert again["success"] is False
    assert again["data"]["reason"] == "Cooldown active"

    client.post("/api/v1/email/clear-cooldowns")
    assert client.post("/api/v1/email/alert", json=payload).json()["success"] is True


def test_alert_email_validation(client: TestClient) -> None:
    payload = {"alert": {"floor_id": 1, "severity": "critical", "anomalies": []}}
    assert client.post("/api/v1/email/alert", json=payload).status_code == 422


def test_test_email_validation(client: TestClient, sent: list) -> None:
    assert client.post("/api/v1/email/test", json={"email": "not-an-address"}).status_code == 422
    assert client.post("/api/v1/email/test", json={"email": "me@example.com"}).json()["success"] is True


def test_summary_email_defaults_to_current_log(client: TestClient, sent: list) -> None:
    body = client.post("/api/v1/email/summary").json()
    assert body["success"] is True
    assert sent[0]["template_id"] == "template_summary"
    assert sent[0]["total_alerts"] == 0


def test_clear_rate_limiting(client: TestClient) -> None:
    assert client.post("/api/v1/email/clear-rate-limiting").json()["success"] is True


# -----------------------------------------------------------------------------
# WebSocket
# -----------------------------------------------------------------------------


def test_websocket_initial_data_and_requests(client: TestClient, pipeline: MonitoringPipeline) -> None:
    for _ in range(3):
        pipeline.generate_tick()

    with client.websocket_connect("/ws") as ws:
        initial = ws.receive_json()
        assert initial["event"] == "initial-data"
        assert len(initial["data"]["floors"]) == 3

        ws.send_json({"event": "request-history", "data": {"floor_id": 1, "limit": 2}})
        history = ws.receive_json()
        assert history["event"] == "history-data"
        assert len(history["data"]["history"]) == 2

        ws.send_json({"event": "request-prediction", "data": {"floor_id": 1, "minutes_ahead": 20}})
        prediction = ws.receive_json()
        assert prediction["event"] == "prediction-data"
        assert len(prediction["data"]["predictions"]["power_consumption"]["predictions"]) == 2

        ws.send_json({"event": "request-alerts"})
        alerts = ws.receive_json()
        assert alerts["event"] == "alerts-data"
        assert len(alerts["data"]["alerts"]) == len(pipeline.get_alerts())

        ws.send_text("{not json")
        assert ws.receive_json()["event"] == "error"


def test_websocket_rejects_out_of_range_requests(client: TestClient, pipeline: MonitoringPipeline) -> None:
    pipeline.generate_tick()

    with client.websocket_connect("/ws") as ws:
        ws.receive_json()

        ws.send_json({"event": "request-prediction", "data": {"floor_id": 1, "minutes_ahead": 10**9}})
        error = ws.receive_json()
        assert error["event"] == "error"
        assert error["data"]["detail"][0]["loc"] == ["minutes_ahead"]

        ws.send_json({"event": "request-history", "data": {"floor_id": 1, "limit": 10**6}})
        assert ws.receive_json()["event"] == "error"

        # The connection keeps serving valid requests
        ws.send_json({"event": "request-prediction", "data": {"floor_id": 1}})
        prediction = ws.receive_json()
        assert prediction["event"] == "prediction-data"
        assert len(prediction["data"]["predictions"]["occupancy"]["predictions"]) == 6


# -----------------------------------------------------------------------------
# Launcher
# -----------------------------------------------------------------------------


def test_run_serves_the_app_on_configured_address(monkeypatch: pytest.MonkeyPatch) -> None:
    calls: list[dict[str, Any]] = []
    monkeypatch.setattr(main.uvicorn, "run", lambda app, **kwargs: calls.append({"app": app, **kwargs}))

    main.run(Settings(_env_file=None, HOST="127.0.0.1", PORT=8080, LOG_LEVEL="WARNING"))

    assert calls == [{"app": main.app, "host": "127.0.0.1", "port": 8080, "log_level": "warning"}]
