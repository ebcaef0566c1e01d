"""FastAPI entry point - thin layer over the monitoring pipeline."""

import json
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import datetime
from typing import Any, Literal

import uvicorn
from fastapi import FastAPI, HTTPException, Query, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from pydantic import BaseModel, Field, ValidationError

from analysis.forecast import DEFAULT_HORIZON_MINUTES
from core.clock import local_now
from core.models import Alert, Anomaly, AnomalyType, Severity, TickResult
from services.alerts import AlertSummary, AnomalyEngine
from services.notifications import EmailNotifier, NotifyResult
from services.pipeline import MonitoringPipeline
from services.settings import Settings
from services.ticker import TickDriver
from simulation.generator import TelemetryGenerator

logger = logging.getLogger(__name__)

SeverityLabel = Literal["critical", "warning", "info"]


def _envelope(data: Any) -> dict[str, Any]:
    return {"success": True, "data": data, "timestamp": local_now().isoformat()}


def _message(event: str, data: dict[str, Any]) -> dict[str, Any]:
    return {"event": event, "data": {**data, "timestamp": local_now().isoformat()}}


def build_pipeline(settings: Settings) -> MonitoringPipeline:
    return MonitoringPipeline(
        generator=TelemetryGenerator(settings.sim_config()),
        engine=AnomalyEngine(),
        notifier=EmailNotifier(settings.email_settings()),
        horizon_minutes=settings.FORECAST_HORIZON_MINUTES,
    )


# ---------------------------------------------------------------------------
# Request bodies
# ---------------------------------------------------------------------------


class EmailTestRequest(BaseModel):
    email: str = Field(pattern=r"^[^@\s]+@[^@\s]+\.[^@\s]+$")


class AnomalyIn(BaseModel):
    type: AnomalyType
    severity: SeverityLabel
    metric: str
    value: float
    message: str
    recommendation: str = ""


class AlertIn(BaseModel):
    floor_id: int = Field(ge=1)
    floor_name: str = ""
    building_name: str = ""
    severity: SeverityLabel
    anomalies: list[AnomalyIn] = Field(min_length=1)
    timestamp: datetime | None = None

    def to_alert(self) -> Alert:
        timestamp = self.timestamp or local_now()
        return Alert(
            floor_id=self.floor_id,
            floor_name=self.floor_name,
            building_name=self.building_name,
            severity=Severity.from_label(self.severity),
            timestamp=timestamp,
            anomalies=tuple(
                Anomaly(
                    type=a.type,
                    severity=Severity.from_label(a.severity),
                    metric=a.metric,
                    value=a.value,
                    message=a.message,
                    recommendation=a.recommendation,
                    timestamp=timestamp,
                )
                for a in self.anomalies
            ),
        )


class AlertEmailRequest(BaseModel):
    alert: AlertIn


class SummaryIn(BaseModel):
    date: str
    total_alerts: int = Field(ge=0)
    critical_alerts: int = Field(0, ge=0)
    warning_alerts: int = Field(0, ge=0)
    info_alerts: int = Field(0, ge=0)
    predictive_alerts: int = Field(0, ge=0)
    alerts_by_floor: dict[int, int] = Field(default_factory=dict)


class SummaryEmailRequest(BaseModel):
    summary: SummaryIn | None = None


class HistoryRequest(BaseModel):
    floor_id: int = Field(ge=1)
    limit: int = Field(60, ge=1, le=1440)


class PredictionRequest(BaseModel):
    floor_id: int = Field(ge=1)
    minutes_ahead: int | None = Field(None, ge=10, le=240)


# ---------------------------------------------------------------------------
# WebSocket fan-out
# ---------------------------------------------------------------------------


class ConnectionHub:
    """Tracks connected dashboards and broadcasts tick results to them."""

    def __init__(self) -> None:
        self._clients: set[WebSocket] = set()

    def __len__(self) -> int:
        return len(self._clients)

    async def connect(self, websocket: WebSocket) -> None:
        await websocket.accept()
        self._clients.add(websocket)
        logger.info("Client connected (%d total)", len(self._clients))

    def disconnect(self, websocket: WebSocket) -> None:
        self._clients.discard(websocket)
        logger.info("Client disconnected (%d total)", len(self._clients))

    async def broadcast(self, message: dict[str, Any]) -> None:
        for websocket in list(self._clients):
            try:
                await websocket.send_json(message)
            except (WebSocketDisconnect, RuntimeError):
                self.disconnect(websocket)

    async def publish_tick(self, result: TickResult) -> None:
        await self.broadcast(_message("floor-data", {"floors": [r.as_dict() for r in result.readings]}))
        if result.alerts:
            await self.broadcast(_message("new-alerts", {"alerts": [a.as_dict() for a in result.alerts]}))
        await self.broadcast(
            _message(
                "predictions",
                {
                    "predictions": [
                        {"floor_id": floor_id, "predictions": forecast.as_dict()}
                        for floor_id, forecast in result.forecasts.items()
                    ]
                },
            )
        )


def _handle_socket_request(pipeline: MonitoringPipeline, event: str, data: dict[str, Any]) -> dict[str, Any] | None:
    match event:
        case "request-history":
            history_request = HistoryRequest.model_validate(data)
            history = pipeline.get_floor_history(history_request.floor_id, history_request.limit)
            return _message(
                "history-data",
                {"floor_id": history_request.floor_id, "history": [r.as_dict() for r in history]},
            )
        case "request-prediction":
            prediction_request = PredictionRequest.model_validate(data)
            forecast = pipeline.predict_floor(prediction_request.floor_id, prediction_request.minutes_ahead)
            return _message(
                "prediction-data",
                {"floor_id": prediction_request.floor_id, "predictions": forecast.as_dict()},
            )
        case "request-alerts":
            return _message("alerts-data", {"alerts": [a.as_dict() for a in pipeline.get_alerts()]})
        case _:
            return None


# ---------------------------------------------------------------------------
# Application
# ---------------------------------------------------------------------------


def create_app(settings: Settings | None = None, pipeline: MonitoringPipeline | None = None) -> FastAPI:
    settings = settings if settings is not None else Settings()
    logging.basicConfig(level=settings.LOG_LEVEL.upper(), format="%(name)s | %(message)s")

    pipeline = pipeline if pipeline is not None else build_pipeline(settings)
    hub = ConnectionHub()
    driver = TickDriver(
        pipeline,
        interval=settings.SIMULATION_INTERVAL,
        cleanup_interval=settings.ALERT_CLEANUP_INTERVAL,
        on_tick=hub.publish_tick,
    )

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        if settings.SIMULATION_ENABLED:
            driver.start()
        yield
        await driver.stop()

    app = FastAPI(title="Floor Monitoring API", lifespan=lifespan)
    app.state.pipeline = pipeline
    app.state.hub = hub
    app.state.driver = driver

    app.add_middleware(
        CORSMiddleware,
        allow_origins=[settings.CORS_ORIGIN],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    def email_notifier() -> EmailNotifier:
        if not isinstance(pipeline.notifier, EmailNotifier):
            raise HTTPException(status_code=503, detail="Email notifier not available")
        return pipeline.notifier

    def notify_response(result: NotifyResult) -> dict[str, Any]:
        return {"success": result.sent, "data": result.as_dict(), "timestamp": local_now().isoformat()}

    @app.get("/health")
    def health() -> dict[str, Any]:
        return {
            "status": "ok",
            "floors": len(pipeline.get_current_data()),
            "simulation_running": driver.running,
            "clients": len(hub),
        }

    # --- floors ---

    @app.get("/api/v1/floors")
    def get_floors() -> dict[str, Any]:
        return _envelope([r.as_dict() for r in pipeline.get_current_data()])

    @app.get("/api/v1/floors/stats")
    def get_stats() -> dict[str, Any]:
        return _envelope(pipeline.stats().as_dict())

    @app.get("/api/v1/floors/{floor_id}")
    def get_floor(floor_id: int) -> dict[str, Any]:
        reading = pipeline.get_floor(floor_id)
        if reading is None:
            raise HTTPException(status_code=404, detail=f"Floor {floor_id} not found")
        return _envelope(reading.as_dict())

    @app.get("/api/v1/floors/{floor_id}/history")
    def get_floor_history(floor_id: int, limit: int = Query(60, ge=1, le=1440)) -> dict[str, Any]:
        if pipeline.get_floor(floor_id) is None:
            raise HTTPException(status_code=404, detail=f"Floor {floor_id} not found")
        history = pipeline.get_floor_history(floor_id, limit)
        return _envelope({"floor_id": floor_id, "history": [r.as_dict() for r in history], "count": len(history)})

    @app.get("/api/v1/floors/{floor_id}/predictions")
    def get_floor_predictions(
        floor_id: int, minutes_ahead: int = Query(DEFAULT_HORIZON_MINUTES, ge=10, le=240)
    ) -> dict[str, Any]:
        if pipeline.get_floor(floor_id) is None:
            raise HTTPException(status_code=404, detail=f"Floor {floor_id} not found")
        forecast = pipeline.predict_floor(floor_id, minutes_ahead)
        return _envelope({"floor_id": floor_id, "predictions": forecast.as_dict(), "minutes_ahead": minutes_ahead})

    # --- alerts ---

    @app.get("/api/v1/alerts")
    def get_alerts(
        severity: SeverityLabel | None = None,
        floor_id: int | None = Query(None, ge=1),
        anomaly_type: AnomalyType | None = Query(None, alias="type"),
        limit: int | None = Query(None, ge=1, le=1000),
    ) -> dict[str, Any]:
        alerts = pipeline.query_alerts(
            severity=Severity.from_label(severity) if severity else None,
            floor_id=floor_id,
            anomaly_type=anomaly_type,
            limit=limit,
        )
        return {**_envelope([a.as_dict() for a in alerts]), "count": len(alerts)}

    @app.get("/api/v1/alerts/summary")
    def get_alert_summary() -> dict[str, Any]:
        return _envelope(pipeline.summarize().as_dict())

    # --- email ---

    @app.get("/api/v1/email/status")
    def email_status() -> dict[str, Any]:
        notifier = email_notifier()
        status = notifier.check_configuration()
        return _envelope(
            {
                "configured": status.configured,
                "enabled": status.enabled,
                "missing_config": status.missing_config,
                "has_recipients": status.has_recipients,
                "stats": notifier.get_stats(),
            }
        )

    @app.post("/api/v1/email/test")
    async def email_test(body: EmailTestRequest) -> dict[str, Any]:
        return notify_response(await email_notifier().send_test_email(body.email))

    @app.post("/api/v1/email/alert")
    async def email_alert(body: AlertEmailRequest) -> dict[str, Any]:
        return notify_response(await email_notifier().notify(body.alert.to_alert()))

    @app.post("/api/v1/email/summary")
    async def email_summary(body: SummaryEmailRequest | None = None) -> dict[str, Any]:
        if body is None or body.summary is None:
            summary = pipeline.summarize()
        else:
            summary = AlertSummary(**body.summary.model_dump())
        return notify_response(await email_notifier().send_daily_summary(summary))

    @app.post("/api/v1/email/clear-cooldowns")
    def email_clear_cooldowns() -> dict[str, Any]:
        pipeline.clear_cooldowns()
        return _envelope({"message": "Cooldowns cleared"})

    @app.post("/api/v1/email/clear-rate-limiting")
    def email_clear_rate_limiting() -> dict[str, Any]:
        pipeline.clear_rate_limiting()
        return _envelope({"message": "Rate limiting reset"})

    # --- realtime ---

    @app.websocket("/ws")
    async def websocket_endpoint(websocket: WebSocket) -> None:
        await hub.connect(websocket)
        floors = [r.as_dict() for r in pipeline.get_current_data()]
        await websocket.send_json(_message("initial-data", {"floors": floors}))
        try:
            while True:
                raw = await websocket.receive_text()
                try:
                    message = json.loads(raw)
                    event = str(message["event"])
                    data = message.get("data") or {}
                    reply = _handle_socket_request(pipeline, event, data)
                except ValidationError as exc:
                    await websocket.send_json(
                        _message("error", {"message": "Invalid request", "detail": exc.errors(include_url=False)})
                    )
                    continue
                except (ValueError, KeyError, TypeError, AttributeError):
                    await websocket.send_json(_message("error", {"message": "Malformed request"}))
                    continue
                if reply is not None:
                    await websocket.send_json(reply)
        except WebSocketDisconnect:
            hub.disconnect(websocket)

    return app


app = create_app()


def run(settings: Settings | None = None) -> None:
    settings = settings if settings is not None else Settings()
    uvicorn.run(app, host=settings.HOST, port=settings.PORT, log_level=settings.LOG_LEVEL.lower())


if __name__ == "__main__":
    run()
