"""Services - alert engine, notifications, pipeline and tick driver."""

from services.alerts import AlertSummary, AnomalyEngine
from services.notifications import AlertNotifier, EmailNotifier, NotifyResult
from services.pipeline import MonitoringPipeline, TickInProgressError
from services.settings import EmailSettings, Settings
from services.ticker import TickDriver

__all__ = [
    "AlertNotifier",
    "AlertSummary",
    "AnomalyEngine",
    "EmailNotifier",
    "EmailSettings",
    "MonitoringPipeline",
    "NotifyResult",
    "Settings",
    "TickDriver",
    "TickInProgressError",
]
