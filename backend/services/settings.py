"""Process settings, read from the environment and an optional ``.env`` file."""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict

from simulation.config import SimConfig


def _split_emails(raw: str) -> list[str]:
    return [part.strip() for part in raw.split(",") if part.strip()]


class EmailSettings(BaseSettings):
    """EmailJS credentials, templates, recipients and delivery limits."""

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    EMAILJS_SERVICE_ID: str = ""
    EMAILJS_PUBLIC_KEY: str = ""
    EMAILJS_PRIVATE_KEY: str = ""
    EMAILJS_API_URL: str = "https://api.emailjs.com/api/v1.0/email/send"

    EMAILJS_TEMPLATE_CRITICAL: str = "template_critical"
    EMAILJS_TEMPLATE_WARNING: str = "template_warning"
    EMAILJS_TEMPLATE_INFO: str = "template_info"
    EMAILJS_TEMPLATE_SUMMARY: str = "template_summary"

    # Comma-separated address lists
    EMAIL_RECIPIENTS_CRITICAL: str = ""
    EMAIL_RECIPIENTS_WARNING: str = ""
    EMAIL_RECIPIENTS_INFO: str = ""
    EMAIL_RECIPIENTS_ADMIN: str = ""

    EMAIL_MAX_PER_MINUTE: int = Field(5, ge=1)
    EMAIL_COOLDOWN_MINUTES: int = Field(15, ge=0)
    EMAIL_NOTIFICATIONS_ENABLED: bool = False
    EMAIL_TIMEOUT_SECONDS: float = 10.0

    def templates(self) -> dict[str, str]:
        return {
            "critical": self.EMAILJS_TEMPLATE_CRITICAL,
            "warning": self.EMAILJS_TEMPLATE_WARNING,
            "info": self.EMAILJS_TEMPLATE_INFO,
            "summary": self.EMAILJS_TEMPLATE_SUMMARY,
        }

    def recipients(self) -> dict[str, list[str]]:
        return {
            "critical": _split_emails(self.EMAIL_RECIPIENTS_CRITICAL),
            "warning": _split_emails(self.EMAIL_RECIPIENTS_WARNING),
            "info": _split_emails(self.EMAIL_RECIPIENTS_INFO),
            "admin": _split_emails(self.EMAIL_RECIPIENTS_ADMIN),
        }


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    NUMBER_OF_FLOORS: int = Field(5, ge=1, le=100)
    BUILDING_NAME: str = "Main Building"
    SIMULATION_INTERVAL: float = Field(60.0, gt=0, description="Seconds between ticks")
    FORECAST_HORIZON_MINUTES: int = Field(60, ge=10)
    ALERT_CLEANUP_INTERVAL: float = Field(3600.0, gt=0, description="Seconds between alert-log cleanups")
    SIMULATION_ENABLED: bool = True

    HOST: str = "0.0.0.0"
    PORT: int = Field(3000, ge=1, le=65535)
    CORS_ORIGIN: str = "http://localhost:5173"
    LOG_LEVEL: str = "INFO"

    def sim_config(self) -> SimConfig:
        return SimConfig(number_of_floors=self.NUMBER_OF_FLOORS, building_name=self.BUILDING_NAME)

    def email_settings(self) -> EmailSettings:
        return EmailSettings()
