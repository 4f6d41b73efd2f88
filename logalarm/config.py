"""Environment-driven alarm configuration."""

import os
from typing import Any, Optional

import pydantic
from pydantic import BaseModel, ConfigDict, Field


def _split_csv(value: Any) -> list[str]:
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return [str(item).strip() for item in value if str(item).strip()]


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).lower() in ("true", "1", "yes")


class AlarmConfig(BaseModel):
    model_config = ConfigDict(frozen=True)

    enabled: bool = True
    levels: frozenset[str] = frozenset({"error"})
    log_time_frame: int = Field(1, ge=1, description="Window size in minutes.")
    log_per_time_frame: int = Field(
        5, ge=1, description="Occurrences inside the window that arm an alarm."
    )
    delay_between_alarms: int = Field(
        5, ge=0, description="Cooldown in minutes between alarms per signature."
    )
    specific_string: str = ""
    notification_message: str = ""

    slack_webhook_url: str = ""
    discord_webhook_url: str = ""
    telegram_bot_token: str = ""
    telegram_chat_id: str = ""
    telegram_api_url: str = "https://api.telegram.org"
    notification_email: tuple[str, ...] = ("admin@example.com",)
    notification_email_subject: str = "Log Alarm Notification"

    smtp_host: str = "localhost"
    smtp_port: int = 25
    smtp_sender: str = "log-alarm@localhost"
    http_timeout_seconds: float = Field(10.0, gt=0)

    cache_key_prefix: str = "log_alarm"
    redis_url: Optional[str] = None

    @pydantic.field_validator("levels", mode="before")
    @classmethod
    def parse_levels(cls, v: Any) -> frozenset[str]:
        return frozenset(_split_csv(v))

    @pydantic.field_validator("notification_email", mode="before")
    @classmethod
    def parse_recipients(cls, v: Any) -> tuple[str, ...]:
        return tuple(_split_csv(v))

    @property
    def window_seconds(self) -> int:
        return self.log_time_frame * 60

    @property
    def cooldown_seconds(self) -> int:
        return self.delay_between_alarms * 60

    @classmethod
    def from_env(cls) -> "AlarmConfig":
        return cls(
            enabled=_env_bool("LA_ENABLED", "true"),
            levels=os.getenv("LA_LOG_TYPE", "error"),
            log_time_frame=int(os.getenv("LA_LOG_TIME_FRAME", "1")),
            log_per_time_frame=int(os.getenv("LA_LOG_PER_TIME_FRAME", "5")),
            delay_between_alarms=int(os.getenv("LA_DELAY_BETWEEN_ALARMS", "5")),
            specific_string=os.getenv("LA_SPECIFIC_STRING", ""),
            notification_message=os.getenv("LA_NOTIFICATION_MESSAGE", ""),
            slack_webhook_url=os.getenv("LA_SLACK_WEBHOOK_URL", ""),
            discord_webhook_url=os.getenv("LA_DISCORD_WEBHOOK_URL", ""),
            telegram_bot_token=os.getenv("LA_TELEGRAM_BOT_TOKEN", ""),
            telegram_chat_id=os.getenv("LA_TELEGRAM_CHAT_ID", ""),
            telegram_api_url=os.getenv(
                "LA_TELEGRAM_API_URL", "https://api.telegram.org"
            ),
            notification_email=os.getenv("LA_NOTIFICATION_EMAIL", "admin@example.com"),
            notification_email_subject=os.getenv(
                "LA_NOTIFICATION_EMAIL_SUBJECT", "Log Alarm Notification"
            ),
            smtp_host=os.getenv("LA_SMTP_HOST", "localhost"),
            smtp_port=int(os.getenv("LA_SMTP_PORT", "25")),
            smtp_sender=os.getenv("LA_SMTP_SENDER", "log-alarm@localhost"),
            http_timeout_seconds=float(os.getenv("LA_HTTP_TIMEOUT", "10.0")),
            cache_key_prefix=os.getenv("LA_CACHE_PREFIX", "log_alarm"),
            redis_url=os.getenv("LA_REDIS_URL") or os.getenv("REDIS_URL"),
        )


__all__ = ["AlarmConfig"]
