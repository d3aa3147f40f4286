"""Application configuration utilities."""

from __future__ import annotations

import os
from functools import lru_cache

from pydantic import BaseModel


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


class Settings(BaseModel):
    DATABASE_URL: str = ""
    LOG_LEVEL: str = "INFO"
    TZ: str = "Asia/Kolkata"

    SCHEDULING_BUFFER_MINUTES: int = 15
    SAVE_MAX_ATTEMPTS: int = 3
    SAVE_BACKOFF_SECONDS: float = 0.1

    TASK_RUNNER_ENABLED: bool = True
    TASK_POLL_SECONDS: float = 5.0
    TASK_LEASE_SECONDS: float = 300.0

    NOTIFY_CHANNEL: str = "log"
    NOTIFY_WORKERS: int = 4
    SMTP_SERVER: str = "smtp.office365.com"
    SMTP_PORT: int = 587
    SMTP_USERNAME: str = ""
    SMTP_PASSWORD: str = ""
    MAIL_SENDER: str = "noreply@example.com"
    MAIL_SENDER_NAME: str = "Recruiting Bot"


@lru_cache
def get_settings() -> Settings:
    return Settings(
        DATABASE_URL=os.getenv("DATABASE_URL", ""),
        LOG_LEVEL=os.getenv("LOG_LEVEL", "INFO"),
        TZ=os.getenv("TZ", "Asia/Kolkata"),
        SCHEDULING_BUFFER_MINUTES=int(os.getenv("SCHEDULING_BUFFER_MINUTES", "15")),
        SAVE_MAX_ATTEMPTS=int(os.getenv("SAVE_MAX_ATTEMPTS", "3")),
        SAVE_BACKOFF_SECONDS=float(os.getenv("SAVE_BACKOFF_SECONDS", "0.1")),
        TASK_RUNNER_ENABLED=_env_bool("TASK_RUNNER_ENABLED", "true"),
        TASK_POLL_SECONDS=float(os.getenv("TASK_POLL_SECONDS", "5")),
        TASK_LEASE_SECONDS=float(os.getenv("TASK_LEASE_SECONDS", "300")),
        NOTIFY_CHANNEL=os.getenv("NOTIFY_CHANNEL", "log"),
        NOTIFY_WORKERS=int(os.getenv("NOTIFY_WORKERS", "4")),
        SMTP_SERVER=os.getenv("SMTP_SERVER", "smtp.office365.com"),
        SMTP_PORT=int(os.getenv("SMTP_PORT", "587")),
        SMTP_USERNAME=os.getenv("SMTP_USERNAME", ""),
        SMTP_PASSWORD=os.getenv("SMTP_PASSWORD", ""),
        MAIL_SENDER=os.getenv("MAIL_SENDER", "noreply@example.com"),
        MAIL_SENDER_NAME=os.getenv("MAIL_SENDER_NAME", "Recruiting Bot"),
    )


settings = get_settings()
