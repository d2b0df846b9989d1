# app/core/config.py
from __future__ import annotations

import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Optional, Tuple

from dotenv import find_dotenv, load_dotenv

try:
    from tzlocal import get_localzone  # optional dependency
except Exception:
    get_localzone = None  # type: ignore

# root .env first, then app/.env as fallback (do not override loaded values)
load_dotenv(find_dotenv(usecwd=True))
load_dotenv(Path(__file__).resolve().parent.parent / ".env", override=False)


EMAIL_PROVIDERS = ("log", "resend")


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in {"1", "true", "yes", "on"}


def parse_warning_days(raw: str) -> Tuple[int, ...]:
    """
    Parse "30,14,7,1" into (30, 14, 7, 1), keeping the configured order.
    Duplicates are dropped; negatives and junk are rejected.
    """
    out: list[int] = []
    for part in (raw or "").split(","):
        part = part.strip()
        if not part:
            continue
        try:
            value = int(part)
        except ValueError:
            raise ValueError(f"Invalid expiry warning threshold: {part!r}")
        if value < 0:
            raise ValueError(f"Expiry warning threshold must be >= 0: {value}")
        if value not in out:
            out.append(value)
    if not out:
        raise ValueError("EXPIRY_WARNING_DAYS must contain at least one threshold")
    return tuple(out)


def _resolve_timezone() -> str:
    tzname = os.getenv("APP_TIMEZONE")
    if tzname:
        return tzname
    if get_localzone:
        try:
            return str(get_localzone())
        except Exception:
            return "UTC"
    return "UTC"


@dataclass(frozen=True)
class Settings:
    database_url: str = "sqlite:///./compliance.db"
    enable_create_all: bool = True
    log_level: str = "INFO"

    # Auth tokens
    jwt_secret_key: str = "change-me-in-production"
    jwt_algorithm: str = "HS256"
    access_token_expire_minutes: int = 60

    # Compliance / expiry job
    timezone: str = "UTC"
    compliance_warning_days: int = 30
    expiry_job_enabled: bool = True
    expiry_job_cron: str = "0 9 * * *"
    expiry_warning_days: Tuple[int, ...] = field(default=(30, 14, 7, 1))
    manager_alert_max_days: int = 7

    # Email
    email_provider: str = "log"
    email_from: str = "no-reply@compliance.local"
    email_from_name: Optional[str] = None
    resend_api_key: Optional[str] = None
    resend_api_url: str = "https://api.resend.com/emails"
    email_timeout_seconds: float = 20.0

    def __post_init__(self) -> None:
        if self.email_provider not in EMAIL_PROVIDERS:
            raise ValueError(
                f"EMAIL_PROVIDER must be one of {EMAIL_PROVIDERS}, got {self.email_provider!r}"
            )
        if self.email_provider == "resend" and not self.resend_api_key:
            raise ValueError("RESEND_API_KEY is required when EMAIL_PROVIDER=resend")
        if not self.expiry_warning_days:
            raise ValueError("expiry_warning_days must not be empty")

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            database_url=os.getenv("DATABASE_URL", "sqlite:///./compliance.db"),
            enable_create_all=_env_bool("ENABLE_CREATE_ALL", "1"),
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
            jwt_secret_key=os.getenv("JWT_SECRET_KEY", "change-me-in-production"),
            jwt_algorithm=os.getenv("JWT_ALGORITHM", "HS256"),
            access_token_expire_minutes=int(
                os.getenv("ACCESS_TOKEN_EXPIRE_MINUTES", "60")
            ),
            timezone=_resolve_timezone(),
            compliance_warning_days=int(os.getenv("COMPLIANCE_WARNING_DAYS", "30")),
            expiry_job_enabled=_env_bool("EXPIRY_JOB_ENABLED", "1"),
            expiry_job_cron=os.getenv("EXPIRY_JOB_CRON", "0 9 * * *"),
            expiry_warning_days=parse_warning_days(
                os.getenv("EXPIRY_WARNING_DAYS", "30,14,7,1")
            ),
            manager_alert_max_days=int(os.getenv("MANAGER_ALERT_MAX_DAYS", "7")),
            email_provider=os.getenv("EMAIL_PROVIDER", "log").strip().lower(),
            email_from=os.getenv("EMAIL_FROM", "no-reply@compliance.local"),
            email_from_name=os.getenv("EMAIL_FROM_NAME") or None,
            resend_api_key=os.getenv("RESEND_API_KEY") or None,
            resend_api_url=os.getenv("RESEND_API_URL", "https://api.resend.com/emails"),
            email_timeout_seconds=float(os.getenv("EMAIL_TIMEOUT_SECONDS", "20")),
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Process-wide settings, read once (restart to change thresholds)."""
    return Settings.from_env()
