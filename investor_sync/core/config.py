import os
from typing import Optional

from pydantic import BaseModel


DEFAULT_RELAY_SENDER = "fred@fireflies.ai"


def _split_list(raw: Optional[str]) -> list[str]:
    return [item.strip().lower() for item in (raw or "").split(",") if item.strip()]


def _int_env(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)))
    except ValueError:
        return default


def _float_env(name: str, default: float) -> float:
    try:
        return float(os.getenv(name, str(default)))
    except ValueError:
        return default


class AppConfig(BaseModel):
    cron_secret: Optional[str] = None

    google_service_email: Optional[str] = None
    google_private_key: Optional[str] = None
    google_delegated_user: Optional[str] = None
    google_sheet_id: Optional[str] = None
    google_client_id: Optional[str] = None
    google_client_secret: Optional[str] = None
    gmail_token_path: str = "gmail-tokens.json"

    calendar_provider: str = "google"
    calendar_id: str = "primary"

    contact_store: str = "sheets"
    contact_store_path: str = "data/contacts.json"

    fireflies_api_key: Optional[str] = None
    transcript_relay_sender: str = DEFAULT_RELAY_SENDER

    llm_enabled: bool = True
    llm_provider: Optional[str] = None
    openai_api_key: Optional[str] = None
    gemini_api_key: Optional[str] = None
    llm_model: Optional[str] = None
    llm_timeout_ms: int = 30000

    lookback_days: int = 60
    org_domains: list[str] = []
    excluded_emails: list[str] = []
    excluded_domains: list[str] = []

    http_timeout_seconds: float = 15.0

    run_scheduler: bool = False
    sync_cron_hour: int = 6
    sync_cron_minute: int = 0
    timezone: str = "America/New_York"


def load_config() -> AppConfig:
    return AppConfig(
        cron_secret=os.getenv("CRON_SECRET"),
        google_service_email=os.getenv("GOOGLE_SERVICE_EMAIL"),
        google_private_key=os.getenv("GOOGLE_PRIVATE_KEY"),
        google_delegated_user=os.getenv("GOOGLE_DELEGATED_USER"),
        google_sheet_id=os.getenv("GOOGLE_SHEET_ID"),
        google_client_id=os.getenv("GOOGLE_CLIENT_ID"),
        google_client_secret=os.getenv("GOOGLE_CLIENT_SECRET"),
        gmail_token_path=os.getenv("GMAIL_TOKEN_PATH", "gmail-tokens.json"),
        calendar_provider=os.getenv("CALENDAR_PROVIDER", "google").lower(),
        calendar_id=os.getenv("CALENDAR_ID", "primary"),
        contact_store=os.getenv("CONTACT_STORE", "sheets").lower(),
        contact_store_path=os.getenv("CONTACT_STORE_PATH", "data/contacts.json"),
        fireflies_api_key=os.getenv("FIREFLIES_API_KEY"),
        transcript_relay_sender=os.getenv("TRANSCRIPT_RELAY_SENDER", DEFAULT_RELAY_SENDER).lower(),
        llm_enabled=os.getenv("LLM_ENABLED", "true").lower() == "true",
        llm_provider=(os.getenv("LLM_PROVIDER") or None),
        openai_api_key=os.getenv("OPENAI_API_KEY"),
        gemini_api_key=os.getenv("GEMINI_API_KEY"),
        llm_model=os.getenv("LLM_MODEL"),
        llm_timeout_ms=_int_env("LLM_TIMEOUT_MS", 30000),
        lookback_days=_int_env("LOOKBACK_DAYS", 60),
        org_domains=_split_list(os.getenv("ORG_DOMAINS", "viehq.com")),
        excluded_emails=_split_list(os.getenv("EXCLUDED_EMAILS")),
        excluded_domains=_split_list(os.getenv("EXCLUDED_DOMAINS")),
        http_timeout_seconds=_float_env("HTTP_TIMEOUT_SECONDS", 15.0),
        run_scheduler=os.getenv("RUN_SCHEDULER", "0") == "1",
        sync_cron_hour=_int_env("SYNC_CRON_HOUR", 6),
        sync_cron_minute=_int_env("SYNC_CRON_MINUTE", 0),
        timezone=os.getenv("TIMEZONE", "America/New_York"),
    )
