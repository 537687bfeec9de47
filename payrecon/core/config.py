from functools import lru_cache
import json
from typing import Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


def parse_cors_origins(value: str) -> list[str]:
    if not value:
        return []

    parsed: list[str]
    raw = value.strip()
    if raw.startswith("["):
        try:
            items = json.loads(raw)
            parsed = [str(item).strip() for item in items if str(item).strip()]
        except (TypeError, ValueError):
            parsed = []
    else:
        parsed = [origin.strip() for origin in raw.split(",") if origin.strip()]

    # Preserve order and remove duplicates.
    return list(dict.fromkeys(parsed))


DEFAULT_CRON_API_KEY = "change-this-to-secure-key"


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False, extra="ignore")

    app_name: str = "DIGIPRO Payments"
    environment: str = "development"
    api_v1_prefix: str = "/api"
    log_level: str = "INFO"

    # Database
    database_url: str = "sqlite:///./payrecon.db"
    db_pool_size: int = 5
    db_max_overflow: int = 5
    db_pool_timeout: int = 15
    db_pool_recycle: int = 1200
    db_pool_pre_ping: bool = True

    # Midtrans
    midtrans_is_production: bool = False
    midtrans_server_key: Optional[str] = None
    midtrans_server_key_sandbox: Optional[str] = None
    midtrans_server_key_production: Optional[str] = None
    midtrans_timeout_seconds: int = 10
    midtrans_retry_count: int = 2

    # Reconciliation
    api_url: str = "http://localhost:5000/api"
    max_transaction_hours: int = 72
    cron_api_key: Optional[str] = None
    reconcile_delay_seconds: float = 0.5

    # Client polling. One interval for every caller; backoff doubles per
    # consecutive failure up to poll_max_interval_seconds.
    poll_interval_seconds: float = 5.0
    poll_max_interval_seconds: float = 30.0
    poll_max_failures: int = 5

    # Notifications
    notification_provider: str = "console"  # console|whatsapp
    whatsapp_silent_mode: bool = False
    whatsapp_api_url: Optional[str] = None
    whatsapp_api_token: Optional[str] = None
    whatsapp_timeout_seconds: int = 15

    # Invoices
    invoice_dir: str = "./invoices"
    public_base_url: str = "http://localhost:5000"

    # CORS
    cors_origins: str = "http://localhost:3000"
    auto_create_tables: bool = False

    @property
    def midtrans_active_server_key(self) -> str:
        if self.midtrans_is_production:
            key = self.midtrans_server_key_production or self.midtrans_server_key
        else:
            key = self.midtrans_server_key_sandbox or self.midtrans_server_key
        return (key or "").strip()


@lru_cache
def get_settings() -> Settings:
    return Settings()
