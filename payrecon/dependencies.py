import hmac
import logging

from fastapi import Header, HTTPException, Request

from payrecon.core.config import DEFAULT_CRON_API_KEY, get_settings
from payrecon.services.container import Services


logger = logging.getLogger(__name__)


def get_services(request: Request) -> Services:
    services = getattr(request.app.state, "services", None)
    if services is None:
        raise HTTPException(status_code=503, detail="Service is starting up")
    return services


def require_cron_key(x_api_key: str | None = Header(default=None)) -> None:
    expected = (get_settings().cron_api_key or "").strip()
    if not expected:
        raise HTTPException(status_code=503, detail="CRON_API_KEY is not configured")
    if expected == DEFAULT_CRON_API_KEY:
        logger.warning("CRON_API_KEY is still the default placeholder value")
    if not x_api_key or not hmac.compare_digest(x_api_key, expected):
        raise HTTPException(status_code=401, detail="Invalid API key")
