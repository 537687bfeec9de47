import logging

from payrecon.core.config import get_settings


LOG_FORMAT = "%(asctime)s %(levelname)s [%(name)s] %(message)s"


def configure_logging() -> None:
    settings = get_settings()
    level = getattr(logging, str(settings.log_level or "INFO").upper(), logging.INFO)
    root = logging.getLogger()
    # Uvicorn installs its own handlers; only add ours when nothing is configured.
    if not root.handlers:
        logging.basicConfig(level=level, format=LOG_FORMAT)
    root.setLevel(level)
    # httpx logs every request at INFO, which drowns the reconciler output.
    logging.getLogger("httpx").setLevel(max(level, logging.WARNING))
