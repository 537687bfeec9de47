from __future__ import annotations

import logging
import re
from typing import Optional

import httpx

from payrecon.core.config import Settings
from payrecon.models import Transaction
from payrecon.services.invoices import format_idr


logger = logging.getLogger(__name__)


class NotificationError(Exception):
    pass


def normalize_phone(value: Optional[str]) -> Optional[str]:
    """Return the number in international form without ``+`` (``62812...``)."""
    digits = re.sub(r"\D", "", str(value or ""))
    if len(digits) < 9:
        return None
    if digits.startswith("0"):
        return "62" + digits[1:]
    if digits.startswith("8"):
        return "62" + digits
    return digits


def build_payment_success_message(tx: Transaction, *, public_base_url: str = "") -> str:
    lines = [
        "*DIGIPRO - Pembayaran Berhasil!*",
        "",
        f"Halo *{tx.customer_name}*,",
        "Pembayaran Anda telah berhasil diverifikasi!",
        "",
        "*Detail Transaksi:*",
        f"No. Transaksi: *{tx.transaction_code}*",
        f"Total Pembayaran: *{format_idr(tx.total_amount)}*",
        f"Metode: *{tx.payment_method or '-'}*",
        "Status: *LUNAS*",
    ]
    if tx.invoice_url:
        lines += ["", "*Invoice/Kwitansi:*", f"{public_base_url.rstrip('/')}{tx.invoice_url}"]
    lines += ["", "Terima kasih telah berbelanja di DIGIPRO!", "", "Salam,", "Tim DIGIPRO"]
    return "\n".join(lines)


class Notifier:
    name = "base"

    def send(self, phone: str, message: str) -> bool:
        raise NotImplementedError

    def close(self) -> None:
        return None


class ConsoleNotifier(Notifier):
    name = "console"

    def send(self, phone: str, message: str) -> bool:
        # Safe default for dev/test; the message only goes to the logs.
        logger.info("[notify][console] to=%s message=%r", phone, message)
        return True


class SilentNotifier(Notifier):
    name = "silent"

    def send(self, phone: str, message: str) -> bool:
        logger.info("WhatsApp silent mode enabled, skipping notification to %s", phone)
        return False


class WhatsAppNotifier(Notifier):
    """Delivers messages through an HTTP WhatsApp gateway."""

    name = "whatsapp"

    def __init__(self, api_url: str, api_token: Optional[str] = None, *, timeout: float = 15, transport: httpx.BaseTransport | None = None):
        if not api_url:
            raise ValueError("WHATSAPP_API_URL is required for the whatsapp provider")
        headers = {"Content-Type": "application/json"}
        if api_token:
            headers["Authorization"] = f"Bearer {api_token}"
        self._client = httpx.Client(base_url=api_url.rstrip("/"), headers=headers, timeout=timeout, transport=transport)

    def send(self, phone: str, message: str) -> bool:
        try:
            resp = self._client.post("/send-message", json={"phone": phone, "message": message})
        except httpx.HTTPError as exc:
            raise NotificationError(f"WhatsApp gateway unreachable: {exc}") from exc
        if resp.status_code >= 400:
            raise NotificationError(f"WhatsApp gateway returned HTTP {resp.status_code}: {resp.text[:200]}")
        return True

    def close(self) -> None:
        self._client.close()


def build_notifier(settings: Settings) -> Notifier:
    if settings.whatsapp_silent_mode:
        return SilentNotifier()
    provider = (settings.notification_provider or "console").strip().lower()
    if provider == "console":
        return ConsoleNotifier()
    if provider == "whatsapp":
        return WhatsAppNotifier(
            settings.whatsapp_api_url or "",
            settings.whatsapp_api_token,
            timeout=settings.whatsapp_timeout_seconds,
        )
    raise ValueError(f"Unsupported NOTIFICATION_PROVIDER: {provider}")
