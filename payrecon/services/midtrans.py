import base64
import hashlib
import hmac
import logging
import time
from typing import Any

import httpx

from payrecon.core.config import Settings
from payrecon.models import PaymentStatus


logger = logging.getLogger(__name__)

SANDBOX_API_BASE_URL = "https://api.sandbox.midtrans.com"
PRODUCTION_API_BASE_URL = "https://api.midtrans.com"

PAID_GATEWAY_STATUSES = frozenset({"settlement", "capture"})
FAILED_GATEWAY_STATUSES = frozenset({"deny", "cancel", "expire"})
TERMINAL_GATEWAY_STATUSES = PAID_GATEWAY_STATUSES | FAILED_GATEWAY_STATUSES


def _normalize(value: Any) -> str:
    return str(value or "").strip().lower()


def map_transaction_status(transaction_status: Any) -> PaymentStatus:
    status = _normalize(transaction_status)
    if status in PAID_GATEWAY_STATUSES:
        return PaymentStatus.PAID
    if status in FAILED_GATEWAY_STATUSES:
        return PaymentStatus.FAILED
    # Unknown statuses keep the transaction open rather than dropping it.
    return PaymentStatus.PENDING


def resolve_payment_status(transaction_status: Any, fraud_status: Any = None) -> PaymentStatus:
    if _normalize(fraud_status) == "deny":
        return PaymentStatus.FAILED
    return map_transaction_status(transaction_status)


def compute_signature(order_id: str, status_code: str, gross_amount: str, server_key: str) -> str:
    raw = f"{order_id}{status_code}{gross_amount}{server_key}"
    return hashlib.sha512(raw.encode()).hexdigest()


def verify_signature(payload: dict, server_key: str) -> bool:
    signature = str(payload.get("signature_key") or "").strip()
    if not signature or not server_key:
        return False
    fields = [payload.get("order_id"), payload.get("status_code"), payload.get("gross_amount")]
    if any(value in (None, "") for value in fields):
        return False
    # Gross amount is signed exactly as sent, e.g. "150000.00".
    computed = compute_signature(*(str(value) for value in fields), server_key)
    return hmac.compare_digest(computed, signature.lower())


class MidtransApiError(Exception):
    def __init__(self, message: str, *, status_code: int | None = None, raw: str | None = None):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.raw = raw


class MidtransClient:
    """Read-only client for the Midtrans Core API status endpoint."""

    def __init__(
        self,
        server_key: str,
        *,
        is_production: bool = False,
        timeout: float = 10,
        retry_count: int = 2,
        transport: httpx.BaseTransport | None = None,
    ):
        self.server_key = server_key
        self.base_url = PRODUCTION_API_BASE_URL if is_production else SANDBOX_API_BASE_URL
        self.timeout = timeout
        self.retry_count = max(0, int(retry_count))
        self._transport = transport

    @classmethod
    def from_settings(cls, settings: Settings) -> "MidtransClient":
        return cls(
            settings.midtrans_active_server_key,
            is_production=settings.midtrans_is_production,
            timeout=settings.midtrans_timeout_seconds,
            retry_count=settings.midtrans_retry_count,
        )

    def _basic_auth(self) -> str:
        token = f"{self.server_key}:"
        return base64.b64encode(token.encode()).decode()

    def _headers(self) -> dict:
        return {
            "Accept": "application/json",
            "Content-Type": "application/json",
            "Authorization": f"Basic {self._basic_auth()}",
        }

    def _request(self, method: str, path: str) -> dict:
        url = f"{self.base_url}{path}"
        last_exc = None
        for attempt in range(self.retry_count + 1):
            start = time.time()
            try:
                with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                    response = client.request(method, url, headers=self._headers())
                duration_ms = round((time.time() - start) * 1000, 2)
                logger.info("Midtrans API %s %s status=%s duration=%sms", method, path, response.status_code, duration_ms)
                if response.status_code >= 400:
                    raise MidtransApiError(
                        f"Midtrans returned HTTP {response.status_code}",
                        status_code=response.status_code,
                        raw=response.text[:500],
                    )
                try:
                    return response.json()
                except ValueError as exc:
                    raise MidtransApiError(
                        "Midtrans returned invalid JSON response.",
                        status_code=response.status_code,
                        raw=response.text[:500],
                    ) from exc
            except MidtransApiError as exc:
                last_exc = exc
                # Auth, not-found and validation errors will not change on retry.
                if exc.status_code is not None and exc.status_code < 500 and exc.status_code != 429:
                    raise
                if attempt < self.retry_count:
                    time.sleep(0.5 * (attempt + 1))
                    continue
                raise
            except (httpx.TimeoutException, httpx.NetworkError, httpx.RemoteProtocolError) as exc:
                last_exc = MidtransApiError("Unable to reach Midtrans.", raw=str(exc))
                if attempt < self.retry_count:
                    time.sleep(0.5 * (attempt + 1))
                    continue
                raise last_exc from exc
        raise last_exc or MidtransApiError("Midtrans request failed.")

    def get_status(self, order_id: str) -> dict:
        if not self.server_key:
            raise MidtransApiError("Midtrans server key is not configured.")
        data = self._request("GET", f"/v2/{order_id}/status")
        if not isinstance(data, dict):
            raise MidtransApiError("Midtrans returned an unexpected response shape.")
        # The status API answers HTTP 200 with an embedded status_code for unknown orders.
        body_code = str(data.get("status_code") or "")
        if body_code == "404":
            raise MidtransApiError(
                data.get("status_message") or "Transaction doesn't exist.",
                status_code=404,
                raw=str(data)[:500],
            )
        if body_code.startswith("5"):
            raise MidtransApiError(
                data.get("status_message") or "Midtrans internal error.",
                status_code=int(body_code) if body_code.isdigit() else None,
                raw=str(data)[:500],
            )
        return data
