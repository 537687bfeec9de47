import hashlib

import httpx
import pytest

from payrecon.models import PaymentStatus
from payrecon.services.midtrans import (
    MidtransApiError,
    MidtransClient,
    TERMINAL_GATEWAY_STATUSES,
    compute_signature,
    map_transaction_status,
    resolve_payment_status,
    verify_signature,
)


def test_signature_matches_independent_sha512():
    expected = hashlib.sha512(b"ORDER-1700000000000-abc12345200150000.00secret").hexdigest()
    assert compute_signature("ORDER-1700000000000-abc12345", "200", "150000.00", "secret") == expected


def test_signature_is_stable_across_calls():
    first = compute_signature("ORDER-1", "201", "5000.00", "key")
    assert first == compute_signature("ORDER-1", "201", "5000.00", "key")
    assert len(first) == 128


def test_verify_signature_accepts_gateway_payload():
    payload = {"order_id": "ORDER-1", "status_code": "200", "gross_amount": "150000.00"}
    payload["signature_key"] = compute_signature("ORDER-1", "200", "150000.00", "key")
    assert verify_signature(payload, "key")


def test_verify_signature_rejects_tampered_amount():
    payload = {"order_id": "ORDER-1", "status_code": "200", "gross_amount": "1.00"}
    payload["signature_key"] = compute_signature("ORDER-1", "200", "150000.00", "key")
    assert not verify_signature(payload, "key")


def test_verify_signature_rejects_missing_fields_and_key():
    assert not verify_signature({"order_id": "ORDER-1"}, "key")
    payload = {"order_id": "ORDER-1", "status_code": "200", "gross_amount": "1.00", "signature_key": "abc"}
    assert not verify_signature(payload, "")


@pytest.mark.parametrize("status", ["settlement", "capture", "SETTLEMENT", " capture "])
def test_paid_statuses(status):
    assert map_transaction_status(status) == PaymentStatus.PAID


@pytest.mark.parametrize("status", ["deny", "cancel", "expire"])
def test_failed_statuses(status):
    assert map_transaction_status(status) == PaymentStatus.FAILED


@pytest.mark.parametrize("status", ["pending", "authorize", "refund", "some_future_status", "", None, 42])
def test_everything_else_is_pending(status):
    assert map_transaction_status(status) == PaymentStatus.PENDING


def test_fraud_deny_overrides_capture():
    assert resolve_payment_status("capture", "deny") == PaymentStatus.FAILED
    assert resolve_payment_status("capture", "accept") == PaymentStatus.PAID
    assert resolve_payment_status("pending", None) == PaymentStatus.PENDING


def test_terminal_gateway_statuses():
    assert TERMINAL_GATEWAY_STATUSES == {"settlement", "capture", "deny", "cancel", "expire"}


def _client(handler, **kwargs):
    return MidtransClient("server-key", transport=httpx.MockTransport(handler), **kwargs)


def test_get_status_uses_basic_auth_and_sandbox_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        return httpx.Response(200, json={"status_code": "200", "transaction_status": "settlement"})

    data = _client(handler).get_status("ORDER-1")
    assert data["transaction_status"] == "settlement"
    assert seen["url"] == "https://api.sandbox.midtrans.com/v2/ORDER-1/status"
    # base64("server-key:")
    assert seen["auth"] == "Basic c2VydmVyLWtleTo="


def test_get_status_production_url():
    seen = {}

    def handler(request):
        seen["host"] = request.url.host
        return httpx.Response(200, json={"status_code": "201", "transaction_status": "pending"})

    _client(handler, is_production=True).get_status("ORDER-1")
    assert seen["host"] == "api.midtrans.com"


def test_get_status_embedded_404_raises():
    def handler(request):
        return httpx.Response(200, json={"status_code": "404", "status_message": "Transaction doesn't exist."})

    with pytest.raises(MidtransApiError) as excinfo:
        _client(handler).get_status("ORDER-404")
    assert excinfo.value.status_code == 404


def test_get_status_retries_server_errors(monkeypatch):
    monkeypatch.setattr("payrecon.services.midtrans.time.sleep", lambda _: None)
    calls = []

    def handler(request):
        calls.append(1)
        if len(calls) < 3:
            return httpx.Response(503, text="unavailable")
        return httpx.Response(200, json={"status_code": "200", "transaction_status": "capture"})

    data = _client(handler, retry_count=2).get_status("ORDER-1")
    assert data["transaction_status"] == "capture"
    assert len(calls) == 3


def test_get_status_does_not_retry_auth_errors(monkeypatch):
    monkeypatch.setattr("payrecon.services.midtrans.time.sleep", lambda _: None)
    calls = []

    def handler(request):
        calls.append(1)
        return httpx.Response(401, json={"status_message": "Unauthorized"})

    with pytest.raises(MidtransApiError) as excinfo:
        _client(handler, retry_count=3).get_status("ORDER-1")
    assert excinfo.value.status_code == 401
    assert len(calls) == 1


def test_get_status_network_error_becomes_api_error(monkeypatch):
    monkeypatch.setattr("payrecon.services.midtrans.time.sleep", lambda _: None)

    def handler(request):
        raise httpx.ConnectError("boom", request=request)

    with pytest.raises(MidtransApiError) as excinfo:
        _client(handler, retry_count=1).get_status("ORDER-1")
    assert excinfo.value.status_code is None


def test_get_status_without_server_key():
    with pytest.raises(MidtransApiError):
        MidtransClient("").get_status("ORDER-1")
