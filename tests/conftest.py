import os
import tempfile


def _set_test_env() -> None:
    defaults = {
        "APP_NAME": "Payments Test",
        "ENVIRONMENT": "test",
        "API_V1_PREFIX": "/api",
        "LOG_LEVEL": "WARNING",
        "AUTO_CREATE_TABLES": "false",
        "DATABASE_URL": "sqlite://",
        "MIDTRANS_IS_PRODUCTION": "false",
        "MIDTRANS_SERVER_KEY_SANDBOX": "SB-Mid-server-test-key",
        "MIDTRANS_RETRY_COUNT": "0",
        "API_URL": "http://testserver/api",
        "MAX_TRANSACTION_HOURS": "72",
        "CRON_API_KEY": "cron-test-key",
        "RECONCILE_DELAY_SECONDS": "0",
        "NOTIFICATION_PROVIDER": "console",
        "WHATSAPP_SILENT_MODE": "false",
        "INVOICE_DIR": tempfile.mkdtemp(prefix="payrecon-invoices-"),
        "CORS_ORIGINS": "http://localhost:3000",
    }
    for key, value in defaults.items():
        os.environ.setdefault(key, value)


_set_test_env()

from contextlib import contextmanager  # noqa: E402
from datetime import timedelta  # noqa: E402
from decimal import Decimal  # noqa: E402

import pytest  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402

from payrecon.core.config import get_settings  # noqa: E402
from payrecon.core.database import Base, SessionLocal, engine  # noqa: E402
from payrecon.models import PaymentStatus, Transaction  # noqa: E402
from payrecon.models.base import utcnow  # noqa: E402
from payrecon.services.container import Services  # noqa: E402
from payrecon.services.effects import PaymentEffects  # noqa: E402
from payrecon.services.invoices import InvoiceGenerator  # noqa: E402
from payrecon.services.midtrans import MidtransApiError, compute_signature  # noqa: E402
from payrecon.services.notifications import Notifier  # noqa: E402
from payrecon.services.reconciler import PendingReconciler  # noqa: E402


SERVER_KEY = "SB-Mid-server-test-key"


class RecordingNotifier(Notifier):
    name = "recording"

    def __init__(self, fail: bool = False):
        self.sent: list[tuple[str, str]] = []
        self.fail = fail

    def send(self, phone: str, message: str) -> bool:
        self.sent.append((phone, message))
        if self.fail:
            raise RuntimeError("gateway down")
        return True


class FakeMidtrans:
    """Stands in for MidtransClient; responses keyed by order id."""

    def __init__(self, responses: dict | None = None):
        self.responses = dict(responses or {})
        self.calls: list[str] = []
        self.server_key = SERVER_KEY

    def get_status(self, order_id: str) -> dict:
        self.calls.append(order_id)
        response = self.responses.get(order_id)
        if response is None:
            raise MidtransApiError("Transaction doesn't exist.", status_code=404)
        if isinstance(response, Exception):
            raise response
        return response


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def notifier():
    return RecordingNotifier()


@pytest.fixture
def midtrans():
    return FakeMidtrans()


@pytest.fixture
def services(tmp_path, notifier, midtrans):
    settings = get_settings()
    effects = PaymentEffects(InvoiceGenerator(tmp_path), notifier, public_base_url="http://testserver")
    reconciler = PendingReconciler(midtrans, effects, delay_seconds=0)
    return Services(settings=settings, midtrans=midtrans, notifier=notifier, effects=effects, reconciler=reconciler)


@contextmanager
def _client_with_services(services):
    from payrecon.main import app

    app.state.services = services
    try:
        with TestClient(app) as client:
            yield client
    finally:
        app.state.services = None


@pytest.fixture
def client(db, services):
    with _client_with_services(services) as client:
        yield client


@pytest.fixture
def make_transaction(db):
    def _make(code: str = "ORDER-1700000000000-abc12345", *, amount="150000", hours_ago: float = 1, **fields):
        created = utcnow() - timedelta(hours=hours_ago)
        tx = Transaction(
            transaction_code=code,
            payment_status=fields.pop("payment_status", PaymentStatus.PENDING),
            total_amount=Decimal(amount),
            customer_name=fields.pop("customer_name", "Budi Santoso"),
            customer_phone=fields.pop("customer_phone", "081234567890"),
            created_at=created,
            updated_at=created,
            **fields,
        )
        db.add(tx)
        db.commit()
        db.refresh(tx)
        return tx

    return _make


def signed_notification(order_id: str, *, transaction_status: str, status_code: str = "200", gross_amount: str = "150000.00", **extra) -> dict:
    payload = {
        "order_id": order_id,
        "status_code": status_code,
        "gross_amount": gross_amount,
        "transaction_status": transaction_status,
        "transaction_id": extra.pop("transaction_id", "9aed5972-5b6a-401e-894b-a32c91ed1a3a"),
        "payment_type": extra.pop("payment_type", "bank_transfer"),
        "merchant_id": "G123456789",
        "fraud_status": extra.pop("fraud_status", "accept"),
        "currency": "IDR",
    }
    payload.update(extra)
    payload["signature_key"] = compute_signature(order_id, status_code, gross_amount, SERVER_KEY)
    return payload
