import logging
import secrets
import string
import time
from dataclasses import dataclass
from decimal import Decimal
from typing import Any

from sqlalchemy.orm import Session

from payrecon.models import TERMINAL_PAYMENT_STATUSES, PaymentStatus, Transaction, WebhookLog
from payrecon.models.base import utcnow


logger = logging.getLogger(__name__)

_ORDER_SUFFIX_ALPHABET = string.ascii_lowercase + string.digits


def generate_order_id(prefix: str = "ORDER") -> str:
    suffix = "".join(secrets.choice(_ORDER_SUFFIX_ALPHABET) for _ in range(8))
    return f"{prefix}-{int(time.time() * 1000)}-{suffix}"


def create_pending_transaction(
    db: Session,
    *,
    total_amount: Decimal,
    customer_name: str,
    customer_phone: str | None = None,
    customer_email: str | None = None,
    transaction_code: str | None = None,
    payment_token: str | None = None,
    payment_url: str | None = None,
) -> Transaction:
    tx = Transaction(
        transaction_code=transaction_code or generate_order_id(),
        payment_status=PaymentStatus.PENDING,
        total_amount=total_amount,
        customer_name=(customer_name or "").strip() or "Anonymous",
        customer_phone=customer_phone,
        customer_email=customer_email,
        payment_token=payment_token,
        payment_url=payment_url,
    )
    db.add(tx)
    db.commit()
    db.refresh(tx)
    logger.info("Created pending transaction %s amount=%s", tx.transaction_code, tx.total_amount)
    return tx


def find_transaction(db: Session, order_id: str | None, gateway_transaction_id: str | None = None) -> Transaction | None:
    if order_id:
        tx = db.query(Transaction).filter(Transaction.transaction_code == order_id).first()
        if tx:
            return tx
    if gateway_transaction_id:
        return db.query(Transaction).filter(Transaction.gateway_transaction_id == gateway_transaction_id).first()
    return None


@dataclass
class TransitionResult:
    transitioned: bool
    previous_status: PaymentStatus
    new_status: PaymentStatus

    @property
    def became_paid(self) -> bool:
        return self.transitioned and self.new_status == PaymentStatus.PAID


def apply_status_transition(
    db: Session,
    tx: Transaction,
    *,
    gateway_status: str | None,
    payment_status: PaymentStatus,
    payment_method: str | None = None,
    gateway_transaction_id: str | None = None,
    source: str = "webhook",
) -> TransitionResult:
    """Move a transaction out of ``pending`` at most once.

    Terminal rows are never rewritten. The pending -> terminal write is a
    conditional UPDATE on the stored status, so when the webhook, the cron
    reconciler and an admin check race on the same order only one of them
    observes an affected row and owns the paid side effects.
    """
    db.refresh(tx)
    previous = PaymentStatus(tx.payment_status)

    if previous in TERMINAL_PAYMENT_STATUSES:
        if payment_status != previous:
            logger.warning(
                "Ignoring %s update for %s: stored status %s is terminal, gateway reported %s",
                source,
                tx.transaction_code,
                previous.value,
                gateway_status,
            )
        return TransitionResult(False, previous, previous)

    values: dict[str, Any] = {"updated_at": utcnow()}
    if gateway_status:
        values["gateway_transaction_status"] = gateway_status
    if payment_method:
        values["payment_method"] = payment_method
    if gateway_transaction_id and not tx.gateway_transaction_id:
        values["gateway_transaction_id"] = gateway_transaction_id

    if payment_status == PaymentStatus.PENDING:
        if len(values) > 1:
            db.query(Transaction).filter(
                Transaction.id == tx.id,
                Transaction.payment_status == PaymentStatus.PENDING,
            ).update(values, synchronize_session=False)
            db.commit()
            db.refresh(tx)
        return TransitionResult(False, previous, PaymentStatus.PENDING)

    values["payment_status"] = payment_status
    affected = (
        db.query(Transaction)
        .filter(Transaction.id == tx.id, Transaction.payment_status == PaymentStatus.PENDING)
        .update(values, synchronize_session=False)
    )
    db.commit()
    db.refresh(tx)

    if not affected:
        current = PaymentStatus(tx.payment_status)
        logger.info(
            "Lost %s race for %s: status already moved to %s",
            source,
            tx.transaction_code,
            current.value,
        )
        return TransitionResult(False, previous, current)

    logger.info(
        "Transaction %s %s -> %s via %s (gateway=%s method=%s)",
        tx.transaction_code,
        previous.value,
        payment_status.value,
        source,
        gateway_status,
        payment_method,
    )
    return TransitionResult(True, previous, payment_status)


def _isoformat(value) -> str | None:
    return value.isoformat() if value is not None else None


def read_status(db: Session, order_id: str) -> dict:
    tx = find_transaction(db, order_id)
    if not tx:
        # Checkout may not have committed yet; pollers must keep waiting.
        return {
            "order_id": order_id,
            "transaction_id": None,
            "transaction_status": "pending",
            "payment_status": PaymentStatus.PENDING.value,
            "payment_method": None,
            "amount": None,
            "payment_url": None,
            "payment_token": None,
            "invoice_url": None,
            "transaction_time": None,
            "updated_at": None,
            "webhook_notified": False,
            "found": False,
        }

    webhook_notified = db.query(WebhookLog.id).filter(WebhookLog.order_id == tx.transaction_code).first() is not None
    return {
        "order_id": tx.transaction_code,
        "transaction_id": tx.gateway_transaction_id,
        "transaction_status": tx.gateway_transaction_status or "pending",
        "payment_status": PaymentStatus(tx.payment_status).value,
        "payment_method": tx.payment_method,
        "amount": Decimal(tx.total_amount),
        "payment_url": tx.payment_url,
        "payment_token": tx.payment_token,
        "invoice_url": tx.invoice_url,
        "transaction_time": _isoformat(tx.created_at),
        "updated_at": _isoformat(tx.updated_at),
        "webhook_notified": webhook_notified,
        "found": True,
    }
