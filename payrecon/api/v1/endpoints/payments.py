import json
import logging
from decimal import Decimal, InvalidOperation

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from payrecon.core.database import get_db
from payrecon.dependencies import get_services
from payrecon.middlewares.rate_limit import limiter
from payrecon.models import PaymentStatus, WebhookLog
from payrecon.schemas.payment import MidtransNotification, WebhookAck
from payrecon.schemas.transaction import CheckoutOut, CheckoutRequest, InvoiceOut, TransactionStatusResponse
from payrecon.services.container import Services
from payrecon.services.midtrans import resolve_payment_status, verify_signature
from payrecon.services.transactions import (
    apply_status_transition,
    create_pending_transaction,
    find_transaction,
    read_status,
)

router = APIRouter()
logger = logging.getLogger(__name__)

UNKNOWN_ORDER_ID = "unknown"
MAX_RAW_BODY_CHARS = 10000


def _to_amount(value) -> Decimal:
    try:
        return Decimal(str(value))
    except (InvalidOperation, ValueError, TypeError):
        return Decimal("0")


def _reject_notification(db: Session, body: bytes, payload: object = None) -> HTTPException:
    logged = payload if isinstance(payload, dict) else {}
    _log_notification(db, logged, False, raw_payload=body.decode("utf-8", errors="replace")[:MAX_RAW_BODY_CHARS])
    logger.warning("Rejected malformed notification body (%s bytes)", len(body))
    return HTTPException(status_code=400, detail="Invalid notification payload")


def _log_notification(db: Session, payload: dict, signature_valid: bool, raw_payload: str | None = None) -> None:
    # Audit only: a failed insert must not block status processing.
    try:
        db.add(
            WebhookLog(
                order_id=str(payload.get("order_id") or UNKNOWN_ORDER_ID)[:100],
                transaction_status=str(payload.get("transaction_status") or "unknown")[:50],
                status_code=str(payload.get("status_code") or "")[:8] or None,
                payment_type=str(payload.get("payment_type") or "unknown")[:50],
                fraud_status=str(payload.get("fraud_status") or "")[:32] or None,
                amount=_to_amount(payload.get("gross_amount")),
                signature_valid=signature_valid,
                raw_payload=raw_payload if raw_payload is not None else json.dumps(payload, default=str),
            )
        )
        db.commit()
    except Exception:
        db.rollback()
        logger.exception("Failed to store webhook log for %s", payload.get("order_id"))


@router.post("/payment-notification", response_model=WebhookAck)
@router.post("/payment-callback", response_model=WebhookAck, include_in_schema=False)
async def payment_notification(
    request: Request,
    background_tasks: BackgroundTasks,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    body = await request.body()
    try:
        payload = json.loads(body or b"null")
    except ValueError:
        raise _reject_notification(db, body)
    if not isinstance(payload, dict) or not payload.get("order_id"):
        raise _reject_notification(db, body, payload)

    try:
        notification = MidtransNotification.model_validate(payload)
    except ValidationError:
        raise _reject_notification(db, body, payload)

    signature_valid = verify_signature(payload, services.settings.midtrans_active_server_key)
    _log_notification(db, payload, signature_valid)

    if not signature_valid:
        # Acknowledge anyway so the gateway stops retrying a payload we will never accept.
        logger.warning(
            "Rejected notification for %s: signature mismatch (status=%s)",
            notification.order_id,
            notification.transaction_status,
        )
        return {"success": True, "message": "Notification received"}

    try:
        tx = find_transaction(db, notification.order_id, notification.transaction_id)
        if not tx:
            logger.warning("Notification for unknown order %s", notification.order_id)
            return {"success": True, "message": "Notification received"}

        payment_status = resolve_payment_status(notification.transaction_status, notification.fraud_status)
        result = apply_status_transition(
            db,
            tx,
            gateway_status=notification.transaction_status,
            payment_status=payment_status,
            payment_method=notification.payment_type,
            gateway_transaction_id=notification.transaction_id,
            source="webhook",
        )
        if result.became_paid:
            background_tasks.add_task(services.effects.run_for_order, tx.transaction_code)
        elif services.effects.needs_retry(tx):
            logger.info("Retrying paid side effects for %s: invoice missing", tx.transaction_code)
            background_tasks.add_task(services.effects.run_for_order, tx.transaction_code)
    except Exception:
        db.rollback()
        logger.exception("Error processing notification for %s", notification.order_id)
        return {"success": False, "message": "Error processing notification"}

    return {"success": True, "message": "Notification received and processed"}


@router.get("/transactions/status/{order_id}", response_model=TransactionStatusResponse)
@limiter.limit("120/minute")
def transaction_status(request: Request, order_id: str, db: Session = Depends(get_db)):
    return {"success": True, "data": read_status(db, order_id)}


@router.get("/transactions/invoice/{order_id}", response_model=InvoiceOut)
@limiter.limit("30/minute")
def transaction_invoice(
    request: Request,
    order_id: str,
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    tx = find_transaction(db, order_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    if tx.payment_status != PaymentStatus.PAID:
        raise HTTPException(status_code=409, detail="Invoice is only available for paid transactions")
    # Generated on demand when the paid side effects never got that far.
    invoice_url = services.effects.ensure_invoice(db, tx)
    if not invoice_url:
        raise HTTPException(status_code=503, detail="Invoice could not be generated, try again later")
    return {"order_id": tx.transaction_code, "invoice_url": invoice_url}


@router.post("/transactions", response_model=CheckoutOut, status_code=201)
@limiter.limit("30/minute")
def create_transaction(request: Request, payload: CheckoutRequest, db: Session = Depends(get_db)):
    if payload.order_id and find_transaction(db, payload.order_id):
        raise HTTPException(status_code=409, detail="Order ID already exists")
    tx = create_pending_transaction(
        db,
        total_amount=payload.amount,
        customer_name=payload.customer_name,
        customer_phone=payload.customer_phone,
        customer_email=payload.customer_email,
        transaction_code=payload.order_id,
        payment_token=payload.payment_token,
        payment_url=payload.payment_url,
    )
    return {
        "order_id": tx.transaction_code,
        "payment_status": tx.payment_status.value,
        "amount": float(tx.total_amount),
    }
