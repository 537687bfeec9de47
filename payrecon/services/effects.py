import logging
from typing import Optional

from sqlalchemy.orm import Session

from payrecon.core.database import SessionLocal
from payrecon.models import PaymentStatus, Transaction
from payrecon.models.base import utcnow
from payrecon.services.invoices import InvoiceGenerator
from payrecon.services.notifications import Notifier, build_payment_success_message, normalize_phone


logger = logging.getLogger(__name__)


class PaymentEffects:
    """Invoice and customer notification for a transaction that became paid.

    Each step is stamped on the row (``invoice_url``, ``notified_at``) and
    skipped when already stamped, so a redelivered notification never sends
    twice. Failures are logged and never propagate to the caller.
    """

    def __init__(self, invoices: InvoiceGenerator, notifier: Notifier, *, public_base_url: str = ""):
        self.invoices = invoices
        self.notifier = notifier
        self.public_base_url = public_base_url

    @staticmethod
    def needs_retry(tx: Transaction) -> bool:
        """A paid row whose invoice step never completed."""
        return tx.payment_status == PaymentStatus.PAID and not tx.invoice_url

    def ensure_invoice(self, db: Session, tx: Transaction) -> Optional[str]:
        if tx.invoice_url:
            return tx.invoice_url
        try:
            tx.invoice_url = self.invoices.generate(tx)
            db.commit()
        except Exception:
            db.rollback()
            logger.exception("Invoice generation failed for %s", tx.transaction_code)
            return None
        return tx.invoice_url

    def on_paid(self, db: Session, tx: Transaction) -> None:
        db.refresh(tx)
        if tx.payment_status != PaymentStatus.PAID:
            logger.warning("Skipping paid side effects for %s: status is %s", tx.transaction_code, tx.payment_status)
            return

        self.ensure_invoice(db, tx)

        if tx.notified_at is not None:
            logger.info("Customer for %s already notified at %s", tx.transaction_code, tx.notified_at)
            return

        phone = normalize_phone(tx.customer_phone)
        if not phone:
            logger.warning("No usable phone number for %s, skipping notification", tx.transaction_code)
            return

        # Stamp before sending: a crash mid-send must not lead to a second message.
        tx.notified_at = utcnow()
        db.commit()
        try:
            message = build_payment_success_message(tx, public_base_url=self.public_base_url)
            self.notifier.send(phone, message)
            logger.info("Payment notification for %s sent via %s", tx.transaction_code, self.notifier.name)
        except Exception:
            logger.exception("Payment notification failed for %s", tx.transaction_code)

    def run_for_order(self, transaction_code: str) -> None:
        """Background-task entry point; opens its own session."""
        db = SessionLocal()
        try:
            tx = db.query(Transaction).filter(Transaction.transaction_code == transaction_code).first()
            if not tx:
                logger.warning("Paid side effects requested for unknown order %s", transaction_code)
                return
            self.on_paid(db, tx)
        except Exception:
            logger.exception("Paid side effects crashed for %s", transaction_code)
        finally:
            db.close()
