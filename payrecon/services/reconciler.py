import logging
import time
from datetime import timedelta
from typing import Callable

from sqlalchemy.orm import Session

from payrecon.models import PaymentStatus, Transaction
from payrecon.models.base import utcnow
from payrecon.services.effects import PaymentEffects
from payrecon.services.midtrans import MidtransApiError, MidtransClient, resolve_payment_status
from payrecon.services.transactions import apply_status_transition


logger = logging.getLogger(__name__)


def pending_transactions(db: Session, hours: int) -> list[Transaction]:
    cutoff = utcnow() - timedelta(hours=hours)
    return (
        db.query(Transaction)
        .filter(Transaction.payment_status == PaymentStatus.PENDING, Transaction.created_at >= cutoff)
        .order_by(Transaction.created_at.asc())
        .all()
    )


def _new_report() -> dict:
    return {
        "total": 0,
        "updated": 0,
        "unchanged": 0,
        "failed": 0,
        "updated_transactions": [],
        "failed_transactions": [],
    }


class PendingReconciler:
    """Fallback for missed webhooks: re-query the gateway for open orders.

    Rows are processed one at a time with a pause in between to stay under
    the gateway's rate limits. A failing row is recorded and the run moves on.
    """

    def __init__(
        self,
        client: MidtransClient,
        effects: PaymentEffects | None = None,
        *,
        delay_seconds: float = 0.5,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.client = client
        self.effects = effects
        self.delay_seconds = max(0.0, float(delay_seconds))
        self._sleep = sleep

    def reconcile_one(self, db: Session, tx: Transaction, *, source: str = "reconciler"):
        data = self.client.get_status(tx.transaction_code)
        gateway_status = data.get("transaction_status")
        payment_status = resolve_payment_status(gateway_status, data.get("fraud_status"))
        result = apply_status_transition(
            db,
            tx,
            gateway_status=gateway_status,
            payment_status=payment_status,
            payment_method=data.get("payment_type"),
            gateway_transaction_id=data.get("transaction_id"),
            source=source,
        )
        if result.became_paid and self.effects is not None:
            self.effects.on_paid(db, tx)
        return result

    def run(self, db: Session, hours: int) -> dict:
        report = _new_report()
        rows = pending_transactions(db, hours)
        report["total"] = len(rows)
        logger.info("Reconciling %s pending transaction(s) from the last %s hours", len(rows), hours)

        for index, tx in enumerate(rows):
            code = tx.transaction_code
            try:
                result = self.reconcile_one(db, tx)
                if result.transitioned:
                    report["updated"] += 1
                    report["updated_transactions"].append(
                        {
                            "transaction_code": code,
                            "previous_status": result.previous_status.value,
                            "new_status": result.new_status.value,
                            "payment_method": tx.payment_method,
                        }
                    )
                else:
                    report["unchanged"] += 1
            except MidtransApiError as exc:
                logger.warning("Gateway lookup failed for %s: %s", code, exc.message)
                report["failed"] += 1
                report["failed_transactions"].append({"transaction_code": code, "error": exc.message})
            except Exception as exc:
                db.rollback()
                logger.exception("Reconciliation failed for %s", code)
                report["failed"] += 1
                report["failed_transactions"].append({"transaction_code": code, "error": str(exc)})

            if index < len(rows) - 1 and self.delay_seconds:
                self._sleep(self.delay_seconds)

        logger.info(
            "Reconciliation finished: total=%s updated=%s unchanged=%s failed=%s",
            report["total"],
            report["updated"],
            report["unchanged"],
            report["failed"],
        )
        return report
