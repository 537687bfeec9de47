import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.orm import Session

from payrecon.core.config import get_settings
from payrecon.core.database import get_db
from payrecon.dependencies import get_services, require_cron_key
from payrecon.schemas.reconcile import ReconcileResponse
from payrecon.schemas.transaction import ManualReconcileOut
from payrecon.services.container import Services
from payrecon.services.midtrans import MidtransApiError
from payrecon.services.transactions import find_transaction

router = APIRouter()
logger = logging.getLogger(__name__)


@router.get(
    "/update-all-pending-transactions",
    response_model=ReconcileResponse,
    dependencies=[Depends(require_cron_key)],
)
def update_all_pending_transactions(
    hours: Optional[int] = Query(default=None, ge=1, le=720),
    db: Session = Depends(get_db),
    services: Services = Depends(get_services),
):
    window = hours or get_settings().max_transaction_hours
    report = services.reconciler.run(db, window)
    message = f"Updated {report['updated']} of {report['total']} pending transaction(s)"
    return {"success": True, "message": message, "data": report}


@router.post(
    "/transactions/{order_id}/reconcile",
    response_model=ManualReconcileOut,
    dependencies=[Depends(require_cron_key)],
)
def reconcile_transaction(order_id: str, db: Session = Depends(get_db), services: Services = Depends(get_services)):
    tx = find_transaction(db, order_id)
    if not tx:
        raise HTTPException(status_code=404, detail="Transaction not found")
    try:
        result = services.reconciler.reconcile_one(db, tx, source="admin")
    except MidtransApiError as exc:
        logger.warning("Manual reconcile of %s failed: %s", order_id, exc.message)
        raise HTTPException(status_code=502, detail=f"Gateway lookup failed: {exc.message}")
    return {
        "order_id": tx.transaction_code,
        "previous_status": result.previous_status.value,
        "current_status": result.new_status.value,
        "status_changed": result.transitioned,
        "payment_method": tx.payment_method,
    }
