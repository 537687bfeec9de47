from typing import Optional

from pydantic import BaseModel, ConfigDict


class MidtransNotification(BaseModel):
    # Midtrans adds fields over time; keep whatever it sends for the audit log.
    model_config = ConfigDict(extra="allow", coerce_numbers_to_str=True)

    order_id: str
    status_code: Optional[str] = None
    gross_amount: Optional[str] = None
    signature_key: Optional[str] = None
    transaction_status: Optional[str] = None
    payment_type: Optional[str] = None
    transaction_id: Optional[str] = None
    merchant_id: Optional[str] = None
    fraud_status: Optional[str] = None
    currency: Optional[str] = None
    transaction_time: Optional[str] = None


class WebhookAck(BaseModel):
    success: bool
    message: str
