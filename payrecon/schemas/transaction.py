from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, Field


class CheckoutRequest(BaseModel):
    amount: Decimal = Field(..., gt=0)
    customer_name: str = Field(..., min_length=1, max_length=255)
    customer_phone: Optional[str] = Field(default=None, max_length=32)
    customer_email: Optional[str] = Field(default=None, max_length=255)
    # Same alphabet as generated ids, so the order stays addressable in URL paths and invoice filenames.
    order_id: Optional[str] = Field(default=None, min_length=3, max_length=100, pattern=r"^[A-Za-z0-9._-]+$")
    payment_token: Optional[str] = None
    payment_url: Optional[str] = None


class CheckoutOut(BaseModel):
    order_id: str
    payment_status: str
    amount: float


class TransactionStatusData(BaseModel):
    order_id: str
    transaction_id: Optional[str] = None
    transaction_status: str
    payment_status: str
    payment_method: Optional[str] = None
    amount: Optional[float] = None
    payment_url: Optional[str] = None
    payment_token: Optional[str] = None
    invoice_url: Optional[str] = None
    transaction_time: Optional[str] = None
    updated_at: Optional[str] = None
    webhook_notified: bool = False
    found: bool = True


class TransactionStatusResponse(BaseModel):
    success: bool = True
    data: TransactionStatusData


class ManualReconcileOut(BaseModel):
    order_id: str
    previous_status: str
    current_status: str
    status_changed: bool
    payment_method: Optional[str] = None


class InvoiceOut(BaseModel):
    order_id: str
    invoice_url: str
