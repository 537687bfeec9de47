import enum
from sqlalchemy import Column, Integer, String, Numeric, Enum, DateTime, Index
from payrecon.core.database import Base
from payrecon.models.base import TimestampMixin


class PaymentStatus(str, enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    FAILED = "failed"


TERMINAL_PAYMENT_STATUSES = frozenset({PaymentStatus.PAID, PaymentStatus.FAILED})


class Transaction(Base, TimestampMixin):
    __tablename__ = "transactions"

    id = Column(Integer, primary_key=True, index=True)
    transaction_code = Column(String(100), unique=True, nullable=False, index=True)
    gateway_transaction_id = Column(String(100), nullable=True, index=True)
    payment_status = Column(
        Enum(PaymentStatus, values_callable=lambda items: [item.value for item in items], name="paymentstatus"),
        nullable=False,
        default=PaymentStatus.PENDING,
    )
    gateway_transaction_status = Column(String(50), nullable=True)
    payment_method = Column(String(50), nullable=True)
    total_amount = Column(Numeric(15, 2), nullable=False)
    customer_name = Column(String(255), nullable=False, default="Anonymous")
    customer_phone = Column(String(32), nullable=True)
    customer_email = Column(String(255), nullable=True)
    payment_token = Column(String(255), nullable=True)
    payment_url = Column(String(512), nullable=True)
    invoice_url = Column(String(512), nullable=True)
    notified_at = Column(DateTime(timezone=True), nullable=True)


Index("ix_transactions_status_created", Transaction.payment_status, Transaction.created_at)
