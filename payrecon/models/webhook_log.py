from sqlalchemy import Boolean, Column, Integer, String, Numeric, Text
from payrecon.core.database import Base
from payrecon.models.base import TimestampMixin


class WebhookLog(Base, TimestampMixin):
    """Raw gateway notifications, kept for forensics only."""

    __tablename__ = "webhook_logs"

    id = Column(Integer, primary_key=True, index=True)
    order_id = Column(String(100), nullable=False, index=True)
    transaction_status = Column(String(50), nullable=False, default="unknown")
    status_code = Column(String(8), nullable=True)
    payment_type = Column(String(50), nullable=False, default="unknown")
    fraud_status = Column(String(32), nullable=True)
    amount = Column(Numeric(15, 2), nullable=False, default=0)
    signature_valid = Column(Boolean, nullable=False, default=False)
    raw_payload = Column(Text, nullable=True)
