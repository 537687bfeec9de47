from payrecon.models.transaction import Transaction, PaymentStatus, TERMINAL_PAYMENT_STATUSES
from payrecon.models.webhook_log import WebhookLog

__all__ = [
    "Transaction",
    "PaymentStatus",
    "TERMINAL_PAYMENT_STATUSES",
    "WebhookLog",
]
