from pydantic import BaseModel


class UpdatedTransaction(BaseModel):
    transaction_code: str
    previous_status: str
    new_status: str
    payment_method: str | None = None


class FailedTransaction(BaseModel):
    transaction_code: str
    error: str


class ReconcileReport(BaseModel):
    total: int
    updated: int
    unchanged: int
    failed: int
    updated_transactions: list[UpdatedTransaction]
    failed_transactions: list[FailedTransaction]


class ReconcileResponse(BaseModel):
    success: bool = True
    message: str
    data: ReconcileReport
