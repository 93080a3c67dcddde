from pydantic import BaseModel
from datetime import date
from typing import Optional


class DelinquentRowOut(BaseModel):
    loan_id: int
    loan_account_no: str
    member_id: int
    start_date: date
    monthly_installment: float
    remaining_balance: float
    payments_count: int
    installments_expected: int
    installments_behind: int


class FinanceTransactionOut(BaseModel):
    txn_id: int
    txn_date: date
    txn_type: str
    category: str
    amount: float
    loan_id: Optional[int] = None
    narration: Optional[str] = None

    class Config:
        from_attributes = True


class FinanceSummaryOut(BaseModel):
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    income: float
    expense: float
    balance: float
