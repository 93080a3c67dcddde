from pydantic import BaseModel, Field, field_validator
from datetime import date
from decimal import Decimal
from typing import Optional, Literal


LoanStatusLiteral = Literal["running", "settled", "delinquent"]


def _empty_to_none(v):
    if v is None:
        return None
    v = str(v).strip()
    return v or None


class LoanCreate(BaseModel):
    member_id: int
    loan_account_no: Optional[str] = None

    start_date: date

    principal: Decimal = Field(gt=0)
    interest_rate_percent: Decimal = Field(ge=0)
    term_months: int = Field(gt=0)

    notes: Optional[str] = None

    @field_validator("loan_account_no", "notes", mode="before")
    def empty_to_none(cls, v):
        return _empty_to_none(v)


class LoanUpdate(BaseModel):
    # terms: accepted only while no payment exists
    interest_rate_percent: Optional[Decimal] = Field(None, ge=0)
    term_months: Optional[int] = Field(None, gt=0)
    start_date: Optional[date] = None

    notes: Optional[str] = None

    # explicit null clears the override
    status_override: Optional[LoanStatusLiteral] = None


class LoanOut(BaseModel):
    loan_id: int
    loan_account_no: str
    member_id: int

    start_date: date
    due_date: date
    term_months: int

    principal: float
    interest_rate_percent: float
    total_payable: float
    monthly_installment: float

    total_paid: float
    total_penalty: float
    remaining_balance: float

    status: LoanStatusLiteral
    derived_status: LoanStatusLiteral
    status_override: Optional[LoanStatusLiteral] = None

    payments_count: int
    installments_expected: int
    next_installment_number: int

    notes: Optional[str] = None


class InstallmentOut(BaseModel):
    installment_no: int
    due_date: date
    amount_due: float


class StatementRowOut(BaseModel):
    payment_id: int
    installment_number: int
    payment_date: date
    amount_paid: float
    penalty: float
    balance_after: float
    note: Optional[str] = None


class LoanNumberOut(BaseModel):
    loan_account_no: str


class LoanDeleteResult(BaseModel):
    message: str
    loan_id: int
