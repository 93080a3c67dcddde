from pydantic import BaseModel, Field, field_validator
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from koperasi.schemas.loan_schema import LoanStatusLiteral


class PaymentCreate(BaseModel):
    loan_id: int
    payment_date: Optional[date] = None
    amount_paid: Decimal = Field(gt=0)
    penalty: Decimal = Field(Decimal("0"), ge=0)
    note: Optional[str] = None

    @field_validator("note", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class PaymentUpdate(BaseModel):
    payment_date: Optional[date] = None
    amount_paid: Optional[Decimal] = Field(None, gt=0)
    penalty: Optional[Decimal] = Field(None, ge=0)
    note: Optional[str] = None

    @field_validator("note", mode="before")
    def empty_to_none(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class PaymentOut(BaseModel):
    payment_id: int
    loan_id: int
    installment_number: int
    payment_date: date
    amount_paid: float
    penalty: float
    note: Optional[str] = None
    created_on: Optional[datetime] = None

    class Config:
        from_attributes = True


class PaymentResult(BaseModel):
    payment: PaymentOut
    remaining_balance: float
    status: LoanStatusLiteral


class NextInstallmentOut(BaseModel):
    loan_id: int
    installment_number: int
