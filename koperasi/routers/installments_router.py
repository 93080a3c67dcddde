from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from koperasi.core.permissions import Permission, require
from koperasi.services.loan_service import LoanService, PaymentOutcome
from koperasi.utils.database import get_db
from koperasi.schemas.installment_schema import (
    PaymentCreate,
    PaymentUpdate,
    PaymentOut,
    PaymentResult,
    NextInstallmentOut,
)

router = APIRouter(prefix="/installments", tags=["Installments"])

CAN_VIEW = [Depends(require(Permission.VIEW_LOANS))]
CAN_RECORD = [Depends(require(Permission.RECORD_PAYMENTS))]
CAN_DELETE = [Depends(require(Permission.DELETE_PAYMENTS))]


def payment_result(outcome: PaymentOutcome) -> PaymentResult:
    return PaymentResult(
        payment=PaymentOut.model_validate(outcome.payment),
        remaining_balance=float(outcome.remaining_balance),
        status=outcome.status.value,
    )


# =================================================
# 🔹 PER-LOAN ROUTES
# =================================================
@router.get("/loan/{loan_id}", response_model=list[PaymentOut], dependencies=CAN_VIEW)
def payments_by_loan(loan_id: int, db: Session = Depends(get_db)):
    return LoanService(db).payments(loan_id)


@router.get("/loan/{loan_id}/next-number", response_model=NextInstallmentOut, dependencies=CAN_VIEW)
def next_installment_number(loan_id: int, db: Session = Depends(get_db)):
    return NextInstallmentOut(
        loan_id=loan_id,
        installment_number=LoanService(db).next_installment_number(loan_id),
    )


# =================================================
# ✅ PAYMENTS
# =================================================
@router.post("", response_model=PaymentResult, status_code=201, dependencies=CAN_RECORD)
def create_payment(payload: PaymentCreate, db: Session = Depends(get_db)):
    outcome = LoanService(db).record_payment(
        payload.loan_id,
        amount_paid=payload.amount_paid,
        payment_date=payload.payment_date,
        penalty=payload.penalty,
        note=payload.note,
    )
    return payment_result(outcome)


@router.get("/{payment_id}", response_model=PaymentOut, dependencies=CAN_VIEW)
def get_payment(payment_id: int, db: Session = Depends(get_db)):
    return LoanService(db).get_payment(payment_id)


@router.put("/{payment_id}", response_model=PaymentResult, dependencies=CAN_RECORD)
def update_payment(payment_id: int, payload: PaymentUpdate, db: Session = Depends(get_db)):
    # only fields the caller actually sent; an explicit null note clears it
    outcome = LoanService(db).update_payment(payment_id, **payload.model_dump(exclude_unset=True))
    return payment_result(outcome)


@router.delete("/{payment_id}", response_model=PaymentResult, dependencies=CAN_DELETE)
def delete_payment(payment_id: int, db: Session = Depends(get_db)):
    # the loan balance is restored by excluding the payment from the ledger
    return payment_result(LoanService(db).delete_payment(payment_id))
