from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from typing import Optional

from koperasi.core.permissions import Permission, require
from koperasi.services.loan_service import LoanService, LoanView
from koperasi.utils.database import get_db
from koperasi.schemas.loan_schema import (
    LoanCreate,
    LoanUpdate,
    LoanOut,
    InstallmentOut,
    StatementRowOut,
    LoanNumberOut,
    LoanDeleteResult,
    LoanStatusLiteral,
)

router = APIRouter(prefix="/loans", tags=["Loans"])

CAN_VIEW = [Depends(require(Permission.VIEW_LOANS))]
CAN_MANAGE = [Depends(require(Permission.MANAGE_LOANS))]
CAN_DELETE = [Depends(require(Permission.DELETE_LOANS))]


# -------------------------------------------------
# Helpers
# -------------------------------------------------
def loan_out(v: LoanView) -> LoanOut:
    loan = v.loan
    return LoanOut(
        loan_id=loan.loan_id,
        loan_account_no=loan.loan_account_no,
        member_id=loan.member_id,
        start_date=loan.start_date,
        due_date=v.due_date,
        term_months=loan.term_months,
        principal=float(loan.principal),
        interest_rate_percent=float(loan.interest_rate_percent),
        total_payable=float(loan.total_payable),
        monthly_installment=float(loan.monthly_installment),
        total_paid=float(v.total_paid),
        total_penalty=float(v.total_penalty),
        remaining_balance=float(v.remaining_balance),
        status=v.status.value,
        derived_status=v.derived_status.value,
        status_override=loan.status_override,
        payments_count=v.payments_count,
        installments_expected=v.installments_expected,
        next_installment_number=v.next_installment_number,
        notes=loan.notes,
    )


# =================================================
# 🔹 STATIC ROUTES (ALWAYS FIRST)
# =================================================
@router.get("", response_model=list[LoanOut], dependencies=CAN_VIEW)
def list_loans(
        status: Optional[LoanStatusLiteral] = Query(None),
        member_id: Optional[int] = Query(None),
        as_on: Optional[date] = Query(None),
        db: Session = Depends(get_db),
):
    views = LoanService(db).list_loans(status=status, member_id=member_id, as_of=as_on)
    return [loan_out(v) for v in views]


@router.get("/generate-no", response_model=LoanNumberOut, dependencies=CAN_MANAGE)
def generate_loan_number(db: Session = Depends(get_db)):
    return LoanNumberOut(loan_account_no=LoanService(db).next_loan_number())


@router.get("/by-member/{member_id}", response_model=list[LoanOut], dependencies=CAN_VIEW)
def loans_by_member(member_id: int, db: Session = Depends(get_db)):
    return [loan_out(v) for v in LoanService(db).list_loans(member_id=member_id)]


# =================================================
# 🔹 LOAN CREATION
# =================================================
@router.post("", response_model=LoanOut, status_code=201, dependencies=CAN_MANAGE)
def create_loan(payload: LoanCreate, db: Session = Depends(get_db)):
    service = LoanService(db)
    loan = service.create_loan(
        member_id=payload.member_id,
        principal=payload.principal,
        interest_rate_percent=payload.interest_rate_percent,
        term_months=payload.term_months,
        start_date=payload.start_date,
        loan_account_no=payload.loan_account_no,
        notes=payload.notes,
    )
    return loan_out(service.view(loan))


# =================================================
# 🔹 DYNAMIC ROUTES (LAST)
# =================================================
@router.get("/{loan_id}", response_model=LoanOut, dependencies=CAN_VIEW)
def get_loan(loan_id: int, as_on: Optional[date] = Query(None), db: Session = Depends(get_db)):
    return loan_out(LoanService(db).get_loan(loan_id, as_of=as_on))


@router.put("/{loan_id}", response_model=LoanOut, dependencies=CAN_MANAGE)
def update_loan(loan_id: int, payload: LoanUpdate, db: Session = Depends(get_db)):
    service = LoanService(db)
    # only fields the caller actually sent; an explicit null clears status_override
    loan = service.update_loan(loan_id, payload.model_dump(exclude_unset=True))
    return loan_out(service.view(loan))


@router.delete("/{loan_id}", response_model=LoanDeleteResult, dependencies=CAN_DELETE)
def delete_loan(loan_id: int, db: Session = Depends(get_db)):
    LoanService(db).delete_loan(loan_id)
    return LoanDeleteResult(message="Loan deleted successfully", loan_id=loan_id)


@router.get("/{loan_id}/schedule", response_model=list[InstallmentOut], dependencies=CAN_VIEW)
def get_schedule(loan_id: int, db: Session = Depends(get_db)):
    return [
        InstallmentOut(installment_no=n, due_date=due, amount_due=float(amount))
        for n, due, amount in LoanService(db).schedule(loan_id)
    ]


@router.get("/{loan_id}/statement", response_model=list[StatementRowOut], dependencies=CAN_VIEW)
def statement(loan_id: int, db: Session = Depends(get_db)):
    return [
        StatementRowOut(
            payment_id=entry.payment_id,
            installment_number=entry.installment_number,
            payment_date=entry.payment_date,
            amount_paid=float(entry.amount_paid),
            penalty=float(entry.penalty),
            balance_after=float(balance),
            note=entry.note,
        )
        for entry, balance in LoanService(db).statement(loan_id)
    ]
