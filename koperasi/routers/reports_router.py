from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from datetime import date
from decimal import Decimal
from typing import Optional, Literal

from koperasi.core.permissions import Permission, require
from koperasi.repositories.loan_repository import LoanRepository
from koperasi.services.loan_service import LoanService
from koperasi.utils.database import get_db
from koperasi.utils.installment_ledger import LoanStatus
from koperasi.schemas.report_schema import (
    DelinquentRowOut,
    FinanceTransactionOut,
    FinanceSummaryOut,
)

router = APIRouter(prefix="/reports", tags=["Reports"])


@router.get(
    "/delinquent",
    response_model=list[DelinquentRowOut],
    dependencies=[Depends(require(Permission.VIEW_LOANS))],
)
def delinquent_report(as_on: Optional[date] = Query(None), db: Session = Depends(get_db)):
    views = LoanService(db).list_loans(status=LoanStatus.DELINQUENT.value, as_of=as_on)
    return [
        DelinquentRowOut(
            loan_id=v.loan.loan_id,
            loan_account_no=v.loan.loan_account_no,
            member_id=v.loan.member_id,
            start_date=v.loan.start_date,
            monthly_installment=float(v.loan.monthly_installment),
            remaining_balance=float(v.remaining_balance),
            payments_count=v.payments_count,
            installments_expected=v.installments_expected,
            installments_behind=max(v.installments_expected - v.payments_count, 0),
        )
        for v in sorted(views, key=lambda v: v.loan.start_date)
    ]


@router.get(
    "/finance-transactions",
    response_model=list[FinanceTransactionOut],
    dependencies=[Depends(require(Permission.VIEW_FINANCE))],
)
def finance_transactions(
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        txn_type: Optional[Literal["INCOME", "EXPENSE"]] = Query(None),
        loan_id: Optional[int] = Query(None),
        db: Session = Depends(get_db),
):
    return LoanRepository(db).list_postings(
        start_date=start_date, end_date=end_date, txn_type=txn_type, loan_id=loan_id
    )


@router.get(
    "/finance-summary",
    response_model=FinanceSummaryOut,
    dependencies=[Depends(require(Permission.VIEW_FINANCE))],
)
def finance_summary(
        start_date: Optional[date] = Query(None),
        end_date: Optional[date] = Query(None),
        db: Session = Depends(get_db),
):
    totals = LoanRepository(db).posting_totals(start_date=start_date, end_date=end_date)
    income = totals.get("INCOME", Decimal("0"))
    expense = totals.get("EXPENSE", Decimal("0"))
    return FinanceSummaryOut(
        start_date=start_date,
        end_date=end_date,
        income=float(income),
        expense=float(expense),
        balance=float(income - expense),
    )
