"""Persistence boundary for loans and their installment ledgers."""

from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Session

from koperasi.core.config import OVERPAYMENT_TOLERANCE
from koperasi.core.exceptions import ConfigurationError, NotFoundError
from koperasi.models.finance_transaction_model import FinanceTransaction
from koperasi.models.installment_payment_model import InstallmentPayment
from koperasi.models.loan_model import Loan
from koperasi.models.system_settings_model import SystemSetting
from koperasi.utils.installment_ledger import LedgerEntry
from koperasi.utils.loan_calculations import format_loan_number, parse_loan_number_seq


def get_setting(db: Session, key: str, default: str) -> str:
    row = db.query(SystemSetting).filter(SystemSetting.key == key).first()
    return row.value if row else default


def get_overpayment_tolerance(db: Session) -> Decimal:
    raw = get_setting(db, "OVERPAYMENT_TOLERANCE", str(OVERPAYMENT_TOLERANCE))
    try:
        tolerance = Decimal(raw)
    except ArithmeticError:
        raise ConfigurationError(f"OVERPAYMENT_TOLERANCE is not a number: {raw!r}")
    if tolerance < 0:
        raise ConfigurationError("OVERPAYMENT_TOLERANCE must be >= 0")
    return tolerance


def to_entry(row: InstallmentPayment) -> LedgerEntry:
    return LedgerEntry(
        payment_id=row.payment_id,
        loan_id=row.loan_id,
        installment_number=row.installment_number,
        payment_date=row.payment_date,
        amount_paid=Decimal(str(row.amount_paid)),
        penalty=Decimal(str(row.penalty or 0)),
        note=row.note,
        deleted=row.deleted_on is not None,
    )


class LoanRepository:
    """SQLAlchemy implementation of the loan/ledger store.

    Never commits; the caller owns the transaction.
    """

    def __init__(self, db: Session):
        self.db = db

    # -------------------------------------------------
    # Loans
    # -------------------------------------------------
    def load_loan(self, loan_id: int, for_update: bool = False) -> Loan:
        q = self.db.query(Loan).filter(Loan.loan_id == loan_id)
        if for_update:
            q = q.with_for_update()
        loan = q.first()
        if not loan:
            raise NotFoundError(f"Loan {loan_id} not found")
        return loan

    def list_loans(self, member_id: Optional[int] = None) -> List[Loan]:
        q = self.db.query(Loan)
        if member_id is not None:
            q = q.filter(Loan.member_id == member_id)
        return q.order_by(Loan.loan_id.desc()).all()

    def add_loan(self, loan: Loan) -> Loan:
        self.db.add(loan)
        self.db.flush()  # gives loan.loan_id
        return loan

    def delete_loan(self, loan: Loan) -> None:
        self.remove_postings("loans", loan.loan_id)
        self.db.delete(loan)
        self.db.flush()

    def update_loan_status(self, loan_id: int, status: str) -> None:
        loan = self.load_loan(loan_id)
        if loan.status != status:
            loan.status = status

    def next_loan_number(self, year: int) -> str:
        rows = (
            self.db.query(Loan.loan_account_no)
            .filter(Loan.loan_account_no.like(f"PJM-{year}-%"))
            .all()
        )
        last = max((parse_loan_number_seq(r[0]) for r in rows), default=0)
        return format_loan_number(year, last + 1)

    # -------------------------------------------------
    # Ledger
    # -------------------------------------------------
    def load_payment_row(self, payment_id: int, include_deleted: bool = False) -> InstallmentPayment:
        q = self.db.query(InstallmentPayment).filter(InstallmentPayment.payment_id == payment_id)
        if not include_deleted:
            q = q.filter(InstallmentPayment.deleted_on.is_(None))
        row = q.first()
        if not row:
            raise NotFoundError(f"Payment {payment_id} not found")
        return row

    def payment_rows(self, loan_id: int, include_deleted: bool = False) -> List[InstallmentPayment]:
        q = self.db.query(InstallmentPayment).filter(InstallmentPayment.loan_id == loan_id)
        if not include_deleted:
            q = q.filter(InstallmentPayment.deleted_on.is_(None))
        return q.order_by(InstallmentPayment.installment_number.asc()).all()

    def load_ledger(self, loan_id: int) -> List[LedgerEntry]:
        """Every payment ever recorded for the loan, most recent last."""
        return [to_entry(r) for r in self.payment_rows(loan_id, include_deleted=True)]

    def append_payment(self, loan_id: int, entry: LedgerEntry) -> InstallmentPayment:
        row = InstallmentPayment(
            loan_id=loan_id,
            installment_number=entry.installment_number,
            payment_date=entry.payment_date,
            amount_paid=entry.amount_paid,
            penalty=entry.penalty,
            note=entry.note,
        )
        self.db.add(row)
        self.db.flush()  # gives row.payment_id
        return row

    def save_payment(self, entry: LedgerEntry) -> InstallmentPayment:
        row = self.load_payment_row(entry.payment_id)
        row.payment_date = entry.payment_date
        row.amount_paid = entry.amount_paid
        row.penalty = entry.penalty
        row.note = entry.note
        self.db.flush()
        return row

    def remove_payment(self, payment_id: int) -> None:
        row = self.load_payment_row(payment_id)
        row.deleted_on = datetime.now()
        self.remove_postings("installment_payments", payment_id)
        self.db.flush()

    # -------------------------------------------------
    # Finance postings
    # -------------------------------------------------
    def post(
            self,
            *,
            txn_date: date,
            txn_type: str,
            category: str,
            amount: Decimal,
            loan_id: int,
            ref_table: str,
            ref_id: int,
            narration: str,
    ) -> FinanceTransaction:
        txn = FinanceTransaction(
            txn_date=txn_date,
            txn_type=txn_type,
            category=category,
            amount=amount,
            loan_id=loan_id,
            ref_table=ref_table,
            ref_id=ref_id,
            is_auto=True,
            narration=narration,
        )
        self.db.add(txn)
        return txn

    def remove_postings(self, ref_table: str, ref_id: int) -> int:
        return (
            self.db.query(FinanceTransaction)
            .filter(
                FinanceTransaction.ref_table == ref_table,
                FinanceTransaction.ref_id == ref_id,
                FinanceTransaction.is_auto.is_(True),
            )
            .delete(synchronize_session=False)
        )

    def list_postings(
            self,
            start_date: Optional[date] = None,
            end_date: Optional[date] = None,
            txn_type: Optional[str] = None,
            loan_id: Optional[int] = None,
    ) -> List[FinanceTransaction]:
        q = self.db.query(FinanceTransaction)
        if start_date:
            q = q.filter(FinanceTransaction.txn_date >= start_date)
        if end_date:
            q = q.filter(FinanceTransaction.txn_date <= end_date)
        if txn_type:
            q = q.filter(FinanceTransaction.txn_type == txn_type.upper())
        if loan_id is not None:
            q = q.filter(FinanceTransaction.loan_id == loan_id)
        return q.order_by(FinanceTransaction.txn_date.asc(), FinanceTransaction.txn_id.asc()).all()

    def posting_totals(self, start_date: Optional[date] = None, end_date: Optional[date] = None) -> dict:
        q = self.db.query(
            FinanceTransaction.txn_type,
            func.coalesce(func.sum(FinanceTransaction.amount), 0),
        )
        if start_date:
            q = q.filter(FinanceTransaction.txn_date >= start_date)
        if end_date:
            q = q.filter(FinanceTransaction.txn_date <= end_date)
        return {t: Decimal(str(total)) for t, total in q.group_by(FinanceTransaction.txn_type).all()}
