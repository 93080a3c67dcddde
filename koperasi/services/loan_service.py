"""Loan and installment workflows.

Every ledger mutation runs read-validate-append under the per-loan lock and
a row lock on the loan, then commits. The arithmetic itself lives in
``koperasi.utils.installment_ledger``; this module only moves data between
the repository and those functions.
"""

import logging
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from koperasi.core.exceptions import DuplicateLoanNumberError, LoanTermsLockedError, OverpaymentError
from koperasi.models.installment_payment_model import InstallmentPayment
from koperasi.models.loan_model import Loan
from koperasi.repositories.loan_repository import LoanRepository, get_overpayment_tolerance
from koperasi.utils import installment_ledger as ledger_ops
from koperasi.utils.installment_ledger import LedgerEntry, LoanStatus
from koperasi.utils.loan_calculations import (
    compute_due_date,
    compute_schedule,
    installment_schedule,
    money,
)
from koperasi.utils.locks import loan_locks

logger = logging.getLogger(__name__)

ZERO = Decimal("0")


@dataclass(frozen=True)
class LoanView:
    """A loan plus everything derived from its ledger at ``as_of``."""

    loan: Loan
    as_of: date
    due_date: date
    total_paid: Decimal
    total_penalty: Decimal
    remaining_balance: Decimal
    derived_status: LoanStatus
    status: LoanStatus
    payments_count: int
    installments_expected: int
    next_installment_number: int


@dataclass(frozen=True)
class PaymentOutcome:
    payment: InstallmentPayment
    remaining_balance: Decimal
    status: LoanStatus


class LoanService:
    def __init__(self, db: Session, today: Optional[date] = None):
        self.db = db
        self.repo = LoanRepository(db)
        self._today = today

    @property
    def today(self) -> date:
        return self._today or date.today()

    # -------------------------------------------------
    # Reads
    # -------------------------------------------------
    def view(self, loan: Loan, as_of: Optional[date] = None, ledger: Optional[List[LedgerEntry]] = None) -> LoanView:
        as_of = as_of or self.today
        if ledger is None:
            ledger = self.repo.load_ledger(loan.loan_id)

        return LoanView(
            loan=loan,
            as_of=as_of,
            due_date=compute_due_date(loan.start_date, loan.term_months),
            total_paid=ledger_ops.total_paid(ledger),
            total_penalty=ledger_ops.total_penalty(ledger),
            remaining_balance=ledger_ops.remaining_balance(loan, ledger),
            derived_status=ledger_ops.derive_status(loan, ledger, as_of),
            status=ledger_ops.effective_status(loan, ledger, as_of),
            payments_count=len(ledger_ops.active_entries(ledger)),
            installments_expected=ledger_ops.expected_installments(loan, as_of),
            next_installment_number=ledger_ops.next_installment_number(loan.loan_id, ledger),
        )

    def get_loan(self, loan_id: int, as_of: Optional[date] = None) -> LoanView:
        return self.view(self.repo.load_loan(loan_id), as_of)

    def list_loans(
            self,
            status: Optional[str] = None,
            member_id: Optional[int] = None,
            as_of: Optional[date] = None,
    ) -> List[LoanView]:
        views = [self.view(loan, as_of) for loan in self.repo.list_loans(member_id=member_id)]
        if status:
            wanted = LoanStatus(status.lower())
            views = [v for v in views if v.status == wanted]
        return views

    def schedule(self, loan_id: int) -> List[Tuple[int, date, Decimal]]:
        loan = self.repo.load_loan(loan_id)
        schedule = compute_schedule(loan.principal, loan.interest_rate_percent, loan.term_months)
        return installment_schedule(loan.start_date, loan.term_months, schedule)

    def statement(self, loan_id: int):
        loan = self.repo.load_loan(loan_id)
        return ledger_ops.running_balances(loan, self.repo.load_ledger(loan_id))

    def payments(self, loan_id: int) -> List[InstallmentPayment]:
        self.repo.load_loan(loan_id)
        return self.repo.payment_rows(loan_id)

    def get_payment(self, payment_id: int) -> InstallmentPayment:
        return self.repo.load_payment_row(payment_id)

    def next_installment_number(self, loan_id: int) -> int:
        self.repo.load_loan(loan_id)
        return ledger_ops.next_installment_number(loan_id, self.repo.load_ledger(loan_id))

    def next_loan_number(self) -> str:
        return self.repo.next_loan_number(self.today.year)

    # -------------------------------------------------
    # Loans
    # -------------------------------------------------
    def create_loan(
            self,
            *,
            member_id: int,
            principal,
            interest_rate_percent,
            term_months: int,
            start_date: date,
            loan_account_no: Optional[str] = None,
            notes: Optional[str] = None,
    ) -> Loan:
        # the row stores terms at cent precision; the schedule must come from those
        principal = money(principal)
        interest_rate_percent = money(interest_rate_percent)
        schedule = compute_schedule(principal, interest_rate_percent, term_months)
        loan_account_no = loan_account_no or self.repo.next_loan_number(start_date.year)

        try:
            loan = self.repo.add_loan(
                Loan(
                    loan_account_no=loan_account_no,
                    member_id=member_id,
                    start_date=start_date,
                    term_months=int(term_months),
                    principal=principal,
                    interest_rate_percent=interest_rate_percent,
                    total_payable=schedule.total_payable,
                    monthly_installment=schedule.monthly_installment,
                    status=LoanStatus.RUNNING.value,
                    notes=notes,
                )
            )
            loan.status = ledger_ops.derive_status(loan, [], self.today).value

            self.repo.post(
                txn_date=start_date,
                txn_type="EXPENSE",
                category="LOAN_DISBURSEMENT",
                amount=principal,
                loan_id=loan.loan_id,
                ref_table="loans",
                ref_id=loan.loan_id,
                narration=f"Loan disbursed ({loan.loan_account_no})",
            )

            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            logger.warning("Rejected duplicate loan number %s", loan_account_no)
            raise DuplicateLoanNumberError(
                f"Loan number {loan_account_no} is already in use"
            ) from e
        except Exception:
            self.db.rollback()
            raise

        self.db.refresh(loan)
        logger.info(
            "Loan %s disbursed: principal=%s total=%s monthly=%s term=%s",
            loan.loan_account_no, loan.principal, schedule.total_payable,
            schedule.monthly_installment, loan.term_months,
            extra={"loan_id": loan.loan_id},
        )
        return loan

    def update_loan(self, loan_id: int, changes: dict) -> Loan:
        """Apply ``changes`` (interest_rate_percent, term_months, start_date,
        notes, status_override) to a loan.

        Terms are only editable while the ledger is empty. ``status_override``
        set to None clears the override.
        """
        term_fields = {"interest_rate_percent", "term_months", "start_date"}

        with loan_locks.hold(loan_id):
            try:
                loan = self.repo.load_loan(loan_id, for_update=True)
                ledger = self.repo.load_ledger(loan_id)

                touched = {k for k, v in changes.items() if k in term_fields and v is not None}
                if touched:
                    try:
                        ledger_ops.ensure_terms_editable(loan, ledger)
                    except LoanTermsLockedError:
                        logger.warning(
                            "Rejected term edit on loan %s (%s)", loan_id, ", ".join(sorted(touched)),
                            extra={"loan_id": loan_id},
                        )
                        raise

                    rate = changes.get("interest_rate_percent")
                    term = changes.get("term_months")
                    rate = money(loan.interest_rate_percent if rate is None else rate)
                    term = loan.term_months if term is None else term
                    schedule = compute_schedule(money(loan.principal), rate, term)

                    loan.interest_rate_percent = rate
                    loan.term_months = int(term)
                    loan.total_payable = schedule.total_payable
                    loan.monthly_installment = schedule.monthly_installment
                    if changes.get("start_date") is not None:
                        loan.start_date = changes["start_date"]
                        self._move_disbursement(loan)

                if "notes" in changes:
                    loan.notes = changes["notes"]

                if "status_override" in changes:
                    override = changes["status_override"]
                    loan.status_override = LoanStatus(override).value if override else None

                loan.status = ledger_ops.effective_status(loan, ledger, self.today).value
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        self.db.refresh(loan)
        logger.info("Loan %s updated", loan_id, extra={"loan_id": loan_id})
        return loan

    def _move_disbursement(self, loan: Loan) -> None:
        for txn in self.repo.list_postings(loan_id=loan.loan_id):
            if txn.ref_table == "loans" and txn.ref_id == loan.loan_id:
                txn.txn_date = loan.start_date

    def delete_loan(self, loan_id: int) -> None:
        with loan_locks.hold(loan_id):
            try:
                loan = self.repo.load_loan(loan_id, for_update=True)
                ledger_ops.ensure_loan_deletable(loan, self.repo.load_ledger(loan_id))
                self.repo.delete_loan(loan)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info("Loan %s deleted", loan_id, extra={"loan_id": loan_id})

    # -------------------------------------------------
    # Installment payments
    # -------------------------------------------------
    def record_payment(
            self,
            loan_id: int,
            *,
            amount_paid,
            payment_date: Optional[date] = None,
            penalty=ZERO,
            note: Optional[str] = None,
    ) -> PaymentOutcome:
        with loan_locks.hold(loan_id):
            try:
                loan = self.repo.load_loan(loan_id, for_update=True)
                ledger = self.repo.load_ledger(loan_id)
                tolerance = get_overpayment_tolerance(self.db)

                candidate = LedgerEntry(
                    payment_date=payment_date or self.today,
                    amount_paid=amount_paid,
                    penalty=penalty if penalty is not None else ZERO,
                    note=note,
                )
                try:
                    updated = ledger_ops.record_payment(loan, ledger, candidate, tolerance=tolerance)
                except OverpaymentError:
                    logger.warning(
                        "Rejected overpayment of %s on loan %s", amount_paid, loan_id,
                        extra={"loan_id": loan_id},
                    )
                    raise

                row = self.repo.append_payment(loan_id, updated[-1])
                self._post_payment(loan, row)

                outcome = self._refresh_status(loan, row)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Installment #%s recorded on loan %s: paid=%s penalty=%s remaining=%s",
            row.installment_number, loan_id, row.amount_paid, row.penalty,
            outcome.remaining_balance,
            extra={"loan_id": loan_id, "payment_id": row.payment_id},
        )
        return outcome

    def update_payment(
            self,
            payment_id: int,
            *,
            amount_paid=None,
            payment_date: Optional[date] = None,
            penalty=None,
            note=ledger_ops.KEEP,
    ) -> PaymentOutcome:
        loan_id = self.repo.load_payment_row(payment_id).loan_id

        with loan_locks.hold(loan_id):
            try:
                loan = self.repo.load_loan(loan_id, for_update=True)
                ledger = self.repo.load_ledger(loan_id)
                updated = ledger_ops.update_payment(
                    loan,
                    ledger,
                    payment_id,
                    amount_paid=amount_paid,
                    payment_date=payment_date,
                    penalty=penalty,
                    note=note,
                    tolerance=get_overpayment_tolerance(self.db),
                )
                entry = next(e for e in updated if e.payment_id == payment_id)
                row = self.repo.save_payment(entry)

                self.repo.remove_postings("installment_payments", payment_id)
                self._post_payment(loan, row)

                outcome = self._refresh_status(loan, row)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Installment #%s on loan %s updated: paid=%s penalty=%s",
            row.installment_number, loan_id, row.amount_paid, row.penalty,
            extra={"loan_id": loan_id, "payment_id": payment_id},
        )
        return outcome

    def delete_payment(self, payment_id: int) -> PaymentOutcome:
        loan_id = self.repo.load_payment_row(payment_id).loan_id

        with loan_locks.hold(loan_id):
            try:
                loan = self.repo.load_loan(loan_id, for_update=True)
                ledger_ops.delete_payment(loan, self.repo.load_ledger(loan_id), payment_id)

                row = self.repo.load_payment_row(payment_id)
                self.repo.remove_payment(payment_id)

                outcome = self._refresh_status(loan, row)
                self.db.commit()
            except Exception:
                self.db.rollback()
                raise

        logger.info(
            "Installment #%s on loan %s deleted; balance restored to %s",
            row.installment_number, loan_id, outcome.remaining_balance,
            extra={"loan_id": loan_id, "payment_id": payment_id},
        )
        return outcome

    def _post_payment(self, loan: Loan, row: InstallmentPayment) -> None:
        self.repo.post(
            txn_date=row.payment_date,
            txn_type="INCOME",
            category="INSTALLMENT",
            amount=money(row.amount_paid),
            loan_id=loan.loan_id,
            ref_table="installment_payments",
            ref_id=row.payment_id,
            narration=f"Installment #{row.installment_number} ({loan.loan_account_no})",
        )
        if money(row.penalty) > 0:
            self.repo.post(
                txn_date=row.payment_date,
                txn_type="INCOME",
                category="PENALTY",
                amount=money(row.penalty),
                loan_id=loan.loan_id,
                ref_table="installment_payments",
                ref_id=row.payment_id,
                narration=f"Late penalty, installment #{row.installment_number} ({loan.loan_account_no})",
            )

    def _refresh_status(self, loan: Loan, row: InstallmentPayment) -> PaymentOutcome:
        """Re-derive from the committed-to-be ledger and write the status through."""
        ledger = self.repo.load_ledger(loan.loan_id)
        status = ledger_ops.effective_status(loan, ledger, self.today)
        self.repo.update_loan_status(loan.loan_id, status.value)
        return PaymentOutcome(
            payment=row,
            remaining_balance=ledger_ops.remaining_balance(loan, ledger),
            status=status,
        )
