"""Installment ledger accounting.

A ledger is the ordered list of :class:`LedgerEntry` recorded against one
loan, most recent last. Every function here is pure: it takes a loan and a
ledger snapshot and returns a value or a *new* ledger. Balance and status are
always recomputed from the entries, so there is no running total that can
drift from the payment history.

Deleted payments stay in the ledger flagged ``deleted=True``. They no longer
count towards the balance, but their installment numbers stay taken.

``loan`` is anything exposing ``loan_id``, ``principal``,
``interest_rate_percent``, ``term_months`` and ``start_date`` (and optionally
``status_override``): the ORM ``Loan`` row or a :class:`LoanTerms`.
"""

from dataclasses import dataclass, replace
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional, Sequence, Tuple

from koperasi.core.exceptions import (
    InvalidAmountError,
    LoanHasPaymentsError,
    LoanTermsLockedError,
    NotFoundError,
    OverpaymentError,
)
from koperasi.utils.loan_calculations import (
    LoanSchedule,
    compute_schedule,
    money,
    months_elapsed,
)

ZERO = Decimal("0")

# update_payment(note=KEEP) leaves the note alone; note=None clears it
KEEP = object()


class LoanStatus(str, Enum):
    RUNNING = "running"
    SETTLED = "settled"
    DELINQUENT = "delinquent"


@dataclass(frozen=True)
class LoanTerms:
    loan_id: Optional[int]
    principal: Decimal
    interest_rate_percent: Decimal
    term_months: int
    start_date: date
    status_override: Optional[str] = None


@dataclass(frozen=True)
class LedgerEntry:
    payment_date: date
    amount_paid: Decimal
    penalty: Decimal = ZERO
    note: Optional[str] = None
    installment_number: Optional[int] = None  # assigned by record_payment
    payment_id: Optional[int] = None  # assigned by persistence
    loan_id: Optional[int] = None
    deleted: bool = False


Ledger = Sequence[LedgerEntry]


# -------------------------------------------------
# Reads
# -------------------------------------------------
def schedule_of(loan) -> LoanSchedule:
    return compute_schedule(loan.principal, loan.interest_rate_percent, loan.term_months)


def entries_for(loan_id, ledger: Ledger) -> List[LedgerEntry]:
    """Entries belonging to ``loan_id`` (entries without a loan_id are assumed to)."""
    return [e for e in ledger if e.loan_id is None or loan_id is None or e.loan_id == loan_id]


def active_entries(ledger: Ledger) -> List[LedgerEntry]:
    return [e for e in ledger if not e.deleted]


def next_installment_number(loan_id, ledger: Ledger) -> int:
    """1 for an empty ledger, else ``max(installment_number) + 1``.

    Deleted entries still hold their number, so a number is never handed
    out twice.
    """
    numbers = [e.installment_number for e in entries_for(loan_id, ledger) if e.installment_number]
    return max(numbers) + 1 if numbers else 1


def total_paid(ledger: Ledger) -> Decimal:
    return money(sum((e.amount_paid for e in active_entries(ledger)), ZERO))


def total_penalty(ledger: Ledger) -> Decimal:
    return money(sum((e.penalty for e in active_entries(ledger)), ZERO))


def remaining_balance(loan, ledger: Ledger) -> Decimal:
    return money(schedule_of(loan).total_payable - total_paid(entries_for(loan.loan_id, ledger)))


def payment_ceiling(loan, tolerance=ZERO) -> Decimal:
    """
    Highest cumulative amount_paid accepted for ``loan``:
      total_payable + max(tolerance, monthly * term - total_payable)

    The rounding slack of the ceil'd monthly installment is always allowed, so
    paying every scheduled installment in full never trips the check.
    """
    schedule = schedule_of(loan)
    slack = schedule.monthly_installment * int(loan.term_months) - schedule.total_payable
    return money(schedule.total_payable + max(money(tolerance), slack, ZERO))


def expected_installments(loan, as_of: date) -> int:
    elapsed = months_elapsed(loan.start_date, as_of)
    return max(0, min(elapsed, int(loan.term_months)))


def derive_status(loan, ledger: Ledger, as_of: date) -> LoanStatus:
    own = entries_for(loan.loan_id, ledger)
    if remaining_balance(loan, own) <= 0:
        return LoanStatus.SETTLED
    if len(active_entries(own)) < expected_installments(loan, as_of):
        return LoanStatus.DELINQUENT
    return LoanStatus.RUNNING


def effective_status(loan, ledger: Ledger, as_of: date) -> LoanStatus:
    """Administrative override if one is set, else the derived status."""
    override = getattr(loan, "status_override", None)
    if override:
        return LoanStatus(override)
    return derive_status(loan, ledger, as_of)


def running_balances(loan, ledger: Ledger) -> List[Tuple[LedgerEntry, Decimal]]:
    """[(entry, balance_after), ...] over the active entries, in ledger order."""
    balance = schedule_of(loan).total_payable
    rows = []
    for entry in active_entries(entries_for(loan.loan_id, ledger)):
        balance = money(balance - entry.amount_paid)
        rows.append((entry, balance))
    return rows


# -------------------------------------------------
# Mutations (return a new ledger)
# -------------------------------------------------
def _validate_amounts(amount_paid, penalty) -> None:
    if amount_paid is None or Decimal(str(amount_paid)) <= 0:
        raise InvalidAmountError("Payment amount must be > 0")
    if penalty is not None and Decimal(str(penalty)) < 0:
        raise InvalidAmountError("Penalty must be >= 0")


def _check_ceiling(loan, others: Ledger, amount_paid, tolerance) -> None:
    ceiling = payment_ceiling(loan, tolerance)
    after = money(total_paid(others) + money(amount_paid))
    if after > ceiling:
        outstanding = money(schedule_of(loan).total_payable - total_paid(others))
        raise OverpaymentError(
            f"Payment of {money(amount_paid)} exceeds the outstanding balance "
            f"of {max(outstanding, ZERO)} for loan {loan.loan_id}"
        )


def _find_active(ledger: Ledger, payment_id) -> int:
    for i, entry in enumerate(ledger):
        if entry.payment_id == payment_id and not entry.deleted:
            return i
    raise NotFoundError(f"Payment {payment_id} not found")


def record_payment(loan, ledger: Ledger, payment: LedgerEntry, tolerance=ZERO) -> List[LedgerEntry]:
    """Validate ``payment`` against ``ledger`` and return the ledger with it appended.

    The appended entry gets the next installment number and the loan's id.
    Neither ``loan`` nor ``ledger`` is modified.
    """
    _validate_amounts(payment.amount_paid, payment.penalty)

    own = entries_for(loan.loan_id, ledger)
    _check_ceiling(loan, own, payment.amount_paid, tolerance)

    entry = replace(
        payment,
        loan_id=loan.loan_id,
        installment_number=next_installment_number(loan.loan_id, own),
        amount_paid=money(payment.amount_paid),
        penalty=money(payment.penalty or ZERO),
        deleted=False,
    )
    return list(ledger) + [entry]


def update_payment(
        loan,
        ledger: Ledger,
        payment_id,
        *,
        amount_paid=None,
        payment_date: Optional[date] = None,
        penalty=None,
        note=KEEP,
        tolerance=ZERO,
) -> List[LedgerEntry]:
    """Return the ledger with one payment's amount/date/penalty/note changed.

    The balance check runs against the ledger *without* the old amount, so the
    result is the same as deleting and re-recording under the same number.
    ``None`` for amount, date or penalty keeps the current value; ``note=None``
    clears the note.
    """
    own = entries_for(loan.loan_id, ledger)
    current = own[_find_active(own, payment_id)]

    new_amount = current.amount_paid if amount_paid is None else amount_paid
    new_penalty = current.penalty if penalty is None else penalty
    _validate_amounts(new_amount, new_penalty)

    others = [e for e in own if e is not current]
    _check_ceiling(loan, others, new_amount, tolerance)

    updated = replace(
        current,
        amount_paid=money(new_amount),
        penalty=money(new_penalty),
        payment_date=payment_date or current.payment_date,
        note=current.note if note is KEEP else note,
    )
    return [updated if e is current else e for e in ledger]


def delete_payment(loan, ledger: Ledger, payment_id) -> List[LedgerEntry]:
    """Return the ledger with ``payment_id`` flagged deleted."""
    own = entries_for(loan.loan_id, ledger)
    target = own[_find_active(own, payment_id)]

    return [replace(e, deleted=True) if e is target else e for e in ledger]


def ensure_loan_deletable(loan, ledger: Ledger) -> None:
    """A loan can only be deleted while no payment was ever recorded against it."""
    if entries_for(loan.loan_id, ledger):
        raise LoanHasPaymentsError(
            f"Loan {loan.loan_id} has recorded payments and cannot be deleted"
        )


def ensure_terms_editable(loan, ledger: Ledger) -> None:
    if entries_for(loan.loan_id, ledger):
        raise LoanTermsLockedError(
            f"Loan {loan.loan_id} has recorded payments; rate, term and start date are locked"
        )
