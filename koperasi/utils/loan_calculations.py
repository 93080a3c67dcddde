import calendar
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import List, Tuple, Union

from koperasi.core.exceptions import InvalidAmountError, InvalidTermError


def money(x) -> Decimal:
    """Always return 2-decimal Decimal with HALF_UP rounding."""
    if x is None:
        x = 0
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.quantize(Decimal("0.01"), rounding=ROUND_HALF_UP)


def ceil_units(x) -> Decimal:
    """Round up to a whole currency unit (Rupiah has no minor unit in practice)."""
    if not isinstance(x, Decimal):
        x = Decimal(str(x))
    return x.to_integral_value(rounding=ROUND_CEILING)


def as_date(value: Union[date, str]) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value))


@dataclass(frozen=True)
class LoanSchedule:
    interest_total: Decimal
    total_payable: Decimal
    monthly_installment: Decimal


def _term(term_months) -> int:
    if isinstance(term_months, bool):
        raise InvalidTermError("term_months must be a whole number of months")
    try:
        term = int(term_months)
    except (TypeError, ValueError):
        raise InvalidTermError("term_months must be a whole number of months")
    if term != term_months:
        raise InvalidTermError("term_months must be a whole number of months")
    if term <= 0:
        raise InvalidTermError("term_months must be > 0")
    return term


def compute_schedule(principal, interest_rate_percent, term_months) -> LoanSchedule:
    """
    FLAT over the whole term:
      interest_total      = principal * rate% / 100
      total_payable       = principal + interest_total
      monthly_installment = ceil(total_payable / term_months)

    Example:
      principal=1_000_000, rate=10, term=10 => 1_100_000 total, 110_000/month
    """
    term = _term(term_months)

    principal = Decimal(str(principal))
    if principal <= 0:
        raise InvalidAmountError("principal must be > 0")

    rate = Decimal(str(interest_rate_percent if interest_rate_percent is not None else 0))
    if rate < 0:
        raise InvalidAmountError("interest_rate_percent must be >= 0")

    interest_total = money(principal * rate / Decimal("100"))
    total_payable = money(principal + interest_total)
    monthly_installment = ceil_units(total_payable / Decimal(term))

    return LoanSchedule(
        interest_total=interest_total,
        total_payable=total_payable,
        monthly_installment=monthly_installment,
    )


def add_months(start: date, months: int) -> date:
    """Calendar month arithmetic; the day is clamped to the target month's end."""
    y, m = divmod(start.month - 1 + months, 12)
    year = start.year + y
    month = m + 1
    day = min(start.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def compute_due_date(start_date, term_months: int) -> date:
    """Final due date: ``start_date`` plus ``term_months`` calendar months."""
    return add_months(as_date(start_date), int(term_months))


def months_elapsed(start_date, as_of) -> int:
    """Whole calendar months from ``start_date`` up to and including ``as_of``."""
    start = as_date(start_date)
    as_of = as_date(as_of)
    if as_of <= start:
        return 0

    months = (as_of.year - start.year) * 12 + (as_of.month - start.month)
    if add_months(start, months) > as_of:
        months -= 1
    return months


def installment_schedule(start_date, term_months: int, schedule: LoanSchedule) -> List[Tuple[int, date, Decimal]]:
    """
    Returns [(installment_no, due_date, amount_due), ...]

    Every installment is the rounded-up monthly amount except the last one,
    which takes whatever is left (smaller or equal, never negative).
    """
    start = as_date(start_date)
    term = _term(term_months)

    rows = []
    for n in range(1, term + 1):
        if n < term:
            amount = schedule.monthly_installment
        else:
            amount = schedule.total_payable - schedule.monthly_installment * (term - 1)
            amount = max(amount, Decimal("0"))
        rows.append((n, add_months(start, n), money(amount)))
    return rows


def format_loan_number(year: int, seq: int) -> str:
    return f"PJM-{year}-{seq:04d}"


def parse_loan_number_seq(loan_account_no: str) -> int:
    """``PJM-2024-0007`` -> 7; anything else -> 0."""
    parts = (loan_account_no or "").split("-")
    if len(parts) != 3 or parts[0] != "PJM":
        return 0
    try:
        return int(parts[2])
    except ValueError:
        return 0
