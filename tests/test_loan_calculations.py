"""Tests for schedule and date arithmetic."""

from datetime import date
from decimal import Decimal

import pytest

from koperasi.core.exceptions import InvalidAmountError, InvalidTermError
from koperasi.utils.loan_calculations import (
    add_months,
    compute_due_date,
    compute_schedule,
    format_loan_number,
    installment_schedule,
    money,
    months_elapsed,
    parse_loan_number_seq,
)


class TestMoney:
    def test_rounds_half_up(self) -> None:
        assert money("2750.125") == Decimal("2750.13")

    def test_none_is_zero(self) -> None:
        assert money(None) == Decimal("0.00")


class TestComputeSchedule:
    def test_reference_example(self) -> None:
        s = compute_schedule(1_000_000, 10, 10)
        assert s.interest_total == Decimal("100000.00")
        assert s.total_payable == Decimal("1100000.00")
        assert s.monthly_installment == Decimal("110000")

    def test_zero_interest(self) -> None:
        s = compute_schedule(600_000, 0, 6)
        assert s.total_payable == Decimal("600000.00")
        assert s.monthly_installment == Decimal("100000")

    def test_monthly_rounds_up(self) -> None:
        s = compute_schedule(1_000_000, 10, 3)
        # 1,100,000 / 3 = 366,666.67
        assert s.monthly_installment == Decimal("366667")

    def test_fractional_rate(self) -> None:
        s = compute_schedule(Decimal("22000"), Decimal("12.5"), 4)
        assert s.interest_total == Decimal("2750.00")
        assert s.total_payable == Decimal("24750.00")
        assert s.monthly_installment == Decimal("6188")

    @pytest.mark.parametrize(
        "principal,rate,term",
        [
            (1_000_000, 10, 10),
            (1_000_000, 10, 3),
            (2_500_000, 7.5, 7),
            (750_000, 0, 12),
            (5_000_000, 12, 24),
            (123_457, 3.3, 11),
            (99_999, 15, 9),
        ],
    )
    def test_ceiling_property(self, principal, rate, term) -> None:
        s = compute_schedule(principal, rate, term)
        assert s.monthly_installment * term >= s.total_payable
        assert s.monthly_installment * (term - 1) < s.total_payable

    @pytest.mark.parametrize("term", [0, -1, 2.5, None])
    def test_invalid_term(self, term) -> None:
        with pytest.raises(InvalidTermError):
            compute_schedule(1_000_000, 10, term)

    @pytest.mark.parametrize("principal", [0, -100])
    def test_invalid_principal(self, principal) -> None:
        with pytest.raises(InvalidAmountError):
            compute_schedule(principal, 10, 10)

    def test_negative_rate(self) -> None:
        with pytest.raises(InvalidAmountError):
            compute_schedule(1_000_000, -1, 10)

    def test_term_checked_before_principal(self) -> None:
        with pytest.raises(InvalidTermError):
            compute_schedule(0, 10, 0)


class TestDueDates:
    def test_leap_year_clamp(self) -> None:
        assert compute_due_date(date(2024, 1, 31), 1) == date(2024, 2, 29)

    def test_non_leap_year_clamp(self) -> None:
        assert compute_due_date(date(2023, 1, 31), 1) == date(2023, 2, 28)

    def test_accepts_iso_strings(self) -> None:
        assert compute_due_date("2024-01-31", 1) == date(2024, 2, 29)

    def test_preserves_day_of_month(self) -> None:
        assert compute_due_date(date(2024, 1, 15), 10) == date(2024, 11, 15)

    def test_crosses_year(self) -> None:
        assert add_months(date(2024, 11, 30), 3) == date(2025, 2, 28)


class TestMonthsElapsed:
    def test_before_start(self) -> None:
        assert months_elapsed(date(2024, 1, 15), date(2024, 1, 1)) == 0

    def test_day_before_anniversary(self) -> None:
        assert months_elapsed(date(2024, 1, 15), date(2024, 2, 14)) == 0

    def test_on_anniversary(self) -> None:
        assert months_elapsed(date(2024, 1, 15), date(2024, 2, 15)) == 1

    def test_end_of_month_start(self) -> None:
        assert months_elapsed(date(2024, 1, 31), date(2024, 2, 29)) == 1
        assert months_elapsed(date(2024, 1, 31), date(2024, 3, 30)) == 1
        assert months_elapsed(date(2024, 1, 31), date(2024, 3, 31)) == 2

    def test_many_years(self) -> None:
        assert months_elapsed(date(2022, 6, 1), date(2024, 6, 1)) == 24


class TestInstallmentSchedule:
    def test_equal_installments(self) -> None:
        s = compute_schedule(1_000_000, 10, 10)
        rows = installment_schedule(date(2024, 1, 15), 10, s)
        assert len(rows) == 10
        assert rows[0] == (1, date(2024, 2, 15), Decimal("110000.00"))
        assert rows[-1] == (10, date(2024, 11, 15), Decimal("110000.00"))

    def test_last_installment_takes_remainder(self) -> None:
        s = compute_schedule(1_000_000, 10, 3)
        rows = installment_schedule(date(2024, 1, 31), 3, s)
        assert [r[2] for r in rows] == [
            Decimal("366667.00"),
            Decimal("366667.00"),
            Decimal("366666.00"),
        ]
        assert rows[0][1] == date(2024, 2, 29)
        assert sum(r[2] for r in rows) == s.total_payable


class TestLoanNumbers:
    def test_format(self) -> None:
        assert format_loan_number(2024, 7) == "PJM-2024-0007"

    def test_parse(self) -> None:
        assert parse_loan_number_seq("PJM-2024-0012") == 12

    @pytest.mark.parametrize("value", ["", None, "ABC-2024-0001", "PJM-2024-x"])
    def test_parse_foreign_values(self, value) -> None:
        assert parse_loan_number_seq(value) == 0
