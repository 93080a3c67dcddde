"""Tests for the exception hierarchy."""

import pytest

from koperasi.core.exceptions import (
    ConfigurationError,
    DuplicateLoanNumberError,
    InvalidAmountError,
    InvalidTermError,
    KoperasiError,
    LoanHasPaymentsError,
    LoanTermsLockedError,
    NotFoundError,
    OverpaymentError,
    PermissionDeniedError,
)


class TestExceptionHierarchy:
    @pytest.mark.parametrize(
        "cls",
        [
            InvalidAmountError,
            InvalidTermError,
            OverpaymentError,
            NotFoundError,
            LoanHasPaymentsError,
            PermissionDeniedError,
            ConfigurationError,
            DuplicateLoanNumberError,
        ],
    )
    def test_is_koperasi_error(self, cls) -> None:
        assert isinstance(cls("x"), KoperasiError)

    def test_terms_locked_is_has_payments(self) -> None:
        assert isinstance(LoanTermsLockedError("x"), LoanHasPaymentsError)

    @pytest.mark.parametrize(
        "cls,status",
        [
            (InvalidAmountError, 400),
            (InvalidTermError, 400),
            (OverpaymentError, 409),
            (NotFoundError, 404),
            (LoanHasPaymentsError, 409),
            (LoanTermsLockedError, 409),
            (PermissionDeniedError, 403),
            (ConfigurationError, 500),
            (DuplicateLoanNumberError, 409),
        ],
    )
    def test_status_codes(self, cls, status) -> None:
        assert cls.status_code == status

    def test_exception_message(self) -> None:
        assert str(NotFoundError("Loan 3 not found")) == "Loan 3 not found"
