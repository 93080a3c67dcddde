"""Exception hierarchy for the koperasi backend.

Every class carries the HTTP status the API answers with; the handler
registered in ``main.py`` does the translation.
"""


class KoperasiError(Exception):
    """Base exception for all koperasi errors."""

    status_code = 400


class InvalidAmountError(KoperasiError):
    """Raised when a monetary amount or rate is out of range."""


class InvalidTermError(KoperasiError):
    """Raised when a loan term is not a positive whole number of months."""


class OverpaymentError(KoperasiError):
    """Raised when a payment would push the total paid past the allowed ceiling."""

    status_code = 409


class NotFoundError(KoperasiError):
    """Raised when a loan or payment does not exist."""

    status_code = 404


class LoanHasPaymentsError(KoperasiError):
    """Raised when a loan with recorded payments is about to be deleted."""

    status_code = 409


class LoanTermsLockedError(LoanHasPaymentsError):
    """Raised when rate, term or start date are edited after a payment was recorded."""


class PermissionDeniedError(KoperasiError):
    """Raised when the caller's role/division lacks a capability."""

    status_code = 403


class ConfigurationError(KoperasiError):
    """Raised when a setting holds an unusable value."""

    status_code = 500


class DuplicateLoanNumberError(KoperasiError):
    """Raised when a loan account number is already taken."""

    status_code = 409
