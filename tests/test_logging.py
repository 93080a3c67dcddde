"""Tests for logging setup."""

import json
import logging

from koperasi.core.logging import JsonFormatter, setup_logging


class TestSetupLogging:
    def test_sets_level(self) -> None:
        setup_logging("DEBUG")
        assert logging.getLogger("koperasi").level == logging.DEBUG
        setup_logging("INFO")

    def test_unknown_level_falls_back_to_info(self) -> None:
        setup_logging("chatty")
        assert logging.getLogger().level == logging.INFO

    def test_json_handler_installed(self) -> None:
        setup_logging("INFO", format_type="json")
        assert isinstance(logging.getLogger().handlers[0].formatter, JsonFormatter)
        setup_logging("INFO")


class TestJsonFormatter:
    def test_includes_loan_context(self) -> None:
        record = logging.LogRecord(
            name="koperasi.services.loan_service",
            level=logging.INFO,
            pathname=__file__,
            lineno=1,
            msg="Installment #%s recorded",
            args=(3,),
            exc_info=None,
        )
        record.loan_id = 12
        record.payment_id = 40

        data = json.loads(JsonFormatter().format(record))
        assert data["message"] == "Installment #3 recorded"
        assert data["level"] == "INFO"
        assert data["loan_id"] == 12
        assert data["payment_id"] == 40
