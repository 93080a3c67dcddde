"""Tests for per-loan locking."""

import threading
import time
from datetime import date
from decimal import Decimal

import pytest
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

import koperasi.models  # noqa: F401
from koperasi.core.exceptions import OverpaymentError
from koperasi.models.installment_payment_model import InstallmentPayment
from koperasi.services.loan_service import LoanService
from koperasi.utils import installment_ledger as ledger_ops
from koperasi.utils.database import Base
from koperasi.utils.installment_ledger import LedgerEntry
from koperasi.utils.locks import LoanLockRegistry


class TestLoanLockRegistry:
    def test_same_loan_same_lock(self) -> None:
        registry = LoanLockRegistry()
        assert registry.lock_for(1) is registry.lock_for(1)

    def test_loans_are_independent(self) -> None:
        registry = LoanLockRegistry()
        with registry.hold(1):
            acquired = registry.lock_for(2).acquire(blocking=False)
            assert acquired
            registry.lock_for(2).release()

    def test_hold_excludes_second_writer(self) -> None:
        registry = LoanLockRegistry()
        with registry.hold(1):
            assert not registry.lock_for(1).acquire(blocking=False)
        assert registry.lock_for(1).acquire(blocking=False)
        registry.lock_for(1).release()

    def test_concurrent_payments_cannot_both_use_the_last_balance(self, standard_terms) -> None:
        """Two writers race for the final installment; exactly one wins."""
        registry = LoanLockRegistry()
        ledger = []
        for n in range(1, 10):
            ledger = ledger_ops.record_payment(
                standard_terms, ledger,
                LedgerEntry(payment_id=n, payment_date=date(2024, 2, 1), amount_paid=Decimal("110000")),
            )
        state = {"ledger": ledger}
        results = []

        def writer(pid):
            with registry.hold(standard_terms.loan_id):
                snapshot = state["ledger"]
                time.sleep(0.01)  # widen the read-validate-append window
                try:
                    state["ledger"] = ledger_ops.record_payment(
                        standard_terms, snapshot,
                        LedgerEntry(payment_id=pid, payment_date=date(2024, 11, 15),
                                    amount_paid=Decimal("110000")),
                    )
                    results.append("ok")
                except OverpaymentError:
                    results.append("rejected")

        threads = [threading.Thread(target=writer, args=(pid,)) for pid in (10, 11)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["ok", "rejected"]
        assert ledger_ops.remaining_balance(standard_terms, state["ledger"]) == Decimal("0.00")


@pytest.fixture
def file_engine(tmp_path):
    """A file database, so each thread gets its own connection."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'koperasi.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    engine.dispose()


class TestServiceSerialization:
    def test_concurrent_final_payments_through_the_service(self, file_engine) -> None:
        Session = sessionmaker(autocommit=False, autoflush=False, bind=file_engine)
        today = date(2024, 11, 20)

        with Session() as db:
            service = LoanService(db, today=today)
            loan = service.create_loan(
                member_id=7,
                principal=Decimal("1000000"),
                interest_rate_percent=Decimal("10"),
                term_months=10,
                start_date=date(2024, 1, 15),
            )
            loan_id = loan.loan_id
            for _ in range(9):
                service.record_payment(loan_id, amount_paid=Decimal("110000"))

        barrier = threading.Barrier(2)
        results = []

        def writer():
            with Session() as db:
                service = LoanService(db, today=today)
                barrier.wait()
                try:
                    outcome = service.record_payment(loan_id, amount_paid=Decimal("110000"))
                    results.append(outcome.status.value)
                except OverpaymentError:
                    results.append("rejected")

        threads = [threading.Thread(target=writer) for _ in range(2)]
        for t in threads:
            t.start()
        for t in threads:
            t.join()

        assert sorted(results) == ["rejected", "settled"]
        with Session() as db:
            rows = db.query(InstallmentPayment).filter(InstallmentPayment.loan_id == loan_id).all()
            assert sorted(r.installment_number for r in rows) == list(range(1, 11))
            assert LoanService(db, today=today).get_loan(loan_id).remaining_balance == Decimal("0.00")
