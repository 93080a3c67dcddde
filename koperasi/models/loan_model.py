# koperasi/models/loan_model.py

from sqlalchemy import (
    Column,
    Integer,
    String,
    Date,
    DateTime,
    Numeric,
    Text,
    Index,
)
from sqlalchemy.sql import func
from koperasi.utils.database import Base


class Loan(Base):
    __tablename__ = "loans"

    __table_args__ = (
        Index("ix_loans_status", "status"),
        Index("ix_loans_member_status", "member_id", "status"),
    )

    loan_id = Column(Integer, primary_key=True, index=True)
    loan_account_no = Column(String(50), unique=True, nullable=False)

    # members live in the membership service; no FK here
    member_id = Column(Integer, nullable=False, index=True)

    start_date = Column(Date, nullable=False)
    term_months = Column(Integer, nullable=False)

    principal = Column(Numeric(14, 2), nullable=False)
    interest_rate_percent = Column(Numeric(6, 2), nullable=False, server_default="0")

    # snapshot of compute_schedule(); rewritten whenever the terms change
    total_payable = Column(Numeric(14, 2), nullable=False)
    monthly_installment = Column(Numeric(14, 2), nullable=False)

    # running / settled / delinquent
    # cache of the derived status, refreshed after every ledger mutation
    status = Column(String(20), nullable=False, server_default="running")
    # explicit admin override; NULL means "use the derived status"
    status_override = Column(String(20), nullable=True)

    notes = Column(Text, nullable=True)

    created_on = Column(DateTime, server_default=func.now(), nullable=True)
    updated_on = Column(DateTime, server_default=func.now(), onupdate=func.now(), nullable=True)
