from sqlalchemy import (
    Column, Integer, String, Date, DateTime, Numeric, Text, Boolean, Index
)
from sqlalchemy.sql import func
from koperasi.utils.database import Base


class FinanceTransaction(Base):
    __tablename__ = "finance_transactions"

    __table_args__ = (
        Index("ix_finance_ref", "ref_table", "ref_id"),
        Index("ix_finance_date_type", "txn_date", "txn_type"),
    )

    txn_id = Column(Integer, primary_key=True, index=True)

    txn_date = Column(Date, nullable=False)
    txn_type = Column(String(20), nullable=False)  # INCOME / EXPENSE
    category = Column(String(30), nullable=False)  # LOAN_DISBURSEMENT / INSTALLMENT / PENALTY

    amount = Column(Numeric(14, 2), nullable=False)

    loan_id = Column(Integer, nullable=True, index=True)
    ref_table = Column(String(50), nullable=True)
    ref_id = Column(Integer, nullable=True)

    # rows written by the loan flow; they follow their source row's lifecycle
    is_auto = Column(Boolean, nullable=False, default=True)
    narration = Column(Text, nullable=True)

    created_on = Column(DateTime, server_default=func.now())
