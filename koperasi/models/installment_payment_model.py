from sqlalchemy import (
    Column, Integer, Date, DateTime, Numeric, Text, ForeignKey, UniqueConstraint
)
from sqlalchemy.sql import func
from koperasi.utils.database import Base


class InstallmentPayment(Base):
    __tablename__ = "installment_payments"
    __table_args__ = (
        # numbers are never reused, soft-deleted rows keep theirs
        UniqueConstraint("loan_id", "installment_number", name="uq_loan_installment_number"),
    )

    payment_id = Column(Integer, primary_key=True, index=True)
    loan_id = Column(Integer, ForeignKey("loans.loan_id", ondelete="RESTRICT"), nullable=False, index=True)

    installment_number = Column(Integer, nullable=False)
    payment_date = Column(Date, nullable=False)

    amount_paid = Column(Numeric(14, 2), nullable=False)
    # denda; does not reduce the loan balance
    penalty = Column(Numeric(14, 2), nullable=False, default=0)

    note = Column(Text, nullable=True)

    created_on = Column(DateTime, server_default=func.now())
    deleted_on = Column(DateTime, nullable=True)
