# cashledger/models/cash_transaction.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, Date, DateTime, Numeric, Integer, Enum, JSON, Uuid, UniqueConstraint, Index
from cashledger.db.base import Base
from cashledger.models.enums import BillStatus, VerificationStatus


class CashTransaction(Base):
    __tablename__ = "cash_transactions"
    __table_args__ = (
        UniqueConstraint("branch", "voucher_year", "voucher_no", name="uq_cash_transactions_voucher"),
        Index("ix_cash_transactions_branch_date", "branch", "transaction_date", "created_at"),
    )

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    voucher_no = Column(Text, nullable=False)
    voucher_year = Column(Integer, nullable=False)
    branch = Column(Text, nullable=False)
    staff_id = Column(Uuid, nullable=False)
    transaction_date = Column(Date, nullable=False)
    bill_status = Column(Enum(BillStatus, name="bill_status"), nullable=False, default=BillStatus.paid)
    primary_list = Column(Text)
    nature_of_expense = Column(Text)
    cash_in = Column(Numeric(15, 2), default=0, nullable=False)
    cash_out = Column(Numeric(15, 2), default=0, nullable=False)
    balance = Column(Numeric(15, 2))
    attachment_urls = Column(JSON, default=list, nullable=False)
    notes = Column(Text)
    verification_status = Column(Enum(VerificationStatus, name="verification_status"), nullable=False)
    verified_by = Column(Uuid)
    verified_at = Column(DateTime(timezone=True))
    verification_notes = Column(Text)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    @property
    def kind_label(self) -> str:
        return "Income" if self.cash_in and self.cash_in > 0 else "Expense"

    @property
    def amount(self):
        return self.cash_in if self.cash_in and self.cash_in > 0 else (self.cash_out or 0)

    @property
    def has_proof(self) -> bool:
        return bool(self.attachment_urls)
