# cashledger/models/opening_balance.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, Date, DateTime, Numeric, Integer, ForeignKey, Uuid
from sqlalchemy.orm import relationship
from cashledger.db.base import Base


class BranchOpeningBalance(Base):
    __tablename__ = "branch_opening_balances"

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    branch = Column(Text, unique=True, nullable=False)
    opening_balance = Column(Numeric(15, 2), default=0, nullable=False)
    version = Column(Integer, default=0, nullable=False)
    period_start = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
    updated_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    history = relationship(
        "BalanceHistoryEntry",
        back_populates="opening_balance_row",
        order_by="BalanceHistoryEntry.seq",
    )


class BalanceHistoryEntry(Base):
    __tablename__ = "branch_balance_history"

    seq = Column(Integer, primary_key=True, autoincrement=True)
    opening_balance_id = Column(Uuid, ForeignKey("branch_opening_balances.id", ondelete="CASCADE"), nullable=False)
    date = Column(Date, nullable=False)
    amount = Column(Numeric(15, 2), nullable=False)
    note = Column(Text)
    added_by = Column(Text)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)

    opening_balance_row = relationship("BranchOpeningBalance", back_populates="history")
