# cashledger/models/voucher.py
import uuid
from datetime import datetime
from sqlalchemy import Column, Text, DateTime, Integer, Enum, Uuid, UniqueConstraint
from cashledger.db.base import Base
from cashledger.models.enums import TransactionKind


def branch_key(branch: str) -> str:
    return branch.strip().lower()


def _default_branch_key(context):
    return branch_key(context.get_current_parameters()["branch"])


class VoucherReservation(Base):
    """
    Claim on a voucher number. Every issued number has one of these rows,
    whether it was handed out ahead of time or taken by a submission, so
    the unique constraint below is the single arbiter of who owns it.
    """
    __tablename__ = "voucher_reservations"
    __table_args__ = (UniqueConstraint("branch_key", "voucher_year", "voucher_no", name="uq_voucher_reservations"),)

    id = Column(Uuid, primary_key=True, default=uuid.uuid4)
    branch = Column(Text, nullable=False)
    # case-folded branch, so "Thrissur" and "thrissur" share one sequence
    branch_key = Column(Text, nullable=False, default=_default_branch_key)
    voucher_year = Column(Integer, nullable=False)
    kind = Column(Enum(TransactionKind, name="transaction_kind"), nullable=False)
    voucher_no = Column(Text, nullable=False)
    created_at = Column(DateTime(timezone=True), default=datetime.utcnow, nullable=False)
