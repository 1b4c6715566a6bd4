"""
Branch opening balances.

``opening_balance`` is a cached fold of the branch's history rows: it only
moves through ``append_entry``, which increments it in a single UPDATE
statement and inserts one history row in the same database transaction.
Appends for one registered branch are additionally serialised inside the
process, with one lock per branch row.
"""
import logging
import threading
from collections import defaultdict
from datetime import date, datetime
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cashledger.core.events import OPENING_BALANCE_UPDATED
from cashledger.core.exceptions import DependencyError, NotFoundError, ValidationError
from cashledger.models.opening_balance import BalanceHistoryEntry, BranchOpeningBalance
from cashledger.models.voucher import VoucherReservation, branch_key

logger = logging.getLogger(__name__)

_registry_lock = threading.Lock()
_branch_locks = defaultdict(threading.RLock)


def branch_lock(row_id):
    with _registry_lock:
        return _branch_locks[row_id]


def _branch_filter(branch: str):
    return func.lower(BranchOpeningBalance.branch) == branch.strip().lower()


def get_opening_balance_row(db: Session, branch: str):
    return db.query(BranchOpeningBalance).filter(_branch_filter(branch)).first()


def canonical_branch(db: Session, branch: str) -> str:
    """Spelling of ``branch`` as registered, so 'kochi' and 'Kochi' share one pool."""
    row = get_opening_balance_row(db, branch)
    if row is not None:
        return row.branch
    # not registered yet: reuse the spelling its first voucher was issued under
    known = db.query(VoucherReservation.branch).filter(
        VoucherReservation.branch_key == branch_key(branch),
    ).order_by(VoucherReservation.created_at).first()
    return known[0] if known else branch.strip()


def opening_balance_for(db: Session, branch: str) -> Decimal:
    row = get_opening_balance_row(db, branch)
    return Decimal(row.opening_balance) if row else Decimal("0")


def list_opening_balances(db: Session) -> list:
    return db.query(BranchOpeningBalance).order_by(BranchOpeningBalance.branch).all()


def _reload(db: Session, branch: str) -> BranchOpeningBalance:
    db.expire_all()
    return get_opening_balance_row(db, branch)


def _publish(event_bus, row):
    if event_bus is not None:
        event_bus.publish(OPENING_BALANCE_UPDATED, {
            "branch": row.branch,
            "opening_balance": row.opening_balance,
            "version": row.version,
        })


def _row_id(db: Session, branch: str):
    try:
        return db.query(BranchOpeningBalance.id).filter(_branch_filter(branch)).scalar()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to look up opening balance for %s: %s", branch, e)
        raise DependencyError("Failed to update opening balance") from e


def append_entry(db: Session, branch: str, amount: Decimal, entry_date: date, note=None, added_by=None, event_bus=None):
    """Add ``amount`` to the branch's opening balance and record it in the history."""
    if not branch:
        raise ValidationError("Branch is required")
    if entry_date is None:
        raise ValidationError("Date is required")

    row_id = _row_id(db, branch)
    if row_id is None:
        raise NotFoundError("Branch not found")

    with branch_lock(row_id):
        try:
            updated = db.query(BranchOpeningBalance).filter(BranchOpeningBalance.id == row_id).update(
                {
                    BranchOpeningBalance.opening_balance: BranchOpeningBalance.opening_balance + amount,
                    BranchOpeningBalance.version: BranchOpeningBalance.version + 1,
                    BranchOpeningBalance.updated_at: datetime.utcnow(),
                },
                synchronize_session=False,
            )
            if not updated:
                db.rollback()
                raise NotFoundError("Branch not found")
            db.add(BalanceHistoryEntry(
                opening_balance_id=row_id,
                date=entry_date,
                amount=amount,
                note=note,
                added_by=added_by,
            ))
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to append opening balance entry for %s: %s", branch, e)
            raise DependencyError("Failed to update opening balance") from e

    row = _reload(db, branch)
    logger.info("Opening balance for %s moved by %s to %s (v%d)", row.branch, amount, row.opening_balance, row.version)
    _publish(event_bus, row)
    return row


def _register(db: Session, branch: str) -> BranchOpeningBalance:
    row = get_opening_balance_row(db, branch)
    if row is not None:
        return row
    try:
        row = BranchOpeningBalance(branch=branch.strip(), opening_balance=Decimal("0"), version=0)
        db.add(row)
        db.commit()
        logger.info("Registered branch %s", row.branch)
        return row
    except IntegrityError:
        # registered concurrently
        db.rollback()
        return get_opening_balance_row(db, branch)


def reconcile(db: Session, branch: str, opening_balance: Decimal, entry_date: date = None, note=None, added_by=None, event_bus=None):
    """
    Set a branch's opening balance to an absolute figure, creating the
    branch if needed. Recorded as a history entry for the difference, so the
    balance stays the sum of its history.
    """
    if not branch:
        raise ValidationError("Branch is required")

    try:
        row = _register(db, branch)
    except SQLAlchemyError as e:
        db.rollback()
        logger.error("Failed to load opening balance for %s: %s", branch, e)
        raise DependencyError("Failed to update opening balance") from e

    with branch_lock(row.id):
        row = _reload(db, branch)
        delta = opening_balance - Decimal(row.opening_balance)
        if delta == 0:
            return row

        logger.warning("Reconciling opening balance for %s from %s to %s", row.branch, row.opening_balance, opening_balance)
        # the lock is reentrant, so the append runs under the same hold
        return append_entry(
            db,
            row.branch,
            delta,
            entry_date or date.today(),
            note=note or "Reconciliation",
            added_by=added_by,
            event_bus=event_bus,
        )
