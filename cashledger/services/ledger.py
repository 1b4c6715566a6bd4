"""
Cash transaction ledger.

Owns the lifecycle of a cash transaction and the running balance of a
branch. Every mutation commits first and only then publishes a
``cash_transaction.state_changed`` event; whatever listens to that event
(notification fan-out, e-mail) cannot undo or fail the mutation.
"""
import logging
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cashledger.core import config
from cashledger.core.events import LOW_BALANCE, TRANSACTION_STATE_CHANGED
from cashledger.core.exceptions import DependencyError, NotFoundError, NotPendingError, StateConflictError
from cashledger.models.cash_transaction import CashTransaction
from cashledger.models.enums import BalanceMode, TransactionKind, VerificationStatus
from cashledger.services import verification, vouchers
from cashledger.services.directory import is_admin
from cashledger.services.opening_balances import canonical_branch, opening_balance_for
from cashledger.utils.helpers import parse_uuid
from cashledger.utils.validation_functions import validate_submission

logger = logging.getLogger(__name__)


@dataclass
class BalanceLine:
    transaction: CashTransaction
    running_balance: Decimal


@dataclass
class RunningBalance:
    branch: str
    mode: BalanceMode
    opening_balance: Decimal
    as_of: Optional[date] = None
    lines: List[BalanceLine] = field(default_factory=list)
    total_cash_in: Decimal = Decimal("0")
    total_cash_out: Decimal = Decimal("0")

    @property
    def closing_balance(self) -> Decimal:
        return self.opening_balance + self.total_cash_in - self.total_cash_out

    def balance_after(self, transaction_id) -> Optional[Decimal]:
        for line in self.lines:
            if line.transaction.id == transaction_id:
                return line.running_balance
        return None

    def to_dict(self) -> dict:
        return {
            "branch": self.branch,
            "mode": self.mode.value,
            "as_of": self.as_of.isoformat() if self.as_of else None,
            "opening_balance": float(self.opening_balance),
            "total_cash_in": float(self.total_cash_in),
            "total_cash_out": float(self.total_cash_out),
            "closing_balance": float(self.closing_balance),
            "transaction_count": len(self.lines),
            "entries": [
                {
                    "id": str(line.transaction.id),
                    "voucher_no": line.transaction.voucher_no,
                    "transaction_date": line.transaction.transaction_date.isoformat(),
                    "verification_status": line.transaction.verification_status.value,
                    "cash_in": float(line.transaction.cash_in or 0),
                    "cash_out": float(line.transaction.cash_out or 0),
                    "running_balance": float(line.running_balance),
                }
                for line in self.lines
            ],
        }


def _sort_key(tx: CashTransaction):
    # same-day entries fall back to insertion time, then id for full determinism
    return (tx.transaction_date, tx.created_at or datetime.min, str(tx.id))


def fold_running_balance(branch: str, opening_balance, transactions, mode: BalanceMode = BalanceMode.confirmed,
                         as_of: date = None) -> RunningBalance:
    """
    Fold ``transactions`` onto ``opening_balance`` in (date, created_at)
    order. The input order does not matter; rejected rows are always
    skipped and pending rows only count in provisional mode.
    """
    included = verification.included_statuses(mode)
    result = RunningBalance(branch=branch, mode=mode, opening_balance=Decimal(opening_balance or 0), as_of=as_of)

    running = result.opening_balance
    for tx in sorted(transactions, key=_sort_key):
        if tx.verification_status not in included:
            continue
        if as_of is not None and tx.transaction_date > as_of:
            continue
        cash_in = Decimal(tx.cash_in or 0)
        cash_out = Decimal(tx.cash_out or 0)
        running = running + cash_in - cash_out
        result.total_cash_in += cash_in
        result.total_cash_out += cash_out
        result.lines.append(BalanceLine(tx, running))
    return result


def compute_running_balance(db: Session, branch: str, as_of: date = None,
                            mode: BalanceMode = BalanceMode.confirmed) -> RunningBalance:
    """Running balance of a branch from its opening balance and transaction history."""
    statuses = verification.included_statuses(mode)
    query = db.query(CashTransaction).filter(
        func.lower(CashTransaction.branch) == branch.strip().lower(),
        CashTransaction.verification_status.in_(list(statuses)),
    )
    if as_of is not None:
        query = query.filter(CashTransaction.transaction_date <= as_of)
    return fold_running_balance(branch, opening_balance_for(db, branch), query.all(), mode, as_of)


def list_transactions(db: Session, branch: str = None, statuses=None, start_date: date = None,
                      end_date: date = None) -> list:
    query = db.query(CashTransaction)
    if branch:
        query = query.filter(func.lower(CashTransaction.branch) == branch.strip().lower())
    if statuses:
        query = query.filter(CashTransaction.verification_status.in_(list(statuses)))
    if start_date:
        query = query.filter(CashTransaction.transaction_date >= start_date)
    if end_date:
        query = query.filter(CashTransaction.transaction_date <= end_date)
    return query.order_by(CashTransaction.transaction_date.desc(), CashTransaction.created_at.desc()).all()


def get_transaction(db: Session, transaction_id) -> CashTransaction:
    tx = db.get(CashTransaction, parse_uuid(transaction_id, "id"))
    if tx is None:
        raise NotFoundError("Transaction not found")
    return tx


def should_auto_approve(db: Session, staff_id, amount: Decimal) -> bool:
    """Admins post straight to the cashbook; optionally so do small amounts."""
    if is_admin(db, staff_id):
        return True
    limit = Decimal(str(config.AUTO_APPROVE_LIMIT))
    return limit > 0 and amount <= limit


class CashLedger:
    """Submit / approve / reject operations on cash transactions."""

    def __init__(self, event_bus=None):
        self.event_bus = event_bus

    def submit(self, db: Session, body: dict, today: date = None) -> CashTransaction:
        data = validate_submission(body)
        data["branch"] = canonical_branch(db, data["branch"])
        kind = TransactionKind.cash_in if data["cash_in"] > 0 else TransactionKind.cash_out
        amount = data["cash_in"] or data["cash_out"]
        auto_approve = should_auto_approve(db, data["staff_id"], amount)

        def persist(voucher_no, year, claim=True):
            if claim:
                vouchers.claim_voucher(db, data["branch"], kind, voucher_no, year)
            tx = CashTransaction(
                voucher_no=voucher_no,
                voucher_year=year,
                **data,
                **verification.creation_fields(auto_approve, data["staff_id"]),
            )
            db.add(tx)
            db.flush()
            if auto_approve:
                tx.balance = compute_running_balance(db, tx.branch).balance_after(tx.id)
            db.commit()
            return tx

        requested = body.get("voucher_no")
        if requested:
            reservation = vouchers.find_reservation(db, data["branch"], kind, requested)
            try:
                tx = persist(reservation.voucher_no, reservation.voucher_year, claim=False)
            except IntegrityError:
                db.rollback()
                raise StateConflictError(f"Voucher {requested} is already used")
            except SQLAlchemyError as e:
                db.rollback()
                raise DependencyError("Failed to record transaction") from e
        else:
            tx = vouchers.issue_voucher(db, data["branch"], kind, persist, today=today)

        logger.info("Recorded %s %s for %s (%s)", tx.voucher_no, tx.kind_label, tx.branch, tx.verification_status.value)
        self._publish(tx)
        if auto_approve:
            self._check_low_balance(db, tx)
        return tx

    def approve(self, db: Session, transaction_id, verifier_id, notes=None) -> CashTransaction:
        return self._verify(db, transaction_id, verifier_id, notes, verification.approve)

    def reject(self, db: Session, transaction_id, verifier_id, notes=None) -> CashTransaction:
        return self._verify(db, transaction_id, verifier_id, notes, verification.reject)

    def _verify(self, db: Session, transaction_id, verifier_id, notes, transition) -> CashTransaction:
        tx = get_transaction(db, transaction_id)
        verifier_id = parse_uuid(verifier_id, "verifier_id")
        changes = transition(tx.verification_status, verifier_id, notes)

        try:
            # conditional on still being pending, so two verifiers cannot both win
            updated = db.query(CashTransaction).filter(
                CashTransaction.id == tx.id,
                CashTransaction.verification_status == VerificationStatus.pending,
            ).update(changes, synchronize_session=False)
            if not updated:
                db.rollback()
                raise NotPendingError("Transaction is not pending")

            db.expire(tx)
            if tx.verification_status in verification.CONFIRMED_STATUSES:
                tx.balance = compute_running_balance(db, tx.branch).balance_after(tx.id)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Failed to %s transaction %s (%s): %s", changes["verification_status"].value, tx.id, tx.branch, e)
            raise DependencyError(str(e)) from e

        logger.info("Transaction %s %s by %s", tx.voucher_no, tx.verification_status.value, verifier_id)
        self._publish(tx)
        if tx.verification_status in verification.CONFIRMED_STATUSES:
            self._check_low_balance(db, tx)
        return tx

    def _publish(self, tx: CashTransaction):
        if self.event_bus is None:
            return
        self.event_bus.publish(TRANSACTION_STATE_CHANGED, {
            "scenario": verification.SCENARIO_FOR_STATUS[tx.verification_status],
            "transaction_id": tx.id,
            "branch": tx.branch,
        })

    def _check_low_balance(self, db: Session, tx: CashTransaction):
        """Announce when this confirmation took the branch below the alert threshold."""
        if self.event_bus is None:
            return
        threshold = Decimal(str(config.LOW_BALANCE_THRESHOLD))
        closing = compute_running_balance(db, tx.branch).closing_balance
        previous = closing - Decimal(tx.cash_in or 0) + Decimal(tx.cash_out or 0)
        if closing < threshold <= previous:
            logger.warning("Cash balance for %s dropped to %s", tx.branch, closing)
            self.event_bus.publish(LOW_BALANCE, {"branch": tx.branch, "balance": closing})
