"""
Voucher number allocation.

Voucher numbers look like ``CI001`` / ``CO042``: a two letter prefix for
the kind of movement and a zero padded sequence that restarts every
calendar year per branch. There is no sequence primitive in the store, so
a number is derived from the highest one already used and then claimed
with a conditional insert into ``voucher_reservations``. Both the
stand-alone allocation and a submission claim their number there, so its
unique constraint decides who wins a race and the loser retries with a
fresh read. Branch names are compared case-insensitively.
"""
import logging
import re
from datetime import date

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from cashledger.core import config
from cashledger.core.exceptions import DependencyError, StateConflictError, ValidationError, VoucherAllocationError
from cashledger.models.cash_transaction import CashTransaction
from cashledger.models.enums import TransactionKind, VOUCHER_PREFIXES
from cashledger.models.voucher import VoucherReservation, branch_key

logger = logging.getLogger(__name__)

_NUMERIC_SUFFIX = re.compile(r"(\d+)$")


def extract_numeric_suffix(value) -> int:
    if not value:
        return 0
    match = _NUMERIC_SUFFIX.search(value)
    return int(match.group(1)) if match else 0


def format_voucher(prefix: str, number: int, width: int = None) -> str:
    # format widths are minimums, so 1000 renders as CO1000 rather than wrapping
    width = config.VOUCHER_PAD_WIDTH if width is None else width
    return f"{prefix}{number:0{width}d}"


def used_voucher_numbers(db: Session, branch: str, prefix: str, year: int) -> list:
    """Every voucher number issued or reserved for branch/year starting with prefix."""
    issued = db.query(CashTransaction.voucher_no).filter(
        func.lower(CashTransaction.branch) == branch_key(branch),
        CashTransaction.voucher_year == year,
        CashTransaction.voucher_no.like(f"{prefix}%"),
    )
    reserved = db.query(VoucherReservation.voucher_no).filter(
        VoucherReservation.branch_key == branch_key(branch),
        VoucherReservation.voucher_year == year,
        VoucherReservation.voucher_no.like(f"{prefix}%"),
    )
    return [row[0] for row in issued.all()] + [row[0] for row in reserved.all()]


def next_voucher_candidate(db: Session, branch: str, kind: TransactionKind, year: int) -> str:
    prefix = VOUCHER_PREFIXES[kind]
    highest = max((extract_numeric_suffix(v) for v in used_voucher_numbers(db, branch, prefix, year)), default=0)
    return format_voucher(prefix, highest + 1)


def voucher_exists(db: Session, branch: str, voucher_no: str, year: int) -> bool:
    issued = db.query(CashTransaction.id).filter(
        func.lower(CashTransaction.branch) == branch_key(branch),
        CashTransaction.voucher_year == year,
        CashTransaction.voucher_no == voucher_no,
    ).first()
    if issued is not None:
        return True
    reserved = db.query(VoucherReservation.id).filter(
        VoucherReservation.branch_key == branch_key(branch),
        VoucherReservation.voucher_year == year,
        VoucherReservation.voucher_no == voucher_no,
    ).first()
    return reserved is not None


def issue_voucher(db: Session, branch: str, kind: TransactionKind, persist, today: date = None, max_attempts: int = None):
    """
    Run the allocate-and-check cycle, handing each free candidate to
    ``persist(voucher_no, year)``. ``persist`` must add its rows and commit;
    an IntegrityError raised from it means another writer claimed the same
    number first, so the session is rolled back and the cycle repeats.
    Returns whatever ``persist`` returns.
    """
    year = (today or date.today()).year
    max_attempts = config.VOUCHER_MAX_ATTEMPTS if max_attempts is None else max_attempts

    for attempt in range(1, max_attempts + 1):
        try:
            candidate = next_voucher_candidate(db, branch, kind, year)
            if voucher_exists(db, branch, candidate, year):
                logger.warning("Voucher %s already taken for %s (attempt %d/%d)", candidate, branch, attempt, max_attempts)
                continue
            return persist(candidate, year)
        except IntegrityError:
            db.rollback()
            logger.warning("Lost voucher race on %s for %s (attempt %d/%d)", kind.value, branch, attempt, max_attempts)
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("Voucher allocation failed for %s: %s", branch, e)
            raise DependencyError("Failed to generate voucher number") from e

    logger.error("Voucher allocation exhausted for %s/%s after %d attempts", branch, kind.value, max_attempts)
    raise VoucherAllocationError()


def claim_voucher(db: Session, branch: str, kind: TransactionKind, voucher_no: str, year: int) -> VoucherReservation:
    """Add the reservation row for a number; the caller commits it with its own rows."""
    reservation = VoucherReservation(branch=branch, voucher_year=year, kind=kind, voucher_no=voucher_no)
    db.add(reservation)
    return reservation


def allocate_voucher(db: Session, branch: str, kind: TransactionKind, today: date = None) -> str:
    """Reserve and return the next voucher number for branch and kind."""

    def reserve(voucher_no, year):
        claim_voucher(db, branch, kind, voucher_no, year)
        db.commit()
        return voucher_no

    voucher_no = issue_voucher(db, branch, kind, reserve, today=today)
    logger.info("Reserved voucher %s for %s", voucher_no, branch)
    return voucher_no


def find_reservation(db: Session, branch: str, kind: TransactionKind, voucher_no: str) -> VoucherReservation:
    """Look up a voucher handed out earlier by allocate_voucher so a submission can use it."""
    if not voucher_no.startswith(VOUCHER_PREFIXES[kind]):
        raise ValidationError(f"Voucher {voucher_no} does not match a {kind.value} transaction")

    reservation = db.query(VoucherReservation).filter(
        VoucherReservation.branch_key == branch_key(branch),
        VoucherReservation.voucher_no == voucher_no,
    ).order_by(VoucherReservation.voucher_year.desc()).first()
    if reservation is None:
        raise ValidationError(f"Voucher {voucher_no} was not issued for {branch}")

    used = db.query(CashTransaction.id).filter(
        func.lower(CashTransaction.branch) == branch_key(branch),
        CashTransaction.voucher_year == reservation.voucher_year,
        CashTransaction.voucher_no == voucher_no,
    ).first()
    if used is not None:
        raise StateConflictError(f"Voucher {voucher_no} is already used")
    return reservation
