# cashledger/services/verification.py
from datetime import datetime

from cashledger.core.exceptions import NotPendingError
from cashledger.models.enums import BalanceMode, Scenario, VerificationStatus

# Only pending transactions can move, and only to a verifier outcome.
# approved, rejected and auto_approved are terminal.
TRANSITIONS = {
    VerificationStatus.pending: {VerificationStatus.approved, VerificationStatus.rejected},
}

CONFIRMED_STATUSES = frozenset({VerificationStatus.approved, VerificationStatus.auto_approved})

SCENARIO_FOR_STATUS = {
    VerificationStatus.pending: Scenario.pending,
    VerificationStatus.auto_approved: Scenario.auto_approved,
    VerificationStatus.approved: Scenario.approved,
    VerificationStatus.rejected: Scenario.rejected,
}


def creation_fields(auto_approve: bool, staff_id, now: datetime = None) -> dict:
    """Verification columns for a freshly submitted transaction."""
    if not auto_approve:
        return {"verification_status": VerificationStatus.pending}
    return {
        "verification_status": VerificationStatus.auto_approved,
        "verified_by": staff_id,
        "verified_at": now or datetime.utcnow(),
    }


def can_transition(current: VerificationStatus, target: VerificationStatus) -> bool:
    return target in TRANSITIONS.get(current, ())


def transition(current: VerificationStatus, target: VerificationStatus, verifier_id, notes=None, now: datetime = None) -> dict:
    """
    Column updates for moving a transaction from ``current`` to ``target``.
    Raises NotPendingError for anything the table does not allow.
    """
    if not can_transition(current, target):
        raise NotPendingError(f"Transaction is not pending (current status: {current.value})")
    now = now or datetime.utcnow()
    return {
        "verification_status": target,
        "verified_by": verifier_id,
        "verified_at": now,
        "verification_notes": notes or None,
        "updated_at": now,
    }


def approve(current: VerificationStatus, verifier_id, notes=None, now: datetime = None) -> dict:
    return transition(current, VerificationStatus.approved, verifier_id, notes, now)


def reject(current: VerificationStatus, verifier_id, notes=None, now: datetime = None) -> dict:
    return transition(current, VerificationStatus.rejected, verifier_id, notes, now)


def included_statuses(mode: BalanceMode) -> frozenset:
    """Statuses folded into a running balance. Rejected rows never are."""
    if mode is BalanceMode.provisional:
        return CONFIRMED_STATUSES | {VerificationStatus.pending}
    return CONFIRMED_STATUSES
