"""
Notification fan-out.

Turns one ledger state change into one notification row per recipient
(inserted in a single bulk operation) plus, for some scenarios, an e-mail.
Notifications and the ledger are the source of truth; e-mail is best
effort and its failures are only logged.
"""
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from cashledger.core.events import LOW_BALANCE, TRANSACTION_STATE_CHANGED
from cashledger.core.exceptions import DependencyError, LedgerError, NotFoundError, ValidationError
from cashledger.models.cash_transaction import CashTransaction
from cashledger.models.enums import NotificationType, Scenario
from cashledger.models.notification import Notification
from cashledger.services.directory import active_accountants, all_admins, resolve_submitter
from cashledger.utils import email_templates
from cashledger.utils.helpers import format_amount, parse_uuid
from cashledger.utils.mailer import send_email
from cashledger.utils.validation_functions import validate_scenario

logger = logging.getLogger(__name__)

REFERENCE_TABLE = "cash_transactions"

SUBMITTER = "submitter"
ADMIN = "admin"
ACCOUNTANT = "accountant"


@dataclass
class FanoutResult:
    success: bool
    count: int = 0
    message: Optional[str] = None

    def to_dict(self) -> dict:
        return {"success": self.success, "count": self.count, "message": self.message}


@dataclass
class Recipient:
    user_id: object
    role: str
    email: Optional[str] = None


def _dedupe(recipients):
    seen = set()
    unique = []
    for recipient in recipients:
        if recipient.user_id is None or recipient.user_id in seen:
            continue
        seen.add(recipient.user_id)
        unique.append(recipient)
    return unique


def resolve_recipients(db: Session, scenario: Scenario, tx: CashTransaction) -> list:
    """
    pending: active accountants and admins; autoApproved: admins;
    approved / rejected: the submitter and admins.
    """
    admins = [Recipient(admin.id, ADMIN, admin.email) for admin in all_admins(db)]

    if scenario is Scenario.pending:
        accountants = [Recipient(staff.id, ACCOUNTANT, staff.email) for staff in active_accountants(db)]
        return _dedupe(accountants + admins)
    if scenario is Scenario.auto_approved:
        return _dedupe(admins)

    submitter = resolve_submitter(db, tx.staff_id)
    return _dedupe([Recipient(tx.staff_id, SUBMITTER, submitter.email if submitter else None)] + admins)


def _proof_suffix(tx, text=" • proof attached"):
    return text if tx.has_proof else ""


def build_notification(scenario: Scenario, tx: CashTransaction, recipient: Recipient, staff_name: str) -> Notification:
    amount = format_amount(tx.amount)
    kind = tx.kind_label
    metadata = {
        "branch": tx.branch,
        "amount": float(tx.amount),
        "transaction_type": kind,
        "voucher_no": tx.voucher_no,
    }

    if scenario is Scenario.pending:
        notification_type = NotificationType.cashbook_entry
        title = "Cash transaction pending approval"
        message = f"{staff_name} submitted {kind.lower()} of {amount} for {tx.branch}{_proof_suffix(tx)}."
        metadata.update(requested_by=staff_name, has_proof=tx.has_proof, requires_approval=True)
    elif scenario is Scenario.auto_approved:
        notification_type = NotificationType.cashbook_entry
        title = "New cashbook entry"
        message = (
            f"New {kind} from {staff_name}: {tx.nature_of_expense or 'Cash entry'} "
            f"({amount}){_proof_suffix(tx)}."
        )
        metadata.update(requested_by=staff_name, has_proof=tx.has_proof, requires_approval=False,
                        nature_of_expense=tx.nature_of_expense)
    elif scenario is Scenario.approved and recipient.role == SUBMITTER:
        notification_type = NotificationType.transaction_approved
        title = "Cash transaction approved"
        message = f"Your {kind} ({amount}) for {tx.branch} has been approved."
        metadata.update(verification_notes=tx.verification_notes)
    elif scenario is Scenario.approved:
        notification_type = NotificationType.cashbook_entry
        title = "Cashbook entry approved"
        message = (
            f"{tx.primary_list or 'Cash entry'} ({amount}) has been approved for {tx.branch}."
            f"{_proof_suffix(tx, ' Proof reviewed.')}"
        )
        metadata.update(has_proof=tx.has_proof)
    elif recipient.role == SUBMITTER:
        notification_type = NotificationType.transaction_rejected
        title = "Cash transaction rejected"
        message = f"Your {kind} ({amount}) for {tx.branch} was rejected."
        metadata.update(verification_notes=tx.verification_notes)
    else:
        notification_type = NotificationType.transaction_rejected
        title = "Cash transaction rejected"
        message = (
            f"{tx.primary_list or 'Cash entry'} ({amount}) for {tx.branch} was rejected."
            f"{_proof_suffix(tx, ' Proof available for review.')}"
        )
        metadata.update(has_proof=tx.has_proof)

    return Notification(
        user_id=recipient.user_id,
        type=notification_type.value,
        title=title,
        message=message,
        reference_id=tx.id,
        reference_table=REFERENCE_TABLE,
        is_viewed=False,
        meta=metadata,
    )


class NotificationFanout:
    """
    Subscribes to ledger events and fans each one out to its recipients.

    ``session_factory`` opens the fan-out's own database sessions so a
    failure here never touches the session that committed the ledger
    change. ``mailer`` defaults to the mail API client.
    """

    def __init__(self, session_factory, mailer=None):
        self.session_factory = session_factory
        self.mailer = mailer or send_email

    def subscribe(self, event_bus):
        event_bus.subscribe(TRANSACTION_STATE_CHANGED, self.handle_state_change)
        event_bus.subscribe(LOW_BALANCE, self.handle_low_balance)

    def handle_state_change(self, event: dict) -> FanoutResult:
        scenario = Scenario(event["scenario"])
        with self.session_factory() as db:
            tx = db.get(CashTransaction, event["transaction_id"])
            if tx is None:
                logger.warning("[cashbook:notifications] Transaction %s vanished before fan-out", event["transaction_id"])
                return FanoutResult(False, 0, "Transaction not found")
            try:
                return self.notify(db, scenario, tx)
            except DependencyError as e:
                logger.error(
                    "[cashbook:notifications] Transaction %s (%s) recorded but unnotified: %s",
                    tx.id, tx.branch, e.message,
                )
                return FanoutResult(False, 0, e.message)

    def handle_low_balance(self, event: dict):
        with self.session_factory() as db:
            try:
                return send_low_balance_alert(db, event["branch"], event["balance"], mailer=self.mailer)
            except LedgerError as e:
                logger.error("[cashbook:low-balance] Alert for %s not sent: %s", event["branch"], e.message)
                return None

    def notify(self, db: Session, scenario: Scenario, tx: CashTransaction) -> FanoutResult:
        submitter = resolve_submitter(db, tx.staff_id)
        staff_name = submitter.name if submitter else "Staff Member"

        try:
            recipients = resolve_recipients(db, scenario, tx)
        except SQLAlchemyError as e:
            logger.error("[cashbook:notifications] Failed to fetch recipients for %s: %s", tx.id, e)
            raise DependencyError("Failed to fetch notification recipients") from e

        if not recipients:
            logger.warning(
                "[cashbook:notifications] No recipients found for %s notification (transaction %s, branch %s)",
                scenario.value, tx.id, tx.branch,
            )
            return FanoutResult(False, 0, f"No recipients found for {scenario.value} notification")

        rows = [build_notification(scenario, tx, recipient, staff_name) for recipient in recipients]
        try:
            db.add_all(rows)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            logger.error("[cashbook:notifications] Failed to insert %s notifications for %s: %s", scenario.value, tx.id, e)
            raise DependencyError("Failed to insert notifications") from e

        logger.info("[cashbook:notifications] %d %s notification(s) for %s", len(rows), scenario.value, tx.voucher_no)
        self._send_email(scenario, tx, recipients, submitter, staff_name)
        return FanoutResult(True, len(rows))

    def _send_email(self, scenario, tx, recipients, submitter, staff_name):
        if scenario is Scenario.pending:
            to = [r.email for r in recipients if r.email]
            subject, html = email_templates.pending_email(tx, staff_name)
        elif scenario is Scenario.approved:
            to = [r.email for r in recipients if r.email]
            subject, html = email_templates.approved_email(tx, staff_name)
        elif scenario is Scenario.rejected:
            to = [submitter.email] if submitter is not None and submitter.email else []
            if not to:
                logger.warning("[cashbook:reject] No staff email available for rejection notice of %s", tx.id)
                return
            subject, html = email_templates.rejected_email(tx)
        else:
            return

        to = list(dict.fromkeys(to))
        if not to:
            logger.warning("[cashbook:email] No email addresses for %s transaction %s", scenario.value, tx.id)
            return
        try:
            self.mailer(to, subject, html)
        except Exception:
            logger.error("[cashbook:email] Failed to send %s email for %s", scenario.value, tx.id, exc_info=True)


def notify_transaction(db: Session, fanout: NotificationFanout, scenario_value, transaction: dict) -> FanoutResult:
    """Run the fan-out for an explicitly requested scenario, e.g. a re-send."""
    scenario = validate_scenario(scenario_value)
    if not isinstance(transaction, dict) or not transaction.get("id"):
        raise ValidationError("Missing scenario or transaction payload")
    tx = db.get(CashTransaction, parse_uuid(transaction["id"], "transaction.id"))
    if tx is None:
        raise NotFoundError("Transaction not found")
    return fanout.notify(db, scenario, tx)


def send_low_balance_alert(db: Session, branch: str, balance, admin_emails=None, mailer=None) -> dict:
    """E-mail every admin (or the given addresses) that a branch is running low on cash."""
    emails = [email for email in (admin_emails or []) if email]
    if not emails:
        try:
            emails = [admin.email for admin in all_admins(db) if admin.email]
        except SQLAlchemyError as e:
            logger.error("Error fetching admin emails: %s", e)
            raise DependencyError("Failed to fetch admin emails") from e
    if not emails:
        logger.warning("[send-low-balance-alert] No admin emails found for %s (balance %s)", branch, balance)
        raise ValidationError("No admin emails found")

    subject, html = email_templates.low_balance_email(branch, balance)
    (mailer or send_email)(emails, subject, html)
    return {"branch": branch, "balance": float(balance), "recipients": len(emails), "sent_at": datetime.utcnow().isoformat()}


def list_notifications(db: Session, user_id, unread_only: bool = False) -> list:
    query = db.query(Notification).filter(Notification.user_id == parse_uuid(user_id, "user_id"))
    if unread_only:
        query = query.filter(Notification.is_viewed.is_(False))
    return query.order_by(Notification.created_at.desc()).all()


def mark_viewed(db: Session, notification_id) -> Notification:
    notification = db.get(Notification, parse_uuid(notification_id, "id"))
    if notification is None:
        raise NotFoundError("Notification not found")
    if not notification.is_viewed:
        notification.is_viewed = True
        notification.viewed_at = datetime.utcnow()
        db.commit()
    return notification
