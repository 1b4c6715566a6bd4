import logging
from decimal import Decimal

import pytest
from sqlalchemy.exc import OperationalError

from cashledger.core.exceptions import DependencyError, NotFoundError, ValidationError
from cashledger.models.directory import Staff
from cashledger.models.enums import Scenario
from cashledger.models.notification import Notification
from cashledger.services import notifications
from cashledger.services.ledger import CashLedger
from cashledger.services.notifications import NotificationFanout


@pytest.fixture
def pending_tx(db, kochi, make_payload):
    return CashLedger().submit(db, make_payload(cash_out=None, cash_in=1500,
                                                attachment_urls=["https://cdn.example.com/bill.jpg"]))


def rows_for(db, tx):
    return db.query(Notification).filter(Notification.reference_id == tx.id).all()


class TestRecipients:
    def test_pending_goes_to_active_accountants_and_admins(self, db, pending_tx, accountant, admin, staff_member):
        db.add(Staff(name="Former Accountant", role="accountant", branch="Kochi", is_active=False))
        db.add(Staff(name="Second Accountant", role="ACCOUNTANT", branch="Thrissur", is_active=True))
        db.commit()

        recipients = notifications.resolve_recipients(db, Scenario.pending, pending_tx)
        roles = {r.role for r in recipients}
        assert len(recipients) == 3
        assert roles == {"accountant", "admin"}
        assert staff_member.id not in {r.user_id for r in recipients}

    def test_auto_approved_goes_to_admins(self, db, pending_tx, accountant, admin, second_admin):
        recipients = notifications.resolve_recipients(db, Scenario.auto_approved, pending_tx)
        assert {r.user_id for r in recipients} == {admin.id, second_admin.id}

    @pytest.mark.parametrize("scenario", [Scenario.approved, Scenario.rejected])
    def test_outcomes_go_to_submitter_and_admins(self, db, pending_tx, accountant, admin, staff_member, scenario):
        recipients = notifications.resolve_recipients(db, scenario, pending_tx)
        assert [r.user_id for r in recipients] == [staff_member.id, admin.id]
        assert recipients[0].role == "submitter"

    def test_admin_submitter_is_notified_once(self, db, kochi, make_payload, admin):
        tx = CashLedger().submit(db, make_payload(staff_id=str(admin.id)))
        recipients = notifications.resolve_recipients(db, Scenario.approved, tx)
        assert [r.user_id for r in recipients] == [admin.id]


class TestFanout:
    def test_pending_rows_and_email(self, db, fanout, pending_tx, accountant, admin, mailer):
        result = fanout.notify(db, Scenario.pending, pending_tx)
        assert result.success and result.count == 2

        rows = rows_for(db, pending_tx)
        assert {r.user_id for r in rows} == {accountant.id, admin.id}
        for row in rows:
            assert row.type == "cashbook_entry"
            assert row.reference_table == "cash_transactions"
            assert row.is_viewed is False
            assert row.message == "Ravi Kumar submitted income of 1,500 for Kochi • proof attached."
            assert row.meta["requires_approval"] is True

        assert len(mailer.sent) == 1
        assert set(mailer.sent[0]["to"]) == {accountant.email, admin.email}
        assert mailer.sent[0]["subject"].endswith("proof attached")

    def test_approved_types_per_recipient(self, db, fanout, pending_tx, admin, staff_member, mailer):
        fanout.notify(db, Scenario.approved, pending_tx)
        by_user = {r.user_id: r for r in rows_for(db, pending_tx)}
        assert by_user[staff_member.id].type == "cashbook_transaction_approved"
        assert by_user[admin.id].type == "cashbook_entry"
        assert set(mailer.sent[0]["to"]) == {staff_member.email, admin.email}

    def test_rejected_mails_submitter_only(self, db, fanout, pending_tx, admin, staff_member, mailer):
        fanout.notify(db, Scenario.rejected, pending_tx)
        assert {r.type for r in rows_for(db, pending_tx)} == {"cashbook_transaction_rejected"}
        assert [m["to"] for m in mailer.sent] == [[staff_member.email]]

    def test_auto_approved_sends_no_email(self, db, fanout, pending_tx, admin, mailer):
        result = fanout.notify(db, Scenario.auto_approved, pending_tx)
        assert result.count == 1
        assert rows_for(db, pending_tx)[0].title == "New cashbook entry"
        assert mailer.sent == []

    def test_no_recipients_is_reported_not_raised(self, db, fanout, pending_tx, mailer):
        result = fanout.notify(db, Scenario.auto_approved, pending_tx)
        assert result.success is False
        assert result.count == 0
        assert result.message == "No recipients found for autoApproved notification"
        assert rows_for(db, pending_tx) == []
        assert mailer.sent == []

    def test_email_failure_keeps_notifications(self, db, fanout, pending_tx, accountant, mailer, caplog):
        mailer.fail = True
        with caplog.at_level(logging.ERROR, logger="cashledger"):
            result = fanout.notify(db, Scenario.pending, pending_tx)
        assert result.success and result.count == 1
        assert len(rows_for(db, pending_tx)) == 1
        assert "Failed to send pending email" in caplog.text

    def test_recipient_lookup_failure_is_a_dependency_error(self, db, fanout, pending_tx, monkeypatch):
        def broken(*args):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(notifications, "resolve_recipients", broken)
        with pytest.raises(DependencyError):
            fanout.notify(db, Scenario.pending, pending_tx)

    def test_event_handler_logs_unnotified_transactions(self, fanout, pending_tx, monkeypatch, caplog):
        def broken(*args):
            raise OperationalError("SELECT", {}, Exception("database is locked"))

        monkeypatch.setattr(notifications, "resolve_recipients", broken)
        with caplog.at_level(logging.ERROR, logger="cashledger"):
            result = fanout.handle_state_change({"scenario": "pending", "transaction_id": pending_tx.id})
        assert result.success is False
        assert "recorded but unnotified" in caplog.text

    def test_submission_with_nobody_to_notify_still_succeeds(self, db, ledger, kochi, make_payload):
        # no accountants or admins exist yet
        tx = ledger.submit(db, make_payload(branch="Thrissur", cash_out=75))
        assert tx.voucher_no == "CO001"
        assert rows_for(db, tx) == []


class TestNotifyTransaction:
    def test_explicit_resend(self, db, fanout, pending_tx, admin):
        result = notifications.notify_transaction(db, fanout, "pending", {"id": str(pending_tx.id)})
        assert result.count == 1

    def test_unknown_scenario(self, db, fanout, pending_tx):
        with pytest.raises(ValidationError):
            notifications.notify_transaction(db, fanout, "archived", {"id": str(pending_tx.id)})

    def test_missing_transaction_payload(self, db, fanout):
        with pytest.raises(ValidationError):
            notifications.notify_transaction(db, fanout, "pending", None)

    def test_unknown_transaction(self, db, fanout):
        with pytest.raises(NotFoundError):
            notifications.notify_transaction(db, fanout, "pending", {"id": "1b4e28ba-2fa1-11d2-883f-0016d3cca427"})


class TestLowBalanceAlert:
    def test_defaults_to_admin_emails(self, db, admin, second_admin, mailer):
        details = notifications.send_low_balance_alert(db, "Kochi", Decimal("320.5"), mailer=mailer)
        assert details["recipients"] == 2
        assert set(mailer.sent[0]["to"]) == {admin.email, second_admin.email}
        assert "320.50" in mailer.sent[0]["html"]

    def test_explicit_addresses_win(self, db, admin, mailer):
        notifications.send_low_balance_alert(db, "Kochi", 100, admin_emails=["ops@example.com"], mailer=mailer)
        assert mailer.sent[0]["to"] == ["ops@example.com"]

    def test_no_admins(self, db, mailer):
        with pytest.raises(ValidationError):
            notifications.send_low_balance_alert(db, "Kochi", 100, mailer=mailer)


class TestInbox:
    def test_list_and_mark_viewed(self, db, fanout, pending_tx, admin):
        fanout.notify(db, Scenario.pending, pending_tx)
        inbox = notifications.list_notifications(db, str(admin.id))
        assert len(inbox) == 1

        viewed = notifications.mark_viewed(db, str(inbox[0].id))
        assert viewed.is_viewed is True
        assert viewed.viewed_at is not None
        assert notifications.list_notifications(db, admin.id, unread_only=True) == []

    def test_mark_unknown(self, db):
        with pytest.raises(NotFoundError):
            notifications.mark_viewed(db, "1b4e28ba-2fa1-11d2-883f-0016d3cca427")


def test_fanout_defaults_to_mail_api(session_factory):
    assert NotificationFanout(session_factory).mailer is notifications.send_email
