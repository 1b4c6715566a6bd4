# cashledger/utils/email_templates.py
from html import escape

from cashledger.core import config
from cashledger.utils.helpers import format_amount

_FOOTER = '<p style="margin-top: 24px; font-size: 12px; color: #6b7280;">This is an automated alert from the branch cashbook.{extra}</p>'


def _field(label, value):
    return (
        f'<p style="margin: 0; color: #6b7280; font-size: 13px;">{label}</p>'
        f'<p style="margin: 4px 0 12px 0; font-weight: 600; font-size: 15px;">{escape(str(value))}</p>'
    )


def _purpose(tx):
    purpose = tx.primary_list or "-"
    if tx.nature_of_expense:
        purpose = f"{purpose} · {tx.nature_of_expense}"
    return purpose


def _page(heading, intro, fields, extra="", background="#f9fafb", color="#111827"):
    return (
        "<!DOCTYPE html><html><body style=\"font-family: Arial, sans-serif; color: #1f2937;\">"
        f'<div style="max-width: 600px; margin: 0 auto; padding: 24px; background: {background};">'
        f'<h2 style="margin: 0 0 16px 0; color: {color};">{heading}</h2>'
        f'<p style="margin: 0 0 16px 0;">{intro}</p>'
        f'<div style="background: white; border-radius: 12px; padding: 20px;">{fields}</div>'
        f"{_FOOTER.format(extra=extra)}"
        "</div></body></html>"
    )


def pending_email(tx, staff_name):
    signed = tx.cash_in - tx.cash_out
    amount = f"+{format_amount(abs(signed))}" if signed >= 0 else f"-{format_amount(abs(signed))}"
    subject = f"Verification required: {tx.branch} • {tx.primary_list or 'Cash transaction'}"
    if tx.has_proof:
        subject += " • proof attached"
    fields = "".join([
        _field("Branch", tx.branch),
        _field("Transaction Date", tx.transaction_date.strftime("%d/%m/%Y")),
        _field("Voucher", tx.voucher_no or "N/A"),
        _field("Amount", amount),
        _field("Purpose", _purpose(tx)),
    ])
    link = f'<p><a href="{config.APP_URL}/staff/accounting/approvals">Review transaction</a></p>'
    html = _page(
        "Cash Transaction Awaiting Verification",
        f"A new transaction from <strong>{escape(staff_name)}</strong> is pending approval.",
        fields + link,
        extra=" Supporting proof is available in the portal." if tx.has_proof else "",
    )
    return subject, html


def approved_email(tx, staff_name):
    subject = f"Transaction approved • {tx.branch}" + (" • proof attached" if tx.has_proof else "")
    fields = _field("Branch", tx.branch) + _field("Amount", format_amount(tx.amount)) + _field("Purpose", _purpose(tx))
    if tx.verification_notes:
        fields += f'<p style="margin: 0; color: #4b5563; font-size: 13px;">Verifier note: {escape(tx.verification_notes)}</p>'
    html = _page(
        "Cash transaction approved",
        f"The transaction submitted by <strong>{escape(staff_name)}</strong> has been approved and posted to the cashbook.",
        fields,
    )
    return subject, html


def rejected_email(tx):
    subject = f"Transaction rejected • {tx.branch}" + (" • proof attached" if tx.has_proof else "")
    fields = _field("Branch", tx.branch) + _field("Amount", format_amount(tx.amount)) + _field("Purpose", _purpose(tx))
    if tx.verification_notes:
        fields += f'<p style="margin: 0; color: #dc2626; font-size: 13px;">Reason: {escape(tx.verification_notes)}</p>'
    intro = "The transaction you submitted was rejected and will not affect the cashbook."
    if tx.has_proof:
        intro += " Please review the attached proof and notes before resubmitting."
    html = _page("Cash transaction rejected", intro, fields, background="#fef2f2", color="#b91c1c")
    return subject, html


def low_balance_email(branch, balance):
    subject = f"Low cash balance alert • {branch}"
    html = _page(
        "Low cash balance",
        f"The cash balance for <strong>{escape(branch)}</strong> has dropped below the alert threshold.",
        _field("Branch", branch) + _field("Current balance", format_amount(balance))
        + _field("Threshold", format_amount(config.LOW_BALANCE_THRESHOLD)),
        background="#fffbeb",
        color="#b45309",
    )
    return subject, html
