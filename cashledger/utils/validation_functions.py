# cashledger/utils/validation_functions.py
from decimal import Decimal

from cashledger.core.exceptions import ValidationError
from cashledger.models.enums import BillStatus, TransactionKind, BalanceMode, Scenario
from cashledger.utils.helpers import parse_date, parse_uuid, to_decimal


def validate_branch(branch) -> str:
    if not isinstance(branch, str) or not branch.strip():
        raise ValidationError("branch is required")
    return branch.strip()


def validate_kind(value) -> TransactionKind:
    """Accepts cash_in/cash_out as well as the inflow/outflow aliases."""
    aliases = {"inflow": "cash_in", "outflow": "cash_out"}
    if not value:
        raise ValidationError("Missing branch or type")
    try:
        return TransactionKind(aliases.get(value, value))
    except ValueError:
        raise ValidationError("Type must be cash_out or cash_in")


def validate_bill_status(value) -> BillStatus:
    if value is None:
        return BillStatus.paid
    try:
        return BillStatus(value)
    except ValueError:
        allowed = ", ".join(status.value for status in BillStatus)
        raise ValidationError(f"bill_status must be one of: {allowed}")


def validate_balance_mode(value) -> BalanceMode:
    try:
        return BalanceMode(value or BalanceMode.confirmed.value)
    except ValueError:
        raise ValidationError("mode must be confirmed or provisional")


def validate_scenario(value) -> Scenario:
    if not value:
        raise ValidationError("Missing scenario or transaction payload")
    try:
        return Scenario(value)
    except ValueError:
        raise ValidationError("Unsupported scenario")


def validate_amounts(cash_in, cash_out):
    """
    Exactly one of cash_in / cash_out must be positive and neither may be
    negative. Returns the pair as Decimals.
    """
    if cash_in in (None, "") and cash_out in (None, ""):
        raise ValidationError("cash_in or cash_out is required")

    cash_in = to_decimal(cash_in, "cash_in")
    cash_out = to_decimal(cash_out, "cash_out")

    if cash_in < 0 or cash_out < 0:
        raise ValidationError("Amounts cannot be negative")
    if cash_in > 0 and cash_out > 0:
        raise ValidationError("A transaction cannot have both cash_in and cash_out")
    if cash_in == 0 and cash_out == 0:
        raise ValidationError("Either cash_in or cash_out must be greater than zero")
    return cash_in, cash_out


def validate_submission(body: dict) -> dict:
    """Normalise a submit payload, raising ValidationError on the first problem."""
    if not isinstance(body, dict):
        raise ValidationError("Invalid transaction payload")

    branch = validate_branch(body.get("branch"))
    if not body.get("staff_id"):
        raise ValidationError("staff_id is required")
    staff_id = parse_uuid(body.get("staff_id"), "staff_id")
    transaction_date = parse_date(body.get("transaction_date"), "transaction_date")
    cash_in, cash_out = validate_amounts(body.get("cash_in"), body.get("cash_out"))

    attachment_urls = body.get("attachment_urls") or []
    if not isinstance(attachment_urls, list) or not all(isinstance(url, str) for url in attachment_urls):
        raise ValidationError("attachment_urls must be a list of strings")
    if body.get("receipt_image_url") and body["receipt_image_url"] not in attachment_urls:
        attachment_urls = [body["receipt_image_url"], *attachment_urls]

    return {
        "branch": branch,
        "staff_id": staff_id,
        "transaction_date": transaction_date,
        "cash_in": cash_in,
        "cash_out": cash_out,
        "bill_status": validate_bill_status(body.get("bill_status")),
        "primary_list": body.get("primary_list"),
        "nature_of_expense": body.get("nature_of_expense"),
        "notes": body.get("notes"),
        "attachment_urls": attachment_urls,
    }


def validate_history_entry(body: dict) -> dict:
    if not isinstance(body, dict):
        raise ValidationError("branch, amount, and date are required")
    amount = body.get("amount")
    if not body.get("branch") or not body.get("date") or isinstance(amount, bool) \
            or not isinstance(amount, (int, float, Decimal)):
        raise ValidationError("branch, amount, and date are required")
    return {
        "branch": validate_branch(body["branch"]),
        "amount": to_decimal(amount, "amount"),
        "date": parse_date(body["date"], "date"),
        "note": body.get("note"),
        "added_by": body.get("added_by"),
    }
