# cashledger/utils/helpers.py
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
import uuid

from cashledger.core.exceptions import ValidationError


def success_response(data=None, message="Operation successful", pagination=None, summary=None):
    response = {"success": True, "data": data, "message": message}
    if pagination is not None:
        response["pagination"] = pagination
    if summary is not None:
        response["summary"] = summary
    return response


def error_response(code, message, details=None):
    return {"success": False, "error": {"code": code, "message": message, "details": details}}


def to_decimal(value, field: str) -> Decimal:
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        amount = Decimal(str(value))
    except (InvalidOperation, ValueError):
        raise ValidationError(f"{field} must be a number")
    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    return amount


def parse_date(value, field: str) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if not value or not isinstance(value, str):
        raise ValidationError(f"{field} is required")
    try:
        return date.fromisoformat(value[:10])
    except ValueError:
        raise ValidationError(f"{field} must be an ISO date (YYYY-MM-DD)")


def parse_uuid(value, field: str) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except (ValueError, TypeError, AttributeError):
        raise ValidationError(f"{field} must be a valid UUID")


def format_amount(amount) -> str:
    """Render an amount the way the cashbook shows it, e.g. 1,500 or 1,500.50"""
    value = Decimal(str(amount or 0))
    if value == value.to_integral_value():
        return f"{int(value):,}"
    return f"{value:,.2f}"


def _iso(value):
    return value.isoformat() if value else None


def _num(value):
    return float(value) if value is not None else None


def serialize_transaction(tx, staff=None) -> dict:
    data = {
        "id": str(tx.id),
        "voucher_no": tx.voucher_no,
        "branch": tx.branch,
        "staff_id": str(tx.staff_id),
        "transaction_date": _iso(tx.transaction_date),
        "bill_status": tx.bill_status.value if tx.bill_status else None,
        "primary_list": tx.primary_list,
        "nature_of_expense": tx.nature_of_expense,
        "cash_in": _num(tx.cash_in),
        "cash_out": _num(tx.cash_out),
        "balance": _num(tx.balance),
        "attachment_urls": list(tx.attachment_urls or []),
        "notes": tx.notes,
        "verification_status": tx.verification_status.value,
        "verified_by": str(tx.verified_by) if tx.verified_by else None,
        "verified_at": _iso(tx.verified_at),
        "verification_notes": tx.verification_notes,
        "created_at": _iso(tx.created_at),
        "updated_at": _iso(tx.updated_at),
    }
    if staff is not None:
        data["staff"] = {
            "name": staff.name,
            "employee_id": getattr(staff, "employee_id", None),
            "email": staff.email,
        }
    return data


def serialize_opening_balance(row) -> dict:
    return {
        "id": str(row.id),
        "branch": row.branch,
        "opening_balance": _num(row.opening_balance),
        "version": row.version,
        "period_start": _iso(row.period_start),
        "created_at": _iso(row.created_at),
        "updated_at": _iso(row.updated_at),
        "balance_history": [
            {
                "date": _iso(entry.date),
                "amount": _num(entry.amount),
                "note": entry.note,
                "added_by": entry.added_by,
            }
            for entry in row.history
        ],
    }


def serialize_notification(notification) -> dict:
    return {
        "id": str(notification.id),
        "user_id": str(notification.user_id),
        "type": notification.type,
        "title": notification.title,
        "message": notification.message,
        "reference_id": str(notification.reference_id) if notification.reference_id else None,
        "reference_table": notification.reference_table,
        "is_viewed": notification.is_viewed,
        "metadata": notification.meta or {},
        "created_at": _iso(notification.created_at),
    }
