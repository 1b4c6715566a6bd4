# cashledger/api/routes/email.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cashledger.api.deps import get_fanout, read_json
from cashledger.core.exceptions import ValidationError
from cashledger.db.get_db import get_db
from cashledger.services.notifications import NotificationFanout, send_low_balance_alert
from cashledger.utils.helpers import success_response, to_decimal
from cashledger.utils.validation_functions import validate_branch

router = APIRouter()


@router.post("/low-balance-alert")
async def low_balance_alert(request: Request, db: Session = Depends(get_db), fanout: NotificationFanout = Depends(get_fanout)):
    body = await read_json(request)
    if not body.get("branch") or body.get("balance") is None:
        raise ValidationError("Missing required fields: branch and balance")

    admin_emails = body.get("adminEmails") or []
    if not isinstance(admin_emails, list):
        raise ValidationError("adminEmails must be a list")

    details = send_low_balance_alert(
        db,
        validate_branch(body["branch"]),
        to_decimal(body["balance"], "balance"),
        admin_emails=admin_emails,
        mailer=fanout.mailer,
    )
    return success_response(data=details, message="Low balance alert email sent successfully")
