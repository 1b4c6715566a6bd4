# cashledger/api/routes/cashbook.py
from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy.orm import Session

from cashledger.api.deps import get_fanout, get_ledger, read_json
from cashledger.core.exceptions import ValidationError
from cashledger.db.get_db import get_db
from cashledger.models.enums import VerificationStatus
from cashledger.services import ledger as ledger_service
from cashledger.services.directory import resolve_submitter
from cashledger.services.ledger import CashLedger
from cashledger.services.notifications import NotificationFanout, notify_transaction
from cashledger.services.opening_balances import canonical_branch
from cashledger.services.vouchers import allocate_voucher
from cashledger.utils.helpers import parse_date, serialize_transaction, success_response
from cashledger.utils.validation_functions import validate_balance_mode, validate_branch, validate_kind

router = APIRouter()


def _with_staff(db, tx):
    return serialize_transaction(tx, staff=resolve_submitter(db, tx.staff_id))


@router.post("/voucher-number")
async def generate_voucher_number(request: Request, db: Session = Depends(get_db)):
    body = await read_json(request)
    if not body.get("branch") or not body.get("type"):
        raise ValidationError("Missing branch or type")
    branch = canonical_branch(db, validate_branch(body["branch"]))
    kind = validate_kind(body["type"])

    voucher_no = allocate_voucher(db, branch, kind)
    return success_response(
        data={"voucher_no": voucher_no, "type": kind.value},
        message="Voucher number generated successfully"
    )


@router.post("/transactions", status_code=201)
async def submit_transaction(request: Request, db: Session = Depends(get_db), ledger: CashLedger = Depends(get_ledger)):
    body = await read_json(request)
    tx = ledger.submit(db, body)
    message = (
        "Transaction added successfully"
        if tx.verification_status is VerificationStatus.auto_approved
        else "Transaction submitted for verification"
    )
    return success_response(data=_with_staff(db, tx), message=message)


@router.get("/transactions")
def list_transactions(
    branch: str = Query(None),
    status: str = Query(None, description="Comma separated verification statuses"),
    start_date: str = Query(None),
    end_date: str = Query(None),
    db: Session = Depends(get_db),
):
    statuses = None
    if status:
        try:
            statuses = [VerificationStatus(value.strip()) for value in status.split(",") if value.strip()]
        except ValueError:
            raise ValidationError("status must be pending, approved, rejected or auto_approved")

    transactions = ledger_service.list_transactions(
        db,
        branch=branch,
        statuses=statuses,
        start_date=parse_date(start_date, "start_date") if start_date else None,
        end_date=parse_date(end_date, "end_date") if end_date else None,
    )
    return success_response(
        data=[_with_staff(db, tx) for tx in transactions],
        message="Transactions retrieved successfully"
    )


@router.get("/transactions/{transaction_id}")
def get_transaction(transaction_id: str, db: Session = Depends(get_db)):
    tx = ledger_service.get_transaction(db, transaction_id)
    return success_response(data=_with_staff(db, tx), message="Transaction retrieved successfully")


async def _verifier_action(request: Request):
    body = await read_json(request)
    if not body.get("id") or not body.get("verifier_id"):
        raise ValidationError("Missing id or verifier_id")
    return body


@router.post("/transactions/approve")
async def approve_transaction(request: Request, db: Session = Depends(get_db), ledger: CashLedger = Depends(get_ledger)):
    body = await _verifier_action(request)
    tx = ledger.approve(db, body["id"], body["verifier_id"], body.get("note"))
    return success_response(data=_with_staff(db, tx), message="Transaction approved successfully")


@router.post("/transactions/reject")
async def reject_transaction(request: Request, db: Session = Depends(get_db), ledger: CashLedger = Depends(get_ledger)):
    body = await _verifier_action(request)
    tx = ledger.reject(db, body["id"], body["verifier_id"], body.get("note"))
    return success_response(data=_with_staff(db, tx), message="Transaction rejected successfully")


@router.get("/running-balance")
def get_running_balance(
    branch: str = Query(...),
    as_of: str = Query(None),
    mode: str = Query("confirmed"),
    db: Session = Depends(get_db),
):
    result = ledger_service.compute_running_balance(
        db,
        validate_branch(branch),
        as_of=parse_date(as_of, "as_of") if as_of else None,
        mode=validate_balance_mode(mode),
    )
    return success_response(data=result.to_dict(), message="Running balance computed successfully")


@router.post("/notifications")
async def create_notifications(request: Request, db: Session = Depends(get_db), fanout: NotificationFanout = Depends(get_fanout)):
    body = await read_json(request)
    result = notify_transaction(db, fanout, body.get("scenario"), body.get("transaction"))
    if not result.success:
        return JSONResponse(
            status_code=200,
            content={"success": False, "data": {"count": 0}, "message": result.message}
        )
    return success_response(data={"count": result.count}, message="Notifications created successfully")
