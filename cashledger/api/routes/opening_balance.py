# cashledger/api/routes/opening_balance.py
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from cashledger.api.deps import get_event_bus, read_json
from cashledger.core.events import EventBus
from cashledger.core.exceptions import NotFoundError, ValidationError
from cashledger.db.get_db import get_db
from cashledger.services import opening_balances
from cashledger.utils.helpers import parse_date, serialize_opening_balance, success_response, to_decimal
from cashledger.utils.validation_functions import validate_history_entry

router = APIRouter()


@router.get("/")
def list_opening_balances(db: Session = Depends(get_db)):
    rows = opening_balances.list_opening_balances(db)
    return success_response(
        data=[serialize_opening_balance(row) for row in rows],
        message="Opening balances retrieved successfully"
    )


@router.post("/append")
async def append_opening_balance_entry(request: Request, db: Session = Depends(get_db), event_bus: EventBus = Depends(get_event_bus)):
    entry = validate_history_entry(await read_json(request))
    row = opening_balances.append_entry(
        db,
        entry["branch"],
        entry["amount"],
        entry["date"],
        note=entry["note"],
        added_by=entry["added_by"],
        event_bus=event_bus,
    )
    return success_response(data=serialize_opening_balance(row), message="Opening balance entry added")


@router.get("/{branch}")
def get_opening_balance(branch: str, db: Session = Depends(get_db)):
    row = opening_balances.get_opening_balance_row(db, branch)
    if row is None:
        raise NotFoundError("Branch not found")
    return success_response(data=serialize_opening_balance(row), message="Opening balance retrieved successfully")


@router.put("/{branch}")
async def reconcile_opening_balance(branch: str, request: Request, db: Session = Depends(get_db), event_bus: EventBus = Depends(get_event_bus)):
    body = await read_json(request)
    if "opening_balance" not in body:
        raise ValidationError("opening_balance is required")
    row = opening_balances.reconcile(
        db,
        branch,
        to_decimal(body["opening_balance"], "opening_balance"),
        entry_date=parse_date(body["date"], "date") if body.get("date") else None,
        note=body.get("note"),
        added_by=body.get("added_by"),
        event_bus=event_bus,
    )
    return success_response(data=serialize_opening_balance(row), message="Opening balance updated successfully")
