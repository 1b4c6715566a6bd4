# cashledger/api/deps.py
import json

from fastapi import Depends, Request

from cashledger.core.events import EventBus
from cashledger.core.exceptions import ValidationError
from cashledger.services.ledger import CashLedger
from cashledger.services.notifications import NotificationFanout


async def read_json(request: Request) -> dict:
    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        raise ValidationError("Invalid request: body must be valid JSON")
    if not isinstance(body, dict):
        raise ValidationError("Invalid request: body must be a JSON object")
    return body


def get_event_bus(request: Request) -> EventBus:
    return request.app.state.event_bus


def get_fanout(request: Request) -> NotificationFanout:
    return request.app.state.fanout


def get_ledger(event_bus: EventBus = Depends(get_event_bus)) -> CashLedger:
    return CashLedger(event_bus)
