# cashledger/api/routes/notifications.py
from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from cashledger.db.get_db import get_db
from cashledger.services.notifications import list_notifications, mark_viewed
from cashledger.utils.helpers import serialize_notification, success_response

router = APIRouter()


@router.get("/")
def get_notifications(
    user_id: str = Query(...),
    unread_only: bool = Query(False),
    db: Session = Depends(get_db),
):
    notifications = list_notifications(db, user_id, unread_only=unread_only)
    return success_response(
        data=[serialize_notification(n) for n in notifications],
        message="Notifications retrieved successfully",
        summary={"unread": sum(1 for n in notifications if not n.is_viewed)}
    )


@router.post("/{notification_id}/view")
def view_notification(notification_id: str, db: Session = Depends(get_db)):
    notification = mark_viewed(db, notification_id)
    return success_response(data=serialize_notification(notification), message="Notification marked as viewed")
