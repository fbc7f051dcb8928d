"""
Notification API Endpoints
==========================

- GET   /api/v1/notifications           - Caller's notifications (optional `unread`)
- PATCH /api/v1/notifications/read-all  - Mark all read
- PATCH /api/v1/notifications/{id}/read - Mark one read
"""

from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from .auth import Principal
from .dependencies import get_current_principal, get_db_dependency
from .ledger import list_notifications, mark_all_notifications_read, mark_notification_read
from .serializers import envelope, list_envelope, notification_to_dict

router = APIRouter(prefix="/notifications", tags=["notifications"])


@router.get("")
def get_notifications(
    unread: Optional[bool] = Query(None),
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    entries = list_notifications(db, principal, unread=unread)
    unread_count = sum(1 for e in entries if not e.is_read)
    return list_envelope(
        "Notifications retrieved successfully",
        [notification_to_dict(e) for e in entries],
        unreadCount=unread_count,
    )


@router.patch("/read-all")
def read_all_notifications(
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    count = mark_all_notifications_read(db, principal)
    db.commit()
    return envelope("Notifications marked as read", {"marked": count})


@router.patch("/{notification_id}/read")
def read_notification(
    notification_id: str,
    principal: Principal = Depends(get_current_principal),
    db: Session = Depends(get_db_dependency),
):
    entry = mark_notification_read(db, principal, notification_id)
    db.commit()
    db.refresh(entry)
    return envelope("Notification marked as read", notification_to_dict(entry))
