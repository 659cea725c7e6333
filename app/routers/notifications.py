"""Notification endpoints; users only ever see their own notifications."""
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from app.db.database import get_db
from app.db.models import Notification, User
from app.dependencies import ensure_service_available, get_current_user
from app.services.notifications import (
    delete_notification,
    get_notification,
    get_unread_count,
    get_user_notifications,
    mark_all_as_read,
    mark_as_read,
    serialize_notification,
)

router = APIRouter(
    prefix="/api/notifications",
    tags=["notifications"],
    dependencies=[Depends(ensure_service_available)]
)


def _own_notification(db: Session, notification_id: str, user: User) -> Notification:
    notification = get_notification(db, notification_id)
    if notification is None or notification.user_uid != user.id:
        raise HTTPException(status_code=404, detail="Notification not found")
    return notification


@router.get("")
async def list_notifications(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    """Notifications of the session user, newest first."""
    return {
        "notifications": [serialize_notification(n) for n in get_user_notifications(db, user.id)],
        "unread": get_unread_count(db, user.id),
    }


@router.get("/unread-count")
async def unread_count(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    return {"unread": get_unread_count(db, user.id)}


@router.post("/read-all")
async def read_all(user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    updated = mark_all_as_read(db, user.id)
    db.commit()
    return {"updated": updated}


@router.post("/{notification_id}/read")
async def read_one(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _own_notification(db, notification_id, user)
    notification = mark_as_read(db, notification_id)
    db.commit()
    return serialize_notification(notification)


@router.delete("/{notification_id}")
async def remove(notification_id: str, user: User = Depends(get_current_user), db: Session = Depends(get_db)):
    _own_notification(db, notification_id, user)
    delete_notification(db, notification_id)
    db.commit()
    return {"deleted": notification_id}
