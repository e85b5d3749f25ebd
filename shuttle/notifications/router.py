from fastapi import APIRouter, Depends, HTTPException, status, Query
from sqlalchemy.orm import Session
from typing import List

from shuttle.database import get_db
from shuttle.notifications.schemas import Notification
from shuttle.notifications.service import NotificationService

router = APIRouter()

@router.get("/user/{user_id}", response_model=List[Notification])
def get_user_notifications(
    user_id: int,
    unread_only: bool = Query(False, description="Only unread notifications"),
    db: Session = Depends(get_db)
):
    """Get a user's notifications, newest first"""
    return NotificationService(db).list_notifications(user_id, unread_only)

@router.post("/{notification_id}/read", response_model=Notification)
def mark_notification_read(
    notification_id: int,
    db: Session = Depends(get_db)
):
    """Mark a notification as read"""

    notification = NotificationService(db).mark_read(notification_id)
    if not notification:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Notification not found"
        )

    return notification
