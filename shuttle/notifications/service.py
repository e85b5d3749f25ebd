from datetime import datetime, timezone
from typing import List, Optional, Sequence
from sqlalchemy.orm import Session

from shuttle.config import Settings, settings as default_settings
from shuttle.logger import get_logger
from shuttle.models import Notification

logger = get_logger(__name__)


class NotificationService:
    """In-app notifications for riders"""

    def __init__(self, db: Session, settings: Optional[Settings] = None):
        self.db = db
        self.settings = settings or default_settings

    def send_refund_notifications(self, refund_details: Sequence) -> int:
        """Tell each refunded rider their trip got cheaper. Commits."""
        symbol = self.settings.CURRENCY_SYMBOL
        sent = 0

        for refund in refund_details:
            if refund.refund_amount <= 0:
                continue

            self.db.add(Notification(
                user_id=refund.user_id,
                title="Trip Price Reduced!",
                message=(
                    f"Great news! More passengers joined your trip, so you received "
                    f"{symbol}{refund.refund_amount} back in credits. "
                    f"Your new trip cost is {symbol}{refund.new_cost}."
                ),
                type="PRICE_REDUCTION",
                priority="MEDIUM",
                data={
                    "booking_id": refund.booking_id,
                    "refund_amount": str(refund.refund_amount),
                    "original_cost": str(refund.original_cost),
                    "new_cost": str(refund.new_cost)
                }
            ))
            sent += 1

        if sent:
            self.db.commit()
            logger.info("Sent %d refund notifications", sent)
        return sent

    def list_notifications(self, user_id: int, unread_only: bool = False) -> List[Notification]:
        query = self.db.query(Notification).filter(Notification.user_id == user_id)
        if unread_only:
            query = query.filter(Notification.is_read.is_(False))
        return query.order_by(Notification.created_at.desc(), Notification.id.desc()).all()

    def mark_read(self, notification_id: int) -> Optional[Notification]:
        notification = self.db.query(Notification).filter(Notification.id == notification_id).first()
        if not notification:
            return None

        if not notification.is_read:
            notification.is_read = True
            notification.read_at = datetime.now(timezone.utc)
            self.db.commit()
            self.db.refresh(notification)
        return notification
