"""
Notifications Module

In-app notifications, currently sent when a retroactive refund lowers what a
rider paid for a trip. Delivery is best effort and happens after the booking
transaction commits.
"""

from .router import router
from .service import NotificationService

__all__ = [
    "router",
    "NotificationService"
]
