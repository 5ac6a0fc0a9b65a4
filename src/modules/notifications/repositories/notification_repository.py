from typing import List, Dict, Optional
from sqlalchemy.orm import Session

from modules.notifications.models.notification import Notification


class NotificationRepository:
    def __init__(self, db_session: Session):
        self.db = db_session

    def add(self, notification: Notification) -> Notification:
        """Stage a notification in the caller's transaction."""
        self.db.add(notification)
        return notification

    def find_by_id(self, notification_id: int) -> Optional[Notification]:
        return self.db.get(Notification, notification_id)

    def find_by_user_id(self, user_id: int) -> List[Notification]:
        return (
            self.db
            .query(Notification)
            .filter(Notification.user_id == user_id)
            .order_by(Notification.created_at.desc(), Notification.id.desc())
            .all()
        )

    def update(self, notification_id: int, data: Dict) -> Optional[Notification]:
        notif = self.db.get(Notification, notification_id)
        if not notif:
            return None
        for field, value in data.items():
            setattr(notif, field, value)
        self.db.commit()
        self.db.refresh(notif)
        return notif
