from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy.orm import Session

from modules.auth.models.user import User
from modules.notifications.models.notification import Notification
from modules.notifications.repositories.notification_repository import NotificationRepository
from utils.logger import setup_logger

logger = setup_logger(__name__)


class NotificationTemplate:
    def __init__(self, user_id: int, title: str, message: str):
        self.user_id = user_id
        self.title = title
        self.message = message

    def to_dict(self):
        return {
            'user_id': self.user_id,
            'title': self.title,
            'message': self.message
        }


class SignatureRequestNotification(NotificationTemplate):
    def __init__(self, user_id: int, submission_number: str):
        title = "Signature required"
        message = f"Submission '{submission_number}' is waiting for your signature."
        super().__init__(user_id, title, message)


class SubmissionRejectedNotification(NotificationTemplate):
    def __init__(self, user_id: int, submission_number: str, reason: Optional[str], rejected_by: Optional[str]):
        title = "Submission rejected"
        who = f" by {rejected_by}" if rejected_by else ""
        message = f"Submission '{submission_number}' was rejected{who}: {reason or 'no reason given'}."
        super().__init__(user_id, title, message)


class ReSignatureRequestNotification(NotificationTemplate):
    def __init__(self, user_id: int, submission_number: str):
        title = "Re-signature required"
        message = f"Submission '{submission_number}' was amended and must be signed again."
        super().__init__(user_id, title, message)


class NotificationService:
    def __init__(self, repository: NotificationRepository):
        self.notification_repository = repository

    def get_notifications(self, user_id: int) -> List[Notification]:
        return self.notification_repository.find_by_user_id(user_id)

    def get_notification(self, notification_id: int) -> Optional[Notification]:
        return self.notification_repository.find_by_id(notification_id)

    def mark_as_read(self, notification_id: int) -> Optional[Notification]:
        return self.notification_repository.update(notification_id, {'read': True})

    def stage(self, template: NotificationTemplate, submission_id: Optional[int] = None) -> Notification:
        notif = Notification(
            user_id=template.user_id,
            title=template.title,
            message=template.message,
            submission_id=submission_id,
        )
        return self.notification_repository.add(notif)


class WorkflowNotificationSink:
    """
    Turns workflow hooks into in-app notifications.

    Notifications are only staged here; the outbox dispatcher commits them
    together with the event's delivered flag.
    """

    def __init__(self, db_session: Session):
        self.db = db_session
        self.service = NotificationService(NotificationRepository(db_session))

    def _users_with_roles(self, company_id: int, roles: Iterable[str]) -> List[User]:
        roles = [r.strip().lower() for r in roles if r]
        if not roles:
            return []
        return (
            self.db.query(User)
            .filter(User.company_id == company_id, User.role.in_(roles), User.is_active.is_(True))
            .order_by(User.id)
            .all()
        )

    def notify_first_signer(self, submission, payload: Dict[str, Any]) -> None:
        recipients = self._users_with_roles(submission.company_id, payload.get("roles", []))
        for user in recipients:
            self.service.stage(SignatureRequestNotification(user.id, payload["submission_number"]), submission.id)
        if not recipients:
            logger.warning(f"No active user holds roles {payload.get('roles')} for {payload['submission_number']}")

    def notify_submitter(self, submission, payload: Dict[str, Any]) -> None:
        self.service.stage(
            SubmissionRejectedNotification(
                payload["user_id"], payload["submission_number"], payload.get("reason"), payload.get("rejected_by")
            ),
            submission.id,
        )

    def request_re_signatures(self, submission, payload: Dict[str, Any]) -> None:
        for user in self._users_with_roles(submission.company_id, payload.get("roles", [])):
            self.service.stage(ReSignatureRequestNotification(user.id, payload["submission_number"]), submission.id)
