"""Delivery of notification hooks recorded in the workflow outbox.

Transitions write a ``WorkflowEvent`` in their own transaction; delivery
happens afterwards and a failed delivery only leaves the event pending for
the retry job.
"""
from datetime import datetime
from typing import Any, Dict, Protocol

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from modules.forms.models.submission import Submission
from modules.forms.models.workflow_event import WorkflowEvent, EventStatus
from settings import EFFECT_MAX_ATTEMPTS
from utils.logger import setup_logger

logger = setup_logger(__name__)


class NotificationSink(Protocol):
    def notify_first_signer(self, submission: Submission, payload: Dict[str, Any]) -> None: ...

    def notify_submitter(self, submission: Submission, payload: Dict[str, Any]) -> None: ...

    def request_re_signatures(self, submission: Submission, payload: Dict[str, Any]) -> None: ...


class EffectDispatcher:

    def __init__(self, db_session: Session, sink: NotificationSink):
        self.db = db_session
        self.sink = sink

    def dispatch(self, event_id: int) -> bool:
        """Deliver one event. Returns False on failure; never raises."""
        event = self.db.get(WorkflowEvent, event_id)
        if event is None or event.status != EventStatus.PENDING:
            return False
        effect = event.effect
        try:
            handler = getattr(self.sink, effect, None)
            if handler is None:
                raise LookupError(f"Notification sink has no handler for '{effect}'")
            submission = self.db.get(Submission, event.submission_id)
            handler(submission, dict(event.payload or {}))
            event.status = EventStatus.DELIVERED
            event.attempts += 1
            event.delivered_at = datetime.utcnow()
            self.db.commit()
        except Exception as e:
            self.db.rollback()
            logger.exception(f"Delivery of '{effect}' (event {event_id}) failed: {e}")
            self._record_failure(event_id, e)
            return False
        logger.info(f"Delivered '{effect}' for submission {event.submission_id}")
        return True

    def _record_failure(self, event_id: int, error: Exception) -> None:
        try:
            event = self.db.get(WorkflowEvent, event_id)
            event.attempts += 1
            event.last_error = str(error)[:1000]
            if event.attempts >= EFFECT_MAX_ATTEMPTS:
                event.status = EventStatus.FAILED
                logger.error(f"Event {event_id} gave up after {event.attempts} attempts")
            self.db.commit()
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception(f"Could not record failure of event {event_id}")

    def pending_events(self, limit: int = 100):
        return (
            self.db.query(WorkflowEvent)
            .filter(WorkflowEvent.status == EventStatus.PENDING)
            .order_by(WorkflowEvent.created_at, WorkflowEvent.id)
            .limit(limit)
            .all()
        )

    def retry_pending(self, limit: int = 100) -> int:
        """Re-dispatch pending events; returns how many were delivered."""
        event_ids = [e.id for e in self.pending_events(limit)]
        delivered = sum(1 for event_id in event_ids if self.dispatch(event_id))
        if event_ids:
            logger.info(f"Outbox retry: {delivered}/{len(event_ids)} delivered")
        return delivered
