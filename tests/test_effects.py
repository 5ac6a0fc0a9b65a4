from conftest import FailingSink, RecordingSink, TestingSessionLocal, new_submission
from modules.forms.models.submission import Submission, SubmissionStatus
from modules.forms.models.workflow_event import EventStatus, WorkflowEvent
from modules.forms.services.effects import EffectDispatcher
from modules.forms.services.submission_service import SubmissionService
from settings import EFFECT_MAX_ATTEMPTS


def test_failed_notification_keeps_the_transition(session, template, users):
    service = SubmissionService(session, sink=FailingSink())
    submission = new_submission(service, template, users["crew"])
    service.submit(submission.id, users["crew"])

    other = TestingSessionLocal()
    try:
        assert other.get(Submission, submission.id).status == SubmissionStatus.SUBMITTED
        event = other.query(WorkflowEvent).one()
        assert event.status == EventStatus.PENDING
        assert event.attempts == 1
        assert "mail relay unreachable" in event.last_error
    finally:
        other.close()


def test_retry_delivers_pending_events(session, template, users):
    service = SubmissionService(session, sink=FailingSink())
    submission = new_submission(service, template, users["crew"])
    service.submit(submission.id, users["crew"])

    sink = RecordingSink()
    delivered = EffectDispatcher(session, sink).retry_pending()
    assert delivered == 1
    assert sink.effects() == ["notify_first_signer"]
    event = session.query(WorkflowEvent).one()
    assert event.status == EventStatus.DELIVERED
    assert event.delivered_at is not None
    assert EffectDispatcher(session, sink).retry_pending() == 0


def test_event_fails_after_max_attempts(session, template, users):
    service = SubmissionService(session, sink=FailingSink())
    submission = new_submission(service, template, users["crew"])
    service.submit(submission.id, users["crew"])

    dispatcher = EffectDispatcher(session, FailingSink())
    for _ in range(EFFECT_MAX_ATTEMPTS):
        dispatcher.retry_pending()
    event = session.query(WorkflowEvent).one()
    assert event.status == EventStatus.FAILED
    assert event.attempts == EFFECT_MAX_ATTEMPTS


def test_state_only_transitions_write_no_event(session, service, template, users):
    submission = new_submission(service, template, users["crew"])
    service.update_draft(submission.id, {"port": "Oslo"})
    assert session.query(WorkflowEvent).count() == 0
