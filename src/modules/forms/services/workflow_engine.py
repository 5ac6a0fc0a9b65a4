from datetime import datetime
from typing import Callable, Optional

from modules.forms.exceptions import InvalidTransition, PreconditionFailed
from modules.forms.models.submission import Submission, SubmissionStatus
from modules.forms.models.workflow_event import WorkflowEvent
from modules.forms.repositories.submission_store import SubmissionStore
from modules.forms.services.effects import EffectDispatcher
from modules.forms.services.integrity import digest
from modules.forms.services.preconditions import PRECONDITIONS, TransitionContext
from modules.forms.services.template_registry import TemplateRegistry
from modules.forms.services.workflow import Transition, can_transition
from utils.logger import setup_logger

logger = setup_logger(__name__)

# Preconditions that need the bound template schema
SCHEMA_PRECONDITIONS = {"form_complete", "attachments_valid"}

# Receives the submission and transition after all checks passed; may return
# a different target status (auto-advance on completion)
ApplyHook = Callable[[Submission, Transition], Optional[SubmissionStatus]]


class WorkflowEngine:

    def __init__(self, store: SubmissionStore, registry: TemplateRegistry, dispatcher: EffectDispatcher):
        self.store = store
        self.registry = registry
        self.dispatcher = dispatcher

    def execute_transition(
        self,
        submission: Submission,
        action: str,
        context: Optional[TransitionContext] = None,
        apply: Optional[ApplyHook] = None,
    ) -> Submission:
        """
        Validate and run ``action`` on ``submission``.

        Preconditions are checked before anything is touched. The status
        change, the in-transaction bookkeeping done by ``apply`` and the
        outbox event are committed together; the notification hook is only
        dispatched after that commit and cannot undo it.
        """
        context = context or TransitionContext()
        transition = can_transition(submission.status, action)
        if transition is None:
            raise InvalidTransition(submission.status, action)

        if context.schema is None and SCHEMA_PRECONDITIONS.intersection(transition.requires):
            context.schema = self.registry.form_schema(submission.template_id, submission.template_version)

        for name in transition.requires:
            check = PRECONDITIONS.get(name)
            if check is None or not check(submission, context):
                logger.info(f"Submission {submission.id}: '{action}' refused, precondition '{name}' failed")
                raise PreconditionFailed(name)

        previous = submission.status
        number = submission.submission_number
        try:
            target = transition.target
            if apply is not None:
                target = apply(submission, transition) or target
            self._enter(submission, transition, target, context)
            event = self._queue_notification(submission, transition, context)
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise

        logger.info(f"Submission {number}: {previous.value} --{action}--> {target.value}")
        if event is not None:
            self.dispatcher.dispatch(event.id)
        return submission

    def _enter(self, submission: Submission, transition: Transition, target: SubmissionStatus,
               context: TransitionContext) -> None:
        now = datetime.utcnow()
        actor_id = context.actor.user_id if context.actor else None

        if target == SubmissionStatus.PENDING_SIGNATURE and submission.status != SubmissionStatus.PENDING_SIGNATURE:
            self._open_signing_round(submission)
        if transition.effect == "lock_form":
            submission.is_locked = True
            submission.locked_at = now
        if transition.action in ("submit", "resubmit"):
            submission.content_hash = digest(submission.form_data)
            submission.submitted_at = now
            submission.submitted_by = actor_id
        if target == SubmissionStatus.SIGNED and submission.status != SubmissionStatus.SIGNED:
            submission.signed_at = now
        if target == SubmissionStatus.REJECTED and submission.status != SubmissionStatus.REJECTED:
            submission.is_locked = False
            submission.rejected_at = now
            submission.rejected_by = actor_id
            submission.rejection_reason = context.reason
            submission.rejected_content_hash = submission.content_hash
        if target == SubmissionStatus.ARCHIVED:
            submission.is_locked = True
            submission.archived_at = now

        submission.status = target
        # Always dirty the row so the version check runs
        submission.updated_at = now

    def _open_signing_round(self, submission: Submission) -> None:
        superseded = self.store.supersede_signatures(submission)
        submission.signing_round = (submission.signing_round or 0) + 1
        if superseded:
            logger.info(
                f"Submission {submission.id}: round {submission.signing_round} opened, "
                f"{superseded} earlier signature(s) superseded"
            )

    def _queue_notification(self, submission: Submission, transition: Transition,
                            context: TransitionContext) -> Optional[WorkflowEvent]:
        if not transition.notifies:
            return None
        signers = self.registry.required_signers(submission.template_id, submission.template_version)
        payload = {"submission_number": submission.submission_number}
        if transition.effect == "notify_first_signer":
            parallel = self.registry.resolve(submission.template_id, submission.template_version).allow_parallel_signing
            roles = [s.role for s in signers] if parallel else [s.role for s in signers[:1]]
            payload["roles"] = roles
        elif transition.effect == "notify_submitter":
            payload["user_id"] = submission.created_by
            payload["reason"] = context.reason
            payload["rejected_by"] = context.actor.name if context.actor else None
        elif transition.effect == "request_re_signatures":
            payload["roles"] = [s.role for s in signers if s.is_mandatory]

        event = WorkflowEvent(submission_id=submission.id, effect=transition.effect, payload=payload)
        self.store.add(event)
        return event
