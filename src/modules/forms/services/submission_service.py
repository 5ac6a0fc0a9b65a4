from dataclasses import dataclass
from typing import Any, Collection, Dict, List, Optional

from sqlalchemy.orm import Session

from modules.auth.services.identity import Identity
from modules.forms.exceptions import FormDataInvalid, LockedFormEdit, NotDraft, NotAuthorizedSigner, TemplateNotFound
from modules.forms.models.amendment import Amendment
from modules.forms.models.signature import Signature, SignatureAction, SignatureMethod
from modules.forms.models.submission import Submission, SubmissionStatus
from modules.forms.repositories.submission_store import SubmissionStore
from modules.forms.services import integrity
from modules.forms.services.amendment_manager import AmendmentManager
from modules.forms.services.effects import EffectDispatcher, NotificationSink
from modules.forms.services.preconditions import TransitionContext
from modules.forms.services.signature_collector import SignatureCollector, pending_slots
from modules.forms.services.template_registry import TemplateRegistry
from modules.forms.services.workflow import available_actions, can_transition
from modules.forms.services.workflow_engine import WorkflowEngine
from modules.notifications.services.notification_service import WorkflowNotificationSink
from utils.logger import setup_logger

logger = setup_logger(__name__)


@dataclass
class CreationContext:
    actor: Identity
    company_id: Optional[int] = None
    vessel_id: Optional[int] = None
    # Vessel or scope name used in the submission number
    scope_name: Optional[str] = None
    year: Optional[int] = None


class SubmissionService:
    """
    Operations on submissions over a single database session.

    Wires the store, registry, engine, collector and amendment manager
    together; controllers and the scheduler only talk to this class.
    """

    def __init__(self, db_session: Session, sink: Optional[NotificationSink] = None):
        self.db = db_session
        self.store = SubmissionStore(db_session)
        self.registry = TemplateRegistry(db_session)
        self.dispatcher = EffectDispatcher(db_session, sink or WorkflowNotificationSink(db_session))
        self.engine = WorkflowEngine(self.store, self.registry, self.dispatcher)
        self.collector = SignatureCollector(self.store, self.registry, self.engine)
        self.amendments_manager = AmendmentManager(self.store, self.registry, self.engine)

    # ------------------------------------------------------------------ creation / drafts
    def create(self, template_id: int, context: CreationContext,
               initial_form_data: Optional[Dict[str, Any]] = None) -> Submission:
        """Open a DRAFT bound to the latest published version of the template."""
        company_id = context.company_id or context.actor.company_id
        version = self.registry.latest_published(template_id)
        template = version.template
        if template.company_id != company_id:
            raise TemplateNotFound(f"Template {template_id} not found")

        form_data = dict(initial_form_data or {})
        schema = self.registry.parse_schema(version.form_schema)
        errors = schema.validate_data(form_data)
        if errors:
            raise FormDataInvalid(errors)

        try:
            number = self.store.allocate_number(
                company_id, template.id, template.template_code, context.scope_name, context.year
            )
            submission = Submission(
                submission_number=number,
                company_id=company_id,
                vessel_id=context.vessel_id,
                scope_name=context.scope_name,
                template_id=template.id,
                template_version=version.version,
                form_data=form_data,
                content_hash=integrity.digest(form_data),
                status=SubmissionStatus.DRAFT,
                is_locked=False,
                created_by=context.actor.user_id,
            )
            self.store.add(submission)
            self.store.commit()
        except Exception:
            self.store.rollback()
            raise
        self.db.refresh(submission)
        logger.info(f"Submission {number} created from {template.template_code} v{version.version}")
        return submission

    def update_draft(self, submission_id: int, form_data: Dict[str, Any],
                     actor: Optional[Identity] = None) -> Submission:
        submission = self.store.get(submission_id)
        if submission.is_locked:
            raise LockedFormEdit()
        if can_transition(submission.status, "save") is None:
            raise NotDraft(submission.status, "save")
        if actor is not None and actor.user_id != submission.created_by:
            raise NotAuthorizedSigner("Only the creator can edit this submission")

        schema = self.registry.form_schema(submission.template_id, submission.template_version)
        errors = schema.validate_data(form_data)
        if errors:
            raise FormDataInvalid(errors)
        new_data = dict(form_data)

        def _apply(sub: Submission, transition):
            sub.form_data = new_data
            sub.content_hash = integrity.digest(new_data)
            return None

        context = TransitionContext(actor=actor, schema=schema)
        return self.engine.execute_transition(submission, "save", context, apply=_apply)

    # ------------------------------------------------------------------ transitions
    def submit(self, submission_id: int, actor: Optional[Identity] = None,
               attachments: Optional[Collection[str]] = None) -> Submission:
        submission = self.store.get(submission_id)
        context = TransitionContext(actor=actor, attachments=attachments)
        return self.engine.execute_transition(submission, "submit", context)

    def start_signing(self, submission_id: int, actor: Optional[Identity] = None) -> Submission:
        submission = self.store.get(submission_id)
        return self.engine.execute_transition(submission, "start_signing", TransitionContext(actor=actor))

    def sign(
        self,
        submission_id: int,
        order: int,
        signer: Identity,
        method: SignatureMethod,
        pin: Optional[str] = None,
        signature_data: Optional[str] = None,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Submission:
        submission = self.store.get(submission_id)
        context = TransitionContext(
            pin=pin, signature_data=signature_data, ip_address=ip_address, user_agent=user_agent
        )
        return self.collector.record_signature(submission, order, signer, method, context=context)

    def reject(
        self,
        submission_id: int,
        order: int,
        reason: str,
        signer: Identity,
        method: SignatureMethod = SignatureMethod.SSO,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> Submission:
        submission = self.store.get(submission_id)
        context = TransitionContext(reason=reason, ip_address=ip_address, user_agent=user_agent)
        return self.collector.record_signature(
            submission, order, signer, method, action=SignatureAction.REJECTED, context=context
        )

    def delegate(
        self,
        submission_id: int,
        order: int,
        signer: Identity,
        delegate_to: Identity,
        method: SignatureMethod = SignatureMethod.SSO,
    ) -> Submission:
        """Hand a slot over to another user; the status does not change."""
        submission = self.store.get(submission_id)
        return self.collector.record_signature(
            submission, order, signer, method, action=SignatureAction.DELEGATED, delegate_to=delegate_to
        )

    def resubmit(self, submission_id: int, actor: Optional[Identity] = None) -> Submission:
        submission = self.store.get(submission_id)
        return self.engine.execute_transition(submission, "resubmit", TransitionContext(actor=actor))

    def amend(
        self,
        submission_id: int,
        new_form_data: Dict[str, Any],
        reason: str,
        actor: Identity,
        dpa_approver: Optional[Identity] = None,
    ) -> Submission:
        submission = self.store.get(submission_id)
        return self.amendments_manager.amend(submission, new_form_data, reason, actor, dpa_approver)

    def re_sign(self, submission_id: int, actor: Optional[Identity] = None) -> Submission:
        submission = self.store.get(submission_id)
        return self.engine.execute_transition(submission, "re_sign", TransitionContext(actor=actor))

    def archive(self, submission_id: int, actor: Optional[Identity] = None) -> Submission:
        submission = self.store.get(submission_id)
        return self.engine.execute_transition(submission, "archive", TransitionContext(actor=actor))

    # ------------------------------------------------------------------ queries
    def get(self, submission_id: int) -> Submission:
        return self.store.get(submission_id)

    def available_actions(self, submission_id: int) -> List[str]:
        return available_actions(self.store.get(submission_id).status)

    def signatures(self, submission_id: int) -> List[Signature]:
        self.store.get(submission_id)
        return self.store.all_signatures(submission_id)

    def amendments(self, submission_id: int) -> List[Amendment]:
        self.store.get(submission_id)
        return self.store.amendments(submission_id)

    def verify_integrity(self, submission_id: int) -> Dict[str, Any]:
        submission = self.store.get(submission_id)
        return {
            "submission_id": submission.id,
            "submission_number": submission.submission_number,
            "content_hash": submission.content_hash,
            "computed_hash": integrity.digest(submission.form_data),
            "valid": integrity.verify(submission),
        }

    def pending_for(self, identity: Identity) -> List[Submission]:
        """Submissions where the caller can sign a slot right now."""
        result = []
        for submission in self.store.list_by_status(identity.company_id, SubmissionStatus.PENDING_SIGNATURE):
            version = self.registry.resolve(submission.template_id, submission.template_version)
            required = self.registry.parse_signers(version.required_signers)
            signatures = self.store.active_signatures(submission)
            waiting = pending_slots(signatures, required)
            if not version.allow_parallel_signing:
                # Only the lowest pending mandatory slot, plus optional ones before it
                first_mandatory = next((s.order for s in waiting if s.is_mandatory), None)
                waiting = [s for s in waiting if first_mandatory is None or s.order <= first_mandatory]
            delegated = {
                s.order for s in signatures
                if s.action == SignatureAction.DELEGATED and s.delegated_to_user_id == identity.user_id
            }
            if any(identity.holds_role(s.role) or s.order in delegated for s in waiting):
                result.append(submission)
        return result
