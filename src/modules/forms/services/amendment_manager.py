from copy import deepcopy
from typing import Any, Dict, List, Optional

from modules.auth.services.identity import Identity
from modules.forms.exceptions import NotSigned, FormDataInvalid, PreconditionFailed
from modules.forms.models.amendment import Amendment
from modules.forms.models.submission import Submission, SubmissionStatus
from modules.forms.repositories.submission_store import SubmissionStore
from modules.forms.services.integrity import digest
from modules.forms.services.preconditions import TransitionContext
from modules.forms.services.template_registry import TemplateRegistry
from modules.forms.services.workflow_engine import WorkflowEngine
from utils.logger import setup_logger

logger = setup_logger(__name__)

_MISSING = object()


def changed_fields(previous: Dict[str, Any], new: Dict[str, Any]) -> List[str]:
    """Top-level keys whose values differ, including keys on one side only."""
    keys = set(previous) | set(new)
    return sorted(k for k in keys if previous.get(k, _MISSING) != new.get(k, _MISSING))


class AmendmentManager:

    def __init__(self, store: SubmissionStore, registry: TemplateRegistry, engine: WorkflowEngine):
        self.store = store
        self.registry = registry
        self.engine = engine

    def amend(
        self,
        submission: Submission,
        new_form_data: Dict[str, Any],
        reason: str,
        actor: Identity,
        dpa_approver: Optional[Identity] = None,
    ) -> Submission:
        """
        Correct a signed submission.

        Records an Amendment with the before/after payloads, replaces the form
        data, recomputes the content hash and moves the submission to
        AMENDED. Every mandatory signer has to sign again after ``re_sign``.
        """
        if submission.status != SubmissionStatus.SIGNED:
            raise NotSigned(submission.status, "amend")

        schema = self.registry.form_schema(submission.template_id, submission.template_version)
        errors = schema.validate_data(new_form_data)
        if errors:
            raise FormDataInvalid(errors)
        missing = schema.missing_required(new_form_data)
        if missing:
            # A signed record must stay complete after correction
            raise PreconditionFailed("form_complete", f"Required field(s) missing: {', '.join(missing)}")

        context = TransitionContext(actor=actor, reason=reason, dpa_approver=dpa_approver, schema=schema)
        new_data = deepcopy(new_form_data)

        def _apply(sub: Submission, transition):
            previous = deepcopy(sub.form_data or {})
            amendment = Amendment(
                submission_id=sub.id,
                amendment_number=self.store.next_amendment_number(sub.id),
                reason=reason.strip(),
                previous_data=previous,
                new_data=new_data,
                changed_fields=changed_fields(previous, new_data),
                previous_hash=sub.content_hash,
                new_hash=digest(new_data),
                requires_re_signature=True,
                created_by=actor.user_id,
                approved_by=(dpa_approver or actor).user_id,
            )
            self.store.add(amendment)
            sub.form_data = new_data
            sub.content_hash = amendment.new_hash
            logger.info(
                f"Submission {sub.id}: amendment #{amendment.amendment_number} "
                f"changed {amendment.changed_fields or 'no fields'}"
            )
            return None

        return self.engine.execute_transition(submission, "amend", context, apply=_apply)
