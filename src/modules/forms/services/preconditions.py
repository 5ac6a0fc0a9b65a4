"""Named transition preconditions.

Each checker takes the submission and the ``TransitionContext`` and answers
True when the requirement holds. Checkers never mutate anything.
"""
from dataclasses import dataclass
from typing import Callable, Collection, Dict, Optional

from modules.auth.services.auth_service import AuthService
from modules.auth.services.identity import Identity
from modules.forms.models.signature import SignatureMethod
from modules.forms.models.submission import Submission
from modules.forms.schemas.form_schema import FormSchema


@dataclass
class TransitionContext:
    actor: Optional[Identity] = None
    # Bound template schema, filled in by the engine before checks run
    schema: Optional[FormSchema] = None
    method: Optional[SignatureMethod] = None
    pin: Optional[str] = None
    signature_data: Optional[str] = None
    reason: Optional[str] = None
    # Attachment references known to the storage service
    attachments: Optional[Collection[str]] = None
    dpa_approver: Optional[Identity] = None
    ip_address: Optional[str] = None
    user_agent: Optional[str] = None


def _has_text(value: Optional[str]) -> bool:
    return bool(value and value.strip())


def form_complete(submission: Submission, context: TransitionContext) -> bool:
    if context.schema is None:
        return False
    data = submission.form_data or {}
    return not context.schema.validate_data(data) and not context.schema.missing_required(data)


def attachments_valid(submission: Submission, context: TransitionContext) -> bool:
    if context.schema is None:
        return False
    known = set(context.attachments or ())
    return all(ref in known for ref in context.schema.attachment_references(submission.form_data or {}))


def valid_pin_or_auth(submission: Submission, context: TransitionContext) -> bool:
    actor = context.actor
    if actor is None or not actor.authenticated:
        return False
    if context.method == SignatureMethod.PIN:
        return AuthService.verify_pin(context.pin, actor.pin_hash)
    if context.method == SignatureMethod.DRAWN:
        return _has_text(context.signature_data)
    return context.method in (SignatureMethod.SSO, SignatureMethod.BIOMETRIC)


def rejection_reason(submission: Submission, context: TransitionContext) -> bool:
    return _has_text(context.reason)


def amendment_reason(submission: Submission, context: TransitionContext) -> bool:
    return _has_text(context.reason)


def dpa_approval(submission: Submission, context: TransitionContext) -> bool:
    if context.actor is not None and context.actor.authenticated and context.actor.is_dpa:
        return True
    approver = context.dpa_approver
    return approver is not None and approver.is_dpa and approver.pin_verified


def corrections_made(submission: Submission, context: TransitionContext) -> bool:
    return submission.content_hash != submission.rejected_content_hash


PRECONDITIONS: Dict[str, Callable[[Submission, TransitionContext], bool]] = {
    "form_complete": form_complete,
    "attachments_valid": attachments_valid,
    "valid_pin_or_auth": valid_pin_or_auth,
    "rejection_reason": rejection_reason,
    "amendment_reason": amendment_reason,
    "dpa_approval": dpa_approval,
    "corrections_made": corrections_made,
}
