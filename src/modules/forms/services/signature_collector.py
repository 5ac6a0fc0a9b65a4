from typing import Iterable, List, Optional, Sequence

from modules.auth.services.identity import Identity
from modules.forms.exceptions import (
    AlreadySigned, NotAuthorizedSigner, NotPending, SigningOrderViolation, PreconditionFailed
)
from modules.forms.models.signature import Signature, SignatureAction, SignatureMethod
from modules.forms.models.submission import Submission, SubmissionStatus
from modules.forms.repositories.submission_store import SubmissionStore
from modules.forms.schemas.form_schema import RequiredSigner
from modules.forms.services.integrity import digest
from modules.forms.services.preconditions import TransitionContext
from modules.forms.services.template_registry import TemplateRegistry
from modules.forms.services.workflow_engine import WorkflowEngine
from utils.logger import setup_logger

logger = setup_logger(__name__)


def _accepted(signatures: Iterable, action: SignatureAction) -> List:
    return [s for s in signatures if not getattr(s, "is_superseded", False) and s.action == action]


def signed_orders(signatures: Iterable) -> set:
    return {s.order for s in _accepted(signatures, SignatureAction.SIGNED)}


def evaluate_completion(signatures: Sequence, required_signers: Sequence[RequiredSigner]) -> bool:
    """
    True when every mandatory slot has an accepted SIGNED action.

    Pure: works on any objects exposing ``order``, ``action`` and optionally
    ``is_superseded``. A REJECTED action in the set means the round can
    never complete.
    """
    if _accepted(signatures, SignatureAction.REJECTED):
        return False
    mandatory_orders = {s.order for s in required_signers if s.is_mandatory}
    signed = signed_orders(signatures) & mandatory_orders
    return len(signed) >= len(mandatory_orders)


def pending_slots(signatures: Sequence, required_signers: Sequence[RequiredSigner]) -> List[RequiredSigner]:
    """Required signers whose slot has no accepted signature yet, in order."""
    done = signed_orders(signatures)
    return [s for s in sorted(required_signers, key=lambda s: s.order) if s.order not in done]


class SignatureCollector:

    def __init__(self, store: SubmissionStore, registry: TemplateRegistry, engine: WorkflowEngine):
        self.store = store
        self.registry = registry
        self.engine = engine

    def record_signature(
        self,
        submission: Submission,
        order: int,
        signer: Identity,
        method: SignatureMethod,
        action: SignatureAction = SignatureAction.SIGNED,
        context: Optional[TransitionContext] = None,
        delegate_to: Optional[Identity] = None,
    ) -> Submission:
        """Record one signer's action on a slot and advance the submission."""
        if submission.status != SubmissionStatus.PENDING_SIGNATURE:
            raise NotPending(message=f"Submission is {submission.status.value}, not pending signature")

        version = self.registry.resolve(submission.template_id, submission.template_version)
        required = self.registry.parse_signers(version.required_signers)
        slot = next((s for s in required if s.order == order), None)
        if slot is None:
            raise NotAuthorizedSigner(f"No required signer at order {order}")

        existing = self.store.active_signatures(submission)
        self._check_not_signed(existing, order, signer)
        if action == SignatureAction.DELEGATED:
            self._check_not_delegated(existing, order)
        self._check_authorized(existing, slot, signer)
        if action != SignatureAction.DELEGATED and not version.allow_parallel_signing:
            self._check_order(existing, required, slot)
        if action == SignatureAction.DELEGATED and delegate_to is None:
            raise PreconditionFailed("delegate_to", "A delegate must be named")

        context = context or TransitionContext()
        context.actor = signer
        context.method = method

        def _apply(sub: Submission, transition) -> Optional[SubmissionStatus]:
            signature = Signature(
                submission_id=sub.id,
                signing_round=sub.signing_round,
                order=order,
                role=slot.role,
                signer_user_id=signer.user_id,
                signer_name=signer.name,
                method=method,
                action=action,
                rejection_reason=context.reason if action == SignatureAction.REJECTED else None,
                delegated_to_user_id=delegate_to.user_id if delegate_to else None,
                signature_data=context.signature_data,
                content_hash=digest(sub.form_data),
                ip_address=context.ip_address,
                user_agent=context.user_agent,
            )
            self.store.add(signature)
            if action == SignatureAction.SIGNED and evaluate_completion(existing + [signature], required):
                return transition.next_if_complete
            return None

        transition_action = "reject" if action == SignatureAction.REJECTED else "sign"
        result = self.engine.execute_transition(submission, transition_action, context, apply=_apply)
        logger.info(
            f"Submission {submission.id}: {action.value} by {signer.name} ({slot.role}) at order {order}"
        )
        return result

    @staticmethod
    def _check_not_signed(existing: List[Signature], order: int, signer: Identity) -> None:
        for s in existing:
            if s.order != order or s.action == SignatureAction.DELEGATED:
                continue
            if s.signer_user_id == signer.user_id:
                raise AlreadySigned(f"You have already signed order {order}")
            raise AlreadySigned(f"Order {order} has already been signed by {s.signer_name}")

    @staticmethod
    def _check_not_delegated(existing: List[Signature], order: int) -> None:
        for s in existing:
            if s.order == order and s.action == SignatureAction.DELEGATED:
                raise AlreadySigned(f"Order {order} has already been delegated by {s.signer_name}")

    @staticmethod
    def _check_authorized(existing: List[Signature], slot: RequiredSigner, signer: Identity) -> None:
        if signer.holds_role(slot.role):
            return
        delegated = any(
            s.order == slot.order
            and s.action == SignatureAction.DELEGATED
            and s.delegated_to_user_id == signer.user_id
            for s in existing
        )
        if not delegated:
            raise NotAuthorizedSigner(f"Order {slot.order} must be signed by role '{slot.role}'")

    @staticmethod
    def _check_order(existing: List[Signature], required: List[RequiredSigner], slot: RequiredSigner) -> None:
        done = signed_orders(existing)
        waiting = [s.order for s in required if s.is_mandatory and s.order < slot.order and s.order not in done]
        if waiting:
            raise SigningOrderViolation(
                f"Mandatory signer(s) at order {', '.join(map(str, waiting))} must sign first"
            )
