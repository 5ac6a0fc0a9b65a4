"""Submission state machine definition.

The table is data: each state maps action names to a ``Transition``
descriptor. Lookups here are pure and safe to use both for UI affordances
and for server-side validation.
"""
from dataclasses import dataclass
from typing import Dict, List, Optional, Tuple

from modules.forms.models.submission import SubmissionStatus

# Hooks applied inside the transition's own transaction
STATE_EFFECTS = frozenset({"lock_form", "record_signature", "create_amendment_record"})
# Hooks delivered to the notification sink after commit
NOTIFICATION_EFFECTS = frozenset({"notify_first_signer", "notify_submitter", "request_re_signatures"})


@dataclass(frozen=True)
class Transition:
    action: str
    source: SubmissionStatus
    target: SubmissionStatus
    requires: Tuple[str, ...] = ()
    effect: Optional[str] = None
    next_if_complete: Optional[SubmissionStatus] = None

    @property
    def notifies(self) -> bool:
        return self.effect in NOTIFICATION_EFFECTS


def _t(source, action, target, requires=(), effect=None, next_if_complete=None) -> Transition:
    return Transition(action, source, target, tuple(requires), effect, next_if_complete)


S = SubmissionStatus

WORKFLOW: Dict[SubmissionStatus, Dict[str, Transition]] = {
    S.DRAFT: {
        "submit": _t(S.DRAFT, "submit", S.SUBMITTED,
                     requires=("form_complete", "attachments_valid"), effect="notify_first_signer"),
        "save": _t(S.DRAFT, "save", S.DRAFT),
    },
    S.SUBMITTED: {
        "start_signing": _t(S.SUBMITTED, "start_signing", S.PENDING_SIGNATURE, effect="lock_form"),
    },
    S.PENDING_SIGNATURE: {
        "sign": _t(S.PENDING_SIGNATURE, "sign", S.PENDING_SIGNATURE,
                   requires=("valid_pin_or_auth",), effect="record_signature", next_if_complete=S.SIGNED),
        "reject": _t(S.PENDING_SIGNATURE, "reject", S.REJECTED,
                     requires=("rejection_reason",), effect="notify_submitter"),
    },
    S.SIGNED: {
        "amend": _t(S.SIGNED, "amend", S.AMENDED,
                    requires=("amendment_reason", "dpa_approval"), effect="create_amendment_record"),
        "archive": _t(S.SIGNED, "archive", S.ARCHIVED),
    },
    S.REJECTED: {
        "resubmit": _t(S.REJECTED, "resubmit", S.SUBMITTED, requires=("corrections_made",)),
        # Rejection unlocks the form so the submitter can correct it in place
        "save": _t(S.REJECTED, "save", S.REJECTED),
        "archive": _t(S.REJECTED, "archive", S.ARCHIVED),
    },
    S.AMENDED: {
        "re_sign": _t(S.AMENDED, "re_sign", S.PENDING_SIGNATURE, effect="request_re_signatures"),
    },
    S.ARCHIVED: {},
}


def can_transition(status: SubmissionStatus, action: str) -> Optional[Transition]:
    return WORKFLOW.get(status, {}).get(action)


def available_actions(status: SubmissionStatus) -> List[str]:
    return list(WORKFLOW.get(status, {}))


def is_terminal(status: SubmissionStatus) -> bool:
    return not WORKFLOW.get(status)
