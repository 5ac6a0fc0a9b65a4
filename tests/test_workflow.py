import pytest

from modules.forms.models.submission import SubmissionStatus as S
from modules.forms.services.workflow import (
    WORKFLOW, NOTIFICATION_EFFECTS, STATE_EFFECTS, available_actions, can_transition, is_terminal
)

ALL_ACTIONS = {a for transitions in WORKFLOW.values() for a in transitions}


@pytest.mark.parametrize("status", list(S))
def test_unknown_action_is_never_a_transition(status):
    assert can_transition(status, "teleport") is None


@pytest.mark.parametrize("status, action, target", [
    (S.DRAFT, "submit", S.SUBMITTED),
    (S.DRAFT, "save", S.DRAFT),
    (S.SUBMITTED, "start_signing", S.PENDING_SIGNATURE),
    (S.PENDING_SIGNATURE, "sign", S.PENDING_SIGNATURE),
    (S.PENDING_SIGNATURE, "reject", S.REJECTED),
    (S.SIGNED, "amend", S.AMENDED),
    (S.REJECTED, "resubmit", S.SUBMITTED),
    (S.AMENDED, "re_sign", S.PENDING_SIGNATURE),
    (S.SIGNED, "archive", S.ARCHIVED),
])
def test_transition_targets(status, action, target):
    transition = can_transition(status, action)
    assert transition is not None
    assert transition.source == status
    assert transition.target == target


def test_sign_advances_to_signed_when_complete():
    assert can_transition(S.PENDING_SIGNATURE, "sign").next_if_complete == S.SIGNED


def test_preconditions_and_effects():
    submit = can_transition(S.DRAFT, "submit")
    assert submit.requires == ("form_complete", "attachments_valid")
    assert submit.effect == "notify_first_signer"
    assert submit.notifies

    amend = can_transition(S.SIGNED, "amend")
    assert amend.requires == ("amendment_reason", "dpa_approval")
    assert amend.effect == "create_amendment_record"
    assert not amend.notifies

    assert can_transition(S.REJECTED, "resubmit").requires == ("corrections_made",)
    assert can_transition(S.PENDING_SIGNATURE, "reject").requires == ("rejection_reason",)


def test_every_effect_is_classified():
    effects = {t.effect for ts in WORKFLOW.values() for t in ts.values() if t.effect}
    assert effects <= STATE_EFFECTS | NOTIFICATION_EFFECTS


def test_archived_is_the_only_terminal_state():
    assert [s for s in S if is_terminal(s)] == [S.ARCHIVED]
    assert available_actions(S.ARCHIVED) == []


def test_amend_only_from_signed():
    assert [s for s in S if can_transition(s, "amend")] == [S.SIGNED]


def test_available_actions_lists_defined_actions():
    assert set(available_actions(S.PENDING_SIGNATURE)) == {"sign", "reject"}
    assert set(available_actions(S.REJECTED)) == {"resubmit", "save", "archive"}
    assert set(available_actions(S.DRAFT)) <= ALL_ACTIONS
