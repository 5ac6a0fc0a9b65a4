from types import SimpleNamespace

from modules.forms.models.signature import SignatureAction
from modules.forms.schemas.form_schema import RequiredSigner
from modules.forms.services.signature_collector import evaluate_completion, pending_slots

SIGNERS = [
    RequiredSigner(role="chief_officer", order=1),
    RequiredSigner(role="master", order=2),
    RequiredSigner(role="chief_engineer", order=3, is_mandatory=False),
]


def sig(order, action=SignatureAction.SIGNED, superseded=False):
    return SimpleNamespace(order=order, action=action, is_superseded=superseded)


def test_incomplete_until_every_mandatory_slot_signed():
    assert not evaluate_completion([], SIGNERS)
    assert not evaluate_completion([sig(1)], SIGNERS)
    assert evaluate_completion([sig(1), sig(2)], SIGNERS)


def test_optional_signer_is_not_needed():
    assert not evaluate_completion([sig(1), sig(3)], SIGNERS)
    assert evaluate_completion([sig(2), sig(1), sig(3)], SIGNERS)


def test_rejection_blocks_completion():
    assert not evaluate_completion([sig(1), sig(2), sig(3, SignatureAction.REJECTED)], SIGNERS)


def test_superseded_signatures_do_not_count():
    assert not evaluate_completion([sig(1, superseded=True), sig(2)], SIGNERS)


def test_delegation_is_not_a_signature():
    assert not evaluate_completion([sig(1, SignatureAction.DELEGATED), sig(2)], SIGNERS)


def test_duplicate_signatures_count_once():
    assert not evaluate_completion([sig(1), sig(1)], SIGNERS)


def test_no_mandatory_signers_is_trivially_complete():
    assert evaluate_completion([], [RequiredSigner(role="master", order=1, is_mandatory=False)])


def test_pending_slots_in_order():
    assert [s.order for s in pending_slots([sig(2)], SIGNERS)] == [1, 3]
    assert pending_slots([sig(1), sig(2), sig(3)], SIGNERS) == []
