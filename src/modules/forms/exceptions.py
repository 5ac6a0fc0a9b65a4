"""Errors raised by the submission workflow.

Every error carries a stable ``code`` and the HTTP status the API answers
with, so controllers can translate them without a lookup table.
"""
from typing import List, Optional


class WorkflowError(Exception):
    code = "workflow_error"
    status_code = 400

    def __init__(self, message: Optional[str] = None):
        super().__init__(message or self.__class__.__doc__ or self.code)
        self.message = message or (self.__class__.__doc__ or self.code).strip()

    def to_dict(self) -> dict:
        return {"error": self.code, "message": self.message}


class SubmissionNotFound(WorkflowError):
    """Submission not found"""
    code = "submission_not_found"
    status_code = 404


class TemplateNotFound(WorkflowError):
    """Template version not found"""
    code = "template_not_found"
    status_code = 404


class TemplateImmutable(WorkflowError):
    """Published template versions cannot be modified"""
    code = "template_immutable"
    status_code = 409


class InvalidTemplate(WorkflowError):
    """Template schema or signer list is invalid"""
    code = "invalid_template"
    status_code = 422


class InvalidTransition(WorkflowError):
    """Action is not defined for the current state"""
    code = "invalid_transition"
    status_code = 409

    def __init__(self, status=None, action: Optional[str] = None, message: Optional[str] = None):
        self.status = status
        self.action = action
        if message is None and status is not None:
            state = getattr(status, "value", status)
            message = f"Action '{action}' is not allowed from status {state}"
        super().__init__(message)


class NotPending(InvalidTransition):
    """Submission is not pending signature"""
    code = "not_pending"


class NotSigned(InvalidTransition):
    """Only signed submissions can be amended"""
    code = "not_signed"


class NotDraft(InvalidTransition):
    """Form data can only be edited on drafts"""
    code = "not_draft"


class PreconditionFailed(WorkflowError):
    code = "precondition_failed"
    status_code = 422

    def __init__(self, precondition: str, message: Optional[str] = None):
        self.precondition = precondition
        super().__init__(message or f"Precondition '{precondition}' was not satisfied")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["precondition"] = self.precondition
        return data


class AlreadySigned(WorkflowError):
    """This signer slot has already been signed"""
    code = "already_signed"
    status_code = 409


class NotAuthorizedSigner(WorkflowError):
    """Caller is not the required signer for this slot"""
    code = "not_authorized_signer"
    status_code = 403


class SigningOrderViolation(WorkflowError):
    """Earlier mandatory signers must sign first"""
    code = "signing_order_violation"
    status_code = 409


class ConcurrencyConflict(WorkflowError):
    """Submission changed while the operation was in progress"""
    code = "concurrency_conflict"
    status_code = 409


class LockedFormEdit(WorkflowError):
    """Form is locked for signing and cannot be edited"""
    code = "locked_form_edit"
    status_code = 423


class FormDataInvalid(WorkflowError):
    code = "form_data_invalid"
    status_code = 422

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("; ".join(self.errors) or "Form data is invalid")

    def to_dict(self) -> dict:
        data = super().to_dict()
        data["errors"] = self.errors
        return data
