from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from sqlalchemy.orm import Session

from database import get_db
from modules.auth.dependencies import get_current_identity, require_permission
from modules.auth.models.user import User
from modules.auth.services.auth_service import AuthService
from modules.auth.services.identity import Identity, identity_from_user
from modules.forms.controllers.errors import http_error
from modules.forms.exceptions import WorkflowError, SubmissionNotFound
from modules.forms.schemas.submission_schemas import (
    SubmissionCreateRequest, DraftUpdateRequest, SubmitRequest, SignRequest, RejectRequest,
    DelegateRequest, AmendRequest, SubmissionResponse, SignatureResponse, AmendmentResponse,
    IntegrityResponse, ActionsResponse
)
from modules.forms.services.submission_service import SubmissionService, CreationContext

router = APIRouter(prefix="/submissions", tags=["submissions"])


def get_submission_service(db: Session = Depends(get_db)) -> SubmissionService:
    return SubmissionService(db)


def _visible(service: SubmissionService, submission_id: int, identity: Identity):
    """Load a submission of the caller's company; others look like missing ones."""
    submission = service.get(submission_id)
    if submission.company_id != identity.company_id:
        raise SubmissionNotFound(f"Submission {submission_id} not found")
    return submission


def _company_user(db: Session, user_id: int, identity: Identity) -> User:
    user = db.get(User, user_id)
    if user is None or user.company_id != identity.company_id or not user.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


def _client(request: Request):
    host = request.client.host if request.client else None
    return host, request.headers.get("user-agent")


@router.post("", response_model=SubmissionResponse, status_code=status.HTTP_201_CREATED)
def create_submission(
    data: SubmissionCreateRequest,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    """Open a draft on the latest published version of a template"""
    context = CreationContext(actor=identity, vessel_id=data.vessel_id, scope_name=data.scope_name)
    try:
        return service.create(data.template_id, context, data.form_data)
    except WorkflowError as e:
        raise http_error(e) from e


@router.get("/pending", response_model=List[SubmissionResponse])
def pending_my_signature(
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    return service.pending_for(identity)


@router.get("/{submission_id}", response_model=SubmissionResponse)
def get_submission(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        return _visible(service, submission_id, identity)
    except WorkflowError as e:
        raise http_error(e) from e


@router.put("/{submission_id}/draft", response_model=SubmissionResponse)
def save_draft(
    submission_id: int,
    data: DraftUpdateRequest,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.update_draft(submission_id, data.form_data, identity)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/submit", response_model=SubmissionResponse)
def submit_submission(
    submission_id: int,
    data: Optional[SubmitRequest] = None,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        attachments = data.attachments if data else []
        return service.submit(submission_id, identity, attachments)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/start-signing", response_model=SubmissionResponse)
def start_signing(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.start_signing(submission_id, identity)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/sign", response_model=SubmissionResponse)
def sign_submission(
    submission_id: int,
    data: SignRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    ip_address, user_agent = _client(request)
    try:
        _visible(service, submission_id, identity)
        return service.sign(
            submission_id, data.order, identity, data.method,
            pin=data.pin, signature_data=data.signature_data,
            ip_address=ip_address, user_agent=user_agent,
        )
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/reject", response_model=SubmissionResponse)
def reject_submission(
    submission_id: int,
    data: RejectRequest,
    request: Request,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    ip_address, user_agent = _client(request)
    try:
        _visible(service, submission_id, identity)
        return service.reject(
            submission_id, data.order, data.reason, identity, data.method,
            ip_address=ip_address, user_agent=user_agent,
        )
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/delegate", response_model=SubmissionResponse)
def delegate_signature(
    submission_id: int,
    data: DelegateRequest,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    delegate = identity_from_user(_company_user(service.db, data.delegate_to_user_id, identity))
    try:
        _visible(service, submission_id, identity)
        return service.delegate(submission_id, data.order, identity, delegate)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/resubmit", response_model=SubmissionResponse)
def resubmit_submission(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.resubmit(submission_id, identity)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/amend", response_model=SubmissionResponse)
def amend_submission(
    submission_id: int,
    data: AmendRequest,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    """Correct a signed submission; needs a DPA caller or a DPA approver's PIN"""
    approver = None
    if data.dpa_user_id is not None:
        dpa_user = _company_user(service.db, data.dpa_user_id, identity)
        verified = AuthService.verify_pin(data.dpa_pin, dpa_user.signature_pin_hash)
        approver = identity_from_user(dpa_user, authenticated=False, pin_verified=verified)
    try:
        _visible(service, submission_id, identity)
        return service.amend(submission_id, data.form_data, data.reason, identity, approver)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/re-sign", response_model=SubmissionResponse)
def re_sign_submission(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.re_sign(submission_id, identity)
    except WorkflowError as e:
        raise http_error(e) from e


@router.post("/{submission_id}/archive", response_model=SubmissionResponse)
def archive_submission(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service),
    _: User = Depends(require_permission("archive"))
):
    """Close a signed or rejected submission for good; masters and the DPA only"""
    try:
        _visible(service, submission_id, identity)
        return service.archive(submission_id, identity)
    except WorkflowError as e:
        raise http_error(e) from e


@router.get("/{submission_id}/actions", response_model=ActionsResponse)
def list_available_actions(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        submission = _visible(service, submission_id, identity)
        return ActionsResponse(status=submission.status, actions=service.available_actions(submission_id))
    except WorkflowError as e:
        raise http_error(e) from e


@router.get("/{submission_id}/signatures", response_model=List[SignatureResponse])
def list_signatures(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.signatures(submission_id)
    except WorkflowError as e:
        raise http_error(e) from e


@router.get("/{submission_id}/amendments", response_model=List[AmendmentResponse])
def list_amendments(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.amendments(submission_id)
    except WorkflowError as e:
        raise http_error(e) from e


@router.get("/{submission_id}/integrity", response_model=IntegrityResponse)
def verify_integrity(
    submission_id: int,
    identity: Identity = Depends(get_current_identity),
    service: SubmissionService = Depends(get_submission_service)
):
    try:
        _visible(service, submission_id, identity)
        return service.verify_integrity(submission_id)
    except WorkflowError as e:
        raise http_error(e) from e
