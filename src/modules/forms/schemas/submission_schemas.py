from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field

from modules.forms.models.signature import SignatureAction, SignatureMethod
from modules.forms.models.submission import SubmissionStatus
from modules.forms.models.template import Recurrence


# ---------------------------------------------------------------- templates
class TemplateCreateRequest(BaseModel):
    template_code: str = Field(min_length=1, max_length=20)
    name: str
    form_type: str = "CHECKLIST"
    form_schema: Dict[str, Any]
    required_signers: List[Dict[str, Any]]
    recurrence: Recurrence = Recurrence.NONE
    allow_parallel_signing: bool = False


class TemplateVersionRequest(BaseModel):
    form_schema: Dict[str, Any]
    required_signers: List[Dict[str, Any]]
    recurrence: Recurrence = Recurrence.NONE
    allow_parallel_signing: bool = False


class TemplateVersionResponse(BaseModel):
    template_id: int
    template_code: str
    name: str
    version: int
    form_schema: Dict[str, Any]
    required_signers: List[Dict[str, Any]]
    recurrence: Recurrence
    allow_parallel_signing: bool
    published_at: Optional[datetime] = None

    @classmethod
    def from_version(cls, version) -> "TemplateVersionResponse":
        return cls(
            template_id=version.template_id,
            template_code=version.template.template_code,
            name=version.template.name,
            version=version.version,
            form_schema=version.form_schema,
            required_signers=version.required_signers,
            recurrence=version.recurrence,
            allow_parallel_signing=version.allow_parallel_signing,
            published_at=version.published_at,
        )


# ---------------------------------------------------------------- submissions
class SubmissionCreateRequest(BaseModel):
    template_id: int
    vessel_id: Optional[int] = None
    scope_name: Optional[str] = None
    form_data: Dict[str, Any] = {}


class DraftUpdateRequest(BaseModel):
    form_data: Dict[str, Any]


class SubmitRequest(BaseModel):
    # References of attachments already accepted by the storage service
    attachments: List[str] = []


class SignRequest(BaseModel):
    order: int = Field(gt=0)
    method: SignatureMethod = SignatureMethod.PIN
    pin: Optional[str] = None
    signature_data: Optional[str] = None


class RejectRequest(BaseModel):
    order: int = Field(gt=0)
    reason: str
    method: SignatureMethod = SignatureMethod.SSO


class DelegateRequest(BaseModel):
    order: int = Field(gt=0)
    delegate_to_user_id: int


class AmendRequest(BaseModel):
    form_data: Dict[str, Any]
    reason: str
    # A DPA may approve another user's amendment by confirming with their PIN
    dpa_user_id: Optional[int] = None
    dpa_pin: Optional[str] = None


class SubmissionResponse(BaseModel):
    id: int
    submission_number: str
    company_id: int
    vessel_id: Optional[int] = None
    scope_name: Optional[str] = None
    template_id: int
    template_version: int
    form_data: Dict[str, Any]
    content_hash: str
    status: SubmissionStatus
    is_locked: bool
    signing_round: int
    created_by: int
    rejection_reason: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    submitted_at: Optional[datetime] = None
    signed_at: Optional[datetime] = None
    rejected_at: Optional[datetime] = None
    archived_at: Optional[datetime] = None

    model_config = {"from_attributes": True}


class SignatureResponse(BaseModel):
    id: int
    signing_round: int
    order: int
    role: str
    signer_user_id: int
    signer_name: Optional[str] = None
    method: SignatureMethod
    action: SignatureAction
    rejection_reason: Optional[str] = None
    delegated_to_user_id: Optional[int] = None
    content_hash: str
    is_superseded: bool
    signed_at: datetime

    model_config = {"from_attributes": True}


class AmendmentResponse(BaseModel):
    id: int
    amendment_number: int
    reason: str
    changed_fields: List[str]
    previous_hash: str
    new_hash: str
    requires_re_signature: bool
    created_by: int
    approved_by: Optional[int] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class IntegrityResponse(BaseModel):
    submission_id: int
    submission_number: str
    content_hash: str
    computed_hash: str
    valid: bool


class ActionsResponse(BaseModel):
    status: SubmissionStatus
    actions: List[str]
